"""Exception types raised by the Interior Design Generator.

Route handlers in :mod:`interiorgen.api.main` translate these into HTTP
responses: :class:`RequestRejected` becomes a ``400``, everything raised from
inside a generation run arrives wrapped in :class:`GenerationFailed` and
becomes a ``500``.
"""

from __future__ import annotations


class InteriorgenError(Exception):
    """Base class for all application errors."""


class RequestRejected(InteriorgenError):
    """The request is invalid and was rejected before any remote call."""


class MediaProcessingError(InteriorgenError):
    """An uploaded image or mask could not be decoded or resized."""


class InferenceOutputError(InteriorgenError):
    """The inference provider returned an output of an unexpected shape."""


class ArtifactFetchError(InteriorgenError):
    """The generated artifact could not be downloaded."""


class StorageError(InteriorgenError):
    """An object-store operation failed."""


class GenerationFailed(InteriorgenError):
    """A generation run failed at a specific stage.

    The message is the message of the underlying cause so that it can be
    reported to the client verbatim as ``details``.

    Attributes:
        stage: Name of the stage that was running when the failure occurred.
        cause: The original exception.
    """

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(str(cause))
        self.stage = stage
        self.cause = cause
