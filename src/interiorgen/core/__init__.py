"""Core collaborators: configuration, errors, media preprocessing,
inference and object storage."""

from interiorgen.core.config import InteriorgenConfig, config
from interiorgen.core.errors import (
    ArtifactFetchError,
    GenerationFailed,
    InferenceOutputError,
    InteriorgenError,
    MediaProcessingError,
    RequestRejected,
    StorageError,
)

__all__ = [
    "InteriorgenConfig",
    "config",
    "InteriorgenError",
    "RequestRejected",
    "MediaProcessingError",
    "InferenceOutputError",
    "ArtifactFetchError",
    "StorageError",
    "GenerationFailed",
]
