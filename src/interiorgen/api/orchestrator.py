"""Sequencing of a single design generation run.

:class:`GenerationOrchestrator` receives every remote collaborator through
its constructor and runs the steps of one request strictly in order::

    received -> composing -> [preprocessing -> uploading_inputs]
             -> inferring -> fetching -> uploading -> persisting -> responded

The bracketed stages only run in edit mode.  The first failing stage ends
the run: the error is logged and re-raised as
:class:`~interiorgen.core.errors.GenerationFailed`, carrying the stage name
and the original message.

Compensation
------------
If persisting the gallery item fails, every object uploaded during the run
(source image, mask and generated image) is deleted from the object store
so that no unreferenced artifacts are left behind.  A failed deletion is
logged and does not replace the original error.

Mode Resolution
---------------
:func:`resolve_mode` turns the optional ``mode`` form field plus the
presence of ``image``/``mask`` uploads into an explicit
:class:`~interiorgen.api.models.GenerationMode`, rejecting ambiguous
combinations before any remote call is made.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum

from interiorgen.api.gallery_store import GalleryRepository
from interiorgen.api.models import Dimensions, GalleryItem, GenerationMode
from interiorgen.api.prompt_builder import NEGATIVE_PROMPT, build_prompt
from interiorgen.core.errors import GenerationFailed, RequestRejected
from interiorgen.core.inference import InferenceClient
from interiorgen.core.media import (
    DEFAULT_MASK_BLUR_RADIUS,
    DEFAULT_MASK_THRESHOLD,
    DEFAULT_MAX_SIZE,
    preprocess_media,
)
from interiorgen.core.storage import ArtifactFetcher, ObjectStoreUploader, StoredObject

logger = logging.getLogger(__name__)


class GenerationStage(str, Enum):
    """Stages of a generation run, in execution order."""

    RECEIVED = "received"
    COMPOSING = "composing"
    PREPROCESSING = "preprocessing"
    UPLOADING_INPUTS = "uploading_inputs"
    INFERRING = "inferring"
    FETCHING = "fetching"
    UPLOADING = "uploading"
    PERSISTING = "persisting"
    RESPONDED = "responded"
    FAILED = "failed"


@dataclass
class GenerationJob:
    """A validated generation request.

    Attributes:
        prompt: The user's prompt.
        mode: Explicit generation mode.
        dimensions: Optional room dimensions for the prompt.
        image: Raw uploaded image bytes (edit mode only).
        mask: Raw uploaded mask bytes (edit mode only, optional).
    """

    prompt: str
    mode: GenerationMode = GenerationMode.PROMPT
    dimensions: Dimensions | None = None
    image: bytes | None = None
    mask: bytes | None = None

    def __post_init__(self) -> None:
        if self.mode is GenerationMode.EDIT and not self.image:
            raise RequestRejected("An image is required in edit mode")
        if self.mode is GenerationMode.PROMPT and (self.image or self.mask):
            raise RequestRejected("Images are not accepted in prompt mode")


@dataclass
class GenerationResult:
    """Outcome of a successful run."""

    output_url: str
    item: GalleryItem
    original_image: str | None = None
    mask_image: str | None = None


@dataclass
class PreprocessSettings:
    """Image and mask normalisation parameters."""

    max_size: int = DEFAULT_MAX_SIZE
    mask_threshold: int = DEFAULT_MASK_THRESHOLD
    mask_blur_radius: float = DEFAULT_MASK_BLUR_RADIUS


def resolve_mode(mode: str | None, *, has_image: bool, has_mask: bool) -> GenerationMode:
    """Resolve the generation mode for a request.

    An explicit *mode* wins.  Without one, an uploaded image selects edit
    mode and its absence selects prompt-only mode.

    Args:
        mode: Value of the ``mode`` form field, or ``None``.
        has_image: Whether an image was uploaded.
        has_mask: Whether a mask was uploaded.

    Returns:
        The resolved mode.

    Raises:
        RequestRejected: For an unknown mode, a mask without an image, edit
            mode without an image, or prompt mode with uploads attached.
    """
    if has_mask and not has_image:
        raise RequestRejected("A mask requires an image")

    if mode is None or not mode.strip():
        return GenerationMode.EDIT if has_image else GenerationMode.PROMPT

    try:
        resolved = GenerationMode(mode.strip().lower())
    except ValueError:
        raise RequestRejected(
            f"Unknown mode '{mode}'; expected 'prompt' or 'edit'"
        ) from None

    if resolved is GenerationMode.EDIT and not has_image:
        raise RequestRejected("An image is required in edit mode")
    if resolved is GenerationMode.PROMPT and has_image:
        raise RequestRejected("Images are not accepted in prompt mode")
    return resolved


class _Run:
    """Mutable bookkeeping for one run: current stage and uploaded objects."""

    def __init__(self) -> None:
        self.id = uuid.uuid4().hex[:8]
        self.stage = GenerationStage.RECEIVED
        self.uploaded: list[StoredObject] = []

    def enter(self, stage: GenerationStage) -> None:
        self.stage = stage
        logger.info("Generation %s: %s.", self.id, stage.value)


class GenerationOrchestrator:
    """Runs compose, preprocess, infer, fetch, upload and persist in order."""

    def __init__(
        self,
        inference: InferenceClient,
        fetcher: ArtifactFetcher,
        uploader: ObjectStoreUploader,
        gallery: GalleryRepository,
        preprocess: PreprocessSettings | None = None,
    ) -> None:
        self.inference = inference
        self.fetcher = fetcher
        self.uploader = uploader
        self.gallery = gallery
        self.preprocess = preprocess or PreprocessSettings()

    def generate(self, job: GenerationJob) -> GenerationResult:
        """Run one generation request end to end.

        Args:
            job: The validated request.

        Returns:
            :class:`GenerationResult` with the public URLs and saved item.

        Raises:
            GenerationFailed: If any stage fails.  No gallery item is
                persisted in that case.
        """
        run = _Run()
        logger.info("Generation %s: %s (mode=%s).", run.id, run.stage.value, job.mode.value)

        try:
            return self._execute(run, job)
        except Exception as exc:
            failed_stage = run.stage
            logger.exception("Generation %s failed during %s.", run.id, failed_stage.value)
            if failed_stage is GenerationStage.PERSISTING:
                self._compensate(run)
            run.enter(GenerationStage.FAILED)
            raise GenerationFailed(failed_stage.value, exc) from exc

    def _execute(self, run: _Run, job: GenerationJob) -> GenerationResult:
        run.enter(GenerationStage.COMPOSING)
        composed_prompt = build_prompt(job.prompt, job.dimensions)
        logger.debug("Composed prompt: %s", composed_prompt)

        original: StoredObject | None = None
        mask: StoredObject | None = None

        if job.mode is GenerationMode.EDIT:
            run.enter(GenerationStage.PREPROCESSING)
            media = preprocess_media(
                job.image,
                job.mask,
                max_size=self.preprocess.max_size,
                threshold=self.preprocess.mask_threshold,
                blur_radius=self.preprocess.mask_blur_radius,
            )

            run.enter(GenerationStage.UPLOADING_INPUTS)
            original = self.uploader.upload(media.image, f"original_{job.prompt}", "image/jpeg")
            run.uploaded.append(original)
            if media.mask is not None:
                mask = self.uploader.upload(media.mask, f"mask_{job.prompt}", "image/png")
                run.uploaded.append(mask)

        run.enter(GenerationStage.INFERRING)
        artifact_url = self.inference.run(
            composed_prompt,
            negative_prompt=NEGATIVE_PROMPT,
            image_url=original.url if original else None,
            mask_url=mask.url if mask else None,
        )

        run.enter(GenerationStage.FETCHING)
        artifact = self.fetcher.fetch(artifact_url)

        run.enter(GenerationStage.UPLOADING)
        output = self.uploader.upload(artifact, job.prompt, "image/jpeg")
        run.uploaded.append(output)

        run.enter(GenerationStage.PERSISTING)
        item = self.gallery.save(
            GalleryItem(
                prompt=job.prompt,
                image_url=output.url,
                dimensions=job.dimensions,
                original_image=original.url if original else None,
                mask_image=mask.url if mask else None,
            )
        )

        run.enter(GenerationStage.RESPONDED)
        return GenerationResult(
            output_url=output.url,
            item=item,
            original_image=item.original_image,
            mask_image=item.mask_image,
        )

    def _compensate(self, run: _Run) -> None:
        """Delete every object uploaded during *run*."""
        for stored in run.uploaded:
            try:
                self.uploader.delete(stored.key)
            except Exception:
                logger.exception(
                    "Generation %s: could not delete orphaned object '%s'.",
                    run.id,
                    stored.key,
                )
