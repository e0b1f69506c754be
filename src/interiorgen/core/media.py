"""Image and mask preprocessing for edit-mode generation.

Uploaded room photos are shrunk to fit a square bounding box (never
upscaled) and re-encoded as JPEG.  Masks are resized to exactly the
processed image size, binarised with a fixed threshold and blurred so that
the model sees a soft alpha transition instead of a hard edge.

Usage
-----
::

    processed = preprocess_media(image_bytes, mask_bytes, max_size=1024)
    processed.image   # JPEG bytes
    processed.mask    # PNG bytes, or None
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from interiorgen.core.errors import MediaProcessingError

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 1024
DEFAULT_MASK_THRESHOLD = 128
DEFAULT_MASK_BLUR_RADIUS = 8.0


@dataclass
class ProcessedMedia:
    """Encoded, size-bounded image and optional mask ready for upload."""

    image: bytes
    mask: bytes | None
    width: int
    height: int


def _open_image(data: bytes, label: str) -> Image.Image:
    """Decode *data* fully, raising :class:`MediaProcessingError` on failure."""
    if not data:
        raise MediaProcessingError(f"{label} is empty")
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise MediaProcessingError(f"Could not decode {label}: {exc}") from exc
    return image


def resize_to_fit(image: Image.Image, max_size: int) -> Image.Image:
    """Shrink *image* to fit within ``max_size x max_size``.

    Aspect ratio is preserved.  Images already within the box are returned
    unchanged (as a copy), so small inputs are never upscaled.
    """
    resized = image.copy()
    resized.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
    return resized


def binarize_mask(mask: Image.Image, threshold: int, blur_radius: float) -> Image.Image:
    """Convert *mask* to black/white at *threshold*, then soften the edge.

    Args:
        mask: Greyscale (``"L"``) mask image.
        threshold: Pixels at or above this level become 255, others 0.
        blur_radius: Gaussian blur radius.  ``0`` leaves a hard edge.

    Returns:
        The processed ``"L"`` mode mask.
    """
    binary = mask.point(lambda p: 255 if p >= threshold else 0)
    if blur_radius > 0:
        binary = binary.filter(ImageFilter.GaussianBlur(radius=blur_radius))
    return binary


def preprocess_media(
    image_bytes: bytes,
    mask_bytes: bytes | None = None,
    *,
    max_size: int = DEFAULT_MAX_SIZE,
    threshold: int = DEFAULT_MASK_THRESHOLD,
    blur_radius: float = DEFAULT_MASK_BLUR_RADIUS,
) -> ProcessedMedia:
    """Normalise an uploaded image and optional mask.

    Args:
        image_bytes: Raw bytes of the uploaded room image.
        mask_bytes: Raw bytes of the uploaded mask, or ``None``.
        max_size: Edge of the bounding box the image is shrunk into.
        threshold: Mask binarisation threshold (0-255).
        blur_radius: Gaussian blur radius applied after binarisation.

    Returns:
        :class:`ProcessedMedia` with a JPEG image and, when a mask was
        supplied, a PNG mask of identical dimensions.

    Raises:
        MediaProcessingError: If either input cannot be decoded or
            re-encoded.
    """
    source = _open_image(image_bytes, "image")

    try:
        # Camera uploads often carry their rotation in EXIF only.
        source = ImageOps.exif_transpose(source)
        image = resize_to_fit(source.convert("RGB"), max_size)

        image_buffer = io.BytesIO()
        image.save(image_buffer, format="JPEG", quality=95)
    except (OSError, ValueError) as exc:
        raise MediaProcessingError(f"Could not process image: {exc}") from exc

    logger.info(
        "Image preprocessed: %dx%d -> %dx%d.",
        source.width,
        source.height,
        image.width,
        image.height,
    )

    mask_data: bytes | None = None
    if mask_bytes is not None:
        raw_mask = _open_image(mask_bytes, "mask")
        try:
            mask = raw_mask.convert("L")
            # The model expects the mask to overlay the image pixel for pixel.
            if mask.size != image.size:
                mask = mask.resize(image.size, Image.Resampling.LANCZOS)
            mask = binarize_mask(mask, threshold, blur_radius)

            mask_buffer = io.BytesIO()
            mask.save(mask_buffer, format="PNG")
        except (OSError, ValueError) as exc:
            raise MediaProcessingError(f"Could not process mask: {exc}") from exc
        mask_data = mask_buffer.getvalue()

    return ProcessedMedia(
        image=image_buffer.getvalue(),
        mask=mask_data,
        width=image.width,
        height=image.height,
    )
