"""Pydantic models for the Interior Design Generator API.

FastAPI uses these models for response serialisation and OpenAPI
documentation.  JSON field names are camelCase (``imageUrl``, ``createdAt``)
while Python attributes are snake_case; every model accepts both.

Models
------
Dimensions
    Target room size in metres, used only for prompt templating.
GenerationMode
    Explicit choice between prompt-only and image-guided generation.
GalleryItem
    A persisted generation record.
GenerateRequest
    JSON body of ``POST /api/generate``.
GenerateResponse
    Successful response body of ``POST /api/generate``.
ErrorResponse
    Error body returned by every endpoint on failure.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Dimensions(BaseModel):
    """Room size in metres.

    No range validation is applied; the numbers are only interpolated into
    the prompt.  Infinity and NaN are rejected.
    """

    width: float = Field(allow_inf_nan=False)
    length: float = Field(allow_inf_nan=False)
    height: float = Field(allow_inf_nan=False)


class GenerationMode(str, Enum):
    """How a generation request guides the model."""

    PROMPT = "prompt"
    EDIT = "edit"


class GalleryItem(BaseModel):
    """A single generated design, as stored in and listed from the gallery.

    Attributes:
        id: Identifier assigned by the gallery store.  ``None`` until saved.
        prompt: The user's original prompt text.
        image_url: Public URL of the generated image.
        dimensions: Optional room dimensions used for the prompt.
        original_image: URL of the uploaded source image (edit mode only).
        mask_image: URL of the processed mask (edit mode with a mask only).
        created_at: UTC creation timestamp.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    prompt: str = Field(..., min_length=1)
    image_url: str = Field(..., alias="imageUrl", min_length=1)
    dimensions: Dimensions | None = None
    original_image: str | None = Field(default=None, alias="originalImage")
    mask_image: str | None = Field(default=None, alias="maskImage")
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps are stored in UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class GenerateRequest(BaseModel):
    """JSON body of ``POST /api/generate`` (prompt-only requests).

    ``dimensions`` may be an object or the same JSON-encoded string the form
    field carries.
    """

    prompt: str | None = None
    mode: str | None = None
    dimensions: Dimensions | str | None = None


class GenerateResponse(BaseModel):
    """Response body for a successful ``POST /api/generate``."""

    model_config = ConfigDict(populate_by_name=True)

    output_url: str = Field(..., alias="outputUrl")
    original_image: str | None = Field(default=None, alias="originalImage")
    mask_image: str | None = Field(default=None, alias="maskImage")


class ErrorResponse(BaseModel):
    """Error body.  ``details`` carries the underlying error message."""

    error: str
    details: str | None = None
