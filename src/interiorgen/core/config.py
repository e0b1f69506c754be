"""Configuration management for the Interior Design Generator.

This module provides centralized configuration management using Pydantic
Settings.  Values are read from environment variables (case-insensitive,
no prefix) so that the conventional provider variable names work as-is.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:

1. Environment variables
2. ``.env`` file in the working directory
3. Default values defined in :class:`InteriorgenConfig`

Example .env file::

    REPLICATE_API_TOKEN=r8_xxx
    AWS_REGION=eu-west-2
    AWS_ACCESS_KEY_ID=AKIA...
    AWS_SECRET_ACCESS_KEY=...
    AWS_S3_BUCKET_NAME=interior-designs
    MONGODB_URI=mongodb://localhost:27017/interiorgen
    PORT=3000

Gallery Backend Selection
-------------------------
When ``MONGODB_URI`` is set the gallery is stored in MongoDB.  When it is
empty the gallery falls back to a single JSON file at ``GALLERY_DB``, which
is convenient for local development.

Global Configuration Instance
------------------------------
A global ``config`` instance is created at import time and used by
:func:`interiorgen.api.main.create_app` when no services are injected.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL = (
    "rihan-a/colourful_interiors:"
    "ba0425bc2e4bebafa8bd918519fdf3b5a022969a6a7c8ba0746b807bb5b541a3"
)


class InteriorgenConfig(BaseSettings):
    """Main configuration for the Interior Design Generator.

    Attributes
    ----------
    Inference:
        replicate_api_token : str | None
            Credential for the Replicate API.
        replicate_model : str
            ``owner/name:version`` reference of the model to run.

    Object storage:
        aws_region : str
            Region of the S3 bucket; also used to build public URLs.
        aws_access_key_id, aws_secret_access_key : str | None
            S3 credentials.  When unset, boto3's default credential chain
            is used.
        aws_s3_bucket_name : str
            Bucket receiving uploads and generated images.
        s3_key_prefix : str
            Path prefix under which every object key is created.

    Gallery:
        mongodb_uri : str | None
            MongoDB connection string.  Empty selects the JSON file store.
        mongodb_database : str
            Database name used when the URI does not name one.
        mongodb_collection : str
            Collection holding gallery items.
        gallery_db : Path
            JSON file used by the file-backed gallery.

    Uploads and preprocessing:
        max_upload_bytes : int
            Per-file size limit for ``image`` and ``mask`` uploads.
        max_image_size : int
            Edge of the square bounding box images are shrunk into.
        mask_threshold : int
            Greyscale level at or above which a mask pixel becomes white.
        mask_blur_radius : float
            Gaussian blur radius applied to the binarised mask.

    Server:
        host, port : str, int
            Listen address for uvicorn.
        log_level : str
            Root logger level.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Inference provider
    replicate_api_token: str | None = Field(
        default=None,
        description="Replicate API token",
    )
    replicate_model: str = Field(
        default=DEFAULT_MODEL,
        description="Replicate model reference (owner/name:version)",
    )

    # Object storage
    aws_region: str = Field(default="us-east-1", description="S3 bucket region")
    aws_access_key_id: str | None = Field(default=None, description="S3 access key")
    aws_secret_access_key: str | None = Field(default=None, description="S3 secret key")
    aws_s3_bucket_name: str = Field(default="", description="S3 bucket name")
    s3_key_prefix: str = Field(
        default="genai-images",
        description="Path prefix for every uploaded object key",
    )

    # Gallery persistence
    mongodb_uri: str | None = Field(
        default=None,
        description="MongoDB connection string (empty = JSON file store)",
    )
    mongodb_database: str = Field(
        default="interiorgen",
        description="Database used when the URI does not name one",
    )
    mongodb_collection: str = Field(default="galleries")
    gallery_db: Path = Field(
        default=Path("data/gallery.json"),
        description="JSON file backing the gallery when MongoDB is not configured",
    )

    # Uploads and preprocessing
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, ge=1)
    max_image_size: int = Field(default=1024, ge=64, le=4096)
    mask_threshold: int = Field(default=128, ge=0, le=255)
    mask_blur_radius: float = Field(default=8.0, ge=0.0)

    # Server
    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(default=3000, ge=1, le=65535, description="Server port")
    log_level: str = Field(default="INFO", description="Root logger level")

    @property
    def use_mongodb(self) -> bool:
        """Whether the gallery should be stored in MongoDB."""
        return bool(self.mongodb_uri and self.mongodb_uri.strip())


# Global configuration instance, loaded from the environment and .env file.
config = InteriorgenConfig()
