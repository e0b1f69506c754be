"""Interior Design Generator: FastAPI Application.

This module defines the application factory, the module-level ``app``
instance, all REST API routes, and the ``main()`` CLI function that launches
the uvicorn server.

Architecture
------------
- **Configuration** comes from :data:`interiorgen.core.config.config`
  (environment variables and ``.env``).
- **Remote clients** (Replicate, S3, MongoDB, httpx) are constructed once
  inside the lifespan by :func:`build_services` and stored on
  ``app.state.services``.  Tests inject their own :class:`Services`.
- **Generation** is delegated to
  :class:`~interiorgen.api.orchestrator.GenerationOrchestrator`.
- Route handlers that call remote services are plain ``def`` functions, so
  FastAPI runs each request in its thread pool.

Endpoints
---------
========  ==================  ==========================================
Method    Path                Purpose
========  ==================  ==========================================
GET       ``/api/health``     Liveness check
POST      ``/api/generate``   Generate a design (prompt-only or edit)
GET       ``/api/gallery``    All gallery items, newest first
========  ==================  ==========================================

Usage
-----
CLI (installed entry point)::

    interiorgen

Direct invocation::

    python -m interiorgen.api.main
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from interiorgen import __version__
from interiorgen.api.gallery_store import (
    FileGalleryRepository,
    GalleryRepository,
    MongoGalleryRepository,
)
from interiorgen.api.models import (
    Dimensions,
    ErrorResponse,
    GalleryItem,
    GenerateRequest,
    GenerateResponse,
)
from interiorgen.api.orchestrator import (
    GenerationJob,
    GenerationOrchestrator,
    PreprocessSettings,
    resolve_mode,
)
from interiorgen.core.config import InteriorgenConfig, config
from interiorgen.core.errors import GenerationFailed, RequestRejected
from interiorgen.core.inference import InferenceClient
from interiorgen.core.storage import ArtifactFetcher, ObjectStoreUploader

logger = logging.getLogger(__name__)

GENERATE_ERROR = "Failed to generate design"
GALLERY_ERROR = "Failed to fetch gallery items"


# ---------------------------------------------------------------------------
# Service wiring.
# ---------------------------------------------------------------------------


@dataclass
class Services:
    """Process-wide collaborators shared by all requests.

    Attributes:
        orchestrator: Runs generation requests.
        gallery: Gallery store used for listing.
        max_upload_bytes: Per-file limit for ``image`` and ``mask`` uploads.
    """

    orchestrator: GenerationOrchestrator
    gallery: GalleryRepository
    max_upload_bytes: int = 10 * 1024 * 1024

    def close(self) -> None:
        """Close the HTTP client and the gallery connection."""
        self.orchestrator.fetcher.close()
        self.gallery.close()


def build_gallery(settings: InteriorgenConfig) -> GalleryRepository:
    """Return the gallery store selected by *settings*."""
    if settings.use_mongodb:
        repository = MongoGalleryRepository.from_uri(
            settings.mongodb_uri,
            default_database=settings.mongodb_database,
            collection_name=settings.mongodb_collection,
        )
        try:
            repository.ensure_indexes()
        except PyMongoError:
            # The server keeps running; gallery requests report the error.
            logger.exception("MongoDB connection error.")
        return repository

    logger.info("MONGODB_URI not set; using file gallery at '%s'.", settings.gallery_db)
    return FileGalleryRepository(settings.gallery_db)


def build_services(settings: InteriorgenConfig) -> Services:
    """Construct every remote client from *settings*."""
    if not settings.aws_s3_bucket_name:
        logger.warning("AWS_S3_BUCKET_NAME is not set; uploads will fail.")
    if not settings.replicate_api_token:
        logger.warning("REPLICATE_API_TOKEN is not set; inference will fail.")

    gallery = build_gallery(settings)
    orchestrator = GenerationOrchestrator(
        inference=InferenceClient.from_token(
            settings.replicate_api_token,
            settings.replicate_model,
        ),
        fetcher=ArtifactFetcher(),
        uploader=ObjectStoreUploader.from_credentials(
            bucket=settings.aws_s3_bucket_name,
            region=settings.aws_region,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            prefix=settings.s3_key_prefix,
        ),
        gallery=gallery,
        preprocess=PreprocessSettings(
            max_size=settings.max_image_size,
            mask_threshold=settings.mask_threshold,
            mask_blur_radius=settings.mask_blur_radius,
        ),
    )
    return Services(
        orchestrator=orchestrator,
        gallery=gallery,
        max_upload_bytes=settings.max_upload_bytes,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the services built at startup."""
    return request.app.state.services


# ---------------------------------------------------------------------------
# Request parsing helpers.
# ---------------------------------------------------------------------------


def _error(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


def _read_upload(upload: UploadFile | None, label: str, limit: int) -> bytes | None:
    """Read an uploaded file, treating an empty part as absent.

    Raises:
        RequestRejected: If the file exceeds *limit* bytes.
    """
    if upload is None:
        return None

    data = upload.file.read(limit + 1)
    if len(data) > limit:
        raise RequestRejected(f"{label} exceeds the upload limit of {limit} bytes")
    return data or None


async def read_json_request(request: Request) -> GenerateRequest | None:
    """FastAPI dependency parsing an ``application/json`` generate body.

    Returns ``None`` for form-encoded requests, whose fields are bound by
    the route parameters instead.

    Raises:
        RequestRejected: If the body is not a JSON object of the expected
            shape.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.split(";")[0].strip().lower() != "application/json":
        return None

    try:
        return GenerateRequest.model_validate(await request.json())
    except (json.JSONDecodeError, ValidationError) as exc:
        raise RequestRejected(f"Invalid JSON body: {exc}") from exc


def parse_dimensions(raw: str | None) -> Dimensions | None:
    """Parse the JSON-encoded ``dimensions`` form field.

    Raises:
        RequestRejected: If the value is not a JSON object with numeric
            ``width``, ``length`` and ``height``.
    """
    if raw is None or not raw.strip():
        return None

    try:
        return Dimensions.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise RequestRejected(f"Invalid dimensions: {exc}") from exc


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(
    services: Services | None = None,
    settings: InteriorgenConfig | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        services: Pre-built services.  When ``None`` they are constructed
            from *settings* on startup and closed on shutdown.
        settings: Configuration used to build services.  Defaults to the
            global :data:`config`.

    Returns:
        The configured application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = services is None
        app.state.services = services or build_services(settings or config)
        logger.info("Services initialised.")

        yield

        if owned:
            app.state.services.close()
            logger.info("Services closed on shutdown.")

    app = FastAPI(
        title="Interior Design Generator",
        description="Generates interior designs from prompts and room photos.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestRejected)
    async def request_rejected_handler(request: Request, exc: RequestRejected) -> JSONResponse:
        logger.info("Rejected request: %s", exc)
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _error(400, "Invalid request", str(exc))

    # -----------------------------------------------------------------------
    # Routes.
    # -----------------------------------------------------------------------

    @app.get("/api/health")
    async def health() -> dict:
        """Liveness check."""
        return {"status": "ok"}

    @app.post(
        "/api/generate",
        response_model=GenerateResponse,
        response_model_exclude_none=True,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    def generate_design(
        prompt: str | None = Form(default=None),
        mode: str | None = Form(default=None),
        dimensions: str | None = Form(default=None),
        image: UploadFile | None = File(default=None),
        mask: UploadFile | None = File(default=None),
        json_request: GenerateRequest | None = Depends(read_json_request),
        services: Services = Depends(get_services),
    ):
        """Generate a design and add it to the gallery.

        This endpoint:

        1. Validates the prompt, mode, dimensions and uploads (``400`` on
           failure, before any remote call).  The fields arrive as a
           multipart or urlencoded form, or as a JSON object without
           uploads.
        2. Runs the orchestrator: compose the prompt, preprocess and upload
           the image/mask in edit mode, run inference, fetch the artifact,
           upload it and persist the gallery item.

        Returns:
            ``{"outputUrl", "originalImage"?, "maskImage"?}``, or an error
            body with status ``400``/``500``.
        """
        try:
            if json_request is not None:
                prompt, mode = json_request.prompt, json_request.mode
                dimensions = json_request.dimensions

            if prompt is None or not prompt.strip():
                raise RequestRejected("prompt is required")

            image_data = _read_upload(image, "image", services.max_upload_bytes)
            mask_data = _read_upload(mask, "mask", services.max_upload_bytes)
            job = GenerationJob(
                prompt=prompt,
                mode=resolve_mode(
                    mode,
                    has_image=image_data is not None,
                    has_mask=mask_data is not None,
                ),
                dimensions=(
                    dimensions
                    if isinstance(dimensions, Dimensions)
                    else parse_dimensions(dimensions)
                ),
                image=image_data,
                mask=mask_data,
            )
        except RequestRejected as exc:
            logger.info("Rejected generate request: %s", exc)
            return _error(400, str(exc))

        try:
            result = services.orchestrator.generate(job)
        except GenerationFailed as exc:
            logger.error("Error generating design (stage=%s): %s", exc.stage, exc)
            return _error(500, GENERATE_ERROR, str(exc))

        return GenerateResponse(
            output_url=result.output_url,
            original_image=result.original_image,
            mask_image=result.mask_image,
        )

    @app.get(
        "/api/gallery",
        response_model=list[GalleryItem],
        response_model_exclude_none=True,
        responses={500: {"model": ErrorResponse}},
    )
    def get_gallery(services: Services = Depends(get_services)):
        """Return every gallery item, newest first."""
        try:
            return services.gallery.list_all()
        except Exception as exc:
            logger.exception("Error fetching gallery items.")
            return _error(500, GALLERY_ERROR, str(exc))

    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Configure logging and launch the uvicorn ASGI server.

    Host and port come from :data:`~interiorgen.core.config.config`
    (``HOST`` and ``PORT``, default ``0.0.0.0:3000``).  Registered as the
    ``interiorgen`` console script in ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    uvicorn.run(
        "interiorgen.api.main:app",
        host=config.host,
        port=config.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
