"""Shared pytest fixtures for Interior Design Generator tests.

Remote services are never contacted:

- the Replicate client is a ``MagicMock`` whose ``run`` returns a URL list;
- the boto3 S3 client is a ``MagicMock``;
- artifact downloads go through an ``httpx.MockTransport``;
- the gallery is a :class:`FileGalleryRepository` in a temporary directory.
"""

from __future__ import annotations

import io
import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from interiorgen.api.gallery_store import FileGalleryRepository
from interiorgen.api.main import Services, create_app
from interiorgen.api.orchestrator import GenerationOrchestrator, PreprocessSettings
from interiorgen.core.config import InteriorgenConfig
from interiorgen.core.inference import InferenceClient
from interiorgen.core.storage import ArtifactFetcher, ObjectStoreUploader

TEST_BUCKET = "test-bucket"
TEST_REGION = "eu-west-2"
TEST_MODEL = "owner/model:version"
ARTIFACT_URL = "https://replicate.delivery/pbxt/output.jpg"
ARTIFACT_BYTES = b"\xff\xd8\xff\xe0generated-jpeg"


def make_image_bytes(
    size: tuple[int, int],
    *,
    mode: str = "RGB",
    color=(200, 120, 40),
    fmt: str = "PNG",
) -> bytes:
    """Encode a solid-colour image of *size*."""
    buffer = io.BytesIO()
    Image.new(mode, size, color=color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def make_image():
    """Factory fixture for encoded solid-colour images."""
    return make_image_bytes


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> InteriorgenConfig:
    """Configuration pointing at temporary storage, ignoring any .env file."""
    return InteriorgenConfig(
        _env_file=None,
        replicate_api_token="r8_test",
        replicate_model=TEST_MODEL,
        aws_region=TEST_REGION,
        aws_s3_bucket_name=TEST_BUCKET,
        mongodb_uri=None,
        gallery_db=temp_dir / "gallery.json",
    )


@pytest.fixture
def room_image() -> bytes:
    """A 2048x1536 room photo, larger than the bounding box."""
    return make_image_bytes((2048, 1536), fmt="JPEG")


@pytest.fixture
def mask_image() -> bytes:
    """A greyscale mask with the left half selected."""
    mask = Image.new("L", (2048, 1536), color=0)
    mask.paste(255, (0, 0, 1024, 1536))
    buffer = io.BytesIO()
    mask.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def mock_s3() -> MagicMock:
    """A boto3 S3 client stand-in that accepts every call."""
    return MagicMock(name="s3")


@pytest.fixture
def mock_replicate() -> MagicMock:
    """A Replicate client stand-in returning one output URL."""
    client = MagicMock(name="replicate")
    client.run.return_value = [ARTIFACT_URL]
    return client


@pytest.fixture
def fetch_requests() -> list[httpx.Request]:
    """Requests received by the mock artifact transport."""
    return []


@pytest.fixture
def fetcher(fetch_requests: list[httpx.Request]) -> Generator[ArtifactFetcher, None, None]:
    """An :class:`ArtifactFetcher` serving :data:`ARTIFACT_BYTES` for any URL."""

    def handler(request: httpx.Request) -> httpx.Response:
        fetch_requests.append(request)
        return httpx.Response(200, content=ARTIFACT_BYTES)

    artifact_fetcher = ArtifactFetcher(httpx.Client(transport=httpx.MockTransport(handler)))
    yield artifact_fetcher
    artifact_fetcher.close()


@pytest.fixture
def uploader(mock_s3: MagicMock) -> ObjectStoreUploader:
    return ObjectStoreUploader(mock_s3, bucket=TEST_BUCKET, region=TEST_REGION)


@pytest.fixture
def gallery(temp_dir: Path) -> FileGalleryRepository:
    return FileGalleryRepository(temp_dir / "gallery.json")


@pytest.fixture
def orchestrator(
    mock_replicate: MagicMock,
    fetcher: ArtifactFetcher,
    uploader: ObjectStoreUploader,
    gallery: FileGalleryRepository,
) -> GenerationOrchestrator:
    """Orchestrator wired to mocked remote clients."""
    return GenerationOrchestrator(
        inference=InferenceClient(mock_replicate, TEST_MODEL),
        fetcher=fetcher,
        uploader=uploader,
        gallery=gallery,
        preprocess=PreprocessSettings(max_size=1024, mask_threshold=128, mask_blur_radius=4),
    )


@pytest.fixture
def services(orchestrator: GenerationOrchestrator, gallery: FileGalleryRepository) -> Services:
    return Services(orchestrator=orchestrator, gallery=gallery, max_upload_bytes=10 * 1024 * 1024)


@pytest.fixture
def test_client(services: Services) -> Generator[TestClient, None, None]:
    """A FastAPI ``TestClient`` running the app with injected services."""
    with TestClient(create_app(services=services)) as client:
        yield client
