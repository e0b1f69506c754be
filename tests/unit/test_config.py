"""Tests for interiorgen.core.config - configuration management.

Tests cover:
- Default values for all configuration fields.
- Environment variable overrides using the conventional provider names.
- Gallery backend selection.
- Pydantic validation constraints (port range, mask threshold).
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from interiorgen.core.config import DEFAULT_MODEL, InteriorgenConfig

ENV_VARS = [
    "REPLICATE_API_TOKEN",
    "REPLICATE_MODEL",
    "AWS_REGION",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_S3_BUCKET_NAME",
    "MONGODB_URI",
    "PORT",
    "HOST",
    "MAX_UPLOAD_BYTES",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove configuration variables inherited from the environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestConfigDefaults:
    """Verify that InteriorgenConfig provides sensible defaults."""

    def test_default_port(self, clean_env):
        """Default listen port should be 3000."""
        assert InteriorgenConfig(_env_file=None).port == 3000

    def test_default_model(self, clean_env):
        assert InteriorgenConfig(_env_file=None).replicate_model == DEFAULT_MODEL

    def test_default_upload_limit_is_ten_megabytes(self, clean_env):
        assert InteriorgenConfig(_env_file=None).max_upload_bytes == 10 * 1024 * 1024

    def test_default_preprocessing(self, clean_env):
        cfg = InteriorgenConfig(_env_file=None)
        assert cfg.max_image_size == 1024
        assert cfg.mask_threshold == 128
        assert cfg.mask_blur_radius == 8.0

    def test_default_key_prefix(self, clean_env):
        assert InteriorgenConfig(_env_file=None).s3_key_prefix == "genai-images"

    def test_default_gallery_db(self, clean_env):
        assert InteriorgenConfig(_env_file=None).gallery_db == Path("data/gallery.json")


class TestEnvironmentOverrides:
    """Environment variables use the conventional, unprefixed names."""

    def test_provider_variables(self, clean_env):
        clean_env.setenv("REPLICATE_API_TOKEN", "r8_abc")
        clean_env.setenv("AWS_REGION", "eu-west-2")
        clean_env.setenv("AWS_ACCESS_KEY_ID", "AKIA")
        clean_env.setenv("AWS_SECRET_ACCESS_KEY", "secret")
        clean_env.setenv("AWS_S3_BUCKET_NAME", "designs")

        cfg = InteriorgenConfig(_env_file=None)

        assert cfg.replicate_api_token == "r8_abc"
        assert cfg.aws_region == "eu-west-2"
        assert cfg.aws_access_key_id == "AKIA"
        assert cfg.aws_secret_access_key == "secret"
        assert cfg.aws_s3_bucket_name == "designs"

    def test_port_override(self, clean_env):
        clean_env.setenv("PORT", "8080")
        assert InteriorgenConfig(_env_file=None).port == 8080

    def test_env_file(self, clean_env, temp_dir):
        """Values can be loaded from a .env file."""
        env_file = temp_dir / ".env"
        env_file.write_text("AWS_S3_BUCKET_NAME=from-file\nPORT=4000\n")

        cfg = InteriorgenConfig(_env_file=env_file)

        assert cfg.aws_s3_bucket_name == "from-file"
        assert cfg.port == 4000


class TestGalleryBackend:
    """Test use_mongodb."""

    def test_file_store_without_uri(self, clean_env):
        assert InteriorgenConfig(_env_file=None).use_mongodb is False

    def test_blank_uri_selects_file_store(self, clean_env):
        assert InteriorgenConfig(_env_file=None, mongodb_uri="  ").use_mongodb is False

    def test_uri_selects_mongodb(self, clean_env):
        clean_env.setenv("MONGODB_URI", "mongodb://localhost:27017/designs")
        assert InteriorgenConfig(_env_file=None).use_mongodb is True


class TestValidation:
    """Pydantic constraints."""

    @pytest.mark.parametrize("port", [0, 70000])
    def test_invalid_port(self, clean_env, port):
        with pytest.raises(ValidationError):
            InteriorgenConfig(_env_file=None, port=port)

    def test_invalid_threshold(self, clean_env):
        with pytest.raises(ValidationError):
            InteriorgenConfig(_env_file=None, mask_threshold=300)
