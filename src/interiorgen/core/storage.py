"""Artifact download and S3 object storage.

Two small collaborators live here:

:class:`ArtifactFetcher`
    Downloads the image produced by the inference provider with an
    ``httpx`` client.
:class:`ObjectStoreUploader`
    Uploads bytes to an S3 bucket with ``boto3`` under a time-stamped key
    and returns the object's public URL.

Key Layout
----------
::

    {prefix}/{epoch_millis}_{sanitised_hint}.{ext}

``sanitised_hint`` is the first 20 characters of the caller's name hint with
every non-alphanumeric character replaced by ``_``.  Uniqueness relies on
the millisecond timestamp alone.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Any

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError

from interiorgen.core.errors import ArtifactFetchError, StorageError

logger = logging.getLogger(__name__)

_NAME_HINT_LENGTH = 20
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9]")

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


def sanitize_name_hint(hint: str) -> str:
    """Return the first 20 characters of *hint* with unsafe characters as ``_``."""
    return _UNSAFE_CHARS.sub("_", hint[:_NAME_HINT_LENGTH])


def extension_for(content_type: str) -> str:
    """Return the file extension used for *content_type*."""
    return _EXTENSIONS.get(content_type.split(";")[0].strip().lower(), "bin")


@dataclass(frozen=True)
class StoredObject:
    """Location of an uploaded object."""

    key: str
    url: str


class ArtifactFetcher:
    """Downloads generated artifacts over HTTP."""

    def __init__(self, client: httpx.Client | None = None) -> None:
        self._client = client or httpx.Client(follow_redirects=True)

    def fetch(self, url: str) -> bytes:
        """Return the full body at *url*.

        Raises:
            ArtifactFetchError: On a transport error or non-success status.
        """
        try:
            response = self._client.get(url)
        except httpx.HTTPError as exc:
            raise ArtifactFetchError(f"Failed to fetch generated image: {exc}") from exc

        if not response.is_success:
            raise ArtifactFetchError(
                f"Failed to fetch generated image: HTTP {response.status_code}"
            )

        logger.info("Fetched artifact (%d bytes).", len(response.content))
        return response.content

    def close(self) -> None:
        """Release the underlying HTTP client."""
        self._client.close()


class ObjectStoreUploader:
    """Uploads bytes to an S3 bucket and builds public URLs.

    Attributes:
        _s3: A boto3 S3 client.
        bucket: Target bucket name.
        region: Bucket region, used in public URLs.
        prefix: Key prefix for every upload.
    """

    def __init__(
        self,
        s3_client: Any,
        bucket: str,
        region: str,
        prefix: str = "genai-images",
    ) -> None:
        self._s3 = s3_client
        self.bucket = bucket
        self.region = region
        self.prefix = prefix.strip("/")

    @classmethod
    def from_credentials(
        cls,
        *,
        bucket: str,
        region: str,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        prefix: str = "genai-images",
    ) -> ObjectStoreUploader:
        """Create an uploader with its own boto3 S3 client.

        Credentials left as ``None`` fall back to boto3's default chain.
        """
        s3_client = boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )
        return cls(s3_client, bucket=bucket, region=region, prefix=prefix)

    def build_key(self, name_hint: str, content_type: str = "image/jpeg") -> str:
        """Build a new object key for *name_hint*."""
        millis = int(time.time() * 1000)
        filename = f"{millis}_{sanitize_name_hint(name_hint)}.{extension_for(content_type)}"
        return f"{self.prefix}/{filename}" if self.prefix else filename

    def public_url(self, key: str) -> str:
        """Return the virtual-hosted-style URL of *key*."""
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def upload(
        self,
        data: bytes,
        name_hint: str,
        content_type: str = "image/jpeg",
    ) -> StoredObject:
        """Upload *data* under a fresh key.

        Args:
            data: Object body.
            name_hint: Text the filename portion of the key is derived from.
            content_type: MIME type stored with the object.

        Returns:
            The new object's key and public URL.

        Raises:
            StorageError: If the upload fails.
        """
        key = self.build_key(name_hint, content_type)
        try:
            self._s3.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to upload '{key}': {exc}") from exc

        logger.info("Uploaded s3://%s/%s (%d bytes).", self.bucket, key, len(data))
        return StoredObject(key=key, url=self.public_url(key))

    def delete(self, key: str) -> None:
        """Delete the object at *key*.

        Raises:
            StorageError: If the deletion fails.
        """
        try:
            self._s3.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to delete '{key}': {exc}") from exc
        logger.info("Deleted s3://%s/%s.", self.bucket, key)
