"""
Media object storage on an S3-compatible bucket (Cloudflare R2, Supabase, AWS).

Storage may be unconfigured; callers check `is_configured` and keep inline
payloads when it is not.
"""
import base64
import binascii
import mimetypes
import re
import secrets
import time
from typing import Iterable, List, Optional, Tuple

import boto3
import requests
from botocore.config import Config as BotoConfig

from .config import get_settings
from .errors import StorageError
from .logging_config import get_logger

logger = get_logger("storage")

DATA_URI_RE = re.compile(r"^data:([^;,]+)?(?:;[^,]*)?;base64,(.*)$", re.DOTALL)


def parse_data_uri(data: str) -> Tuple[Optional[str], bytes]:
    """Split a `data:<mime>;base64,<payload>` string into (mime, bytes)."""
    match = DATA_URI_RE.match(data or "")
    if not match:
        raise ValueError("Invalid base64 data URI")
    try:
        content = base64.b64decode(match.group(2), validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 payload: {e}")
    return match.group(1), content


def is_data_uri(value: Optional[str]) -> bool:
    return bool(value) and value.startswith("data:")


def extension_for(mime_type: Optional[str]) -> str:
    if mime_type == "application/pdf":
        return "pdf"
    guessed = mimetypes.guess_extension(mime_type or "") if mime_type else None
    if guessed:
        return guessed.lstrip(".")
    if mime_type and "/" in mime_type:
        return mime_type.split("/", 1)[1].split(";")[0]
    return "bin"


class ObjectStorage:
    """Put/get/delete media objects, addressed by public URL"""

    def __init__(self, client=None):
        settings = get_settings()
        self.bucket = settings.storage_bucket
        self.public_url = (settings.storage_public_url or "").rstrip("/")
        self.timeout = settings.platform_timeout_seconds
        self.client = client

        if self.client is None and all([
            settings.storage_endpoint,
            settings.storage_access_key_id,
            settings.storage_secret_access_key,
        ]):
            self.client = boto3.client(
                "s3",
                endpoint_url=settings.storage_endpoint,
                aws_access_key_id=settings.storage_access_key_id,
                aws_secret_access_key=settings.storage_secret_access_key,
                config=BotoConfig(
                    connect_timeout=self.timeout,
                    read_timeout=self.timeout,
                    retries={"max_attempts": 2},
                ),
            )
            logger.info("Object storage initialized", bucket=self.bucket)
        elif self.client is None:
            logger.warning("Object storage credentials not found. Storage features disabled.")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def _key_for(self, reference: str) -> Optional[str]:
        if self.public_url and reference.startswith(self.public_url + "/"):
            return reference[len(self.public_url) + 1:]
        return None

    def _url_for(self, key: str) -> str:
        if self.public_url:
            return f"{self.public_url}/{key}"
        return f"{self.client.meta.endpoint_url.rstrip('/')}/{self.bucket}/{key}"

    def put(self, content: bytes, content_type: Optional[str], owner_key: str) -> str:
        """Store bytes under `<owner>/<timestamp>-<hex>.<ext>` and return the public URL."""
        if not self.is_configured:
            raise StorageError("Object storage not configured")

        key = f"{owner_key}/{int(time.time() * 1000)}-{secrets.token_hex(8)}.{extension_for(content_type)}"
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type or "application/octet-stream",
            )
        except Exception as e:
            raise StorageError(f"Upload failed: {e}") from e

        logger.info("Media uploaded", key=key, size=len(content))
        return self._url_for(key)

    def get(self, reference: str) -> Tuple[bytes, Optional[str]]:
        """Fetch an object's bytes and content type by its URL."""
        key = self._key_for(reference) if self.is_configured else None
        try:
            if key is not None:
                obj = self.client.get_object(Bucket=self.bucket, Key=key)
                return obj["Body"].read(), obj.get("ContentType")

            response = requests.get(reference, timeout=self.timeout)
            response.raise_for_status()
            return response.content, response.headers.get("Content-Type")
        except Exception as e:
            raise StorageError(f"Download failed for {reference}: {e}") from e

    def delete(self, reference: str) -> bool:
        if not self.is_configured:
            raise StorageError("Object storage not configured")
        key = self._key_for(reference)
        if key is None:
            logger.warning("URL does not belong to the media bucket", url=reference)
            return False
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except Exception as e:
            raise StorageError(f"Delete failed: {e}") from e
        logger.info("Media deleted", key=key)
        return True

    def delete_many(self, references: Iterable[str]) -> List[dict]:
        """Delete several objects; one failure does not stop the others."""
        results = []
        for url in references:
            try:
                results.append({"url": url, "success": self.delete(url)})
            except StorageError as e:
                logger.warning("Failed to delete media", url=url, error_message=str(e))
                results.append({"url": url, "success": False, "error": str(e)})
        return results


_storage: Optional[ObjectStorage] = None


def get_storage() -> ObjectStorage:
    """Get or create the global storage instance"""
    global _storage
    if _storage is None:
        _storage = ObjectStorage()
    return _storage
