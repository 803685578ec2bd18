"""
Google Cloud Storage access for uploaded videos and thumbnails.
Blocking client calls run in worker threads.
"""
import asyncio
import logging
import re
import time
from datetime import timedelta
from pathlib import Path
from typing import Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import storage
from google.oauth2 import service_account

from marketplace.core.config import Settings
from marketplace.core.exceptions import StorageException
from marketplace.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class GCSStorage:
    """Uploads, deletes and addresses objects in the media bucket."""

    def __init__(self, settings: Settings, client: Optional[storage.Client] = None):
        self.settings = settings
        self.bucket_name = settings.gcs_bucket_name
        self.client = client or self._init_client()
        self.bucket = self.client.bucket(self.bucket_name)

    def _init_client(self) -> storage.Client:
        credentials_path = self.settings.gcs_credentials_path
        if credentials_path and credentials_path.exists():
            credentials = service_account.Credentials.from_service_account_file(
                str(credentials_path),
                scopes=['https://www.googleapis.com/auth/cloud-platform']
            )
            logger.info(f"GCS client initialized with service account (project: {credentials.project_id})")
            return storage.Client(credentials=credentials, project=credentials.project_id)

        if credentials_path:
            logger.warning(f"Service account file not found: {credentials_path}")
        logger.info("GCS client initialized with Application Default Credentials")
        return storage.Client()

    # ------------------------------------------------------------------
    # Keys and URLs
    # ------------------------------------------------------------------

    def generate_video_key(self, user_id: str, filename: str) -> str:
        """videos/<user id>/<epoch ms>-<sanitized original filename>"""
        safe_name = _UNSAFE_FILENAME_CHARS.sub("_", Path(filename).name).strip("_") or "video"
        timestamp = int(time.time() * 1000)
        return f"{self.settings.gcs_videos_prefix}{user_id}/{timestamp}-{safe_name}"

    def generate_thumbnail_key(self, user_id: str, video_id: str) -> str:
        timestamp = int(time.time() * 1000)
        return f"{self.settings.gcs_thumbnails_prefix}{user_id}/{video_id}-{timestamp}.jpg"

    def public_url(self, key: str) -> str:
        base = self.settings.gcs_public_base_url.rstrip("/")
        return f"{base}/{self.bucket_name}/{key}"

    def key_from_url(self, url: str) -> Optional[str]:
        """Recover an object key from a public URL produced by public_url()."""
        prefix = self.public_url("")
        if url and url.startswith(prefix):
            return url[len(prefix):]
        return None

    async def generate_signed_url(self, key: str, expiry_hours: Optional[int] = None) -> str:
        """Create a time-limited V4 GET URL for a private object."""
        hours = expiry_hours or self.settings.gcs_signed_url_expiry_hours
        blob = self.bucket.blob(key)
        try:
            return await asyncio.to_thread(
                blob.generate_signed_url,
                version="v4",
                expiration=timedelta(hours=hours),
                method="GET",
            )
        except Exception as e:
            raise StorageException("sign", key, str(e)) from e

    # ------------------------------------------------------------------
    # Object operations
    # ------------------------------------------------------------------

    async def upload_bytes(self, data: bytes, key: str, content_type: str) -> str:
        """
        Upload an in-memory payload.

        Returns:
            Public URL of the stored object
        """
        blob = self.bucket.blob(key)
        try:
            await retry_with_backoff(
                asyncio.to_thread,
                blob.upload_from_string,
                data,
                content_type=content_type,
                max_retries=self.settings.gcs_upload_retry_count,
                base_delay=self.settings.gcs_upload_retry_base_delay,
                operation_name=f"GCS upload {key}",
            )
        except Exception as e:
            raise StorageException("upload", key, str(e)) from e

        logger.info(f"Uploaded {len(data)} bytes to gs://{self.bucket_name}/{key}")
        return self.public_url(key)

    async def upload_file(self, path: Path, key: str, content_type: str) -> str:
        """
        Upload a local file.

        Returns:
            Public URL of the stored object
        """
        blob = self.bucket.blob(key)
        try:
            await retry_with_backoff(
                asyncio.to_thread,
                blob.upload_from_filename,
                str(path),
                content_type=content_type,
                max_retries=self.settings.gcs_upload_retry_count,
                base_delay=self.settings.gcs_upload_retry_base_delay,
                operation_name=f"GCS upload {key}",
            )
        except Exception as e:
            raise StorageException("upload", key, str(e)) from e

        logger.info(f"Uploaded {path.name} to gs://{self.bucket_name}/{key}")
        return self.public_url(key)

    async def delete(self, key: str) -> bool:
        """
        Delete an object.

        Returns:
            False if the object did not exist
        """
        blob = self.bucket.blob(key)
        try:
            await asyncio.to_thread(blob.delete)
        except google_exceptions.NotFound:
            logger.warning(f"GCS object not found (already deleted?): {key}")
            return False
        except Exception as e:
            raise StorageException("delete", key, str(e)) from e

        logger.info(f"Deleted gs://{self.bucket_name}/{key}")
        return True
