"""
Temp File Manager -- local scratch space for upload processing.

Each upload gets its own directory under the configured temp base:

    temp/
    ├── uploads/{upload_id}/{original filename}
    └── thumbnails/{upload_id}/{upload_id}.jpg

The upload orchestrator removes an upload's files on every exit path via
cleanup(); cleanup_old_files() sweeps anything a crashed worker left behind.
"""
import logging
import shutil
import time
from pathlib import Path

import aiofiles
from fastapi import UploadFile

from marketplace.core.exceptions import ValidationException

logger = logging.getLogger(__name__)

VALID_PURPOSES = {"uploads", "thumbnails"}

_CHUNK_SIZE = 1024 * 1024


class TempFileManager:
    """Creates and removes per-upload temp files."""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir).resolve()

    def get_temp_dir(self, purpose: str, identifier: str) -> Path:
        """
        Return (and create) temp/{purpose}/{identifier}/.
        """
        if purpose not in VALID_PURPOSES:
            raise ValueError(f"Invalid temp purpose '{purpose}'. Must be one of: {VALID_PURPOSES}")

        target = self.base_dir / purpose / identifier
        target.mkdir(parents=True, exist_ok=True)
        return target

    def get_temp_file_path(self, purpose: str, identifier: str, filename: str) -> Path:
        return self.get_temp_dir(purpose, identifier) / Path(filename).name

    async def save_upload(self, upload: UploadFile, identifier: str, max_size: int) -> tuple[Path, int]:
        """
        Stream an uploaded file to disk.

        Raises:
            ValidationException: If the stream exceeds max_size bytes

        Returns:
            (path written, bytes written)
        """
        path = self.get_temp_file_path("uploads", identifier, upload.filename or "upload.bin")
        written = 0
        async with aiofiles.open(path, "wb") as out:
            while True:
                chunk = await upload.read(_CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_size:
                    raise ValidationException(
                        f"File too large. Maximum size is {max_size // (1024 * 1024)}MB"
                    )
                await out.write(chunk)
        return path, written

    def cleanup(self, identifier: str) -> int:
        """
        Delete every temp file belonging to one upload.

        Returns:
            Number of directories removed
        """
        removed = 0
        for purpose in VALID_PURPOSES:
            dir_path = self.base_dir / purpose / identifier
            if not dir_path.exists():
                continue
            try:
                shutil.rmtree(dir_path)
                removed += 1
            except OSError as e:
                logger.warning(f"Could not remove temp dir {dir_path}: {e}")
        return removed

    def cleanup_old_files(self, max_age_hours: float = 24.0) -> dict:
        """
        Delete temp files older than max_age_hours, then empty directories.

        Returns:
            Dict with keys: files_deleted, bytes_freed
        """
        if not self.base_dir.exists():
            return {"files_deleted": 0, "bytes_freed": 0}

        cutoff = time.time() - (max_age_hours * 3600)
        files_deleted = 0
        bytes_freed = 0

        for file_path in self.base_dir.rglob("*"):
            if not file_path.is_file():
                continue
            try:
                stat = file_path.stat()
                if stat.st_mtime < cutoff:
                    file_path.unlink()
                    files_deleted += 1
                    bytes_freed += stat.st_size
            except FileNotFoundError:
                continue

        for dir_path in sorted(self.base_dir.rglob("*"), key=lambda p: len(p.parts), reverse=True):
            if dir_path.is_dir():
                try:
                    dir_path.rmdir()
                except OSError:
                    continue

        logger.info(f"Temp cleanup complete: deleted {files_deleted} files, freed {bytes_freed} bytes")
        return {"files_deleted": files_deleted, "bytes_freed": bytes_freed}
