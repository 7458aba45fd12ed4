"""
Media storage on the local filesystem.

Objects live under ``MEDIA_ROOT/<folder>/<uuid><ext>`` and are served by the
``/media-files`` static mount, so an object's id is its path relative to the
root and its URL is ``MEDIA_BASE_URL/<id>``.
"""
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from starlette.concurrency import run_in_threadpool
from eventshare.core.config import settings
from eventshare.core.exceptions import ValidationFailedError
from eventshare.core.logging import logger

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/heic": ".heic",
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
    "video/webm": ".webm",
}


class StorageError(Exception):
    """Raised when an object cannot be written."""


@dataclass(frozen=True)
class StoredObject:
    id: str
    url: str


class LocalMediaStorage:
    def __init__(self, root: Optional[str] = None, base_url: Optional[str] = None):
        self.root = Path(root or settings.MEDIA_ROOT).resolve()
        self.base_url = (base_url or settings.MEDIA_BASE_URL).rstrip("/")

    def url_for(self, object_id: str) -> str:
        return f"{self.base_url}/{object_id}"

    def _path_for(self, object_id: str) -> Path:
        path = (self.root / object_id).resolve()
        if self.root not in path.parents:
            raise ValueError(f"Object id escapes media root: {object_id}")
        return path

    @staticmethod
    def _extension(filename: Optional[str], content_type: Optional[str]) -> str:
        ext = os.path.splitext(filename or "")[1].lower()
        if ext and len(ext) <= 6 and ext[1:].isalnum():
            return ext
        return CONTENT_TYPE_EXTENSIONS.get(content_type or "", "")

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def store(self, data: bytes, folder: str, filename: Optional[str], content_type: Optional[str]) -> StoredObject:
        folder = folder.strip("/")
        object_id = f"{folder}/{uuid.uuid4().hex}{self._extension(filename, content_type)}"
        try:
            await run_in_threadpool(self._write, self._path_for(object_id), data)
        except OSError as e:
            logger.error(f"Failed to store {object_id}: {e}")
            raise StorageError(str(e))
        logger.debug(f"Stored {object_id} ({len(data)} bytes)")
        return StoredObject(id=object_id, url=self.url_for(object_id))

    def _unlink(self, path: Path) -> bool:
        if not path.is_file():
            return False
        path.unlink()
        return True

    async def delete(self, object_id: Optional[str]) -> bool:
        """Best-effort removal; returns False instead of raising."""
        if not object_id:
            return False
        try:
            return await run_in_threadpool(self._unlink, self._path_for(object_id))
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to delete stored object {object_id}: {e}")
            return False


media_storage = LocalMediaStorage()


async def read_upload(upload, max_bytes: int) -> bytes:
    """
    Read an ``UploadFile`` fully, rejecting empty files and files over ``max_bytes``.
    """
    data = await upload.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise ValidationFailedError(
            f"File {upload.filename} exceeds the {max_bytes // (1024 * 1024)} MB limit"
        )
    if not data:
        raise ValidationFailedError(f"File {upload.filename} is empty")
    return data
