"""Publish stage: upload the encoded reel and derive its public URL."""

import time
import uuid
from pathlib import Path
from typing import Optional, Protocol

from ..config import get_settings
from ..errors import StorageError
from ..logging_config import LoggerMixin
from ..models import PublishResult, VideoResult
from ..utils.file_utils import ensure_directory, safe_filename


class ObjectStorage(Protocol):
    """Key/value blob store fronted by a CDN."""

    def put(self, key: str, data: bytes, content_type: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def public_url(self, key: str) -> str:
        ...


class LocalObjectStorage(LoggerMixin):
    """Object storage backed by a directory, served under ``public_base_url``."""

    def __init__(self, root: Optional[Path] = None, public_base_url: Optional[str] = None, settings=None):
        settings = settings or get_settings()
        self.root = Path(root or settings.storage_dir)
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")

    def put(self, key: str, data: bytes, content_type: str) -> None:
        target = self._path_for(key)
        try:
            ensure_directory(target.parent)
            tmp = target.with_suffix(target.suffix + ".part")
            tmp.write_bytes(data)
            tmp.replace(target)
        except OSError as e:
            raise StorageError(f"Failed to store {key}: {e}") from e
        self.logger.debug("Object stored", key=key, bytes=len(data), content_type=content_type)

    def delete(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""
        target = self._path_for(key)
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e
        self.logger.debug("Object deleted", key=key)

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise StorageError(f"Key escapes the storage root: {key}")
        return path


def build_storage_key(filename: str, timestamp_ms: Optional[int] = None, token: Optional[str] = None) -> str:
    """``videos/<timestamp>_<random>_<filename>``."""
    timestamp_ms = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    token = token or uuid.uuid4().hex[:8]
    return f"videos/{timestamp_ms}_{token}_{safe_filename(filename)}"


class PublishService(LoggerMixin):
    """Upload reels to object storage."""

    def __init__(self, storage: ObjectStorage):
        self.storage = storage

    def publish(self, video: VideoResult, celebrity_id: str, duration: int) -> PublishResult:
        """
        Upload ``video`` and return where it can be fetched.

        Raises:
            StorageError: The upload failed
        """
        if not video.buffer:
            raise StorageError("Refusing to publish an empty video")

        key = build_storage_key(f"{celebrity_id}_{duration}s.mp4")
        self.logger.info("Publishing reel", key=key, bytes=video.file_size_bytes)
        self.storage.put(key, video.buffer, "video/mp4")
        url = self.storage.public_url(key)
        self.logger.info("Reel published", key=key, url=url)
        return PublishResult(storage_key=key, url=url)

    def unpublish(self, key: str) -> None:
        """Delete a published reel. Failures are logged, not raised."""
        try:
            self.storage.delete(key)
        except StorageError:
            self.logger.exception("Failed to remove published reel", key=key)
            return
        self.logger.info("Published reel removed", key=key)
