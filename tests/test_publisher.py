"""Tests for publishing and the record store collaborators."""

import json
import re

import pytest

from reel_pipeline.errors import NotFoundError, StorageError
from reel_pipeline.models import CelebrityProfile, VideoResult
from reel_pipeline.services.publisher import LocalObjectStorage, PublishService, build_storage_key
from reel_pipeline.services.record_store import (
    InMemoryCelebrityDirectory,
    InMemoryRecordStore,
    JsonFileRecordStore,
)


def _video(buffer: bytes = b"mp4-bytes") -> VideoResult:
    return VideoResult(buffer=buffer, duration_sec=30.0, resolution="1280x720", file_size_bytes=len(buffer))


class TestStorageKey:
    """Test the storage key convention."""

    def test_key_format(self):
        assert build_storage_key("c1_30s.mp4", timestamp_ms=1700000000000, token="abc123") == \
            "videos/1700000000000_abc123_c1_30s.mp4"

    def test_unsafe_characters_replaced(self):
        key = build_storage_key("../evil name.mp4", timestamp_ms=1, token="t")
        assert key == "videos/1_t_.._evil_name.mp4"

    def test_random_part_differs(self):
        assert build_storage_key("a.mp4", timestamp_ms=1) != build_storage_key("a.mp4", timestamp_ms=1)


class TestPublishService:
    """Test PublishService with local storage."""

    def test_publish_writes_object_and_returns_cdn_url(self, test_settings):
        storage = LocalObjectStorage(settings=test_settings)
        service = PublishService(storage)

        result = service.publish(_video(), "c1", 30)

        assert re.fullmatch(r"videos/\d+_[0-9a-f]{8}_c1_30s\.mp4", result.storage_key)
        assert result.url == f"https://cdn.example.com/{result.storage_key}"
        assert (test_settings.storage_dir / result.storage_key).read_bytes() == b"mp4-bytes"

    def test_empty_video_rejected(self, test_settings):
        service = PublishService(LocalObjectStorage(settings=test_settings))

        with pytest.raises(StorageError):
            service.publish(_video(b""), "c1", 30)

    def test_key_outside_root_rejected(self, test_settings):
        storage = LocalObjectStorage(settings=test_settings)

        with pytest.raises(StorageError):
            storage.put("../outside.mp4", b"x", "video/mp4")

    def test_unpublish_removes_object(self, test_settings):
        service = PublishService(LocalObjectStorage(settings=test_settings))
        result = service.publish(_video(), "c1", 30)

        service.unpublish(result.storage_key)
        service.unpublish(result.storage_key)

        assert not (test_settings.storage_dir / result.storage_key).exists()

    def test_unpublish_logs_storage_errors(self, test_settings):
        class BrokenStorage(LocalObjectStorage):
            def delete(self, key):
                raise StorageError("bucket unavailable")

        service = PublishService(BrokenStorage(settings=test_settings))

        service.unpublish("videos/1_t_c1_30s.mp4")

    def test_delete_outside_root_rejected(self, test_settings):
        with pytest.raises(StorageError):
            LocalObjectStorage(settings=test_settings).delete("../outside.mp4")


class TestRecordStores:
    """Test job/reel record persistence."""

    def test_json_store_round_trip(self, temp_dir):
        store = JsonFileRecordStore(temp_dir / "data")

        store.save_job({"id": "job_1", "status": "pending"})
        store.save_job({"id": "job_1", "status": "completed"})
        store.create_reel({"job_id": "job_1", "url": "https://cdn/x.mp4"})

        assert store.load_job("job_1")["status"] == "completed"
        assert store.list_reels() == [{"job_id": "job_1", "url": "https://cdn/x.mp4"}]
        saved = json.loads((temp_dir / "data" / "jobs" / "job_1.json").read_text(encoding="utf-8"))
        assert saved["id"] == "job_1"

    def test_json_store_unknown_job(self, temp_dir):
        with pytest.raises(NotFoundError):
            JsonFileRecordStore(temp_dir).load_job("missing")

    def test_in_memory_store_keeps_latest(self):
        store = InMemoryRecordStore()
        store.save_job({"id": "a", "status": "pending"})
        store.save_job({"id": "a", "status": "active"})

        assert store.jobs["a"]["status"] == "active"


class TestCelebrityDirectory:
    """Test celebrity lookup."""

    def test_lookup(self, sample_celebrity):
        directory = InMemoryCelebrityDirectory([sample_celebrity])
        assert directory.get_celebrity("c1") is sample_celebrity

    def test_unknown_celebrity(self):
        with pytest.raises(NotFoundError):
            InMemoryCelebrityDirectory().get_celebrity("nobody")

    def test_load_from_json(self, temp_dir):
        path = temp_dir / "celebrities.json"
        path.write_text(json.dumps({"celebrities": [
            {"id": "c1", "name": "LeBron James", "sport": "Basketball", "team": "Lakers", "extra": "ignored"},
            {"id": "c2", "name": "Lionel Messi", "sport": "Soccer"},
        ]}), encoding="utf-8")

        directory = InMemoryCelebrityDirectory.from_json_file(path)

        assert len(directory) == 2
        assert directory.get_celebrity("c1") == CelebrityProfile(
            id="c1", name="LeBron James", sport="Basketball", team="Lakers"
        )
