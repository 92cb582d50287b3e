"""
Collaborators outside the queue: the persistent job/reel record store and
the celebrity directory.
"""

import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

from ..config import get_settings
from ..errors import NotFoundError
from ..logging_config import LoggerMixin
from ..models import CelebrityProfile
from ..utils.file_utils import ensure_directory, safe_filename


class JobRecordStore(Protocol):
    """Durable mirror of job state and finished reels."""

    def save_job(self, record: Dict[str, Any]) -> None:
        ...

    def create_reel(self, record: Dict[str, Any]) -> None:
        ...


class CelebrityDirectory(Protocol):
    """Lookup of celebrity profiles by id."""

    def get_celebrity(self, celebrity_id: str) -> CelebrityProfile:
        ...


# ---------------------------
# Record stores
# ---------------------------

class JsonFileRecordStore(LoggerMixin):
    """Record store writing one JSON file per job and per reel under ``data_dir``."""

    def __init__(self, data_dir: Optional[Path] = None):
        data_dir = Path(data_dir or get_settings().data_dir)
        self.jobs_dir = ensure_directory(data_dir / "jobs")
        self.reels_dir = ensure_directory(data_dir / "reels")
        self._lock = threading.Lock()

    def save_job(self, record: Dict[str, Any]) -> None:
        self._write(self.jobs_dir / f"{safe_filename(record['id'])}.json", record)

    def create_reel(self, record: Dict[str, Any]) -> None:
        self._write(self.reels_dir / f"{safe_filename(record['job_id'])}.json", record)
        self.logger.info("Reel record created", job_id=record["job_id"], url=record.get("url"))

    def load_job(self, job_id: str) -> Dict[str, Any]:
        path = self.jobs_dir / f"{safe_filename(job_id)}.json"
        if not path.exists():
            raise NotFoundError(f"No record for job {job_id}")
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def list_reels(self) -> List[Dict[str, Any]]:
        reels = []
        for path in sorted(self.reels_dir.glob("*.json")):
            with open(path, "r", encoding="utf-8") as f:
                reels.append(json.load(f))
        return reels

    def _write(self, path: Path, record: Dict[str, Any]) -> None:
        tmp = path.with_suffix(".json.tmp")
        with self._lock:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(record, f, indent=2, ensure_ascii=False)
            tmp.replace(path)


class InMemoryRecordStore:
    """Record store keeping the latest job records and reels in memory."""

    def __init__(self):
        self.jobs: Dict[str, Dict[str, Any]] = {}
        self.reels: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def save_job(self, record: Dict[str, Any]) -> None:
        with self._lock:
            self.jobs[record["id"]] = dict(record)

    def create_reel(self, record: Dict[str, Any]) -> None:
        with self._lock:
            self.reels.append(dict(record))


# ---------------------------
# Celebrity directory
# ---------------------------

class InMemoryCelebrityDirectory:
    """Celebrity directory over a fixed set of profiles."""

    def __init__(self, profiles: Optional[List[CelebrityProfile]] = None):
        self._profiles: Dict[str, CelebrityProfile] = {p.id: p for p in profiles or []}

    def add(self, profile: CelebrityProfile) -> None:
        self._profiles[profile.id] = profile

    def get_celebrity(self, celebrity_id: str) -> CelebrityProfile:
        try:
            return self._profiles[celebrity_id]
        except KeyError:
            raise NotFoundError(f"Celebrity not found: {celebrity_id}") from None

    def __len__(self) -> int:
        return len(self._profiles)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "InMemoryCelebrityDirectory":
        """Load profiles from a JSON list (or ``{"celebrities": [...]}``) file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("celebrities", [])
        return cls([CelebrityProfile.from_dict(item) for item in data])
