import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List
from pydantic import ValidationError
from streamrec.domain.errors import PersistenceReadError, PersistenceWriteError
from streamrec.domain.models import RecordingJob

# On-disk key -> model field. Keys keep the layout of existing schedules.json files.
_FIELD_MAP = {
    "id": "id",
    "streamUrl": "source",
    "playlistName": "name",
    "lengthSeconds": "duration_seconds",
    "startTime": "start_time",
    "status": "status",
    "createdAt": "created_at",
    "error": "error_detail",
}
_LEGACY_STATUS = {"recording": "capturing"}


def job_to_record(job: RecordingJob) -> Dict[str, Any]:
    data = job.model_dump(mode="json")
    return {key: data[field] for key, field in _FIELD_MAP.items()}


def record_to_job(record: Dict[str, Any]) -> RecordingJob:
    if not isinstance(record, dict):
        raise ValueError(f"expected an object, got {type(record).__name__}")
    data = {field: record.get(key) for key, field in _FIELD_MAP.items() if key in record}
    status = data.get("status")
    if status in _LEGACY_STATUS:
        data["status"] = _LEGACY_STATUS[status]
    return RecordingJob(**data)


class JsonScheduleStore:
    """Durable snapshot of the job table as a JSON array.

    save() writes to a sibling .tmp file and renames it over the target, so a
    reader sees either the previous or the new snapshot, never a partial one.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def load(self) -> List[RecordingJob]:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            self.logger.info(f"No schedules file at {self.path}, starting fresh")
            return []
        except OSError as e:
            raise PersistenceReadError(self.path, str(e)) from e

        try:
            records = json.loads(raw.decode("utf-8"))
            if not isinstance(records, list):
                raise ValueError("top level must be a list")
            jobs = [record_to_job(record) for record in records]
        except (ValueError, ValidationError) as e:
            # json.JSONDecodeError and UnicodeDecodeError are ValueErrors
            raise PersistenceReadError(self.path, f"unparseable snapshot: {e}") from e

        self.logger.info(f"Loaded {len(jobs)} scheduled recordings from {self.path}")
        return jobs

    def save(self, jobs: Iterable[RecordingJob]) -> bool:
        """Writes the complete job table. Returns False (and logs) on I/O failure."""
        payload = [job_to_record(job) for job in jobs]
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with tmp_path.open("w", encoding="utf-8") as handle:
                    json.dump(payload, handle, indent=2)
                    handle.write("\n")
                os.replace(tmp_path, self.path)
            except OSError as e:
                error = PersistenceWriteError(self.path, str(e))
                self.logger.error(f"Failed to save schedules: {error}")
                return False
        self.logger.debug(f"Saved {len(payload)} scheduled recordings to {self.path}")
        return True
