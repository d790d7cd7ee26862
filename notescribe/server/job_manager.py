"""
Recording store backed by one directory per recording.

Layout of ``<root>/<recording_id>/``:
    recording.json   stage, status, upload details and per-run options
    audio.<ext>      the uploaded audio, extension preserved
    record.json      the finalized record in wire format
    error.txt        last failure message, if any
"""

import json
import logging
import re
import shutil
import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from .models import ProcessingResult

logger = logging.getLogger(__name__)


class JobStage(Enum):
    """Where a recording is in the pipeline."""

    PENDING = "pending"
    TRANSCRIBING = "transcribing"
    DIARIZING = "diarizing"
    SUMMARIZING = "summarizing"
    FINALIZED = "finalized"
    FAILED = "failed"


class JobStatus(Enum):
    """Coarse status exposed to API clients."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


STAGE_STATUS = {
    JobStage.PENDING: JobStatus.QUEUED,
    JobStage.TRANSCRIBING: JobStatus.PROCESSING,
    JobStage.DIARIZING: JobStatus.PROCESSING,
    JobStage.SUMMARIZING: JobStatus.PROCESSING,
    JobStage.FINALIZED: JobStatus.COMPLETED,
    JobStage.FAILED: JobStatus.FAILED,
}

METADATA_FILE = "recording.json"
RECORD_FILE = "record.json"
ERROR_FILE = "error.txt"
AUDIO_STEM = "audio"

# Ids are uuid4 hex strings; anything else could name a path outside the store
RECORDING_ID = re.compile(r"[0-9a-f]{32}")


def _now() -> str:
    return datetime.now().isoformat()


class JobManager:
    """Keeps recordings, their progress and their finalized records on disk."""

    def __init__(self, jobs_dir: str = "server_jobs"):
        self.root = Path(jobs_dir)
        self.root.mkdir(parents=True, exist_ok=True)

    def create_job(
        self,
        original_filename: str,
        file_size: int,
        options: Optional[Dict[str, Any]] = None,
        title: Optional[str] = None,
    ) -> str:
        """
        Register a freshly uploaded recording.

        Args:
            original_filename: Name the client uploaded the audio under
            file_size: Upload size in bytes
            options: Per-run configuration overrides
            title: Display title, if the client supplied one

        Returns:
            The new recording id
        """
        recording_id = uuid.uuid4().hex
        self._dir(recording_id).mkdir()

        created = _now()
        self._write(
            recording_id,
            METADATA_FILE,
            {
                "id": recording_id,
                "title": title,
                "original_filename": original_filename,
                "file_size": file_size,
                "options": dict(options or {}),
                "stage": JobStage.PENDING.value,
                "status": JobStatus.QUEUED.value,
                "created_at": created,
                "updated_at": created,
            },
        )
        logger.info(f"Registered recording {recording_id} ({original_filename}, {file_size} bytes)")
        return recording_id

    def job_exists(self, recording_id: str) -> bool:
        if not RECORDING_ID.fullmatch(recording_id or ""):
            return False
        return self._dir(recording_id).is_dir()

    def save_audio_file(self, recording_id: str, audio_file_path: str) -> Path:
        """Copy the upload next to the metadata and return where it landed."""
        self._require(recording_id)
        # Decoders sniff the container from the extension
        extension = Path(audio_file_path).suffix.lower() or ".wav"
        destination = self._dir(recording_id) / f"{AUDIO_STEM}{extension}"
        shutil.copy2(audio_file_path, destination)
        self._touch(recording_id)
        return destination

    def get_audio_file_path(self, recording_id: str) -> Optional[Path]:
        if not self.job_exists(recording_id):
            return None
        return next(iter(sorted(self._dir(recording_id).glob(f"{AUDIO_STEM}.*"))), None)

    def update_stage(self, recording_id: str, stage: JobStage) -> None:
        status = STAGE_STATUS[stage]
        changes = {"stage": stage.value, "status": status.value}
        if status is JobStatus.COMPLETED:
            changes["completed_at"] = _now()
        elif status is JobStatus.FAILED:
            changes["failed_at"] = _now()
        self._touch(recording_id, **changes)

    def save_result(self, result: "ProcessingResult") -> None:
        """
        Persist a finalized record.

        The record's own stage decides whether the recording ends up
        completed or failed. Raises ValueError for unknown recordings.
        """
        recording_id = result.recording_id
        self._write(recording_id, RECORD_FILE, result.to_dict())
        if result.error_message:
            self._write(recording_id, ERROR_FILE, result.error_message)
        self._touch(recording_id, summary_provider=result.summary_provider)
        self.update_stage(recording_id, result.stage)

    def get_metadata(self, recording_id: str) -> Optional[Dict[str, Any]]:
        return self._read(recording_id, METADATA_FILE)

    def get_result(self, recording_id: str) -> Optional[Dict[str, Any]]:
        """Finalized record in wire format, or None while still processing."""
        return self._read(recording_id, RECORD_FILE)

    def get_error(self, recording_id: str) -> Optional[str]:
        return self._read(recording_id, ERROR_FILE)

    def list_jobs(self, status_filter: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        """Metadata of stored recordings, newest first, optionally filtered by status."""
        found = []
        for entry in self.root.iterdir():
            metadata = self.get_metadata(entry.name) if entry.is_dir() else None
            if metadata and (not status_filter or metadata.get("status") == status_filter):
                found.append(metadata)

        found.sort(key=lambda item: item.get("created_at", ""), reverse=True)
        return found[:limit]

    def delete_job(self, recording_id: str) -> bool:
        """Remove a recording with everything stored for it. False if it was unknown."""
        if not self.job_exists(recording_id):
            return False
        shutil.rmtree(self._dir(recording_id))
        logger.info(f"Deleted recording {recording_id}")
        return True

    def _dir(self, recording_id: str) -> Path:
        return self.root / recording_id

    def _require(self, recording_id: str) -> None:
        if not self.job_exists(recording_id):
            raise ValueError(f"Unknown recording: {recording_id}")

    def _touch(self, recording_id: str, **changes: Any) -> None:
        metadata = self.get_metadata(recording_id)
        if metadata is None:
            logger.warning(f"⚠ No metadata for recording {recording_id}, skipping update")
            return
        metadata.update(changes, updated_at=_now())
        self._write(recording_id, METADATA_FILE, metadata)

    def _write(self, recording_id: str, name: str, content: Any) -> None:
        self._require(recording_id)
        path = self._dir(recording_id) / name
        if name.endswith(".json"):
            content = json.dumps(content, ensure_ascii=False, indent=2)
        path.write_text(content, encoding="utf-8")

    def _read(self, recording_id: str, name: str) -> Optional[Any]:
        if not self.job_exists(recording_id):
            return None
        path = self._dir(recording_id) / name
        if not path.is_file():
            return None
        try:
            text = path.read_text(encoding="utf-8")
            return json.loads(text) if name.endswith(".json") else text
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"⚠ Could not read {path}: {e}")
            return None
