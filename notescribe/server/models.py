"""
Data models for the recording processing server.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..models import TranscriptSegment

# Re-export enums from job_manager
from .job_manager import JobStage, JobStatus

__all__ = ["JobStage", "JobStatus", "ProcessingResult", "RecordingRequest"]


@dataclass(frozen=True)
class RecordingRequest:
    """A recorded or uploaded file waiting to be processed."""

    recording_id: str
    audio_path: str
    duration_seconds: float = 0.0
    title: Optional[str] = None
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProcessingResult:
    """
    Finalized record of one processing run.

    Always produced, even when the run failed: partial results are kept and
    error_message explains what went wrong.
    """

    recording_id: str
    transcript: str = ""
    summary_markdown: Optional[str] = None
    title: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    segments: List[TranscriptSegment] = field(default_factory=list)
    speaker_name_map: Dict[str, str] = field(default_factory=dict)
    detected_language: Optional[str] = None
    is_processed: bool = False
    error_message: Optional[str] = None
    summary_provider: Optional[str] = None
    stage: JobStage = JobStage.PENDING

    @property
    def failed(self) -> bool:
        return self.stage == JobStage.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transcript": self.transcript,
            "summaryMarkdown": self.summary_markdown,
            "title": self.title,
            "category": self.category,
            "tags": list(self.tags),
            "segments": [segment.to_dict() for segment in self.segments],
            "speakerNameMap": dict(self.speaker_name_map),
            "detectedLanguage": self.detected_language,
            "isProcessed": self.is_processed,
            "errorMessage": self.error_message,
        }

    @classmethod
    def from_dict(cls, recording_id: str, data: Dict[str, Any], stage: Optional[str] = None) -> "ProcessingResult":
        """Rebuild a stored record; stage is taken from job metadata when given."""
        return cls(
            recording_id=recording_id,
            transcript=data.get("transcript") or "",
            summary_markdown=data.get("summaryMarkdown"),
            title=data.get("title"),
            category=data.get("category"),
            tags=list(data.get("tags") or []),
            segments=[TranscriptSegment.from_dict(s) for s in data.get("segments") or []],
            speaker_name_map=dict(data.get("speakerNameMap") or {}),
            detected_language=data.get("detectedLanguage"),
            is_processed=bool(data.get("isProcessed")),
            error_message=data.get("errorMessage"),
            stage=JobStage(stage) if stage else JobStage.FINALIZED,
        )
