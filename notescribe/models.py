"""
Core value objects shared by the audio and summary packages.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class TranscriptSegment:
    """A single segment of transcribed audio with timing and speaker info."""

    text: str
    start_time: float
    end_time: float
    speaker: Optional[str] = None
    language: Optional[str] = None

    def __post_init__(self):
        if self.start_time < 0 or self.end_time < self.start_time:
            raise ValueError(f"Invalid segment range: {self.start_time} -> {self.end_time}")

    @property
    def formatted_timestamp(self) -> str:
        minutes = int(self.start_time // 60)
        seconds = int(self.start_time % 60)
        return f"{minutes:02d}:{seconds:02d}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "speaker": self.speaker,
            "language": self.language,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptSegment":
        return cls(
            text=data["text"],
            start_time=float(data["startTime"]),
            end_time=float(data["endTime"]),
            speaker=data.get("speaker"),
            language=data.get("language"),
        )


@dataclass(frozen=True)
class DiarizedInterval:
    """A speaker turn produced by the diarization engine."""

    start_time: float
    end_time: float
    speaker_label: str
