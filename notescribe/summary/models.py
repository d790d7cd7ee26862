"""
Data models for summarization providers and structured summaries.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _items(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _strings(value: Any) -> List[str]:
    return [_text(item) for item in _items(value) if _text(item)]


@dataclass(frozen=True)
class Participant:
    """One speaker as described by the summarization model."""

    name: str = "Unknown"
    role: str = ""
    speaking_style: str = ""
    main_points: List[str] = field(default_factory=list)
    summary: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Participant":
        return cls(
            name=_text(data.get("name")) or "Unknown",
            role=_text(data.get("role")),
            speaking_style=_text(data.get("speakingStyle")),
            main_points=_strings(data.get("mainPoints")),
            summary=_text(data.get("summary")),
        )


@dataclass(frozen=True)
class ActionItem:
    """A task with an owner and the reason it is needed."""

    owner: str = "General"
    task: str = ""
    context: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActionItem":
        return cls(
            owner=_text(data.get("owner")) or "General",
            task=_text(data.get("task")),
            context=_text(data.get("context")),
        )


@dataclass(frozen=True)
class StructuredSummary:
    """
    Canonical summary schema requested from every model.

    Every field is optional; missing values are empty. Participants and action
    items may be rich objects or, when recovered by the lossy regex tier,
    plain strings.
    """

    title: str = ""
    category: str = ""
    participants: List[Union[Participant, str]] = field(default_factory=list)
    context: str = ""
    overview: str = ""
    key_points: List[str] = field(default_factory=list)
    detailed_summary: str = ""
    notable_quotes: List[str] = field(default_factory=list)
    decisions: List[str] = field(default_factory=list)
    questions_raised: List[str] = field(default_factory=list)
    action_items: List[Union[ActionItem, str]] = field(default_factory=list)
    topics: List[str] = field(default_factory=list)
    emotional_tone: str = ""
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructuredSummary":
        """Build from a decoded JSON object using the wire field names."""
        participants: List[Union[Participant, str]] = []
        for item in _items(data.get("participants")):
            if isinstance(item, dict):
                participants.append(Participant.from_dict(item))
            elif _text(item):
                participants.append(_text(item))

        action_items: List[Union[ActionItem, str]] = []
        for item in _items(data.get("actionItems")):
            if isinstance(item, dict):
                action_items.append(ActionItem.from_dict(item))
            elif _text(item):
                action_items.append(_text(item))

        return cls(
            title=_text(data.get("title")),
            category=_text(data.get("category")),
            participants=participants,
            context=_text(data.get("context")),
            overview=_text(data.get("overview")),
            key_points=_strings(data.get("keyPoints")),
            detailed_summary=_text(data.get("detailedSummary")) or _text(data.get("summary")),
            notable_quotes=_strings(data.get("notableQuotes")),
            decisions=_strings(data.get("decisions")),
            questions_raised=_strings(data.get("questionsRaised")),
            action_items=action_items,
            topics=_strings(data.get("topics")),
            emotional_tone=_text(data.get("emotionalTone")),
            tags=_strings(data.get("tags")),
        )

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in self.__dataclass_fields__)


@dataclass(frozen=True)
class TranscriptionResult:
    """Outcome of a speech-to-text call. Exactly one of transcript or error is meaningful."""

    transcript: Optional[str] = None
    language: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class SummaryResult:
    """Rendered summary plus the metadata the record keeps."""

    summary_markdown: Optional[str] = None
    title: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    error: Optional[str] = None
    provider_id: str = ""


@dataclass(frozen=True)
class ConnectionResult:
    success: bool
    message: str
