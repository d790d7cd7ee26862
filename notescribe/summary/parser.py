"""
Resilient decoding of model answers into a StructuredSummary.

Models are asked for a single JSON object but regularly return fenced blocks,
raw newlines inside string values, or truncated output. The parser tries
three tiers in order and always produces a summary:

1. Direct decode: strip code fences, trim, json.loads.
2. Sanitize and retry: replace raw newlines inside string values with a space.
3. Regex extraction of each top-level field. Nested object arrays
   (participants, object action items) flatten to plain strings here; this
   tier is knowingly lossy. If nothing is recovered the raw text is wrapped.

render_markdown() turns any StructuredSummary into the fixed-order markdown
document stored on the recording.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from ..errors import ParseError
from .models import ActionItem, Participant, StructuredSummary

logger = logging.getLogger(__name__)

TIER_DIRECT = 1
TIER_SANITIZED = 2
TIER_EXTRACTED = 3

_FENCE_OPEN = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\r?\n?")
_FENCE_CLOSE = re.compile(r"\r?\n?```\s*$")

SCALAR_FIELDS = ["title", "category", "context", "overview", "detailedSummary", "emotionalTone"]
ARRAY_FIELDS = [
    "participants",
    "keyPoints",
    "notableQuotes",
    "decisions",
    "questionsRaised",
    "actionItems",
    "topics",
    "tags",
]

_QUOTED_ITEM = re.compile(r'"([^"]*)"')


@dataclass(frozen=True)
class ParsedResponse:
    summary: StructuredSummary
    tier: int


def strip_code_fences(text: str) -> str:
    """Remove a leading ```/```json fence and a trailing ``` fence, then trim."""
    cleaned = text.strip()
    cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
    cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned.strip()


def decode_direct(text: str) -> Dict[str, Any]:
    """
    Decode text as a JSON object.

    Raises:
        ParseError: If the text is not valid JSON or not an object
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def sanitize_json_string(text: str) -> str:
    """
    Replace raw newlines and carriage returns inside string values with a space.

    Single pass tracking whether the scan is inside a quoted string and
    whether the previous character was an escape.
    """
    out = []
    in_string = False
    escaped = False

    for char in text:
        if escaped:
            out.append(char)
            escaped = False
            continue
        if char == "\\":
            escaped = True
            out.append(char)
            continue
        if char == '"':
            in_string = not in_string
            out.append(char)
            continue
        if in_string and char in ("\n", "\r"):
            out.append(" ")
            continue
        out.append(char)

    return "".join(out)


def _extract_scalar(content: str, field_name: str) -> str:
    pattern = re.compile(rf'"{field_name}"\s*:\s*"([^"]*(?:\\.[^"]*)*)"', re.DOTALL)
    match = pattern.search(content)
    if not match:
        return ""
    return match.group(1).replace("\\n", " ").replace('\\"', '"')


def _extract_array(content: str, field_name: str) -> List[str]:
    pattern = re.compile(rf'"{field_name}"\s*:\s*\[([^\]]*)\]', re.DOTALL)
    match = pattern.search(content)
    if not match:
        return []
    return [item for item in _QUOTED_ITEM.findall(match.group(1)) if item]


def first_sentences(text: str, count: int = 2) -> str:
    """Leading sentences of text, split on periods, with a closing period."""
    return ".".join(text.split(".")[:count]).strip() + "."


def extract_fields(content: str) -> StructuredSummary:
    """
    Recover top-level fields with one targeted regex each.

    Fields are extracted independently; a missing field is empty. When
    nothing can be recovered the raw content becomes the detailed summary.
    """
    scalars = {name: _extract_scalar(content, name) for name in SCALAR_FIELDS}
    arrays = {name: _extract_array(content, name) for name in ARRAY_FIELDS}

    summary = StructuredSummary(
        title=scalars["title"],
        category=scalars["category"],
        participants=list(arrays["participants"]),
        context=scalars["context"],
        overview=scalars["overview"],
        key_points=arrays["keyPoints"],
        detailed_summary=scalars["detailedSummary"] or _extract_scalar(content, "summary"),
        notable_quotes=arrays["notableQuotes"],
        decisions=arrays["decisions"],
        questions_raised=arrays["questionsRaised"],
        action_items=list(arrays["actionItems"]),
        topics=arrays["topics"],
        emotional_tone=scalars["emotionalTone"],
        tags=arrays["tags"],
    )

    if summary.is_empty():
        raw = content.strip()
        if not raw:
            return summary
        logger.info("No fields recovered, wrapping raw response")
        return StructuredSummary(overview=first_sentences(raw), detailed_summary=raw)

    return summary


def _to_summary(data: Dict[str, Any]) -> StructuredSummary:
    try:
        return StructuredSummary.from_dict(data)
    except (TypeError, ValueError, AttributeError) as e:
        raise ParseError(f"Unexpected summary shape: {e}") from e


def parse_structured_response(text: Optional[str]) -> ParsedResponse:
    """
    Decode a model answer through the three tiers. Never raises.

    Args:
        text: Raw model answer

    Returns:
        ParsedResponse with the summary and the tier that produced it
    """
    cleaned = strip_code_fences(text or "")

    try:
        return ParsedResponse(_to_summary(decode_direct(cleaned)), TIER_DIRECT)
    except ParseError as e:
        logger.debug(f"Direct decode failed: {e}, sanitizing and retrying")

    try:
        data = decode_direct(sanitize_json_string(cleaned))
        logger.info("Parsed response after sanitizing")
        return ParsedResponse(_to_summary(data), TIER_SANITIZED)
    except ParseError as e:
        logger.warning(f"Sanitized decode failed: {e}, falling back to field extraction")

    return ParsedResponse(extract_fields(cleaned), TIER_EXTRACTED)


def format_action_item(item: Union[ActionItem, str]) -> Optional[str]:
    """Render one action item line body, or None when an object item has no task."""
    if isinstance(item, str):
        return item
    if not item.task:
        return None
    line = f"[{item.owner}] {item.task}"
    if item.context:
        line += f" — _{item.context}_"
    return line


def _render_participant(participant: Union[Participant, str]) -> List[str]:
    if isinstance(participant, str):
        return [f"• {participant}"]

    heading = f"### {participant.name}"
    if participant.role:
        heading += f" ({participant.role})"
    lines = [heading]
    if participant.speaking_style:
        lines.append(f"*Style:* {participant.speaking_style}")
    if participant.main_points:
        lines += ["", "**Key Points Made:**"]
        lines += [f"• {point}" for point in participant.main_points]
    if participant.summary:
        lines += ["", f"> {participant.summary}"]
    lines.append("")
    return lines


def render_markdown(summary: StructuredSummary) -> str:
    """
    Render a summary into the fixed-order markdown document.

    Overview, Key Points, Detailed Summary, Action Items and Topics Discussed
    always appear, with a placeholder line when empty. The other sections
    appear only when they have content.
    """
    lines: List[str] = []

    if summary.context:
        lines += ["## Context", summary.context, ""]

    if summary.participants:
        lines.append("## Participants")
        for participant in summary.participants:
            lines += _render_participant(participant)
        lines.append("")

    if summary.overview:
        overview = summary.overview
    elif summary.detailed_summary:
        overview = first_sentences(summary.detailed_summary)
    else:
        overview = "No overview available."
    lines += ["## Overview", overview, ""]

    lines.append("## Key Points")
    if summary.key_points:
        lines += [f"• {point}" for point in summary.key_points]
    else:
        lines.append("No key points detected.")
    lines.append("")

    lines += ["## Detailed Summary", summary.detailed_summary or "No summary available.", ""]

    if summary.notable_quotes:
        lines.append("## Notable Quotes")
        lines += [f'> "{quote}"' for quote in summary.notable_quotes]
        lines.append("")

    if summary.decisions:
        lines.append("## Decisions & Conclusions")
        lines += [f"✓ {decision}" for decision in summary.decisions]
        lines.append("")

    if summary.questions_raised:
        lines.append("## Questions Raised")
        lines += [f"? {question}" for question in summary.questions_raised]
        lines.append("")

    action_lines = [line for line in map(format_action_item, summary.action_items) if line]
    lines.append("## Action Items")
    if action_lines:
        lines += [f"- [ ] {line}" for line in action_lines]
    else:
        lines.append("No action items detected.")
    lines.append("")

    lines.append("## Topics Discussed")
    if summary.topics:
        lines += [f"• {topic}" for topic in summary.topics]
    else:
        lines.append("No topics detected.")

    if summary.emotional_tone:
        lines += ["", "## Tone & Dynamics", summary.emotional_tone]

    return "\n".join(lines) + "\n"
