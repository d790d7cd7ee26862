"""
Export of finished records as JSON, plain text or markdown.
"""

import json
from typing import List, Optional

from ..audio.utils import format_timestamp
from ..models import TranscriptSegment
from .models import ProcessingResult

EXPORT_FORMATS = {"json": "json", "txt": "txt", "markdown": "md"}


def file_extension(fmt: str) -> str:
    return EXPORT_FORMATS[fmt]


def _speaker(result: ProcessingResult, segment: TranscriptSegment) -> Optional[str]:
    if segment.speaker is None:
        return None
    return result.speaker_name_map.get(segment.speaker, segment.speaker)


def _use_segments(result: ProcessingResult, include_timestamps: bool) -> bool:
    return include_timestamps and bool(result.segments)


def export_json(result: ProcessingResult, include_timestamps: bool, include_speaker_names: bool) -> str:
    if _use_segments(result, include_timestamps):
        transcript = []
        for segment in result.segments:
            entry = {"timestamp": format_timestamp(segment.start_time), "text": segment.text}
            speaker = _speaker(result, segment)
            if include_speaker_names and speaker:
                entry["speaker"] = speaker
            transcript.append(entry)
    else:
        transcript = result.transcript

    data = {
        "id": result.recording_id,
        "title": result.title,
        "category": result.category,
        "tags": list(result.tags),
        "language": result.detected_language,
        "transcript": transcript,
        "summary": result.summary_markdown,
    }
    return json.dumps(data, ensure_ascii=False, indent=2)


def export_text(result: ProcessingResult, include_timestamps: bool, include_speaker_names: bool) -> str:
    rule, thin_rule = "=" * 60, "-" * 40
    lines: List[str] = [rule, result.title or "Recording", rule, ""]
    if result.category:
        lines.append(f"Category: {result.category}")
    if result.tags:
        lines.append(f"Tags: {', '.join(result.tags)}")
    if result.detected_language:
        lines.append(f"Language: {result.detected_language}")
    lines.append("")

    if result.summary_markdown:
        lines += [thin_rule, "SUMMARY", thin_rule, result.summary_markdown.rstrip(), ""]

    lines += [thin_rule, "TRANSCRIPT", thin_rule]
    if _use_segments(result, include_timestamps):
        for segment in result.segments:
            speaker = _speaker(result, segment)
            prefix = f"[{speaker}] " if include_speaker_names and speaker else ""
            lines.append(f"[{segment.formatted_timestamp}] {prefix}{segment.text}")
    else:
        lines.append(result.transcript)

    return "\n".join(lines) + "\n"


def export_markdown(result: ProcessingResult, include_timestamps: bool, include_speaker_names: bool) -> str:
    lines: List[str] = [f"# {result.title or 'Recording'}", ""]
    if result.category:
        lines.append(f"**Category:** {result.category}  ")
    if result.tags:
        lines.append("**Tags:** " + " ".join(f"`{tag}`" for tag in result.tags))
    lines.append("")

    if result.summary_markdown:
        lines += ["## Summary", "", result.summary_markdown.rstrip(), ""]

    lines += ["## Transcript", ""]
    if _use_segments(result, include_timestamps):
        if include_speaker_names:
            lines += ["| Time | Speaker | Text |", "|------|---------|------|"]
            for segment in result.segments:
                speaker = _speaker(result, segment) or "-"
                lines.append(f"| {segment.formatted_timestamp} | {speaker} | {segment.text} |")
        else:
            lines += ["| Time | Text |", "|------|------|"]
            for segment in result.segments:
                lines.append(f"| {segment.formatted_timestamp} | {segment.text} |")
    else:
        lines.append(result.transcript)

    return "\n".join(lines) + "\n"


def export_result(
    result: ProcessingResult,
    fmt: str = "markdown",
    include_timestamps: bool = True,
    include_speaker_names: bool = True,
) -> str:
    """
    Render a record for download.

    Args:
        result: Finished record
        fmt: One of "json", "txt" or "markdown"
        include_timestamps: Use timestamped segments instead of the flat transcript
        include_speaker_names: Show mapped speaker names next to segments

    Raises:
        ValueError: If the format is not supported
    """
    exporters = {"json": export_json, "txt": export_text, "markdown": export_markdown}
    if fmt not in exporters:
        raise ValueError(f"Unsupported export format: {fmt}")
    return exporters[fmt](result, include_timestamps, include_speaker_names)
