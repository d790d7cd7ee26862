"""
Combine transcript segments with diarization intervals.

Two strategies:
- Overlap merge: segments with real timestamps take the label of the interval
  they overlap most.
- Synthetic redistribution: when segments are missing or all zero-duration
  (cloud transcription returns plain text), transcript sentences are spread
  evenly across the diarization intervals instead.
"""

import logging
import math
import re
from dataclasses import replace
from typing import List

from ..models import DiarizedInterval, TranscriptSegment

logger = logging.getLogger(__name__)

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


def has_valid_timestamps(segments: List[TranscriptSegment]) -> bool:
    """True when at least one segment carries a non-zero time range."""
    return bool(segments) and any(seg.start_time > 0 or seg.end_time > 0 for seg in segments)


def overlap_duration(segment: TranscriptSegment, interval: DiarizedInterval) -> float:
    overlap_start = max(segment.start_time, interval.start_time)
    overlap_end = min(segment.end_time, interval.end_time)
    return overlap_end - overlap_start


def assign_speakers(
    segments: List[TranscriptSegment], intervals: List[DiarizedInterval]
) -> List[TranscriptSegment]:
    """
    Assign speaker labels to transcript segments using timestamp overlap.

    Each segment takes the label of the interval with the strictly greatest
    intersection. Intervals are scanned in input order, so on equal overlap
    the first one seen keeps the segment. Segments that overlap no interval
    keep their existing speaker.
    """
    result = []
    for segment in segments:
        speaker = None
        max_overlap = 0.0
        for interval in intervals:
            overlap = overlap_duration(segment, interval)
            if overlap > max_overlap:
                max_overlap = overlap
                speaker = interval.speaker_label
        result.append(replace(segment, speaker=speaker or segment.speaker))
    return result


def split_sentences(transcript: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_BOUNDARY.split(transcript) if s.strip()]


def redistribute_sentences(intervals: List[DiarizedInterval], transcript: str) -> List[TranscriptSegment]:
    """
    Create segments from diarization intervals when transcript timing is unavailable.

    Sentences are handed out in order, ceil(sentences / intervals) per
    interval, each group becoming one segment with that interval's bounds and
    label. Sentences left after the last interval are appended to the last
    segment's text, its bounds unchanged.
    """
    if not intervals:
        return []

    sentences = split_sentences(transcript)
    if not sentences:
        text = transcript.strip()
        if not text:
            return []
        return [
            TranscriptSegment(
                text=text,
                start_time=intervals[0].start_time,
                end_time=intervals[-1].end_time,
                speaker=intervals[0].speaker_label,
            )
        ]

    per_interval = math.ceil(len(sentences) / len(intervals))
    segments: List[TranscriptSegment] = []
    index = 0

    for interval in intervals:
        if index >= len(sentences):
            break
        chunk = sentences[index : index + per_interval]
        index += len(chunk)
        segments.append(
            TranscriptSegment(
                text=" ".join(chunk),
                start_time=interval.start_time,
                end_time=interval.end_time,
                speaker=interval.speaker_label,
            )
        )

    if index < len(sentences) and segments:
        last = segments[-1]
        remaining = " ".join(sentences[index:])
        segments[-1] = replace(last, text=f"{last.text} {remaining}".strip())

    return segments


def merge_segments(
    segments: List[TranscriptSegment], intervals: List[DiarizedInterval], transcript: str
) -> List[TranscriptSegment]:
    """
    Merge diarization output into the transcript.

    Args:
        segments: Synthesized transcript segments (may be empty or zero-duration)
        intervals: Diarization intervals in engine order
        transcript: Flat transcript text, used for synthetic redistribution

    Returns:
        Speaker-attributed segments
    """
    if not intervals:
        return segments

    if has_valid_timestamps(segments):
        logger.info(f"Merging {len(intervals)} diarization segments by overlap")
        return assign_speakers(segments, intervals)

    logger.info("Creating segments from diarization (no valid timestamps)")
    return redistribute_sentences(intervals, transcript)
