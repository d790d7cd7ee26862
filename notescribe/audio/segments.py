"""
Sentence-level segment synthesis from annotated speech-to-text output.

Whisper-style engines emit one "[start --> end] text" line per phrase. This
module parses those markers and groups the phrases into sentences, so the rest
of the pipeline works with readable segments that still carry real timestamps.
Plain text without markers degrades to zero-duration sentence segments.
"""

import logging
import re
from typing import List, Optional

from ..models import TranscriptSegment

logger = logging.getLogger(__name__)

_TIME = r"\d{2}:\d{2}(?::\d{2})?(?:\.\d{3})?"
MARKER_PATTERN = re.compile(rf"\[({_TIME}) --> ({_TIME})\](.*)")

# Pause between phrases (seconds) that closes the current sentence
SENTENCE_PAUSE_SECONDS = 1.5

_SENTENCE_TERMINATORS = (".", "!", "?", ",")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


def parse_timestamp(value: str) -> float:
    """
    Parse "hh:mm:ss.mmm", "mm:ss.mmm" or "mm:ss" into seconds.

    Unparseable input reads as 0.0.
    """
    parts = value.split(":")
    try:
        if len(parts) == 3:
            return int(parts[0]) * 3600 + int(parts[1]) * 60 + float(parts[2])
        if len(parts) == 2:
            return int(parts[0]) * 60 + float(parts[1])
    except ValueError:
        pass
    return 0.0


def parse_marked_lines(raw_text: str, language: Optional[str] = None) -> List[TranscriptSegment]:
    """Extract phrase segments from every line carrying a timestamp marker."""
    phrases = []
    for line in raw_text.split("\n"):
        match = MARKER_PATTERN.search(line)
        if not match:
            continue
        content = match.group(3).strip()
        if not content:
            continue
        start = parse_timestamp(match.group(1))
        end = max(parse_timestamp(match.group(2)), start)
        phrases.append(TranscriptSegment(text=content, start_time=start, end_time=end, language=language))
    return phrases


def group_into_sentences(phrases: List[TranscriptSegment]) -> List[TranscriptSegment]:
    """
    Group consecutive phrase segments into sentence segments.

    A sentence closes when the buffered phrase ends in terminal punctuation,
    when the next phrase starts more than SENTENCE_PAUSE_SECONDS later, or when
    no phrases remain. Each sentence spans first start to last end.
    """
    sentences: List[TranscriptSegment] = []
    buffer: List[str] = []
    sentence_start = 0.0

    for i, phrase in enumerate(phrases):
        if not buffer:
            sentence_start = phrase.start_time
        buffer.append(phrase.text)

        next_phrase = phrases[i + 1] if i + 1 < len(phrases) else None
        ends_sentence = phrase.text.strip().endswith(_SENTENCE_TERMINATORS)
        has_pause = next_phrase is not None and next_phrase.start_time - phrase.end_time > SENTENCE_PAUSE_SECONDS

        if ends_sentence or has_pause or next_phrase is None:
            text = " ".join(buffer).strip()
            if text:
                sentences.append(
                    TranscriptSegment(
                        text=text,
                        start_time=sentence_start,
                        end_time=max(phrase.end_time, sentence_start),
                        language=phrase.language,
                    )
                )
            buffer = []

    return sentences or phrases


def split_plain_text(text: str, language: Optional[str] = None) -> List[TranscriptSegment]:
    """Split unmarked text on sentence punctuation into zero-duration segments."""
    segments = []
    for piece in _SENTENCE_SPLIT.split(text):
        sentence = piece.strip()
        if not sentence:
            continue
        if not sentence.endswith((".", "!", "?")):
            sentence += "."
        segments.append(TranscriptSegment(text=sentence, start_time=0.0, end_time=0.0, language=language))
    return segments


def synthesize_segments(raw_text: str, language: Optional[str] = None) -> List[TranscriptSegment]:
    """
    Turn raw transcription output into ordered sentence-level segments.

    Args:
        raw_text: Engine output, optionally with "[mm:ss.mmm --> mm:ss.mmm] text" lines
        language: Language tag copied onto every segment

    Returns:
        List of TranscriptSegment. Empty only when raw_text is blank.
    """
    text = raw_text.strip()
    if not text:
        return []

    phrases = parse_marked_lines(text, language)
    if phrases:
        sentences = group_into_sentences(phrases)
        logger.debug(f"Grouped {len(phrases)} timestamped phrases into {len(sentences)} sentences")
        return sentences

    segments = split_plain_text(text, language)
    if segments:
        return segments

    return [TranscriptSegment(text=text, start_time=0.0, end_time=0.0, language=language)]


def has_timestamp_markers(raw_text: str) -> bool:
    return any(MARKER_PATTERN.search(line) for line in raw_text.split("\n"))


def segments_to_text(segments: List[TranscriptSegment]) -> str:
    """Join segment texts with single spaces."""
    return " ".join(seg.text.strip() for seg in segments if seg.text.strip())
