"""
Error taxonomy for the recording pipeline.

Only capture and transcription failures abort a run. Everything downstream
degrades: diarization falls back to no speaker attribution, summarization falls
back to the extractive summarizer, and parse failures fall through the parser
tiers without ever reaching the caller.
"""


class NotescribeError(Exception):
    """Base class for all pipeline errors."""


class CaptureError(NotescribeError):
    """Recording could not be started (permission denied, device busy, session active)."""


class TranscriptionError(NotescribeError):
    """Speech-to-text produced no usable transcript. Fatal to a run."""


class DiarizationError(NotescribeError):
    """Speaker clustering failed. Callers proceed without speaker labels."""


class WavFormatError(DiarizationError):
    """WAV container could not be parsed by the built-in reader."""


class SummarizationError(NotescribeError):
    """A summarization provider failed. Triggers the extractive fallback."""


class ParseError(NotescribeError):
    """A parser tier could not decode a provider response."""
