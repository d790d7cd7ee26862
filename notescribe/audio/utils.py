"""
Utility functions for audio processing.

Helpers for timestamp formatting and WAV file inspection used across the
audio package and the processing server.
"""

import wave


def format_timestamp(seconds: float) -> str:
    """
    Format seconds as MM:SS or HH:MM:SS.

    Args:
        seconds: Time in seconds

    Returns:
        Formatted time string
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_marker_time(seconds: float) -> str:
    """
    Format seconds as a transcript marker time: MM:SS.mmm or HH:MM:SS.mmm.

    This is the form the segment synthesizer parses back out of
    "[start --> end] text" lines.
    """
    total_ms = int(round(max(seconds, 0.0) * 1000))
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, millis = divmod(rem, 1000)

    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"
    return f"{minutes:02d}:{secs:02d}.{millis:03d}"


def get_audio_duration(filepath: str) -> float:
    """
    Get duration of a WAV file in seconds.

    Args:
        filepath: Path to WAV file

    Returns:
        Duration in seconds, or 0.0 if the file is not a readable WAV
    """
    try:
        with wave.open(filepath, "rb") as wf:
            frames = wf.getnframes()
            rate = wf.getframerate()
            return frames / float(rate)
    except (wave.Error, EOFError, OSError):
        return 0.0
