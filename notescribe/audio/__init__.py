"""
Audio processing for speech-to-text, speaker diarization and segment handling.

Main components:
- AudioCapture: Single-session recording to WAV
- AudioTranscriber: On-device speech-to-text using Whisper with hallucination filtering
- SpeakerDiarizer: Speaker identification over a pyannote.audio engine
- synthesize_segments: Sentence segments from timestamp-marked transcription output
- merge_segments: Speaker attribution by overlap or synthetic redistribution

Example usage:
    from notescribe.audio import AudioTranscriber, synthesize_segments

    transcriber = AudioTranscriber(model_name="base")
    marked_text, language = transcriber.transcribe_marked("meeting.wav")
    segments = synthesize_segments(marked_text, language)
"""

from .capture import AudioCapture
from .diarization import PyannoteEngine, SpeakerDiarizer, create_diarizer, unique_speakers
from .merge import assign_speakers, has_valid_timestamps, merge_segments, redistribute_sentences
from .segments import segments_to_text, synthesize_segments
from .transcription import AudioTranscriber
from .utils import format_marker_time, format_timestamp, get_audio_duration
from .wav import read_wav

__all__ = [
    "AudioCapture",
    "AudioTranscriber",
    "PyannoteEngine",
    "SpeakerDiarizer",
    "create_diarizer",
    "unique_speakers",
    "assign_speakers",
    "has_valid_timestamps",
    "merge_segments",
    "redistribute_sentences",
    "segments_to_text",
    "synthesize_segments",
    "format_marker_time",
    "format_timestamp",
    "get_audio_duration",
    "read_wav",
]
