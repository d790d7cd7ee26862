"""
On-device speech-to-text with the open-source Whisper model.

Output is rendered as "[start --> end] text" lines, the same marker format
the cloud engines return, so the segment synthesizer recovers timestamps
one way for every engine. Whisper's usual silence artifacts are dropped
before rendering.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from .utils import format_marker_time

logger = logging.getLogger(__name__)

# Phrases Whisper emits over silence or music
SILENCE_ARTIFACTS = frozenset(
    ["1.5%", "2.5%", "3.5%", "subscribe", ".", "...", "♪", "[blank_audio]", "(blank)", "thank you."]
)

NO_SPEECH_THRESHOLD = 0.6


class AudioTranscriber:
    """
    Whisper wrapper producing timestamp-marked transcripts.

    Model weights load on the first transcription and stay cached on the
    instance, so one transcriber should serve every run.
    """

    def __init__(self, model_name: str = "base"):
        self.model_name = model_name
        self.model = None

    def _whisper(self):
        if self.model is None:
            import whisper

            logger.info(f"Loading Whisper '{self.model_name}' weights...")
            self.model = whisper.load_model(self.model_name)
            logger.info(f"✓ Whisper '{self.model_name}' ready")
        return self.model

    def _looks_like_speech(self, text: str, no_speech_prob: float = 0.0) -> bool:
        if no_speech_prob > NO_SPEECH_THRESHOLD:
            return False

        normalized = text.strip().lower()
        if normalized in SILENCE_ARTIFACTS:
            return False
        if not any(ch.isalpha() for ch in normalized):
            return False
        # "aaa", "hm hm" and similar filler
        compact = normalized.replace(" ", "")
        return not (len(normalized) < 10 and len(set(compact)) <= 2)

    def speech_segments(self, result: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Whisper segments minus silence artifacts, reduced to start/end/text."""
        segments = result.get("segments") or []
        kept = [
            {"start": seg["start"], "end": seg["end"], "text": seg["text"].strip()}
            for seg in segments
            if self._looks_like_speech(seg["text"], seg.get("no_speech_prob", 0.0))
        ]
        dropped = len(segments) - len(kept)
        if dropped:
            logger.info(f"⚠ Dropped {dropped} of {len(segments)} Whisper segment(s) as silence")
        return kept

    def transcribe_marked(self, audio_path: str, language: Optional[str] = None) -> Tuple[str, Optional[str]]:
        """
        Transcribe a file into marker lines.

        Args:
            audio_path: Audio file Whisper can decode
            language: ISO code to force, or None to let Whisper detect it

        Returns:
            (marked text, language). The text is empty when nothing but
            silence was heard.
        """
        result = self._whisper().transcribe(audio_path, language=language, verbose=False)
        lines = [
            f"[{format_marker_time(seg['start'])} --> {format_marker_time(seg['end'])}] {seg['text']}"
            for seg in self.speech_segments(result)
        ]
        return "\n".join(lines), result.get("language") or language
