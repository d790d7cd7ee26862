"""
Speaker diarization functionality using pyannote.audio.

This module provides speaker diarization (identifying who spoke when) for a
recorded WAV file. It is a thin boundary around the clustering engine:

- WAV decoding to mono float32 samples (built-in reader, soundfile fallback)
- Sample-rate check against the engine (mismatches are logged, not fatal)
- Conversion of engine cluster ids to "Speaker N" display labels

The engine discovers the number of speakers itself. Its pipeline is loaded
lazily on first use and kept for the lifetime of the engine instance, which
the application constructs once and hands to the processor.

Important: All pyannote/torch imports are done inside methods, not at module
level, so importing this module stays cheap and never touches audio backends.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..errors import DiarizationError, WavFormatError
from ..models import DiarizedInterval
from .wav import read_wav

logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "pyannote/speaker-diarization-3.1"
ENGINE_SAMPLE_RATE = 16000

# (start_seconds, end_seconds, cluster_id)
EngineTurn = Tuple[float, float, int]


class DiarizationEngine(ABC):
    """Unsupervised speaker clustering over mono samples."""

    sample_rate: int = ENGINE_SAMPLE_RATE

    @abstractmethod
    def process(self, samples: np.ndarray, sample_rate: int) -> List[EngineTurn]:
        """Cluster speech into speaker turns. Cluster ids are 0-based in discovery order."""

    @abstractmethod
    def is_loaded(self) -> bool:
        """Whether the underlying model is ready."""


class PyannoteEngine(DiarizationEngine):
    """
    pyannote.audio speaker-diarization pipeline.

    No speaker count is passed to the pipeline, so it estimates the number of
    speakers on its own.
    """

    def __init__(self, hf_token: str, model_name: str = DEFAULT_MODEL_NAME):
        """
        Initialize the engine handle. Nothing is downloaded until first use.

        Args:
            hf_token: Hugging Face authentication token
            model_name: HuggingFace model ID or local path for diarization model
        """
        self.hf_token = hf_token
        self.model_name = model_name
        self.pipeline = None
        self._pipeline_loaded = False

    def _load_pipeline(self):
        """
        Load the pyannote diarization pipeline (lazy loading).

        A failed load leaves the handle unloaded so the next run can retry.
        """
        if self._pipeline_loaded:
            return

        try:
            import torch
            from pyannote.audio import Pipeline
            from pyannote.audio.core.task import Problem, Resolution, Specifications

            # PyTorch 2.6+ defaults to weights_only loading; allow the
            # classes pyannote checkpoints reference
            torch.serialization.add_safe_globals([torch.torch_version.TorchVersion])
            torch.serialization.add_safe_globals([Specifications, Problem, Resolution])

            logger.info(f"Loading diarization pipeline: {self.model_name}")
            self.pipeline = Pipeline.from_pretrained(self.model_name, use_auth_token=self.hf_token)
            if self.pipeline is None:
                raise DiarizationError(f"Pipeline {self.model_name} could not be fetched (check HUGGINGFACE_TOKEN)")
            self._pipeline_loaded = True
            logger.info(f"✓ Diarization pipeline loaded: {self.model_name}")
        except Exception as e:
            self.pipeline = None
            self._pipeline_loaded = False
            raise DiarizationError(f"Diarization pipeline failed to load ({self.model_name}): {e}") from e

    def is_loaded(self) -> bool:
        return self._pipeline_loaded

    def process(self, samples: np.ndarray, sample_rate: int) -> List[EngineTurn]:
        self._load_pipeline()

        import torch

        waveform = torch.from_numpy(np.ascontiguousarray(samples, dtype=np.float32)).unsqueeze(0)
        output = self.pipeline({"waveform": waveform, "sample_rate": sample_rate})
        # pyannote 4 wraps the annotation in a DiarizeOutput
        annotation = getattr(output, "speaker_diarization", output)

        cluster_ids: Dict[str, int] = {}
        turns: List[EngineTurn] = []
        for turn, _, label in annotation.itertracks(yield_label=True):
            if label not in cluster_ids:
                cluster_ids[label] = parse_cluster_id(label, fallback=len(cluster_ids))
            turns.append((float(turn.start), float(turn.end), cluster_ids[label]))
        return turns


def parse_cluster_id(label, fallback: int) -> int:
    """Read the numeric cluster id from an engine label such as "SPEAKER_03"."""
    if isinstance(label, int):
        return label
    match = re.search(r"(\d+)$", str(label))
    return int(match.group(1)) if match else fallback


def speaker_label(cluster_id: int) -> str:
    """Convert a 0-indexed cluster id to a 1-indexed display label."""
    return f"Speaker {cluster_id + 1}"


def unique_speakers(intervals: List[DiarizedInterval]) -> List[str]:
    """Return the distinct speaker labels in sorted order."""
    return sorted({interval.speaker_label for interval in intervals})


def read_with_soundfile(audio_path: str) -> Tuple[np.ndarray, int]:
    """Generic reader for containers the built-in WAV parser rejects."""
    import soundfile

    audio, sample_rate = soundfile.read(audio_path, dtype="float32")
    if audio.ndim > 1:
        audio = audio.mean(axis=1)
    return audio.astype(np.float32), int(sample_rate)


class SpeakerDiarizer:
    """
    Produce speaker-labelled intervals for an audio file.

    Wraps a DiarizationEngine; any failure surfaces as DiarizationError so
    the caller can continue without speaker attribution.
    """

    def __init__(self, engine: DiarizationEngine, fallback_reader=read_with_soundfile):
        self.engine = engine
        self.fallback_reader = fallback_reader

    def load_samples(self, audio_path: str) -> Tuple[np.ndarray, int]:
        try:
            samples, sample_rate = read_wav(audio_path)
            logger.debug(f"WAV read: {len(samples)} samples at {sample_rate} Hz")
            return samples, sample_rate
        except (WavFormatError, OSError) as e:
            logger.info(f"Built-in WAV read failed, trying generic reader: {e}")

        try:
            return self.fallback_reader(audio_path)
        except Exception as e:
            raise DiarizationError(f"Could not read audio for diarization: {e}") from e

    def diarize(self, audio_path: str) -> List[DiarizedInterval]:
        """
        Perform speaker diarization on an audio file.

        Args:
            audio_path: Path to audio file to analyze

        Returns:
            Ordered list of DiarizedInterval labelled "Speaker 1", "Speaker 2", ...

        Raises:
            DiarizationError: On any read, load or engine failure
        """
        if not os.path.exists(audio_path):
            raise DiarizationError(f"Audio file not found: {audio_path}")

        samples, sample_rate = self.load_samples(audio_path)

        if sample_rate != self.engine.sample_rate:
            # The model may still cope, so carry on
            logger.warning(f"Sample rate mismatch. Expected: {self.engine.sample_rate}, got: {sample_rate}")

        try:
            turns = self.engine.process(samples, sample_rate)
        except DiarizationError:
            raise
        except Exception as e:
            raise DiarizationError(f"Diarization failed for {audio_path}: {e}") from e

        intervals = [DiarizedInterval(start, end, speaker_label(cluster_id)) for start, end, cluster_id in turns]
        logger.info(f"Found {len(intervals)} segments with {len(unique_speakers(intervals))} speakers")
        return intervals


def create_diarizer(hf_token: Optional[str], model_name: str = DEFAULT_MODEL_NAME) -> Optional[SpeakerDiarizer]:
    """
    Build the process-wide diarizer, or None when no token is configured.
    """
    if not hf_token:
        logger.warning("No HuggingFace token found, speaker diarization disabled")
        return None
    return SpeakerDiarizer(PyannoteEngine(hf_token=hf_token, model_name=model_name))
