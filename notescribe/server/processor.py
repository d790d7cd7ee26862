"""
Recording processing pipeline: transcription, diarization and summarization.

This module sequences the stages for one recording and applies the failure
policy of each:

- Transcription: an error or an empty transcript fails the run
- Diarization: optional, any error leaves the segments unattributed
- Summarization: never fails, the orchestrator falls back to extractive

The finalized record is always stored, with partial results and an error
message when the run failed.
"""

import logging
import threading
import time
import warnings
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from ..audio import AudioTranscriber, SpeakerDiarizer, get_audio_duration, merge_segments, unique_speakers
from ..audio.segments import has_timestamp_markers, segments_to_text, synthesize_segments
from ..config import ProcessingSettings
from ..errors import DiarizationError, TranscriptionError
from ..models import TranscriptSegment
from ..summary import SummarizationOrchestrator, SummaryResult, create_provider
from .job_manager import JobManager, JobStage
from .models import ProcessingResult, RecordingRequest
from .notifications import LogNotifier, NotificationPort

# Suppress warnings from third-party libraries
warnings.filterwarnings("ignore", category=UserWarning, module="torchaudio")
warnings.filterwarnings("ignore", category=UserWarning, module="pyannote")
warnings.filterwarnings("ignore", category=SyntaxWarning, module="pyannote")

logger = logging.getLogger(__name__)

NO_SPEECH_MESSAGE = "No speech detected in recording"


class RecordingProcessor:
    """
    Runs the processing pipeline for recordings.

    The Whisper transcriber and the diarizer are owned handles: they are
    created once and shared by every run, so their models load once per
    process. Nothing else is shared between runs.
    """

    def __init__(
        self,
        store: Optional[JobManager] = None,
        transcriber: Optional[AudioTranscriber] = None,
        diarizer: Optional[SpeakerDiarizer] = None,
        notifier: Optional[NotificationPort] = None,
        settings_provider: Callable[[Mapping[str, Any]], ProcessingSettings] = ProcessingSettings.snapshot,
        provider_factory=create_provider,
    ):
        """
        Initialize the processor.

        Args:
            store: Job store receiving stage updates and the final record
            transcriber: Local Whisper transcriber (created on demand if None)
            diarizer: Speaker diarizer, or None to skip diarization
            notifier: Lifecycle notification adapter
            settings_provider: Returns the settings snapshot for a run's overrides
            provider_factory: Builds a CapabilityProvider from a provider id
        """
        self.store = store
        self.transcriber = transcriber
        self.diarizer = diarizer
        self.notifier = notifier or LogNotifier()
        self.settings_provider = settings_provider
        self.provider_factory = provider_factory
        self._transcriber_lock = threading.Lock()

    def process(self, request: RecordingRequest) -> ProcessingResult:
        """
        Process one recording through all stages.

        Args:
            request: Recording to process

        Returns:
            The finalized record. A failed run returns a record with stage
            FAILED and error_message set instead of raising.
        """
        start_time = time.time()
        settings = self.settings_provider(dict(request.options))
        self.notifier.started(request)

        transcript = ""
        segments: List[TranscriptSegment] = []
        speaker_name_map: Dict[str, str] = {}
        language: Optional[str] = None

        try:
            self._set_stage(request, JobStage.TRANSCRIBING)
            raw_text, language = self._transcribe(request, settings)
            segments = synthesize_segments(raw_text, language)
            transcript = segments_to_text(segments) if has_timestamp_markers(raw_text) else raw_text.strip()
            logger.info(f"[{request.recording_id}] Transcription produced {len(segments)} segments")

            if settings.enable_diarization and self.diarizer is not None:
                self._set_stage(request, JobStage.DIARIZING)
                segments, speaker_name_map = self._diarize(request, segments, transcript)
            else:
                logger.info(f"[{request.recording_id}] Skipping diarization")

            self._set_stage(request, JobStage.SUMMARIZING)
            summary = self._summarize(settings, transcript, list(speaker_name_map.values()))

            result = ProcessingResult(
                recording_id=request.recording_id,
                transcript=transcript,
                summary_markdown=summary.summary_markdown,
                title=summary.title or request.title,
                category=summary.category,
                tags=list(summary.tags),
                segments=segments,
                speaker_name_map=speaker_name_map,
                detected_language=language,
                is_processed=True,
                summary_provider=summary.provider_id,
                stage=JobStage.FINALIZED,
            )
            logger.info(f"[{request.recording_id}] Completed in {time.time() - start_time:.2f} seconds")

        except Exception as e:
            logger.error(f"[{request.recording_id}] Processing failed: {e}")
            result = ProcessingResult(
                recording_id=request.recording_id,
                transcript=transcript,
                title=request.title,
                segments=segments,
                speaker_name_map=speaker_name_map,
                detected_language=language,
                is_processed=True,
                error_message=str(e),
                stage=JobStage.FAILED,
            )

        self._finalize(result)
        return result

    def _set_stage(self, request: RecordingRequest, stage: JobStage) -> None:
        logger.info(f"[{request.recording_id}] Stage: {stage.value}")
        if self.store is not None:
            self.store.update_stage(request.recording_id, stage)

    def _get_transcriber(self, settings: ProcessingSettings) -> AudioTranscriber:
        with self._transcriber_lock:
            if self.transcriber is None:
                self.transcriber = AudioTranscriber(model_name=settings.whisper_model)
            return self.transcriber

    def _transcribe(self, request: RecordingRequest, settings: ProcessingSettings) -> Tuple[str, Optional[str]]:
        """
        Run speech-to-text with the configured provider.

        Raises:
            TranscriptionError: On provider error or when no speech was found
        """
        provider_id = settings.transcription_provider
        transcriber = self._get_transcriber(settings) if provider_id == "local" else None
        provider = self.provider_factory(provider_id, settings, transcriber=transcriber)

        duration = request.duration_seconds or get_audio_duration(request.audio_path)
        result = provider.transcribe(request.audio_path, duration)

        if result.error:
            raise TranscriptionError(f"Transcription failed: {result.error}")
        if not result.transcript or not result.transcript.strip():
            raise TranscriptionError(NO_SPEECH_MESSAGE)

        return result.transcript, result.language or settings.language

    def _diarize(
        self, request: RecordingRequest, segments: List[TranscriptSegment], transcript: str
    ) -> Tuple[List[TranscriptSegment], Dict[str, str]]:
        """Attribute speakers; on failure return the segments unchanged."""
        try:
            intervals = self.diarizer.diarize(request.audio_path)
        except DiarizationError as e:
            logger.warning(f"[{request.recording_id}] Diarization failed (non-fatal): {e}")
            return segments, {}

        if not intervals:
            logger.info(f"[{request.recording_id}] Diarization found no speakers")
            return segments, {}

        merged = merge_segments(segments, intervals, transcript)
        speakers = unique_speakers(intervals)
        logger.info(f"[{request.recording_id}] Found {len(speakers)} unique speakers: {speakers}")
        return merged, {speaker: speaker for speaker in speakers}

    def _summarize(self, settings: ProcessingSettings, transcript: str, speakers: List[str]) -> SummaryResult:
        try:
            provider = self.provider_factory(settings.summary_provider, settings, transcriber=self.transcriber)
        except ValueError as e:
            logger.warning(f"{e}, using extractive summarization")
            provider = None

        return SummarizationOrchestrator(provider).summarize(transcript, speakers=speakers or None)

    def _finalize(self, result: ProcessingResult) -> None:
        if self.store is not None:
            try:
                self.store.save_result(result)
            except (OSError, ValueError) as e:
                logger.error(f"[{result.recording_id}] Could not store result: {e}")

        if result.failed:
            self.notifier.failed(result)
        else:
            self.notifier.completed(result)
