import pytest

from notescribe.audio import AudioTranscriber
from notescribe.config import ProcessingSettings
from notescribe.errors import DiarizationError
from notescribe.models import DiarizedInterval
from notescribe.server.job_manager import JobManager, JobStage, JobStatus
from notescribe.server.models import RecordingRequest
from notescribe.server.notifications import NotificationPort
from notescribe.server.processor import NO_SPEECH_MESSAGE, RecordingProcessor
from notescribe.summary.models import SummaryResult, TranscriptionResult

MARKED = "[00:00.000 --> 00:02.000] Welcome everyone.\n[00:02.500 --> 00:04.000] Thanks for having me."

GOOD_SUMMARY = SummaryResult(
    summary_markdown="## Overview\nA productive welcome call.\n",
    title="Welcome",
    category="Meeting",
    tags=["intro"],
    provider_id="fake",
)


class FakeProvider:
    provider_id = "fake"

    def __init__(self, transcription, summary=GOOD_SUMMARY):
        self.transcription = transcription
        self.summary = summary
        self.summarize_calls = []

    def transcribe(self, audio_path, duration_seconds=0.0):
        return self.transcription

    def summarize(self, transcript, speakers=None):
        self.summarize_calls.append((transcript, speakers))
        return self.summary


class FakeFactory:
    def __init__(self, provider):
        self.provider = provider
        self.calls = []

    def __call__(self, provider_id, settings, transcriber=None):
        self.calls.append((provider_id, transcriber))
        if provider_id == "unknown":
            raise ValueError(f"Unknown provider: {provider_id}")
        return self.provider


class FakeDiarizer:
    def __init__(self, intervals=None, error=None):
        self.intervals = intervals or []
        self.error = error

    def diarize(self, audio_path):
        if self.error:
            raise self.error
        return self.intervals


class RecordingNotifier(NotificationPort):
    def __init__(self):
        self.events = []

    def started(self, request):
        self.events.append(("started", request.recording_id))

    def completed(self, result):
        self.events.append(("completed", result.recording_id))

    def failed(self, result):
        self.events.append(("failed", result.error_message))


class FakeStore:
    def __init__(self):
        self.stages = []
        self.saved = []

    def update_stage(self, recording_id, stage):
        self.stages.append(stage)

    def save_result(self, result):
        self.saved.append(result)


def make_processor(transcription, diarizer=None, store=None, summary=GOOD_SUMMARY, **settings):
    provider = FakeProvider(transcription, summary)
    factory = FakeFactory(provider)
    notifier = RecordingNotifier()
    defaults = {"transcription_provider": "fake", "summary_provider": "fake"}
    defaults.update(settings)
    processor = RecordingProcessor(
        store=store if store is not None else FakeStore(),
        diarizer=diarizer,
        notifier=notifier,
        settings_provider=lambda options: ProcessingSettings(**defaults),
        provider_factory=factory,
    )
    return processor, provider, factory, notifier


def request(**kwargs):
    values = {"recording_id": "rec-1", "audio_path": "missing.wav", "duration_seconds": 4.0, "title": "Kickoff"}
    values.update(kwargs)
    return RecordingRequest(**values)


def test_full_run_attributes_speakers_and_summarizes():
    diarizer = FakeDiarizer(
        [DiarizedInterval(0.0, 2.2, "Speaker 1"), DiarizedInterval(2.2, 4.0, "Speaker 2")]
    )
    processor, provider, _, notifier = make_processor(TranscriptionResult(MARKED, "en"), diarizer=diarizer)

    result = processor.process(request())

    assert result.stage == JobStage.FINALIZED
    assert result.is_processed
    assert result.error_message is None
    assert result.transcript == "Welcome everyone. Thanks for having me."
    assert [(s.text, s.speaker) for s in result.segments] == [
        ("Welcome everyone.", "Speaker 1"),
        ("Thanks for having me.", "Speaker 2"),
    ]
    assert result.speaker_name_map == {"Speaker 1": "Speaker 1", "Speaker 2": "Speaker 2"}
    assert result.detected_language == "en"
    assert result.title == "Welcome"
    assert result.summary_provider == "fake"
    assert provider.summarize_calls == [(result.transcript, ["Speaker 1", "Speaker 2"])]
    assert processor.store.stages == [JobStage.TRANSCRIBING, JobStage.DIARIZING, JobStage.SUMMARIZING]
    assert processor.store.saved == [result]
    assert notifier.events == [("started", "rec-1"), ("completed", "rec-1")]


def test_empty_transcript_fails_the_run():
    processor, provider, _, notifier = make_processor(TranscriptionResult("   ", "en"))

    result = processor.process(request())

    assert result.stage == JobStage.FAILED
    assert result.is_processed
    assert result.error_message == NO_SPEECH_MESSAGE
    assert result.summary_markdown is None
    assert provider.summarize_calls == []
    assert processor.store.saved == [result]
    assert notifier.events[-1] == ("failed", NO_SPEECH_MESSAGE)


def test_transcription_error_fails_the_run():
    processor, _, _, _ = make_processor(TranscriptionResult(error="HTTP 401"))

    result = processor.process(request())

    assert result.failed
    assert result.error_message == "Transcription failed: HTTP 401"
    assert result.title == "Kickoff"


def test_diarization_failure_is_not_fatal():
    diarizer = FakeDiarizer(error=DiarizationError("pipeline failed to load"))
    processor, provider, _, _ = make_processor(TranscriptionResult(MARKED, "en"), diarizer=diarizer)

    result = processor.process(request())

    assert result.stage == JobStage.FINALIZED
    assert result.speaker_name_map == {}
    assert all(s.speaker is None for s in result.segments)
    assert provider.summarize_calls[0][1] is None


def test_diarization_disabled_skips_stage():
    diarizer = FakeDiarizer([DiarizedInterval(0.0, 4.0, "Speaker 1")])
    processor, _, _, _ = make_processor(
        TranscriptionResult(MARKED, "en"), diarizer=diarizer, enable_diarization=False
    )

    result = processor.process(request())

    assert JobStage.DIARIZING not in processor.store.stages
    assert result.speaker_name_map == {}


def test_plain_cloud_transcript_is_redistributed():
    diarizer = FakeDiarizer(
        [DiarizedInterval(0.0, 3.0, "Speaker 1"), DiarizedInterval(3.0, 6.0, "Speaker 2")]
    )
    processor, _, _, _ = make_processor(TranscriptionResult("Hi there. How are you? Fine thanks."), diarizer=diarizer)

    result = processor.process(request())

    assert result.transcript == "Hi there. How are you? Fine thanks."
    assert [(s.text, s.speaker, s.start_time) for s in result.segments] == [
        ("Hi there. How are you?", "Speaker 1", 0.0),
        ("Fine thanks.", "Speaker 2", 3.0),
    ]


def test_failed_summary_provider_falls_back_to_extractive():
    processor, _, _, _ = make_processor(
        TranscriptionResult(MARKED, "en"), summary=SummaryResult(error="rate limited", provider_id="fake")
    )

    result = processor.process(request())

    assert result.stage == JobStage.FINALIZED
    assert result.summary_provider == "extractive"
    assert "## Overview" in result.summary_markdown


def test_unknown_summary_provider_uses_extractive():
    processor, _, _, _ = make_processor(TranscriptionResult(MARKED, "en"), summary_provider="unknown")

    result = processor.process(request())

    assert result.summary_provider == "extractive"
    assert result.error_message is None


def test_options_reach_the_settings_snapshot():
    processor, _, _, _ = make_processor(TranscriptionResult(MARKED, "en"))
    seen = []
    processor.settings_provider = lambda options: seen.append(options) or ProcessingSettings(
        transcription_provider="fake", summary_provider="fake"
    )

    processor.process(request(options={"SUMMARY_PROVIDER": "groq"}))

    assert seen == [{"SUMMARY_PROVIDER": "groq"}]


def test_local_transcriber_created_once():
    processor, _, factory, _ = make_processor(
        TranscriptionResult(MARKED, "en"), transcription_provider="local", whisper_model="tiny"
    )

    processor.process(request(recording_id="a"))
    processor.process(request(recording_id="b"))

    transcribers = [t for pid, t in factory.calls if pid == "local"]
    assert len(transcribers) == 2
    assert transcribers[0] is transcribers[1]
    assert isinstance(transcribers[0], AudioTranscriber)
    assert transcribers[0].model_name == "tiny"
    assert transcribers[0].model is None


def test_result_is_stored_in_job_manager(tmp_path):
    store = JobManager(str(tmp_path / "jobs"))
    audio = tmp_path / "upload.wav"
    audio.write_bytes(b"\x00" * 2048)
    job_id = store.create_job("upload.wav", 2048)
    processor, _, _, _ = make_processor(TranscriptionResult(MARKED, "en"), store=store)

    processor.process(request(recording_id=job_id, audio_path=str(audio)))

    metadata = store.get_metadata(job_id)
    stored = store.get_result(job_id)
    assert metadata["stage"] == JobStage.FINALIZED.value
    assert metadata["status"] == JobStatus.COMPLETED.value
    assert metadata["summary_provider"] == "fake"
    assert stored["transcript"] == "Welcome everyone. Thanks for having me."
    assert stored["isProcessed"]
    assert store.get_error(job_id) is None


def test_store_failure_does_not_raise():
    class BrokenStore(FakeStore):
        def save_result(self, result):
            raise ValueError("Job rec-1 not found")

    processor, _, _, notifier = make_processor(TranscriptionResult(MARKED, "en"), store=BrokenStore())

    result = processor.process(request())

    assert result.stage == JobStage.FINALIZED
    assert notifier.events[-1] == ("completed", "rec-1")


@pytest.mark.parametrize("transcript", ["", None])
def test_missing_transcript_is_no_speech(transcript):
    processor, _, _, _ = make_processor(TranscriptionResult(transcript))

    assert processor.process(request()).error_message == NO_SPEECH_MESSAGE
