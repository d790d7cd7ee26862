import json
from argparse import Namespace

import launcher
from notescribe.server.job_manager import JobStage
from notescribe.server.models import ProcessingResult


def run_args(**kwargs):
    values = {
        "transcription_provider": None,
        "summary_provider": None,
        "summary_model": None,
        "language": None,
        "no_diarization": False,
        "format": "markdown",
    }
    values.update(kwargs)
    return Namespace(**values)


def test_cli_overrides_only_set_flags():
    overrides = launcher.cli_overrides(run_args(summary_provider="groq", no_diarization=True))

    assert overrides == {"SUMMARY_PROVIDER": "groq", "ENABLE_DIARIZATION": "false"}


def test_process_missing_file(tmp_path):
    assert launcher.main(["process", str(tmp_path / "missing.wav")]) == 1


def test_process_prints_record(monkeypatch, tmp_path, capsys):
    audio = tmp_path / "call.wav"
    audio.write_bytes(b"\x00" * 2048)
    seen = []

    class FakeProcessor:
        settings_provider = None

        def process(self, request):
            seen.append((request, self.settings_provider({})))
            return ProcessingResult(
                recording_id=request.recording_id,
                transcript="Hello.",
                title=request.title,
                is_processed=True,
                stage=JobStage.FINALIZED,
            )

    monkeypatch.setattr(launcher, "build_processor", lambda store=None: FakeProcessor())

    code = launcher.main(["process", str(audio), "--format", "record", "--summary-provider", "openai"])

    assert code == 0
    request, settings = seen[0]
    assert request.title == "call"
    assert settings.summary_provider == "openai"
    record = json.loads(capsys.readouterr().out)
    assert record["transcript"] == "Hello."
    assert record["isProcessed"] is True
