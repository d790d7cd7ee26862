"""
Launcher for the notescribe processing server and command-line tools.

Commands:
    serve               Run the Flask API server with background processing
    process FILE        Process one audio file and print the summary
    record              Record from an input device, then process the recording

Configuration comes from the environment / .env (see notescribe.config);
command-line flags override it for the run.
"""

import argparse
import json
import logging
import sys
import time
import uuid
from pathlib import Path

from notescribe.audio import AudioCapture, AudioTranscriber, create_diarizer, get_audio_duration
from notescribe.config import ConfigManager, ProcessingSettings
from notescribe.errors import CaptureError
from notescribe.server import (
    JobManager,
    ProcessingQueue,
    RecordingProcessor,
    RecordingRequest,
    create_app,
    export_result,
)

logger = logging.getLogger("notescribe")


def configure_logging():
    log_level = str(ConfigManager.get("LOG_LEVEL")).upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Request logs only at WARNING and above unless debugging
    if log_level != "DEBUG":
        logging.getLogger("werkzeug").setLevel(logging.WARNING)


def build_processor(store=None) -> RecordingProcessor:
    """Create the owned model handles once and hand them to the processor."""
    transcriber = AudioTranscriber(model_name=ConfigManager.get("WHISPER_MODEL"))
    diarizer = create_diarizer(ConfigManager.get("HUGGINGFACE_TOKEN"), ConfigManager.get("DIARIZATION_MODEL"))
    return RecordingProcessor(store=store, transcriber=transcriber, diarizer=diarizer)


def cli_overrides(args) -> dict:
    overrides = {
        "TRANSCRIPTION_PROVIDER": args.transcription_provider,
        "SUMMARY_PROVIDER": args.summary_provider,
        "SUMMARY_MODEL": args.summary_model,
        "LANGUAGE": args.language,
    }
    if args.no_diarization:
        overrides["ENABLE_DIARIZATION"] = "false"
    return {key: value for key, value in overrides.items() if value}


def run_server(args):
    job_manager = JobManager(ConfigManager.get("JOBS_DIR"))
    processing_queue = ProcessingQueue(build_processor(job_manager), max_workers=ConfigManager.get_int("MAX_WORKERS"))
    app = create_app(job_manager, processing_queue)

    host = args.host or ConfigManager.get("API_HOST")
    port = args.port or ConfigManager.get_int("API_PORT")
    logger.info(f"Starting server on {host}:{port}")
    try:
        app.run(host=host, port=port, debug=False)
    finally:
        processing_queue.shutdown()


def process_file(audio_path: str, args, duration: float = 0.0) -> int:
    path = Path(audio_path)
    if not path.exists():
        logger.error(f"Audio file not found: {path}")
        return 1

    overrides = cli_overrides(args)
    processor = build_processor()
    processor.settings_provider = lambda options: ProcessingSettings.snapshot({**overrides, **options})

    request = RecordingRequest(
        recording_id=uuid.uuid4().hex,
        audio_path=str(path),
        duration_seconds=duration or get_audio_duration(str(path)),
        title=path.stem,
    )
    result = processor.process(request)

    if args.format == "record":
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(export_result(result, args.format))
    return 1 if result.failed else 0


def record_and_process(args) -> int:
    capture = AudioCapture(output_dir=args.output_dir)
    try:
        capture.start_recording(device_index=args.device)
    except CaptureError as e:
        logger.error(f"Could not start recording: {e}")
        return 1

    started = time.time()
    try:
        if args.seconds:
            time.sleep(args.seconds)
        else:
            input("Recording... press Enter to stop.\n")
    except KeyboardInterrupt:
        pass
    audio_path = capture.stop_recording()

    if not audio_path:
        logger.error("Nothing was recorded")
        return 1
    return process_file(audio_path, args, duration=time.time() - started)


def add_run_options(parser: argparse.ArgumentParser):
    parser.add_argument("--transcription-provider", help="Override TRANSCRIPTION_PROVIDER")
    parser.add_argument("--summary-provider", help="Override SUMMARY_PROVIDER")
    parser.add_argument("--summary-model", help="Override SUMMARY_MODEL")
    parser.add_argument("--language", help="Language code for transcription")
    parser.add_argument("--no-diarization", action="store_true", help="Skip speaker diarization")
    parser.add_argument(
        "--format",
        choices=["markdown", "txt", "json", "record"],
        default="markdown",
        help="Output format (record prints the raw result record)",
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="notescribe: transcribe, diarize and summarize recordings")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", help="Override API_HOST")
    serve.add_argument("--port", type=int, help="Override API_PORT")

    process = subparsers.add_parser("process", help="Process one audio file")
    process.add_argument("audio_path", help="Path to the audio file")
    add_run_options(process)

    record = subparsers.add_parser("record", help="Record from an input device, then process")
    record.add_argument("--device", type=int, help="Input device index (default device if omitted)")
    record.add_argument("--seconds", type=float, help="Stop after this many seconds instead of waiting for Enter")
    record.add_argument("--output-dir", default="saved_audio", help="Directory for recordings")
    add_run_options(record)

    args = parser.parse_args(argv)
    configure_logging()

    if args.command == "serve":
        run_server(args)
        return 0
    if args.command == "process":
        return process_file(args.audio_path, args)
    return record_and_process(args)


if __name__ == "__main__":
    sys.exit(main())
