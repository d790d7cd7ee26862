"""
HTTP API for notescribe.

Recordings are uploaded, queued and polled by id; finished records can be
fetched raw or exported. Provider endpoints list capabilities and run
connectivity checks against the current configuration.

Uploads never wait on processing: the handler stores the audio, hands it
to the ProcessingQueue and answers 202.
"""

import json
import logging
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from werkzeug.utils import secure_filename

from ..config import ProcessingSettings
from ..summary import PROVIDER_CAPABILITIES, create_provider
from .export import EXPORT_FORMATS, export_result, file_extension
from .job_manager import JobManager, JobStatus
from .models import ProcessingResult, RecordingRequest
from .processing_queue import ProcessingQueue

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"wav", "mp3", "mp4", "m4a", "flac", "aac", "ogg", "wma"}

# Smallest upload accepted as audio (bytes)
MIN_UPLOAD_SIZE = 1024

EXPORT_MIMETYPES = {"json": "application/json", "txt": "text/plain", "markdown": "text/markdown"}


def _read_upload_form() -> Tuple[Dict[str, Any], Optional[str]]:
    """Validate the multipart fields of an upload; returns (fields, error)."""
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return {}, "No audio file in the request"

    filename = secure_filename(upload.filename)
    extension = Path(filename).suffix.lower().lstrip(".")
    if extension not in ALLOWED_EXTENSIONS:
        return {}, f"File type not allowed, expected one of: {', '.join(sorted(ALLOWED_EXTENSIONS))}"

    try:
        options = json.loads(request.form.get("options") or "{}")
    except json.JSONDecodeError:
        options = None
    if not isinstance(options, dict):
        return {}, "options must be a JSON object"

    try:
        duration = float(request.form.get("duration") or 0)
    except ValueError:
        return {}, "duration must be a number"

    return {
        "filename": filename,
        "suffix": f".{extension}",
        "title": request.form.get("title") or None,
        "duration": duration,
        "options": options,
    }, None


def _flag(value: str, default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def create_app(
    job_manager: JobManager,
    processing_queue: ProcessingQueue,
    settings_provider: Callable[[Mapping[str, Any]], ProcessingSettings] = ProcessingSettings.snapshot,
) -> Flask:
    """
    Build the Flask application.

    Args:
        job_manager: Store for jobs and finished records
        processing_queue: Background hand-off for uploaded recordings
        settings_provider: Resolves configuration overrides for provider tests
    """
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = 500 * 1024 * 1024  # 500MB max file size
    CORS(app)

    @app.route("/health", methods=["GET"])
    def health_check():
        queue = processing_queue.get_queue_status()
        return jsonify(
            {
                "status": "healthy",
                "time": datetime.now().isoformat(),
                "accepting": queue["is_running"],
                "in_flight": len(queue["running_jobs"]),
                "workers": queue["max_workers"],
            }
        )

    @app.route("/recordings", methods=["POST"])
    def upload_recording():
        """
        Accept a recording and queue it; answers 202 with the recording id.

        Form fields: ``file`` (required), ``title``, ``duration`` in seconds,
        ``options`` as a JSON object of setting overrides such as
        {"SUMMARY_PROVIDER": "groq"}.
        """
        form, problem = _read_upload_form()
        if problem:
            return jsonify({"error": problem}), 400

        upload = request.files["file"]
        with tempfile.NamedTemporaryFile(delete=False, suffix=form["suffix"]) as staged:
            upload.save(staged.name)
        staged_path = Path(staged.name)

        try:
            size = staged_path.stat().st_size
            if size == 0:
                return jsonify({"error": "Empty file: nothing was uploaded"}), 400
            if size < MIN_UPLOAD_SIZE:
                return jsonify({"error": f"File too small to hold audio ({size} bytes)"}), 400

            recording_id = job_manager.create_job(
                original_filename=form["filename"], file_size=size, options=form["options"], title=form["title"]
            )
            audio_path = job_manager.save_audio_file(recording_id, str(staged_path))
        finally:
            staged_path.unlink(missing_ok=True)

        processing_queue.submit(
            RecordingRequest(
                recording_id=recording_id,
                audio_path=str(audio_path),
                duration_seconds=form["duration"],
                title=form["title"],
                options=form["options"],
            )
        )
        return jsonify({"recording_id": recording_id, "status": JobStatus.QUEUED.value}), 202

    @app.route("/recordings", methods=["GET"])
    def list_recordings():
        """Recordings newest first; ``?status=`` filters, ``?limit=`` caps (100)."""
        status_filter = request.args.get("status")
        try:
            limit = int(request.args.get("limit", 100))
        except ValueError:
            return jsonify({"error": "limit must be an integer"}), 400

        jobs = job_manager.list_jobs(status_filter=status_filter, limit=limit)
        return jsonify({"recordings": jobs, "total": len(jobs)})

    @app.route("/recordings/<recording_id>", methods=["GET"])
    def get_recording_status(recording_id: str):
        """Stage, status and timestamps for a recording."""
        metadata = job_manager.get_metadata(recording_id)
        if not metadata:
            return jsonify({"error": "Recording not found"}), 404

        error = job_manager.get_error(recording_id)
        if error:
            metadata["error"] = error
        return jsonify(metadata)

    @app.route("/recordings/<recording_id>/result", methods=["GET"])
    def get_recording_result(recording_id: str):
        """The finalized record, including failed runs with their error message."""
        if not job_manager.job_exists(recording_id):
            return jsonify({"error": "Recording not found"}), 404

        result = job_manager.get_result(recording_id)
        if result is None:
            return jsonify({"error": "Recording not processed yet"}), 409
        return jsonify(result)

    @app.route("/recordings/<recording_id>/export", methods=["GET"])
    def export_recording(recording_id: str):
        """
        Download a finished record.

        Query parameters:
        - format: json, txt or markdown (default: markdown)
        - timestamps: Include timestamped segments (default: true)
        - speakers: Include speaker names (default: true)
        """
        fmt = request.args.get("format", "markdown")
        if fmt not in EXPORT_FORMATS:
            return jsonify({"error": f"Unsupported export format: {fmt}"}), 400

        metadata = job_manager.get_metadata(recording_id)
        data = job_manager.get_result(recording_id)
        if metadata is None or data is None:
            return jsonify({"error": "Recording not found"}), 404

        result = ProcessingResult.from_dict(recording_id, data, stage=metadata.get("stage"))
        content = export_result(
            result,
            fmt,
            include_timestamps=_flag(request.args.get("timestamps")),
            include_speaker_names=_flag(request.args.get("speakers")),
        )
        filename = f"{recording_id}.{file_extension(fmt)}"
        return Response(
            content,
            mimetype=EXPORT_MIMETYPES[fmt],
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.route("/recordings/<recording_id>", methods=["DELETE"])
    def delete_recording(recording_id: str):
        if not job_manager.delete_job(recording_id):
            return jsonify({"error": "Recording not found"}), 404
        return jsonify({"message": "Recording deleted successfully"})

    @app.route("/providers", methods=["GET"])
    def list_providers():
        providers = [
            {
                "id": capability.id,
                "base_url": capability.base_url,
                "requires_key": capability.requires_key,
                "summary_models": list(capability.supported_models),
                "transcription_models": list(capability.transcription_models),
                "supports_json_mode": capability.supports_json_mode,
            }
            for capability in PROVIDER_CAPABILITIES.values()
        ]
        return jsonify({"providers": providers})

    @app.route("/providers/<provider_id>/test", methods=["POST"])
    def test_provider(provider_id: str):
        """
        Test connectivity to a provider.

        Optional JSON body of configuration overrides, e.g. {"GROQ_API_KEY": "gsk_..."}.
        """
        if provider_id not in PROVIDER_CAPABILITIES:
            return jsonify({"error": f"Unknown provider: {provider_id}"}), 404

        overrides = request.get_json(silent=True) or {}
        if not isinstance(overrides, dict):
            return jsonify({"error": "Body must be a JSON object"}), 400

        provider = create_provider(provider_id, settings_provider(overrides))
        result = provider.test_connection()
        logger.info(f"Connection test for {provider_id}: {result.message}")
        return jsonify({"provider": provider_id, "success": result.success, "message": result.message})

    return app
