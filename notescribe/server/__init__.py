"""
Recording processing server package.

This package provides a Flask API server with ThreadPoolExecutor-based
background processing for transcription, diarization and summarization.
"""

from .app import create_app
from .export import export_result
from .job_manager import JobManager, JobStage, JobStatus
from .models import ProcessingResult, RecordingRequest
from .notifications import LogNotifier, NotificationPort
from .processing_queue import ProcessingQueue
from .processor import RecordingProcessor

__all__ = [
    "create_app",
    "export_result",
    "JobManager",
    "JobStage",
    "JobStatus",
    "LogNotifier",
    "NotificationPort",
    "ProcessingQueue",
    "ProcessingResult",
    "RecordingProcessor",
    "RecordingRequest",
]
