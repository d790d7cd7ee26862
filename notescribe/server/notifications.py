"""NotificationPort: lifecycle signals for a processing run, plus a logging adapter."""

import logging
from abc import ABC, abstractmethod

from .models import ProcessingResult, RecordingRequest

logger = logging.getLogger(__name__)


class NotificationPort(ABC):
    @abstractmethod
    def started(self, request: RecordingRequest) -> None:
        """A run has begun processing."""

    @abstractmethod
    def completed(self, result: ProcessingResult) -> None:
        """A run finalized with a usable record."""

    @abstractmethod
    def failed(self, result: ProcessingResult) -> None:
        """A run failed; the record carries the error message."""


class LogNotifier(NotificationPort):
    def started(self, request: RecordingRequest) -> None:
        logger.info(f"[{request.recording_id}] Processing {request.title or request.audio_path}")

    def completed(self, result: ProcessingResult) -> None:
        logger.info(f"[{result.recording_id}] ✓ Processing complete: {result.title or 'Recording'} is ready")

    def failed(self, result: ProcessingResult) -> None:
        logger.error(f"[{result.recording_id}] Processing failed: {result.error_message}")
