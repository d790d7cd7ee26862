"""
Background processing of recordings on a thread pool.

submit() returns as soon as the run is scheduled, so the upload or capture
call that produced a recording never waits on transcription. Runs for
different recordings are independent of each other.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Optional

from .models import RecordingRequest
from .processor import RecordingProcessor

logger = logging.getLogger(__name__)


class ProcessingQueue:
    """Fire-and-forget hand-off of recordings to worker threads."""

    def __init__(self, processor: RecordingProcessor, max_workers: int = 2):
        self.processor = processor
        self.max_workers = max_workers
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notescribe-worker")
        self._in_flight: Dict[str, Future] = {}
        self._accepting = True
        self._guard = threading.Lock()

    def submit(self, request: RecordingRequest) -> Optional[Future]:
        """
        Schedule a recording for processing.

        Returns the Future of its ProcessingResult, or None when the queue
        has been shut down or the same recording is already in flight.
        """
        recording_id = request.recording_id
        with self._guard:
            if not self._accepting:
                logger.error(f"Rejected {recording_id}: queue is shut down")
                return None
            if recording_id in self._in_flight:
                logger.warning(f"⚠ Rejected {recording_id}: already in flight")
                return None
            future = self._pool.submit(self.processor.process, request)
            self._in_flight[recording_id] = future

        future.add_done_callback(lambda done: self._finished(recording_id, done))
        logger.info(f"Queued recording {recording_id}")
        return future

    def _finished(self, recording_id: str, future: Future) -> None:
        with self._guard:
            self._in_flight.pop(recording_id, None)

        # The processor reports its own failures; this only fires on a crash
        crash = future.exception()
        if crash is not None:
            logger.error(f"Recording {recording_id} crashed: {crash}")
        else:
            logger.info(f"✓ Recording {recording_id} done")

    def get_queue_status(self) -> Dict[str, Any]:
        with self._guard:
            in_flight = sorted(self._in_flight)
            accepting = self._accepting
        return {"is_running": accepting, "running_jobs": in_flight, "max_workers": self.max_workers}

    def shutdown(self, wait: bool = True) -> None:
        """Stop taking new recordings. Runs already started are not cancelled."""
        with self._guard:
            if not self._accepting:
                return
            self._accepting = False

        logger.info("Shutting down processing queue...")
        self._pool.shutdown(wait=wait)
        logger.info("Processing queue shut down")
