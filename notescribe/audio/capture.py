"""
Audio capture using PyAudio (pyaudiowpatch on Windows for WASAPI support).

Records a single input device into a 16 kHz mono WAV file on a background
thread. Only one capture session may be active at a time: starting another
while one is running raises CaptureError, as do permission and device
failures. Once stopped, the file path is handed to the processing queue.
"""

import logging
import os
import sys
import threading
import time
import wave
from datetime import datetime
from typing import List, Optional

from ..errors import CaptureError

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 16000


def _load_pyaudio():
    # Platform-specific audio library import, deferred so that servers
    # without audio devices never load PortAudio
    if sys.platform == "win32":
        import pyaudiowpatch as pyaudio
    else:
        import pyaudio
    return pyaudio


class AudioCapture:
    """
    Handle audio recording from an input device.

    One instance is shared by the application; it owns at most one active
    recording session.
    """

    def __init__(self, frames_per_buffer: int = 1024, output_dir: str = "saved_audio"):
        """
        Initialize audio capture.

        Args:
            frames_per_buffer: Buffer size for audio chunks
            output_dir: Directory recordings are written to
        """
        self.frames_per_buffer = frames_per_buffer
        self.output_dir = output_dir
        self.pa = None
        self.stream = None
        self._frames: List[bytes] = []
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._output_path: Optional[str] = None
        self._rate = DEFAULT_SAMPLE_RATE
        self._channels = 1
        self._started_at: Optional[float] = None

    @property
    def is_recording(self) -> bool:
        return self._thread is not None

    def start_recording(
        self, device_index: Optional[int] = None, rate: int = DEFAULT_SAMPLE_RATE, channels: int = 1
    ) -> str:
        """
        Start recording from a device.

        Args:
            device_index: PyAudio device index (default input device if None)
            rate: Sample rate in Hz
            channels: Number of channels

        Returns:
            Path the recording will be written to

        Raises:
            CaptureError: If a session is already active or the device cannot be opened
        """
        with self._lock:
            if self.is_recording:
                raise CaptureError("A recording session is already active")

            pyaudio = _load_pyaudio()
            os.makedirs(self.output_dir, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            output_path = os.path.join(self.output_dir, f"recording_{timestamp}.wav")

            pa = pyaudio.PyAudio()
            try:
                stream = pa.open(
                    format=pyaudio.paInt16,
                    channels=channels,
                    rate=rate,
                    input=True,
                    frames_per_buffer=self.frames_per_buffer,
                    input_device_index=device_index,
                )
            except Exception as e:
                pa.terminate()
                raise CaptureError(f"Failed to open input device {device_index}: {e}") from e

            self.pa = pa
            self.stream = stream
            self._frames = []
            self._rate = rate
            self._channels = channels
            self._output_path = output_path
            self._stop_event.clear()
            self._started_at = time.time()
            self._thread = threading.Thread(target=self._record_thread, daemon=True)
            self._thread.start()

        logger.info(f"Recording started: {output_path}")
        return output_path

    def _record_thread(self):
        """Read chunks until the stop event is set."""
        while not self._stop_event.is_set():
            try:
                data = self.stream.read(self.frames_per_buffer, exception_on_overflow=False)
            except Exception as e:
                logger.error(f"Recording error: {e}")
                break
            self._frames.append(data)

    def stop_recording(self) -> Optional[str]:
        """
        Stop the active session and write the WAV file.

        Returns:
            Path of the written file, or None if nothing was recorded
        """
        with self._lock:
            if not self.is_recording:
                return None

            self._stop_event.set()
            self._thread.join(timeout=2.0)
            self._thread = None

            try:
                if self.stream.is_active():
                    self.stream.stop_stream()
                self.stream.close()
            finally:
                self.pa.terminate()
                self.stream = None
                self.pa = None

            elapsed = time.time() - (self._started_at or time.time())
            if not self._frames:
                logger.warning(f"Recording produced no audio after {elapsed:.1f}s")
                return None

            with wave.open(self._output_path, "wb") as wf:
                wf.setnchannels(self._channels)
                wf.setsampwidth(2)
                wf.setframerate(self._rate)
                wf.writeframes(b"".join(self._frames))

        logger.info(f"Recording saved: {self._output_path} ({elapsed:.1f}s)")
        return self._output_path
