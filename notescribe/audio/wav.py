"""
Minimal RIFF/WAVE reader producing mono float32 samples.

Walks the chunk list directly instead of going through the wave module so
that 32-bit IEEE float files (which wave rejects) are handled alongside
16-bit integer PCM. Multi-channel audio is downmixed by averaging.
"""

import logging
import struct
from typing import Tuple

import numpy as np

from ..errors import WavFormatError

logger = logging.getLogger(__name__)

WAVE_FORMAT_PCM = 1
WAVE_FORMAT_IEEE_FLOAT = 3
WAVE_FORMAT_EXTENSIBLE = 0xFFFE

_HEADER_SIZE = 44


def parse_wav_bytes(data: bytes) -> Tuple[np.ndarray, int]:
    """
    Decode WAV container bytes.

    Args:
        data: Complete WAV file contents

    Returns:
        Tuple of (mono float32 samples in [-1, 1], sample rate)

    Raises:
        WavFormatError: If the container is malformed or the sample format unsupported
    """
    if len(data) < _HEADER_SIZE:
        raise WavFormatError("File too small to be a valid WAV")
    if data[0:4] != b"RIFF":
        raise WavFormatError("Not a RIFF file")
    if data[8:12] != b"WAVE":
        raise WavFormatError("Not a WAVE file")

    offset = 12
    format_tag = 0
    num_channels = 0
    sample_rate = 0
    bits_per_sample = 0
    payload = None

    while offset + 8 <= len(data):
        chunk_id = data[offset : offset + 4]
        (chunk_size,) = struct.unpack_from("<I", data, offset + 4)
        body = offset + 8

        if chunk_id == b"fmt ":
            if chunk_size < 16 or body + 16 > len(data):
                raise WavFormatError("Truncated fmt chunk")
            format_tag, num_channels, sample_rate = struct.unpack_from("<HHI", data, body)
            (bits_per_sample,) = struct.unpack_from("<H", data, body + 14)
        elif chunk_id == b"data":
            # Streaming writers may leave the size unset, clamp to what is present
            payload = data[body : min(body + chunk_size, len(data))]
            break

        # Chunks are word aligned
        offset = body + chunk_size + (chunk_size & 1)

    if sample_rate == 0 or num_channels == 0 or payload is None:
        raise WavFormatError("Could not parse WAV header")

    if bits_per_sample == 16:
        dtype, scale = np.dtype("<i2"), 32768.0
    elif bits_per_sample == 32 and format_tag != WAVE_FORMAT_PCM:
        dtype, scale = np.dtype("<f4"), 1.0
    else:
        raise WavFormatError(f"Unsupported bits per sample: {bits_per_sample} (format {format_tag})")

    frame_size = dtype.itemsize * num_channels
    usable = len(payload) - (len(payload) % frame_size)
    samples = np.frombuffer(payload[:usable], dtype=dtype).astype(np.float32) / scale

    if num_channels > 1:
        samples = samples.reshape(-1, num_channels).mean(axis=1).astype(np.float32)

    logger.debug(f"WAV info - sampleRate: {sample_rate}, channels: {num_channels}, bits: {bits_per_sample}")
    return samples, sample_rate


def read_wav(filepath: str) -> Tuple[np.ndarray, int]:
    """
    Read a WAV file into mono float32 samples.

    Args:
        filepath: Path to WAV file

    Returns:
        Tuple of (samples, sample rate)
    """
    with open(filepath, "rb") as f:
        data = f.read()
    return parse_wav_bytes(data)
