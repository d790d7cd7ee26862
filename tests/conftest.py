import struct

import pytest


def wav_bytes(payload: bytes, channels: int = 1, rate: int = 16000, bits: int = 16, format_tag: int = 1, extra: bytes = b"") -> bytes:
    """Assemble a RIFF/WAVE container around a raw payload."""
    block_align = channels * bits // 8
    fmt = struct.pack("<HHIIHH", format_tag, channels, rate, rate * block_align, block_align, bits)
    body = b"WAVE" + b"fmt " + struct.pack("<I", len(fmt)) + fmt + extra
    body += b"data" + struct.pack("<I", len(payload)) + payload
    return b"RIFF" + struct.pack("<I", len(body)) + body


def pcm16(*values: int) -> bytes:
    return struct.pack(f"<{len(values)}h", *values)


@pytest.fixture
def make_wav(tmp_path):
    """Write a 16-bit WAV file and return its path."""

    def _make(name="audio.wav", samples=(0, 1000, -1000, 0) * 100, rate=16000, channels=1):
        path = tmp_path / name
        path.write_bytes(wav_bytes(pcm16(*samples), channels=channels, rate=rate))
        return str(path)

    return _make
