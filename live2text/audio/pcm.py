"""PCM conversion helpers."""

import numpy as np

PCM16_MIN = -32768
PCM16_MAX = 32767


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """Convert float samples in [-1, 1] to little-endian 16-bit PCM bytes."""
    scaled = np.asarray(samples, dtype=np.float32) * 32768.0
    clipped = np.clip(scaled, PCM16_MIN, PCM16_MAX)
    return clipped.astype("<i2").tobytes()


def pcm16_peak(pcm: bytes) -> float:
    """Peak absolute level of a 16-bit PCM buffer, normalised to [0, 1]."""
    if not pcm:
        return 0.0
    samples = np.frombuffer(pcm, dtype="<i2")
    return float(np.max(np.abs(samples.astype(np.int32)))) / 32768.0
