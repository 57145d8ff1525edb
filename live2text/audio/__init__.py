"""Audio capture and PCM handling."""

from .publisher import AudioPublisher, AUDIO_TOPIC
from .pcm import float_to_pcm16, pcm16_peak

__all__ = [
    'AudioPublisher',
    'AUDIO_TOPIC',
    'float_to_pcm16',
    'pcm16_peak',
]
