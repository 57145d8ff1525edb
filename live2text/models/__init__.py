"""Data models for the Live2Text application."""

from .transcription import Fragment, FragmentSource, DisplayState
from .usage import SessionStats
from .events import AudioEvent, ConnectionState, SessionEvent

__all__ = [
    "Fragment",
    "FragmentSource",
    "DisplayState",
    "SessionStats",
    "AudioEvent",
    "ConnectionState",
    "SessionEvent",
]
