"""Display sinks for Live2Text."""

from .sink import DisplaySink, MemoryDisplaySink
from .console import RichConsoleSink

__all__ = [
    "DisplaySink",
    "MemoryDisplaySink",
    "RichConsoleSink",
]
