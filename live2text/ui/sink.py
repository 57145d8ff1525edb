"""Display sink interface and an in-memory implementation."""

import logging
import threading
from typing import List, Optional, Protocol, Tuple

from ..models.events import ConnectionState
from ..models.usage import SessionStats

logger = logging.getLogger(__name__)


class DisplaySink(Protocol):
    """Presentation capability the core logic renders into."""

    def render(self, text: str) -> None:
        """Replace the text of the live (last) paragraph."""
        ...

    def append_paragraph(self, text: str) -> None:
        """Start a new paragraph holding ``text``."""
        ...

    def clear(self) -> None:
        """Remove all transcript text."""
        ...

    def show_status(self, message: str, is_error: bool = False) -> None:
        ...

    def show_usage(self, stats: SessionStats) -> None:
        ...

    def show_connection(self, state: ConnectionState) -> None:
        ...

    def show_level(self, level: float) -> None:
        """Input level of the latest audio frame, in [0, 1]."""
        ...


class MemoryDisplaySink:
    """Keeps everything it is given in memory.

    Useful for embedding the controller in another program and for tests.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.paragraphs: List[str] = []
        self.statuses: List[Tuple[str, bool]] = []
        self.usage: Optional[SessionStats] = None
        self.connection: ConnectionState = ConnectionState.DISCONNECTED
        self.render_count = 0
        self.level = 0.0

    def render(self, text: str) -> None:
        with self.lock:
            if self.paragraphs:
                self.paragraphs[-1] = text
            else:
                self.paragraphs.append(text)
            self.render_count += 1

    def append_paragraph(self, text: str) -> None:
        with self.lock:
            self.paragraphs.append(text)
            self.render_count += 1

    def clear(self) -> None:
        with self.lock:
            self.paragraphs.clear()

    def show_status(self, message: str, is_error: bool = False) -> None:
        with self.lock:
            self.statuses.append((message, is_error))

    def show_usage(self, stats: SessionStats) -> None:
        with self.lock:
            self.usage = stats

    def show_connection(self, state: ConnectionState) -> None:
        with self.lock:
            self.connection = state

    def show_level(self, level: float) -> None:
        with self.lock:
            self.level = level

    @property
    def text(self) -> str:
        """Full transcript, paragraphs separated by blank lines."""
        with self.lock:
            return "\n\n".join(self.paragraphs)

    @property
    def last_status(self) -> Optional[Tuple[str, bool]]:
        with self.lock:
            return self.statuses[-1] if self.statuses else None
