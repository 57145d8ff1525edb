"""Terminal display for live transcription using rich."""

import logging
import threading
from typing import List, Optional

from rich.align import Align
from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..models.events import ConnectionState
from ..models.usage import SessionStats
from ..usage import format_usage

logger = logging.getLogger(__name__)

PLACEHOLDER = "Your voice transcription will appear here..."

CONNECTION_STYLES = {
    ConnectionState.DISCONNECTED: ("⏹️  DISCONNECTED", "bold red"),
    ConnectionState.CONNECTING: ("🔄 CONNECTING", "bold yellow"),
    ConnectionState.CONNECTED: ("🔗 CONNECTED", "bold cyan"),
    ConnectionState.READY: ("🟢 READY", "bold green"),
}


LEVEL_WIDTH = 10


def level_bar(level: float, width: int = LEVEL_WIDTH) -> str:
    """Meter like "▮▮▮▯▯▯▯▯▯▯" for a level in [0, 1]."""
    filled = round(min(max(level, 0.0), 1.0) * width)
    return "▮" * filled + "▯" * (width - filled)


class RichConsoleSink:
    """Renders transcript, status and usage into a live terminal layout."""

    def __init__(self, console: Optional[Console] = None, title: str = "Live2Text"):
        self.console = console or Console()
        self.title = title
        self.lock = threading.RLock()

        self.paragraphs: List[str] = []
        self.status_message = "Starting..."
        self.status_is_error = False
        self.connection = ConnectionState.DISCONNECTED
        self.stats: Optional[SessionStats] = None
        self.level = 0.0

        self.live: Optional[Live] = None

    def start(self) -> None:
        """Begin live rendering."""
        with self.lock:
            if self.live is not None:
                return
            self.live = Live(self._build(), console=self.console,
                             refresh_per_second=4, transient=False)
            self.live.start()

    def stop(self) -> None:
        with self.lock:
            if self.live is None:
                return
            self.live.update(self._build(), refresh=True)
            self.live.stop()
            self.live = None

    def __enter__(self) -> "RichConsoleSink":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()

    # DisplaySink

    def render(self, text: str) -> None:
        with self.lock:
            if self.paragraphs:
                self.paragraphs[-1] = text
            else:
                self.paragraphs.append(text)
            self._refresh()

    def append_paragraph(self, text: str) -> None:
        with self.lock:
            self.paragraphs.append(text)
            self._refresh()

    def clear(self) -> None:
        with self.lock:
            self.paragraphs.clear()
            self._refresh()

    def show_status(self, message: str, is_error: bool = False) -> None:
        with self.lock:
            self.status_message = message
            self.status_is_error = is_error
            self._refresh()

    def show_usage(self, stats: SessionStats) -> None:
        with self.lock:
            self.stats = stats
            self._refresh()

    def show_connection(self, state: ConnectionState) -> None:
        with self.lock:
            self.connection = state
            self._refresh()

    def show_level(self, level: float) -> None:
        with self.lock:
            self.level = level
            self._refresh()

    # Layout

    def _refresh(self) -> None:
        if self.live is not None:
            self.live.update(self._build())

    def _build(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(self._header(), name="header", size=3),
            Layout(name="main", ratio=1),
            Layout(self._footer(), name="footer", size=3),
        )
        layout["main"].split_row(
            Layout(self._transcript_panel(), name="transcript", ratio=2),
            Layout(self._usage_panel(), name="usage", ratio=1),
        )
        return layout

    def _header(self) -> Panel:
        label, style = CONNECTION_STYLES[self.connection]
        header_text = Text.assemble(
            (f"🎙️  {self.title}", "bold blue"), "  |  ", (label, style),
            "  |  ", (level_bar(self.level), "green"))
        return Panel(Align.center(header_text), style="bright_blue")

    def _transcript_panel(self) -> Panel:
        if self.paragraphs:
            body = Group(*[Text(p, style="white") for p in self.paragraphs])
        else:
            body = Text(PLACEHOLDER, style="dim white italic")
        return Panel(body, title="📝 Transcription", border_style="blue")

    def _usage_panel(self) -> Panel:
        table = Table(title="💰 Usage", show_header=True, header_style="bold magenta")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="white")
        if self.stats is not None:
            for label, value in format_usage(self.stats):
                table.add_row(label, value)
        return Panel(table, border_style="green")

    def _footer(self) -> Panel:
        style = "bold red" if self.status_is_error else "white"
        return Panel(Align.center(Text(self.status_message, style=style)),
                     style="bright_black")
