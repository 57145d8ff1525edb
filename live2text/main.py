"""Main application entry point for Live2Text."""

import sys
import asyncio
import logging
import threading
from pathlib import Path
from typing import Optional, Tuple

import click
from pubsub import pub
from rich.console import Console
from rich.table import Table

from .audio import AudioPublisher, AUDIO_TOPIC, pcm16_peak
from .audio.file_source import WavFileSource
from .config import Live2TextConfig, LiveSettings
from .errors import CaptureError
from .models.events import AudioEvent, SessionEvent
from .probe import DEFAULT_MODELS, ModelProber, print_summary
from .session import SESSION_TOPIC, EventLoopThread, SessionController, websocket_transport_factory
from .session.protocol import build_endpoint
from .transcription import ReconcileMode, TranscriptReconciler
from .ui import DisplaySink, MemoryDisplaySink, RichConsoleSink
from .usage import format_usage

logger = logging.getLogger(__name__)

QUIT_WORDS = ("quit", "exit")


class Server:
    """Wires configuration, display, controller and audio source together."""

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        # Load configuration
        self.config = Live2TextConfig(config_path)
        # Set up logging (command line overrides config)
        level = log_level or self.config.get('logging.level', 'INFO')
        setup_logging(self.config, level)

        self.loop_thread: Optional[EventLoopThread] = None
        self.controller: Optional[SessionController] = None
        self.sink: Optional[DisplaySink] = None
        self.source = None

        self.ready = threading.Event()
        self.disconnected = threading.Event()
        self.turn_complete = threading.Event()
        self.capture_failed = threading.Event()

    def live_settings(self, prompt: Optional[str] = None) -> LiveSettings:
        settings = self.config.get_live_settings()
        if prompt is not None:
            settings = settings.model_copy(update={"system_instruction": prompt})
        return settings

    def init(self, sink: DisplaySink, mode: ReconcileMode, prompt: Optional[str] = None) -> None:
        logger.info("Initializing services...")
        settings = self.live_settings(prompt)
        endpoint = build_endpoint(self.config.get_api_key(), settings.api_version)

        self.sink = sink
        self.loop_thread = EventLoopThread().start()
        reconciler = TranscriptReconciler(mode=mode, sink=sink)
        self.controller = SessionController(
            transport_factory=websocket_transport_factory(
                endpoint, self.loop_thread, heartbeat=settings.heartbeat_seconds),
            settings=settings,
            sink=sink,
            reconciler=reconciler,
            sample_rate=self.config.get('audio.sample_rate', 16000),
        )
        pub.subscribe(self._on_session_event, SESSION_TOPIC)

    def _on_session_event(self, event: SessionEvent) -> None:
        if event.event_type == "ready":
            self.disconnected.clear()
            self.ready.set()
        elif event.event_type == "closed":
            self.ready.clear()
            self.disconnected.set()
            self.turn_complete.set()
        elif event.event_type == "turn_complete":
            self.turn_complete.set()

    def _on_capture_error(self, error: CaptureError) -> None:
        logger.error(f"Recording stopped: {error}")
        self.controller.stop_recording()
        self.sink.show_status(str(error), is_error=True)
        self.capture_failed.set()

    def _on_audio_level(self, event: AudioEvent) -> None:
        self.sink.show_level(pcm16_peak(event.audio_data))

    def connect(self, timeout: float) -> bool:
        """Connect and wait for setup to complete."""
        self.controller.connect()
        if self.ready.wait(timeout):
            return True
        if not self.disconnected.is_set():
            self.sink.show_status(f"No setup response within {timeout:.0f}s", is_error=True)
        return False

    def run_transcription(self, duration: Optional[float], wav_path: Optional[str],
                          connect_timeout: float) -> None:
        sample_rate = self.config.get('audio.sample_rate', 16000)
        chunk_size = self.config.get('audio.chunk_size', 4096)
        channels = self.config.get('audio.channels', 1)
        logger.info(f"Audio settings: {sample_rate}Hz, {chunk_size} samples/chunk, {channels} channels")

        audio_publisher = AudioPublisher(AUDIO_TOPIC)
        audio_publisher.subscribe(self.controller.on_audio_event)
        audio_publisher.subscribe(self._on_audio_level)

        if wav_path:
            self.source = WavFileSource(wav_path, audio_publisher.publish_audio_event,
                                        chunk_size=chunk_size, expected_sample_rate=sample_rate)
        else:
            # Imported here so chat and probing work without PortAudio installed.
            from .audio.capture import AudioCapture
            self.source = AudioCapture(audio_publisher.publish_audio_event,
                                       sample_rate=sample_rate, chunk_size=chunk_size,
                                       channels=channels, error_callback=self._on_capture_error)

        try:
            if not self.connect(connect_timeout):
                return
            if not self.controller.start_recording():
                return
            try:
                self.source.start_recording()
            except CaptureError as e:
                logger.error(f"Error starting recording: {e}")
                self.controller.stop_recording()
                self.sink.show_status(str(e), is_error=True)
                return
            self._wait_for_end(duration)
        finally:
            audio_publisher.unsubscribe(self.controller.on_audio_event)
            audio_publisher.unsubscribe(self._on_audio_level)

    def _wait_for_end(self, duration: Optional[float]) -> None:
        finished = getattr(self.source, "finished", None)
        waited = 0.0
        while duration is None or waited < duration:
            if self.disconnected.wait(0.25) or self.capture_failed.is_set():
                return
            waited += 0.25
            if finished is not None and finished.is_set():
                # Leave the service a moment to send its last fragments.
                self.disconnected.wait(2.0)
                return

    def run_chat(self, console: Console, connect_timeout: float, response_timeout: float) -> None:
        if not self.connect(connect_timeout):
            return
        console.print("\n🎯 Interactive mode ready!")
        console.print('Type your message and press Enter (or "quit" to exit)\n')

        while not self.disconnected.is_set():
            text = click.prompt("You", default="", show_default=False)
            if text.strip().lower() in QUIT_WORDS:
                break
            if not text.strip():
                continue

            self.turn_complete.clear()
            if not self.controller.send_text(text):
                break
            if not self.turn_complete.wait(response_timeout):
                console.print("⏰ No complete response yet", style="yellow")
            console.print(f"🤖 Gemini: {self.sink.text}")
            self.controller.clear()

    def cleanup(self) -> None:
        if self.source is not None and self.source.is_recording:
            self.source.stop_recording()
        if self.controller is not None:
            self.controller.stop_recording()
            self.controller.close()
        if self.loop_thread is not None:
            self.loop_thread.stop()
        try:
            pub.unsubscribe(self._on_session_event, SESSION_TOPIC)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")


def setup_logging(config: Live2TextConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/live2text.log')
    console_output = config.get('logging.console_output', False)

    # Create logs directory if it doesn't exist
    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console output would fight with the live display; opt-in only
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("Live2Text starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def print_usage_table(console: Console, controller: SessionController) -> None:
    table = Table(title="💰 Session usage", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    for label, value in format_usage(controller.stats):
        table.add_row(label, value)
    console.print(table)


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              help="Path to configuration YAML file")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
              default=None, help="Set logging level (overrides config)")
@click.version_option(version="0.1.0", prog_name="Live2Text")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], log_level: Optional[str]) -> None:
    """Live2Text - live transcription with the Gemini Live API."""
    ctx.obj = {"config_path": config_path, "log_level": log_level}


def _make_server(ctx: click.Context) -> Server:
    try:
        return Server(ctx.obj["config_path"], ctx.obj["log_level"])
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e)) from e


@cli.command()
@click.option("--duration", type=float, default=None,
              help="Stop after this many seconds (default: until Ctrl+C)")
@click.option("--prompt", default=None,
              help="System instruction for processing the speech (default: plain transcription)")
@click.option("--mode", type=click.Choice([m.value for m in ReconcileMode]), default=None,
              help="Display strategy (default: display.mode from config, else live)")
@click.option("--wav", "wav_path", type=click.Path(exists=True, dir_okay=False),
              help="Stream a 16kHz mono WAV file instead of the microphone")
@click.option("--connect-timeout", type=float, default=15.0, show_default=True)
@click.pass_context
def transcribe(ctx: click.Context, duration: Optional[float], prompt: Optional[str],
               mode: Optional[str], wav_path: Optional[str], connect_timeout: float) -> None:
    """Stream audio and show the live transcription."""
    server = _make_server(ctx)
    mode = ReconcileMode(mode or server.config.get('display.mode', ReconcileMode.LIVE.value))
    sink = RichConsoleSink()
    try:
        server.init(sink, mode, prompt)
        with sink:
            server.run_transcription(duration, wav_path, connect_timeout)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    finally:
        server.cleanup()
    if server.controller is not None:
        print_usage_table(sink.console, server.controller)
    click.echo("\n👋 Goodbye!")


@cli.command()
@click.option("--temperature", type=float, default=None, help="Sampling temperature")
@click.option("--connect-timeout", type=float, default=15.0, show_default=True)
@click.option("--response-timeout", type=float, default=30.0, show_default=True)
@click.pass_context
def chat(ctx: click.Context, temperature: Optional[float], connect_timeout: float,
         response_timeout: float) -> None:
    """Interactive text chat over the live connection."""
    server = _make_server(ctx)
    if temperature is not None:
        server.config.set('live.temperature', temperature)
    console = Console()
    sink = MemoryDisplaySink()
    try:
        server.init(sink, ReconcileMode.PARAGRAPH)
        server.run_chat(console, connect_timeout, response_timeout)
        status = sink.last_status
        if status and status[1]:
            console.print(f"❌ {status[0]}", style="red")
    except (KeyboardInterrupt, click.Abort):
        logger.info("Chat interrupted by user")
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    finally:
        server.cleanup()
    if server.controller is not None:
        print_usage_table(console, server.controller)
    click.echo("\n👋 Goodbye!")


@cli.command("probe-models")
@click.option("--model", "models", multiple=True,
              help="Model identifier to test (repeatable; default: built-in list)")
@click.pass_context
def probe_models(ctx: click.Context, models: Tuple[str, ...]) -> None:
    """Report which model identifiers the live endpoint accepts."""
    server = _make_server(ctx)
    try:
        settings = server.live_settings()
        endpoint = build_endpoint(server.config.get_api_key(), settings.api_version)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    models = list(models) or server.config.get('probe.models') or DEFAULT_MODELS
    prober = ModelProber(
        endpoint,
        timeout_seconds=server.config.get('probe.timeout_seconds', 10.0),
        delay_seconds=server.config.get('probe.delay_seconds', 2.0),
    )
    console = Console()
    console.print("🚀 Testing all models against Gemini Live API WebSocket endpoint...")
    try:
        results = asyncio.run(prober.probe_all(models))
    except KeyboardInterrupt:
        results = prober.results
    print_summary(results, console)


def main() -> None:
    """Main entry point for Live2Text application."""
    cli()


if __name__ == "__main__":
    main()
