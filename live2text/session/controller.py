"""Session controller: connection lifecycle, message routing and audio gating."""

import logging
import math
import threading
from dataclasses import replace
from typing import Callable, Optional, Union

from pubsub import pub

from ..config import LiveSettings
from ..errors import ProtocolParseError
from ..models.events import AudioEvent, ConnectionState, SessionEvent
from ..models.transcription import Fragment, FragmentSource
from ..models.usage import SessionStats
from ..transcription.reconciler import TranscriptReconciler
from ..ui.sink import DisplaySink
from ..usage import recompute, text_tokens
from . import protocol
from .transport import AbstractTransport, TransportCallbacks

logger = logging.getLogger(__name__)

SESSION_TOPIC = "session_events"


class SessionController:
    """Owns one live link at a time and everything that depends on it.

    Transport events, microphone frames and operator actions may arrive on
    different threads; every mutation of the display state and usage stats
    happens under ``self.lock``. Each ``connect()`` starts a new generation,
    and events from earlier generations are dropped.
    """

    def __init__(self,
                 transport_factory: Callable[[], AbstractTransport],
                 settings: LiveSettings,
                 sink: DisplaySink,
                 reconciler: Optional[TranscriptReconciler] = None,
                 sample_rate: int = protocol.INPUT_SAMPLE_RATE,
                 topic: str = SESSION_TOPIC):
        """Initialize session controller.

        Args:
            transport_factory: Returns a fresh transport for each connect
            settings: Model, system instruction and generation settings
            sink: Display to report transcript, status and usage to
            reconciler: Transcript reconciler (a live-mode one is created if omitted)
            sample_rate: Sample rate of frames passed to send_frame
            topic: Pub/sub topic for session lifecycle events
        """
        self.transport_factory = transport_factory
        self.settings = settings
        self.sink = sink
        self.reconciler = reconciler or TranscriptReconciler(sink=sink)
        self.sample_rate = sample_rate
        self.topic = topic

        self.lock = threading.RLock()
        self.state = ConnectionState.DISCONNECTED
        self.transport: Optional[AbstractTransport] = None
        self.generation = 0
        self.closed = False

        self.system_instruction = (settings.system_instruction or "").strip()
        self.is_recording = False
        self.stats = SessionStats()
        self.audio_input_samples = 0

        logger.info(f"SessionController initialized for model {settings.model}")

    # Lifecycle

    def connect(self) -> bool:
        """Open a new connection. Only valid while disconnected."""
        with self.lock:
            if self.closed:
                logger.warning("connect() called on a closed session")
                return False
            if self.state is not ConnectionState.DISCONNECTED:
                logger.warning(f"connect() ignored in state {self.state.value}")
                return False

            self.generation += 1
            generation = self.generation
            transport = self.transport_factory()
            self.transport = transport
            self._set_state(ConnectionState.CONNECTING, "connecting")
            self.sink.show_status("Connecting to Gemini Live API...")

        transport.open(self._callbacks(generation))
        return True

    def _callbacks(self, generation: int) -> TransportCallbacks:
        return TransportCallbacks(
            on_open=lambda: self.on_open(generation),
            on_message=lambda raw: self.on_message(generation, raw),
            on_error=lambda error: self.on_error(generation, error),
            on_close=lambda code, reason: self.on_close(generation, code, reason),
        )

    def _is_stale(self, generation: int) -> bool:
        return self.closed or generation != self.generation

    def on_open(self, generation: int) -> None:
        with self.lock:
            if self._is_stale(generation):
                logger.debug("Dropping open event from stale transport")
                return
            logger.info("Connected to Gemini Live API")
            self._set_state(ConnectionState.CONNECTED, "connected")

            setup = protocol.build_setup_message(
                model=self.settings.model,
                system_instruction=protocol.compose_system_instruction(self.system_instruction),
                response_modalities=self.settings.response_modalities,
                temperature=self.settings.temperature,
                voice=self.settings.voice,
            )
            logger.debug(f"Sending configuration: {setup}")
            self.transport.send(protocol.encode(setup))

    def on_message(self, generation: int, raw: Union[str, bytes]) -> None:
        if self._is_stale(generation):
            logger.debug("Dropping message from stale transport")
            return

        try:
            message = protocol.parse_server_message(raw)
        except ProtocolParseError as e:
            logger.warning(f"Error parsing message: {e}")
            logger.debug(f"Raw message: {raw!r}")
            return

        with self.lock:
            if self._is_stale(generation):
                return
            # Fully validated by the parser; dispatch does not fail part way.
            self._dispatch(message)

    def on_error(self, generation: int, error: Exception) -> None:
        with self.lock:
            if self._is_stale(generation):
                return
            logger.error(f"WebSocket error: {error}")
            self._disconnect(f"Connection error occurred: {error}", is_error=True)

    def on_close(self, generation: int, code: Optional[int], reason: str) -> None:
        with self.lock:
            if self._is_stale(generation):
                return
            logger.info(f"WebSocket closed: {code} {reason}")
            self._disconnect(f"Connection closed: {reason or 'Unknown reason'}", is_error=True)

    def _disconnect(self, message: str, is_error: bool = False) -> None:
        """Tear down the link after an error or close. No reconnect is attempted."""
        self._teardown()
        self.is_recording = False
        self.sink.show_status(message, is_error=is_error)

    def _teardown(self) -> None:
        # Bumping the generation drops anything the old transport still reports.
        self.generation += 1
        transport, self.transport = self.transport, None
        if transport is not None:
            transport.close()
        if self.state is not ConnectionState.DISCONNECTED:
            self._set_state(ConnectionState.DISCONNECTED, "closed")

    def close(self) -> None:
        """Close the session for good. Later events are dropped."""
        with self.lock:
            if self.closed:
                return
            self._teardown()
            self.closed = True
            self.is_recording = False
            logger.info("Session closed")

    def _set_state(self, state: ConnectionState, event_type: str) -> None:
        logger.debug(f"Connection state {self.state.value} -> {state.value}")
        self.state = state
        self.sink.show_connection(state)
        pub.sendMessage(self.topic, event=SessionEvent(event_type=event_type, state=state))

    # Inbound dispatch

    def _dispatch(self, message: protocol.ServerMessage) -> None:
        if message.is_setup_complete:
            self._set_state(ConnectionState.READY, "ready")
            self.sink.show_status("✅ Ready for live transcription!")
        elif message.server_content is not None:
            self._handle_server_content(message.server_content)
        else:
            logger.debug("Unknown message type received")

    def _handle_server_content(self, content: protocol.ServerContent) -> None:
        # Model turns take priority; transcriptions are a fallback.
        if content.model_turn is not None:
            for part in content.model_turn.parts:
                if part.text:
                    logger.debug(f"Gemini live response: {part.text}")
                    self._apply_fragment(Fragment(part.text, FragmentSource.MODEL_RESPONSE))
                if part.inline_data is not None and part.inline_data.is_audio:
                    self._add_audio_output(part.inline_data.audio_seconds())
        elif content.input_transcription is not None:
            transcript = content.input_transcription.text
            if transcript:
                logger.debug(f"Input transcription received: {transcript}")
                # Only shown in pure transcription mode; with a prompt the
                # model's own response is what the operator wants to see.
                if not self.system_instruction:
                    self._apply_fragment(Fragment(transcript, FragmentSource.INPUT))
        elif content.output_transcription is not None:
            transcript = content.output_transcription.text
            if transcript:
                logger.debug(f"Output transcription received: {transcript}")
                self._apply_fragment(Fragment(transcript, FragmentSource.OUTPUT))

        if content.turn_complete:
            pub.sendMessage(self.topic, event=SessionEvent(event_type="turn_complete", state=self.state))

    def _apply_fragment(self, fragment: Fragment) -> None:
        if fragment.counts_as_output:
            self._update_stats(text_output_tokens=self.stats.text_output_tokens + text_tokens(fragment.text))
        self.reconciler.update(fragment)

    def _add_audio_output(self, seconds: float) -> None:
        if seconds > 0:
            self._update_stats(audio_output_seconds=self.stats.audio_output_seconds + seconds)

    def _update_stats(self, publish: bool = True, **changes) -> None:
        self.stats = recompute(replace(self.stats, **changes))
        if publish:
            self.sink.show_usage(self.stats)

    # Recording and sending

    def start_recording(self) -> bool:
        """Begin a recording session: fresh stats and an empty display."""
        with self.lock:
            if self.state is not ConnectionState.READY:
                self.sink.show_status("Please wait for connection to be established", is_error=True)
                return False
            self.stats = recompute(SessionStats.started_now())
            self.audio_input_samples = 0
            self.reconciler.reset()
            self.is_recording = True
            self.sink.show_usage(self.stats)
            self.sink.show_status("🔴 Live transcription active - speak and see results in real-time!")
            logger.info("Recording started")
            return True

    def stop_recording(self) -> None:
        with self.lock:
            if not self.is_recording:
                return
            self.is_recording = False
            self.sink.show_usage(self.stats)
            self.sink.show_status("Live transcription stopped. Ready to start again.")
            logger.info(f"Recording stopped after {self.stats.audio_input_seconds:.1f}s of audio")

    def clear(self) -> None:
        """Drop the displayed transcript."""
        with self.lock:
            self.reconciler.reset()

    def on_audio_event(self, event: AudioEvent) -> None:
        """Pub/sub listener for microphone frames."""
        if not self.is_recording:
            return
        self.send_frame(event.audio_data, samples=event.sample_count)

    def send_frame(self, pcm: bytes, samples: Optional[int] = None) -> bool:
        """Send one 16-bit mono PCM frame. Returns False if not ready.

        Args:
            pcm: Little-endian 16-bit samples
            samples: Sample count, if the caller already knows it
        """
        if samples is None:
            samples = len(pcm) // 2
        with self.lock:
            if self.state is not ConnectionState.READY:
                return False

            previous_seconds = self.stats.audio_input_seconds
            self.audio_input_samples += samples
            seconds = self.audio_input_samples / self.sample_rate
            # Display refreshes once per second of audio, not per frame.
            crossed = math.floor(seconds) != math.floor(previous_seconds)
            self._update_stats(publish=crossed, audio_input_seconds=seconds)

            logger.debug(f"Sending PCM audio chunk, samples: {samples}")
            self.transport.send(protocol.encode(protocol.build_realtime_input(pcm)))
            return True

    def send_text(self, text: str) -> bool:
        """Send a complete user text turn."""
        text = text.strip()
        with self.lock:
            if self.state is not ConnectionState.READY:
                self.sink.show_status("❌ Not connected to Gemini Live API", is_error=True)
                return False
            if not text:
                return False
            self._update_stats(text_input_tokens=self.stats.text_input_tokens + text_tokens(text))
            self.transport.send(protocol.encode(protocol.build_text_message(text)))
            logger.info(f"Sent text turn ({len(text)} chars)")
            return True

    # Reconfiguration

    def set_system_instruction(self, prompt: Optional[str]) -> bool:
        """Change the operator prompt; reconnects if a connection is up.

        Returns:
            True if a reconnect was started
        """
        prompt = (prompt or "").strip()
        with self.lock:
            if prompt == self.system_instruction:
                return False
            self.system_instruction = prompt
            if self.closed or self.state is ConnectionState.DISCONNECTED:
                logger.info("System instruction changed; applies on next connect")
                return False

            logger.info("System instruction changed; reconnecting")
            self.sink.show_status("Reconnecting with new prompt...")
            self._teardown()
            # Fragments from the old configuration must not merge with new ones.
            self.reconciler.reset()
        return self.connect()
