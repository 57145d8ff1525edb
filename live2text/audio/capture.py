"""Microphone capture producing 16-bit PCM frames as events."""

import time
import logging
from datetime import datetime
from threading import Thread, Event
from typing import Callable, Optional

import numpy as np
import pyaudio

from ..errors import CaptureError
from ..models.events import AudioEvent
from .pcm import float_to_pcm16

logger = logging.getLogger(__name__)


class AudioCapture:
    """Continuous microphone capture with event publishing.

    The stream is opened synchronously in ``start_recording`` so that a
    missing or busy microphone is reported to the caller as a CaptureError
    before anything is marked as recording. Frames are read as float32 and
    converted to 16-bit PCM.
    """

    def __init__(
        self,
        callback: Callable[[AudioEvent], None],
        sample_rate: int = 16000,
        chunk_size: int = 4096,
        channels: int = 1,
        error_callback: Optional[Callable[[CaptureError], None]] = None,
    ):
        """Initialize audio capture with specified parameters.

        Args:
            callback: Receives one AudioEvent per captured chunk
            sample_rate: Audio sample rate (16kHz for the Live API)
            chunk_size: Size of each audio chunk in samples
            channels: Number of audio channels (1 for mono)
            error_callback: Told when the stream fails after recording started
        """
        self.audio_event_callback = callback
        self.error_callback = error_callback
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels

        # Recording thread management
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False

        # Statistics tracking
        self.start_time: Optional[datetime] = None
        self.total_chunks = 0

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream: Optional[pyaudio.Stream] = None

    def start_recording(self) -> None:
        """Open the microphone and start recording in a background thread.

        Raises:
            CaptureError: If the microphone cannot be opened
        """
        if self.is_recording:
            logger.warning("Recording already in progress")
            return

        self.stream = self._open_audio_stream()

        logger.info("Starting audio recording")
        self.stop_event.clear()
        self.start_time = datetime.now()
        self.total_chunks = 0

        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self.is_recording = True
        self.recording_thread.start()

    def stop_recording(self) -> None:
        """Stop recording and clean up resources."""
        if not self.is_recording:
            logger.warning("No recording in progress")
            return

        logger.info("Stopping audio recording")
        self.stop_event.set()

        if self.recording_thread and self.recording_thread.is_alive():
            self.recording_thread.join(timeout=2.0)
            if self.recording_thread.is_alive():
                logger.warning("Recording thread did not stop cleanly")

        self.is_recording = False
        logger.info(f"Recording stopped. Total chunks: {self.total_chunks}")

    def _open_audio_stream(self) -> pyaudio.Stream:
        try:
            self.pyaudio_instance = pyaudio.PyAudio()
            stream = self.pyaudio_instance.open(
                format=pyaudio.paFloat32,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.chunk_size,
            )
        except (OSError, IOError) as e:
            self._terminate()
            raise CaptureError(f"Error accessing microphone: {e}") from e

        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk")
        return stream

    def _read_audio_chunk(self) -> bytes:
        raw = self.stream.read(self.chunk_size, exception_on_overflow=False)
        samples = np.frombuffer(raw, dtype=np.float32)
        self.total_chunks += 1
        return float_to_pcm16(samples)

    def _publish_audio_event(self, audio_chunk: bytes, final: bool = False) -> None:
        audio_event = AudioEvent(
            chunk_id=f"chunk_{self.total_chunks}",
            audio_data=audio_chunk,
            timestamp=time.time(),
            sequence_number=self.total_chunks,
            sample_rate=self.sample_rate,
            channels=self.channels,
            final=final,
        )
        self.audio_event_callback(audio_event)

    def _record_continuously(self) -> None:
        """Continuous recording loop in background thread."""
        try:
            while not self.stop_event.is_set():
                self._publish_audio_event(self._read_audio_chunk())
            # Final event, so consumers know we are done
            self._publish_audio_event(self._read_audio_chunk(), final=True)
        except (OSError, IOError) as e:
            logger.error(f"Audio stream failed: {e}")
            if self.error_callback is not None:
                self.error_callback(CaptureError(f"Microphone stopped delivering audio: {e}"))
        finally:
            self.is_recording = False
            if self.stream:
                self.stream.stop_stream()
                self.stream.close()
                self.stream = None
            self._terminate()

    def _terminate(self) -> None:
        if self.pyaudio_instance:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None

    def get_duration(self) -> float:
        if not self.start_time:
            return 0.0
        return (datetime.now() - self.start_time).total_seconds()
