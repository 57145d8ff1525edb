"""Streams a WAV file as if it were live microphone input."""

import logging
import time
import wave
from pathlib import Path
from threading import Event, Thread
from typing import Callable, Optional

from ..errors import CaptureError
from ..models.events import AudioEvent

logger = logging.getLogger(__name__)


class WavFileSource:
    """Publishes a 16-bit mono WAV file in fixed-size frames at real-time pace."""

    def __init__(self,
                 path: str,
                 callback: Callable[[AudioEvent], None],
                 chunk_size: int = 4096,
                 expected_sample_rate: int = 16000,
                 realtime: bool = True):
        self.path = Path(path)
        self.audio_event_callback = callback
        self.chunk_size = chunk_size
        self.expected_sample_rate = expected_sample_rate
        self.realtime = realtime

        self.stop_event = Event()
        self.finished = Event()
        self.thread: Optional[Thread] = None
        self.total_chunks = 0
        self.is_recording = False

    def _open(self) -> wave.Wave_read:
        try:
            wav = wave.open(str(self.path), "rb")
        except (OSError, wave.Error) as e:
            raise CaptureError(f"Cannot open audio file {self.path}: {e}") from e

        if wav.getsampwidth() != 2 or wav.getnchannels() != 1:
            wav.close()
            raise CaptureError(f"{self.path} must be 16-bit mono PCM")
        if wav.getframerate() != self.expected_sample_rate:
            wav.close()
            raise CaptureError(
                f"{self.path} is {wav.getframerate()}Hz, expected {self.expected_sample_rate}Hz")
        return wav

    def start_recording(self) -> None:
        """Start streaming.

        Raises:
            CaptureError: If the file is missing or not 16-bit mono at the expected rate
        """
        wav = self._open()
        self.stop_event.clear()
        self.finished.clear()
        self.total_chunks = 0
        self.is_recording = True
        self.thread = Thread(target=self._stream, args=(wav,), name="WavFileSourceThread", daemon=True)
        self.thread.start()
        logger.info(f"Streaming {self.path} ({wav.getnframes()} frames)")

    def _stream(self, wav: wave.Wave_read) -> None:
        frame_seconds = self.chunk_size / self.expected_sample_rate
        try:
            while not self.stop_event.is_set():
                data = wav.readframes(self.chunk_size)
                if not data:
                    break
                self.total_chunks += 1
                final = len(data) < self.chunk_size * 2
                self.audio_event_callback(AudioEvent(
                    chunk_id=f"chunk_{self.total_chunks}",
                    audio_data=data,
                    timestamp=time.time(),
                    sequence_number=self.total_chunks,
                    sample_rate=self.expected_sample_rate,
                    final=final,
                ))
                if self.realtime:
                    self.stop_event.wait(frame_seconds)
        finally:
            wav.close()
            self.is_recording = False
            self.finished.set()
            logger.info(f"Finished streaming {self.path}: {self.total_chunks} chunks")

    def stop_recording(self) -> None:
        self.stop_event.set()
        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=2.0)
        self.is_recording = False
