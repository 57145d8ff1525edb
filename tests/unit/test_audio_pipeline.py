"""Unit tests for PCM helpers, the audio publisher and the WAV file source."""

import time
import wave
from pathlib import Path

import numpy as np
import pytest

from live2text.audio import AudioPublisher, float_to_pcm16, pcm16_peak
from live2text.audio.file_source import WavFileSource
from live2text.errors import CaptureError
from live2text.models.events import AudioEvent


class EventCollector:
    def __init__(self):
        self.events = []

    def on_audio_event(self, event):
        self.events.append(event)


@pytest.mark.unit
class TestPcmConversion:

    def test_float_to_pcm16_scales_and_clips(self):
        pcm = float_to_pcm16(np.array([0.0, 0.5, -0.5, 1.0, -1.0, 2.0], dtype=np.float32))
        samples = np.frombuffer(pcm, dtype="<i2")
        assert samples.tolist() == [0, 16384, -16384, 32767, -32768, 32767]

    def test_pcm16_peak(self, sample_audio_chunk):
        assert pcm16_peak(b"") == 0.0
        assert pcm16_peak(b"\x00\x00" * 10) == 0.0
        assert pcm16_peak(sample_audio_chunk) == pytest.approx(0.5, abs=0.01)

    def test_full_scale_negative_peak(self):
        assert pcm16_peak(np.array([-32768], dtype="<i2").tobytes()) == 1.0


@pytest.mark.unit
class TestAudioEvent:

    def test_duration_and_sample_count(self, sample_audio_chunk):
        event = AudioEvent(chunk_id="chunk_1", audio_data=sample_audio_chunk,
                           timestamp=time.time(), sequence_number=1)
        assert event.sample_count == 4096
        assert event.chunk_duration_ms == 256


@pytest.mark.unit
class TestAudioPublisher:

    def test_publish_reaches_subscriber(self, sample_audio_chunk):
        publisher = AudioPublisher("test_audio_frames")
        collector = EventCollector()
        publisher.subscribe(collector.on_audio_event)
        try:
            event = AudioEvent(chunk_id="chunk_1", audio_data=sample_audio_chunk,
                               timestamp=time.time(), sequence_number=1)
            publisher.publish_audio_event(event)
        finally:
            publisher.unsubscribe(collector.on_audio_event)

        assert collector.events == [event]
        assert publisher.published == 1

    def test_unsubscribed_listener_gets_nothing(self, sample_audio_chunk):
        publisher = AudioPublisher("test_audio_frames")
        collector = EventCollector()
        publisher.subscribe(collector.on_audio_event)
        publisher.unsubscribe(collector.on_audio_event)

        publisher.publish_audio_event(AudioEvent(chunk_id="chunk_1", audio_data=sample_audio_chunk,
                                                 timestamp=time.time(), sequence_number=1))
        assert collector.events == []


@pytest.mark.unit
class TestWavFileSource:

    def test_streams_all_chunks_and_marks_final(self, sample_audio_file):
        collector = EventCollector()
        source = WavFileSource(sample_audio_file, collector.on_audio_event, realtime=False)

        source.start_recording()
        assert source.finished.wait(5.0)

        assert len(collector.events) == 11
        assert [e.sequence_number for e in collector.events] == list(range(1, 12))
        assert all(len(e.audio_data) == 4096 * 2 for e in collector.events[:-1])
        assert len(collector.events[-1].audio_data) == 1000
        assert collector.events[-1].final
        assert not any(e.final for e in collector.events[:-1])
        assert source.is_recording is False

    def test_missing_file_raises(self, temp_data_dir):
        source = WavFileSource(str(Path(temp_data_dir) / "missing.wav"), lambda event: None)
        with pytest.raises(CaptureError):
            source.start_recording()

    def test_wrong_sample_rate_raises(self, temp_data_dir, sample_audio_chunk):
        path = Path(temp_data_dir) / "44k.wav"
        with wave.open(str(path), 'wb') as wf:
            wf.setnchannels(1)
            wf.setsampwidth(2)
            wf.setframerate(44100)
            wf.writeframes(sample_audio_chunk)

        source = WavFileSource(str(path), lambda event: None)
        with pytest.raises(CaptureError, match="44100Hz"):
            source.start_recording()

    def test_stereo_raises(self, temp_data_dir, sample_audio_chunk):
        path = Path(temp_data_dir) / "stereo.wav"
        with wave.open(str(path), 'wb') as wf:
            wf.setnchannels(2)
            wf.setsampwidth(2)
            wf.setframerate(16000)
            wf.writeframes(sample_audio_chunk)

        source = WavFileSource(str(path), lambda event: None)
        with pytest.raises(CaptureError, match="mono"):
            source.start_recording()

    def test_stop_recording_interrupts_realtime_stream(self, sample_audio_file):
        collector = EventCollector()
        source = WavFileSource(sample_audio_file, collector.on_audio_event, realtime=True)

        source.start_recording()
        source.stop_recording()

        assert source.finished.wait(2.0)
        assert len(collector.events) < 11
