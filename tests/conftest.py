"""Pytest configuration and fixtures for Live2Text tests."""

import logging
import tempfile
import wave
from pathlib import Path
from unittest.mock import Mock, patch

import numpy as np
import pytest

from live2text.config import LiveSettings
from live2text.session.controller import SessionController
from live2text.transcription.reconciler import ReconcileMode, TranscriptReconciler
from live2text.ui.sink import MemoryDisplaySink

from tests.fakes import FakeTransportFactory, setup_complete_message


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests with no network or audio hardware")
    config.addinivalue_line("markers", "integration: tests against a local WebSocket server")


@pytest.fixture
def memory_sink():
    """In-memory display sink."""
    return MemoryDisplaySink()


@pytest.fixture
def transport_factory():
    return FakeTransportFactory()


@pytest.fixture
def live_settings():
    return LiveSettings(model="models/test-live-model")


@pytest.fixture
def controller(transport_factory, live_settings, memory_sink):
    """Disconnected controller in live mode."""
    reconciler = TranscriptReconciler(mode=ReconcileMode.LIVE, sink=memory_sink)
    controller = SessionController(transport_factory, live_settings, memory_sink, reconciler)
    yield controller
    controller.close()


@pytest.fixture
def ready_controller(controller, transport_factory):
    """Controller that has connected and received setupComplete."""
    controller.connect()
    transport_factory.last.fire_open()
    transport_factory.last.fire_message(setup_complete_message())
    return controller


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def sample_audio_chunk():
    """4096 samples of 16-bit mono audio (440Hz sine) at 16kHz, ~0.256s."""
    sample_rate = 16000
    samples = 4096
    t = np.arange(samples) / sample_rate
    wave_data = 0.5 * np.sin(2 * np.pi * 440 * t)
    return (wave_data * 32767).astype("<i2").tobytes()


@pytest.fixture
def sample_audio_file(temp_data_dir, sample_audio_chunk):
    """A 16kHz mono WAV file of ten 4096-sample chunks plus a 500-sample tail."""
    file_path = Path(temp_data_dir) / "test_audio.wav"
    with wave.open(str(file_path), 'wb') as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(16000)
        for _ in range(10):
            wf.writeframes(sample_audio_chunk)
        wf.writeframes(sample_audio_chunk[:1000])
    return str(file_path)


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        # Silent float32 audio, one 4096-sample chunk per read
        mock_stream.read.return_value = np.zeros(4096, dtype=np.float32).tobytes()
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }
