"""Unit tests for AudioCapture class."""

import pytest
from unittest.mock import Mock, patch

import numpy as np

pytest.importorskip("pyaudio")

from live2text.audio.capture import AudioCapture
from live2text.errors import CaptureError


@pytest.mark.unit
class TestAudioCapture:
    """Test cases for AudioCapture class."""

    def test_initialization(self):
        """Test AudioCapture initialization with default parameters."""
        capture = AudioCapture(Mock())

        assert capture.sample_rate == 16000
        assert capture.chunk_size == 4096
        assert capture.channels == 1
        assert capture.is_recording is False
        assert capture.total_chunks == 0
        assert capture.get_duration() == 0.0

    def test_start_recording(self, mock_pyaudio):
        """Test starting audio recording opens a float32 stream."""
        capture = AudioCapture(Mock())

        with patch.object(capture, '_record_continuously') as mock_record:
            capture.start_recording()

            assert capture.is_recording is True
            assert capture.start_time is not None
            assert capture.recording_thread.daemon is True
            capture.recording_thread.join(timeout=1.0)
            mock_record.assert_called_once()

        kwargs = mock_pyaudio['instance'].open.call_args.kwargs
        assert kwargs['rate'] == 16000
        assert kwargs['frames_per_buffer'] == 4096
        assert kwargs['input'] is True

    def test_start_recording_already_recording(self, mock_pyaudio):
        """Test starting recording when already recording."""
        capture = AudioCapture(Mock())
        capture.is_recording = True

        with patch.object(capture, '_record_continuously') as mock_record:
            capture.start_recording()
            mock_record.assert_not_called()

    def test_microphone_failure_raises_capture_error(self, mock_pyaudio):
        """A stream that cannot be opened is reported, not swallowed."""
        mock_pyaudio['instance'].open.side_effect = OSError("Invalid input device")
        capture = AudioCapture(Mock())

        with pytest.raises(CaptureError):
            capture.start_recording()

        assert capture.is_recording is False
        mock_pyaudio['instance'].terminate.assert_called_once()

    def test_stop_recording(self, mock_pyaudio):
        """Test stopping audio recording."""
        capture = AudioCapture(Mock())

        with patch.object(capture, '_record_continuously'):
            capture.start_recording()
            capture.stop_recording()

            assert capture.is_recording is False
            assert capture.stop_event.is_set()

    def test_stop_recording_not_recording(self):
        """Test stopping recording when not recording."""
        capture = AudioCapture(Mock())
        capture.stop_recording()
        assert capture.is_recording is False

    def test_chunks_are_published_as_pcm16(self, mock_pyaudio):
        """Float32 samples from the stream become 16-bit PCM events."""
        mock_pyaudio['stream'].read.return_value = np.full(4096, 0.5, dtype=np.float32).tobytes()
        callback = Mock()
        capture = AudioCapture(callback)
        capture.stream = capture._open_audio_stream()

        capture._publish_audio_event(capture._read_audio_chunk())

        event = callback.call_args.args[0]
        assert event.sequence_number == 1
        assert len(event.audio_data) == 4096 * 2
        assert event.sample_count == 4096
        assert np.all(np.frombuffer(event.audio_data, dtype="<i2") == 16384)

    def test_recording_loop_ends_with_final_event(self, mock_pyaudio):
        """Stopping the loop publishes one last chunk marked final."""
        callback = Mock()
        capture = AudioCapture(callback)
        capture.stream = capture._open_audio_stream()
        capture.stop_event.set()

        capture._record_continuously()

        events = [c.args[0] for c in callback.call_args_list]
        assert len(events) == 1
        assert events[0].final is True
        mock_pyaudio['stream'].close.assert_called_once()

    def test_stream_failure_mid_recording_is_reported(self, mock_pyaudio):
        """A device that dies while recording stops capture and tells the error callback."""
        mock_pyaudio['stream'].read.side_effect = OSError("Device unavailable")
        callback = Mock()
        on_error = Mock()
        capture = AudioCapture(callback, error_callback=on_error)
        capture.stream = capture._open_audio_stream()
        capture.is_recording = True

        capture._record_continuously()

        callback.assert_not_called()
        on_error.assert_called_once()
        error = on_error.call_args.args[0]
        assert isinstance(error, CaptureError)
        assert "Device unavailable" in str(error)
        assert capture.is_recording is False
        assert capture.stream is None
        mock_pyaudio['stream'].close.assert_called_once()
        mock_pyaudio['instance'].terminate.assert_called_once()

    def test_stream_failure_without_error_callback(self, mock_pyaudio):
        """Without an error callback the failure is only logged."""
        mock_pyaudio['stream'].read.side_effect = OSError("Device unavailable")
        capture = AudioCapture(Mock())
        capture.stream = capture._open_audio_stream()
        capture.is_recording = True

        capture._record_continuously()

        assert capture.is_recording is False
