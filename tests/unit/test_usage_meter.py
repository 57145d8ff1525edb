import pytest
from datetime import datetime, timedelta

from live2text.models.usage import SessionStats
from live2text.usage import audio_tokens, cost, format_usage, recompute, text_tokens


@pytest.mark.unit
class TestUsageMeter:

    def test_audio_tokens_per_second(self):
        assert audio_tokens(4.0) == 100
        assert audio_tokens(0.0) == 0

    def test_audio_tokens_round_up(self):
        assert audio_tokens(0.01) == 1
        assert audio_tokens(1.28) == 32

    def test_text_tokens_four_chars_each(self):
        assert text_tokens("") == 0
        assert text_tokens("abcd") == 1
        assert text_tokens("abcde") == 2

    def test_cost_per_million(self):
        assert cost(1_000_000) == pytest.approx(0.10)
        assert cost(0) == 0.0

    def test_recompute_totals(self):
        stats = SessionStats(audio_input_seconds=4.0, audio_output_seconds=2.0,
                             text_input_tokens=3, text_output_tokens=7)
        updated = recompute(stats)

        assert updated.total_tokens == 100 + 50 + 3 + 7
        assert updated.estimated_cost == pytest.approx(160 / 1_000_000 * 0.10)
        # Accumulators are untouched
        assert updated.audio_input_seconds == 4.0
        assert updated.text_output_tokens == 7

    def test_recompute_does_not_mutate(self):
        stats = SessionStats(text_input_tokens=5)
        updated = recompute(stats)
        assert stats.total_tokens == 0
        assert updated is not stats

    def test_session_duration(self):
        start = datetime(2024, 1, 1, 12, 0, 0)
        stats = SessionStats(session_start=start)
        assert stats.session_duration(start + timedelta(seconds=90)) == 90.0
        assert SessionStats().session_duration() == 0.0

    def test_format_usage_rows(self):
        start = datetime(2024, 1, 1, 12, 0, 0)
        stats = recompute(SessionStats(audio_input_seconds=4.0, session_start=start))
        rows = dict(format_usage(stats, now=start + timedelta(seconds=5)))

        assert rows["Audio input tokens"] == "100"
        assert rows["Total tokens"] == "100"
        assert rows["Estimated cost"] == "$0.000010"
        assert rows["Session duration"] == "5.0s"
