"""Token and cost estimation for Live API sessions.

Rates follow the published Live API pricing table: audio is billed per second
in both directions, text at roughly four characters per token.
"""

import math
from dataclasses import replace
from datetime import datetime
from typing import List, Optional, Tuple

from ..models.usage import SessionStats

AUDIO_TOKENS_PER_SECOND = 25
VIDEO_TOKENS_PER_SECOND = 258  # no video path, kept with the rate table
TEXT_CHARS_PER_TOKEN = 4
COST_PER_MILLION_TOKENS = 0.10


def audio_tokens(seconds: float) -> int:
    return math.ceil(seconds * AUDIO_TOKENS_PER_SECOND)


def text_tokens(text: str) -> int:
    return math.ceil(len(text) / TEXT_CHARS_PER_TOKEN)


def cost(total_tokens: int) -> float:
    return total_tokens / 1_000_000 * COST_PER_MILLION_TOKENS


def recompute(stats: SessionStats) -> SessionStats:
    """Return ``stats`` with total_tokens and estimated_cost refreshed."""
    total = (audio_tokens(stats.audio_input_seconds)
             + audio_tokens(stats.audio_output_seconds)
             + stats.text_input_tokens
             + stats.text_output_tokens)
    return replace(stats, total_tokens=total, estimated_cost=cost(total))


def format_usage(stats: SessionStats, now: Optional[datetime] = None) -> List[Tuple[str, str]]:
    """Label/value rows describing ``stats`` for display."""
    return [
        ("Audio input tokens", f"{audio_tokens(stats.audio_input_seconds):,}"),
        ("Audio output tokens", f"{audio_tokens(stats.audio_output_seconds):,}"),
        ("Text input tokens", f"{stats.text_input_tokens:,}"),
        ("Text output tokens", f"{stats.text_output_tokens:,}"),
        ("Total tokens", f"{stats.total_tokens:,}"),
        ("Estimated cost", f"${stats.estimated_cost:.6f}"),
        ("Session duration", f"{stats.session_duration(now):.1f}s"),
        ("Audio input time", f"{stats.audio_input_seconds:.1f}s"),
        ("Audio output time", f"{stats.audio_output_seconds:.1f}s"),
    ]
