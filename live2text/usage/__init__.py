"""Usage metering for Live2Text."""

from .meter import (
    AUDIO_TOKENS_PER_SECOND,
    TEXT_CHARS_PER_TOKEN,
    COST_PER_MILLION_TOKENS,
    audio_tokens,
    text_tokens,
    cost,
    recompute,
    format_usage,
)

__all__ = [
    "AUDIO_TOKENS_PER_SECOND",
    "TEXT_CHARS_PER_TOKEN",
    "COST_PER_MILLION_TOKENS",
    "audio_tokens",
    "text_tokens",
    "cost",
    "recompute",
    "format_usage",
]
