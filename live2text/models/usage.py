"""Usage tracking data models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class SessionStats:
    """Approximate token usage for one connection session.

    total_tokens and estimated_cost are derived from the four accumulator
    fields; use ``live2text.usage.recompute`` to refresh them after a change.
    """
    audio_input_seconds: float = 0.0
    audio_output_seconds: float = 0.0
    text_input_tokens: int = 0
    text_output_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    session_start: Optional[datetime] = None

    @classmethod
    def started_now(cls) -> "SessionStats":
        """Fresh zeroed stats with the session start set to now."""
        return cls(session_start=datetime.now())

    def session_duration(self, now: Optional[datetime] = None) -> float:
        """Seconds since the session started, or 0.0 if it has not."""
        if self.session_start is None:
            return 0.0
        now = now or datetime.now()
        return (now - self.session_start).total_seconds()
