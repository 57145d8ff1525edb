"""Transcription-related data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class FragmentSource(Enum):
    """Where an incoming text fragment came from."""
    INPUT = "input"
    OUTPUT = "output"
    MODEL_RESPONSE = "modelResponse"


@dataclass(frozen=True)
class Fragment:
    """One incoming unit of transcribed or generated text."""
    text: str
    source: FragmentSource

    @property
    def counts_as_output(self) -> bool:
        """Model responses and output transcriptions are billed as output text."""
        return self.source in (FragmentSource.OUTPUT, FragmentSource.MODEL_RESPONSE)


@dataclass(frozen=True)
class DisplayState:
    """Text currently shown for one recording session."""
    current_text: str = ""
    last_update_length: int = 0
    paragraphs: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.current_text
