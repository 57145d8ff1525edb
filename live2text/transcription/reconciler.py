"""Reconciles incremental text fragments into a single display buffer.

The live service re-sends its transcription as it hears more audio. Most
updates extend what is already shown, some rewrite it. The reconciler decides
which, and keeps one coherent text that never shrinks unless the server
clearly replaced its own earlier output.

Two strategies are supported:

LIVE
    One live paragraph, re-rendered wholesale on every update.
PARAGRAPH
    Fragments accumulate; a fragment opens a new paragraph when the previous
    one ended a sentence, or when it looks like a fresh utterance (leading
    capital and long enough). Otherwise it is joined onto the last paragraph.
"""

import logging
import threading
from dataclasses import replace
from enum import Enum
from typing import Optional

from ..models.transcription import DisplayState, Fragment
from ..ui.sink import DisplaySink

logger = logging.getLogger(__name__)

# Empirically chosen thresholds.
REVISION_SHRINK_RATIO = 0.7
REVISION_PREFIX_WINDOW = 20
PARAGRAPH_MIN_LENGTH = 20
SENTENCE_TERMINATORS = (".", "!", "?", "\n")


class ReconcileMode(Enum):
    LIVE = "live"
    PARAGRAPH = "paragraph"


def is_revision(new_text: str, current_text: str) -> bool:
    """True if ``new_text`` replaces rather than extends ``current_text``."""
    if not current_text:
        return False

    if len(new_text) < len(current_text) * REVISION_SHRINK_RATIO:
        return True

    prefix = current_text[:min(REVISION_PREFIX_WINDOW, len(current_text))]
    if not new_text.startswith(prefix):
        return True

    return False


def starts_new_paragraph(previous_text: str, new_text: str) -> bool:
    """Paragraph-mode break rule."""
    if not previous_text:
        return True
    if previous_text.endswith(SENTENCE_TERMINATORS):
        return True
    return new_text[:1].isupper() and len(new_text) > PARAGRAPH_MIN_LENGTH


class TranscriptReconciler:
    """Applies fragments to a DisplayState and pushes the result to a sink."""

    def __init__(self, mode: ReconcileMode = ReconcileMode.LIVE,
                 sink: Optional[DisplaySink] = None):
        """Initialize reconciler.

        Args:
            mode: Reconciliation strategy
            sink: Optional display to render into after each update
        """
        self.mode = mode
        self.sink = sink
        self.state = DisplayState()
        self.lock = threading.RLock()
        logger.info(f"TranscriptReconciler initialized in {mode.value} mode")

    def apply(self, fragment: Fragment, state: DisplayState) -> DisplayState:
        """Return the state that results from applying ``fragment`` to ``state``."""
        text = fragment.text.strip()
        if not text:
            return state

        if self.mode is ReconcileMode.PARAGRAPH:
            return self._apply_paragraph(text, state)
        return self._apply_live(text, state)

    def _apply_live(self, text: str, state: DisplayState) -> DisplayState:
        current = state.current_text

        if not current:
            new_current = text
        elif is_revision(text, current):
            logger.debug(f"Revision detected: '{current[:30]}' -> '{text[:30]}'")
            new_current = text
        elif len(text) > len(current):
            new_current = text
        elif text != current:
            # Same length or slightly shorter refinement of the same utterance
            new_current = text
        else:
            return state

        return replace(state,
                       current_text=new_current,
                       last_update_length=len(new_current),
                       paragraphs=(new_current,))

    def _apply_paragraph(self, text: str, state: DisplayState) -> DisplayState:
        paragraphs = list(state.paragraphs)
        previous = paragraphs[-1] if paragraphs else ""

        if starts_new_paragraph(previous, text):
            paragraphs.append(text)
        else:
            paragraphs[-1] = f"{previous} {text}"

        current = "\n\n".join(paragraphs)
        return replace(state,
                       current_text=current,
                       last_update_length=len(current),
                       paragraphs=tuple(paragraphs))

    def update(self, fragment: Fragment) -> DisplayState:
        """Apply ``fragment`` to the owned state and render the change."""
        with self.lock:
            previous = self.state
            self.state = self.apply(fragment, previous)
            if self.state is not previous:
                logger.debug(f"[{fragment.source.value}] display update: {self.state.current_text[:50]}")
                self._render(previous, self.state)
            return self.state

    def _render(self, previous: DisplayState, current: DisplayState) -> None:
        if self.sink is None:
            return
        if self.mode is ReconcileMode.LIVE:
            self.sink.render(current.current_text)
        elif len(current.paragraphs) > len(previous.paragraphs):
            self.sink.append_paragraph(current.paragraphs[-1])
        else:
            self.sink.render(current.paragraphs[-1])

    def reset(self) -> None:
        """Drop all displayed text."""
        with self.lock:
            self.state = DisplayState()
            if self.sink is not None:
                self.sink.clear()
        logger.debug("Display state reset")
