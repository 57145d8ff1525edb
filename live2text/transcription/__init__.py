"""Transcript reconciliation for Live2Text."""

from .reconciler import (
    ReconcileMode,
    TranscriptReconciler,
    is_revision,
    starts_new_paragraph,
)

__all__ = [
    "ReconcileMode",
    "TranscriptReconciler",
    "is_revision",
    "starts_new_paragraph",
]
