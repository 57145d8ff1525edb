"""Model identifier probing."""

from .prober import ModelProber, ProbeResult, DEFAULT_MODELS, group_results, print_summary

__all__ = [
    "ModelProber",
    "ProbeResult",
    "DEFAULT_MODELS",
    "group_results",
    "print_summary",
]
