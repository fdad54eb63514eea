"""Utility modules for logging and helpers."""

from .logging import setup_logging
from .quiet import suppressed_stderr, with_suppressed_audio_warnings

__all__ = ["setup_logging", "suppressed_stderr", "with_suppressed_audio_warnings"]
