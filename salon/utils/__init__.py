"""Utility functions for salon."""

from .logging import (
    LogCapture,
    disable_logging,
    setup_logging,
)

__all__ = [
    "LogCapture",
    "disable_logging",
    "setup_logging",
]
