"""Error taxonomy for the analysis engines."""
from __future__ import annotations


class AudioToolsError(Exception):
    """Base class for all audiotools errors."""


class InputError(AudioToolsError, ValueError):
    """Malformed buffer, invalid range, or invalid parameter combination."""


class InsufficientDataError(AudioToolsError):
    """Buffer is too short for the requested measurement."""


class LimitExceededError(AudioToolsError):
    """Normalization gain would push the peak above the ceiling.

    The gain-limited plan is attached as ``plan`` so callers can decide
    whether to proceed with it or abort.
    """

    def __init__(self, message: str, plan=None):
        super().__init__(message)
        self.plan = plan
