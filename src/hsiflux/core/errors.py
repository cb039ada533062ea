"""Exceptions raised by the signal pipeline.

Missing optional measurements are never errors; they propagate as ``None``.
Only structurally broken input, logically impossible input and unusable
persisted state are raised.
"""

from __future__ import annotations


class FluxError(Exception):
    """Base class for pipeline errors."""


class PayloadParseError(FluxError):
    """Raised when a vendor payload or session document cannot be parsed."""


class InvalidSessionError(PayloadParseError):
    """Raised when a session parses but its values are logically invalid."""


class BaselineStateError(FluxError):
    """Raised when a persisted baseline blob cannot be loaded.

    Callers decide whether to start a fresh store; loading never does so
    on their behalf.
    """
