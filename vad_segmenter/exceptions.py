"""Exception hierarchy for the speech segmentation engine."""

from typing import Any, Dict, Optional


class VadSegmenterError(Exception):
    """Base class for all segmenter errors.

    Args:
        message: Human readable description
        details: Optional structured context for logging
    """

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details: Dict[str, Any] = details or {}


class NotInitializedError(VadSegmenterError):
    """Operation invoked before the oracle and recurrent state were set up."""


class ConfigurationError(VadSegmenterError, ValueError):
    """Invalid configuration (thresholds out of range, non-positive durations)."""

    def __init__(self, message: str, *, field: Optional[str] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        if field:
            self.details["field"] = field


class OracleFailure(VadSegmenterError):
    """Probability oracle failed for a single frame.

    Engine state is left untouched; the original exception is chained
    as ``__cause__``.
    """

    def __init__(self, message: str, *, frame_timestamp: float, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.frame_timestamp: float = frame_timestamp
        self.details["frame_timestamp"] = frame_timestamp
