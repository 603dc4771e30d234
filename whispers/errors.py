"""Error types raised across Whispers."""

from typing import Optional


class WhisperError(Exception):
    """Base class for all Whispers errors"""


class LocationUnavailable(WhisperError):
    """No device location could be obtained (resolved via fallback, never surfaced)"""


class NetworkError(WhisperError):
    """Transport failure or non-success HTTP status"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NotFoundError(WhisperError):
    """A single whisper does not exist or the id is invalid"""


class ValidationError(WhisperError):
    """A draft was rejected, locally or by the data source"""
