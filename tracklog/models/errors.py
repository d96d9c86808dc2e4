"""
Errors raised while decoding track data.
"""

from typing import Optional


class TrackFormatError(ValueError):
    """Raised when a byte stream does not decode as a compact track."""

    def __init__(self, message: str, offset: Optional[int] = None):
        if offset is not None:
            message = f"{message} (at byte {offset})"
        super().__init__(message)
        self.offset = offset
