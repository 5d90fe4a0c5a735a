"""
Exception types shared across the relay.

Only conditions that cannot be expressed as a normal return value are
exceptions here; dedup conflicts and failed sends are plain results.
"""

from typing import Optional


class GameNewsError(Exception):
    """Base class for relay errors."""


class SourceFetchError(GameNewsError):
    """A publisher could not be fetched or its response could not be parsed."""

    def __init__(self, publisher_id: str, message: str):
        super().__init__(f"{publisher_id}: {message}")
        self.publisher_id = publisher_id
        self.message = message


class StoreUnavailableError(GameNewsError):
    """The persistence engine cannot be reached; polling must halt."""

    def __init__(self, message: str, original: Optional[BaseException] = None):
        super().__init__(message)
        self.original = original
