"""
Error taxonomy for the cost accounting subsystem.

Cache misses are expected and carry no diagnostic weight. Storage errors
mean a real loss of durability and are always surfaced to the caller.
Parse errors are recovered locally by skipping the offending record.
"""


class CostAccountingError(Exception):
    """Base class for all cost accounting errors."""


class CacheMiss(CostAccountingError):
    """A cache lookup did not produce a usable value."""

    def __init__(self, message: str, key: str):
        super().__init__(message)
        self.key = key


class NotFound(CacheMiss):
    """No entry exists for the requested key."""


class Expired(CacheMiss):
    """An entry exists but is older than the caller's freshness window."""

    def __init__(self, message: str, key: str, age_seconds: float, ttl_seconds: float):
        super().__init__(message, key)
        self.age_seconds = age_seconds
        self.ttl_seconds = ttl_seconds


class StorageError(CostAccountingError):
    """Filesystem failure while creating, reading, writing or replacing data."""


class ParseError(CostAccountingError, ValueError):
    """Malformed JSON record or timestamp."""
