"""Custom exceptions for the lending monitor.

Every failure raised inside a pipeline derives from LendBotError so the
scheduler and the HTTP layer can tell domain errors from programming errors.
A uniqueness conflict on insert has no exception type: upserts absorb it.
"""


class LendBotError(Exception):
    """Base exception for all lending monitor errors."""


class ProviderUnavailable(LendBotError):
    """Raised when a reserve provider is missing, unreachable, timed out or returned no data."""


class NoMatchingReserve(LendBotError):
    """Raised when a protocol has no current reserve data for the requested coin or mint."""


class MalformedDerivedData(LendBotError):
    """Raised when generated text does not parse as the expected structured shape."""


class InvalidAddress(LendBotError):
    """Raised when a wallet or mint address fails base58 public-key validation."""
