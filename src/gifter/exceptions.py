"""Custom exceptions for the gifter calculator.

Engine, persistence, and API layers all raise from this module
to avoid circular imports between them.
"""


class GifterError(Exception):
    """Base exception for all gifter errors."""


class InvalidInputError(GifterError):
    """Raised for user-correctable input (negative points, bad prices, unknown levels)."""


class UnknownCurrencyError(InvalidInputError):
    """Raised when a currency code is not in the configured registry."""


class TierTableError(GifterError):
    """Raised when a tier table is malformed (gaps, overlaps, bad levels).

    Fatal at startup: the engine refuses to run on a table it cannot trust.
    """


class PersistenceError(GifterError):
    """Raised when the storage layer fails. Retryable; no partial write is applied."""
