"""Error taxonomy shared by pricing, oracle, ledger and portfolio code."""

from __future__ import annotations


class PredEngineError(Exception):
    """Base for all predengine errors."""


class InvalidInputError(PredEngineError, ValueError):
    """Malformed or out-of-range argument (amount <= 0, probability outside (0, 1), ...)."""


class DivisionByZeroError(PredEngineError, ZeroDivisionError):
    """Degenerate liquidity or price denominator."""


class StateError(PredEngineError):
    """Illegal position state transition."""


class NetworkError(PredEngineError):
    """Feed fetch or transaction submission failed (includes timeouts)."""


class StaleDataError(PredEngineError):
    """Fresh data was required but only a stale (or no) entry is available."""


class FeedDecodeError(InvalidInputError):
    """Price account payload could not be decoded."""


class PositionNotFoundError(InvalidInputError, KeyError):
    """No position with the given id."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class InsufficientFundsError(InvalidInputError):
    """Account balance is below the requested stake."""
