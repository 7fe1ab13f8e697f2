"""
Exception taxonomy for the tracker.

Missing market data is never an exception: the alignment core expresses it
as absent cells.  The classes below cover programming errors in upstream
collaborators and user-facing lookup failures in the service layer.
"""


class IcarusError(Exception):
    """Base class for every error raised by the tracker."""


class InputContractViolation(IcarusError, ValueError):
    """A price history was passed in unsorted or with duplicate dates."""


class TickerNotFoundError(IcarusError, KeyError):
    """The symbol is unknown to the store or to the quote provider."""

    def __init__(self, symbol: str, message: str = ""):
        self.symbol = symbol
        super().__init__(message or f"Ticker not found: {symbol}")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return self.args[0]


class DuplicateTickerError(IcarusError, ValueError):
    """The symbol is already being tracked."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"{symbol} is already being tracked")
