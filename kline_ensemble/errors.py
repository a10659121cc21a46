from __future__ import annotations


class KlineEnsembleError(Exception):
    """Base for every error raised by this package. None of them is fatal to the process."""


class ValidationError(KlineEnsembleError):
    """Caller supplied an incomplete or malformed request (e.g. missing symbol/interval)."""


class InsufficientHistory(KlineEnsembleError):
    def __init__(self, indicator: str, required: int, available: int):
        super().__init__(f"{indicator} needs {required} data points, got {available}")
        self.indicator = indicator
        self.required = required
        self.available = available


class TradeRejected(KlineEnsembleError):
    """A trade precondition failed; the ledger turns this into a no-op."""


class InsufficientFunds(TradeRejected):
    pass


class NoMatchingLot(TradeRejected):
    pass


class FeedError(KlineEnsembleError):
    """The market data collaborator failed (HTTP error, malformed payload, closed stream)."""


class BacktestDataError(KlineEnsembleError):
    """Historical series is empty or shorter than the replay window."""
