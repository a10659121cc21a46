from __future__ import annotations
import re
from abc import ABC, abstractmethod
from typing import AsyncIterator
from datetime import datetime, timedelta
from ..errors import ValidationError
from ..types import Candle

MAX_CANDLES_PER_CALL = 1000

_UNITS = {"s": timedelta(seconds=1), "m": timedelta(minutes=1), "h": timedelta(hours=1),
          "d": timedelta(days=1), "w": timedelta(weeks=1), "M": timedelta(days=30)}

def interval_to_timedelta(interval: str) -> timedelta:
    """Exchange-style interval ("1m", "4h", "1d", "1M") to a duration. Months count as 30 days."""
    m = re.fullmatch(r"(\d+)([smhdwM])", interval or "")
    if not m or int(m.group(1)) == 0:
        raise ValidationError(f"Unsupported interval: {interval!r}")
    return int(m.group(1)) * _UNITS[m.group(2)]

class CandleSubscription:
    """
    Live candle stream for one (symbol, interval). Iterate it from a single task;
    close() is idempotent and safe after the source has already finished.
    """

    def __init__(self, symbol: str, interval: str, source: AsyncIterator[Candle]):
        self.symbol = symbol
        self.interval = interval
        self._source = source
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "CandleSubscription":
        return self

    async def __anext__(self) -> Candle:
        if self._closed:
            raise StopAsyncIteration
        return await self._source.__anext__()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()

class MarketDataProvider(ABC):
    """Feed collaborator: historical candles plus live subscriptions."""

    @abstractmethod
    async def fetch_candles(
        self, symbol: str, interval: str,
        start_time: datetime | None = None, end_time: datetime | None = None,
        limit: int = MAX_CANDLES_PER_CALL,
    ) -> list[Candle]:
        """Oldest first, at most MAX_CANDLES_PER_CALL. Returns [] on failure instead of raising."""

    @abstractmethod
    def subscribe(self, symbol: str, interval: str) -> CandleSubscription:
        """Start a live stream of provisional and final candles."""

    async def close(self) -> None:
        """Release HTTP sessions etc.; override when needed."""
        return None
