from __future__ import annotations
import asyncio
import math
import random
from typing import AsyncIterator
from datetime import datetime, timezone
from ..types import Candle
from .base import MAX_CANDLES_PER_CALL, CandleSubscription, MarketDataProvider, interval_to_timedelta

class MockProvider(MarketDataProvider):
    """Seeded random-walk candles; same seed, same series."""

    def __init__(self, seed: int = 42, start_price: float = 100.0, delay: float = 1.0,
                 live_count: int | None = None):
        self._rnd = random.Random(seed)
        self._price = start_price
        self.delay = delay
        self.live_count = live_count

    def _next_candle(self, symbol: str, interval: str, t: datetime, i: int, is_final: bool = True) -> Candle:
        noise = (self._rnd.random() - 0.5) * 0.02 * self._price
        drift = 0.002 * self._price * math.sin(i / 12)
        open_ = self._price
        close = max(0.01, open_ + drift + noise)
        self._price = close
        high = max(open_, close) + abs(noise) * 0.5
        low = max(0.005, min(open_, close) - abs(noise) * 0.5)
        return Candle(symbol=symbol.upper(), interval=interval, time=t, open=open_, high=high,
                      low=low, close=close, volume=round(self._rnd.uniform(1, 100), 4),
                      close_time=t + interval_to_timedelta(interval), is_final=is_final)

    async def fetch_candles(self, symbol, interval, start_time=None, end_time=None,
                            limit: int = MAX_CANDLES_PER_CALL) -> list[Candle]:
        step = interval_to_timedelta(interval)
        limit = min(limit, MAX_CANDLES_PER_CALL)
        if start_time is not None:
            end = end_time or datetime.now(timezone.utc)
            if end < start_time:
                return []
            n = min(limit, int((end - start_time) / step) + 1)
            first = start_time
        else:
            end = end_time or datetime.now(timezone.utc)
            n = limit
            first = end - step * (n - 1)
        return [self._next_candle(symbol, interval, first + step * i, i) for i in range(n)]

    def subscribe(self, symbol: str, interval: str) -> CandleSubscription:
        return CandleSubscription(symbol.upper(), interval, self._stream(symbol, interval))

    async def _stream(self, symbol: str, interval: str) -> AsyncIterator[Candle]:
        step = interval_to_timedelta(interval)
        t = datetime.now(timezone.utc)
        i = 0
        while self.live_count is None or i < self.live_count:
            final = self._next_candle(symbol, interval, t, i)
            # one forming update, then the closed candle
            yield Candle(symbol=final.symbol, interval=interval, time=t, open=final.open,
                         high=final.high, low=final.low, close=(final.open + final.close) / 2,
                         volume=final.volume / 2, close_time=final.close_time, is_final=False)
            await asyncio.sleep(self.delay)
            yield final
            await asyncio.sleep(self.delay)
            t += step
            i += 1
