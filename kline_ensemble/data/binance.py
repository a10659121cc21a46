from __future__ import annotations
import asyncio
import logging
from typing import Any, AsyncIterator
from datetime import datetime, timezone
import httpx
import pandas as pd
from ..config import settings
from ..errors import FeedError
from ..types import Candle
from .base import MAX_CANDLES_PER_CALL, CandleSubscription, MarketDataProvider

logger = logging.getLogger(__name__)

_KLINE_COLUMNS = ["open_time", "open", "high", "low", "close", "volume", "close_time"]

def _to_ms(ts: datetime) -> int:
    return int(ts.timestamp() * 1000)

def parse_klines(symbol: str, interval: str, rows: list[list[Any]],
                 now: datetime | None = None) -> list[Candle]:
    """Binance /klines rows -> candles, oldest first. A kline is final once its close time has passed."""
    if not rows:
        return []
    now = now or datetime.now(timezone.utc)
    df = pd.DataFrame([r[:7] for r in rows], columns=_KLINE_COLUMNS)
    for col in ("open", "high", "low", "close", "volume"):
        df[col] = pd.to_numeric(df[col], errors="raise")
    df["open_time"] = pd.to_datetime(df["open_time"], unit="ms", utc=True)
    df["close_time"] = pd.to_datetime(df["close_time"], unit="ms", utc=True)
    df = df.sort_values("open_time")
    return [
        Candle(symbol=symbol.upper(), interval=interval,
               time=row.open_time.to_pydatetime(),
               open=float(row.open), high=float(row.high), low=float(row.low),
               close=float(row.close), volume=float(row.volume),
               close_time=row.close_time.to_pydatetime(),
               is_final=row.close_time.to_pydatetime() < now)
        for row in df.itertuples(index=False)
    ]

class BinanceProvider(MarketDataProvider):
    """Spot klines over REST; live candles come from polling the two most recent klines."""

    def __init__(self, base_url: str | None = None, timeout: float = 15.0,
                 poll_seconds: float | None = None, client: httpx.AsyncClient | None = None):
        self.base_url = (base_url or settings.binance_rest_url).rstrip("/")
        self.poll_seconds = settings.feed_poll_seconds if poll_seconds is None else poll_seconds
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _get_klines(self, symbol: str, interval: str, start_time: datetime | None,
                          end_time: datetime | None, limit: int) -> list[Candle]:
        params: dict[str, Any] = {
            "symbol": symbol.upper(),
            "interval": interval,
            "limit": min(limit, MAX_CANDLES_PER_CALL),
        }
        if start_time:
            params["startTime"] = _to_ms(start_time)
        if end_time:
            params["endTime"] = _to_ms(end_time)
        try:
            r = await self._client.get(f"{self.base_url}/api/v3/klines", params=params)
            r.raise_for_status()
            data = r.json()
            if not isinstance(data, list):
                raise FeedError(f"unexpected klines payload: {str(data)[:200]}")
            return parse_klines(symbol, interval, data)
        except httpx.HTTPError as e:
            raise FeedError(f"klines request failed for {symbol} {interval}: {e}") from e
        except (ValueError, TypeError, KeyError) as e:
            raise FeedError(f"malformed klines for {symbol} {interval}: {e}") from e

    async def fetch_candles(self, symbol, interval, start_time=None, end_time=None,
                            limit: int = MAX_CANDLES_PER_CALL) -> list[Candle]:
        try:
            return await self._get_klines(symbol, interval, start_time, end_time, limit)
        except FeedError as e:
            logger.error("%s", e)
            return []

    def subscribe(self, symbol: str, interval: str) -> CandleSubscription:
        return CandleSubscription(symbol.upper(), interval, self._poll(symbol, interval))

    async def _poll(self, symbol: str, interval: str) -> AsyncIterator[Candle]:
        last_final: datetime | None = None
        while True:
            try:
                recent = await self._get_klines(symbol, interval, None, None, limit=2)
            except FeedError as e:
                # stay subscribed; the session just goes stale until the feed recovers
                logger.warning("feed poll failed: %s", e)
                recent = []
            for candle in recent:
                if candle.is_final:
                    if last_final is not None and candle.time <= last_final:
                        continue
                    last_final = candle.time
                yield candle
            await asyncio.sleep(self.poll_seconds)

    async def close(self) -> None:
        await self._client.aclose()
