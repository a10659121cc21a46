# kline_ensemble/service.py
"""Batch contract: historical candles and backtests for the outer HTTP layer."""
from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Iterable

from .backtest.engine import BTConfig, BTRun, backtest
from .config import settings
from .data.base import MAX_CANDLES_PER_CALL, MarketDataProvider
from .errors import BacktestDataError, ValidationError
from .strategies.config import parse_kind
from .types import Candle, IndicatorKind, TradeRecord

logger = logging.getLogger(__name__)

def _require_symbol_interval(symbol: str | None, interval: str | None) -> None:
    if not symbol or not interval:
        raise ValidationError("Symbol and interval are required.")

async def get_historical_data(
    provider: MarketDataProvider, symbol: str, interval: str,
    start_time: datetime | None = None, end_time: datetime | None = None,
) -> list[Candle]:
    _require_symbol_interval(symbol, interval)
    return await provider.fetch_candles(symbol.upper(), interval, start_time, end_time)

async def fetch_series(
    provider: MarketDataProvider, symbol: str, interval: str,
    start_time: datetime | None, end_time: datetime | None,
    max_candles: int | None = None,
) -> list[Candle]:
    """Page through the per-call cap between start and end, oldest first."""
    max_candles = max_candles or settings.max_backtest_candles
    if start_time is None:
        return await provider.fetch_candles(symbol, interval, None, end_time,
                                            limit=min(max_candles, MAX_CANDLES_PER_CALL))
    series: list[Candle] = []
    cursor = start_time
    while len(series) < max_candles:
        batch = await provider.fetch_candles(symbol, interval, cursor, end_time,
                                             limit=min(MAX_CANDLES_PER_CALL, max_candles - len(series)))
        if series:
            batch = [c for c in batch if c.time > series[-1].time]
        if not batch:
            break
        series.extend(batch)
        if len(batch) < MAX_CANDLES_PER_CALL:
            break
        cursor = batch[-1].time + timedelta(milliseconds=1)
    return series

async def run_backtest_report(
    provider: MarketDataProvider, symbol: str, interval: str, balance: float,
    start_time: datetime | None, end_time: datetime | None,
    strategy_kinds: Iterable[str | IndicatorKind],
    cfg: BTConfig | None = None,
) -> BTRun:
    _require_symbol_interval(symbol, interval)
    if balance < 0:
        raise ValidationError("Balance must be >= 0.")
    kinds = [parse_kind(k) for k in strategy_kinds]
    cfg = cfg or BTConfig(window=settings.backtest_window, trade_fraction=settings.trade_fraction,
                          trade_threshold_pct=settings.vote_threshold_pct,
                          lot_policy=settings.lot_policy, lot_policy_seed=settings.lot_policy_seed)
    series = await fetch_series(provider, symbol.upper(), interval, start_time, end_time)
    if not series:
        logger.warning("%s", BacktestDataError(f"no historical data for {symbol} {interval}"))
    # replay off the event loop so live candle dispatch keeps flowing
    return await asyncio.to_thread(backtest, series, balance, kinds, cfg)

async def run_backtest(
    provider: MarketDataProvider, symbol: str, interval: str, balance: float,
    start_time: datetime | None, end_time: datetime | None,
    strategy_kinds: Iterable[str | IndicatorKind],
) -> list[TradeRecord]:
    run = await run_backtest_report(provider, symbol, interval, balance, start_time, end_time,
                                    strategy_kinds)
    return run.trades
