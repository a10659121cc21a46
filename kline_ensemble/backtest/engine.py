# kline_ensemble/backtest/engine.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Iterable, Sequence
from datetime import datetime

from ..ensemble.aggregator import AggregationConfig, evaluate
from ..ledger.policies import LotSelectionPolicy, make_policy
from ..ledger.portfolio import PortfolioLedger
from ..strategies import StrategyConfig
from ..types import Candle, IndicatorKind, Lot, Portfolio, TradeRecord

logger = logging.getLogger(__name__)

@dataclass(slots=True)
class BTConfig:
    window: int = 100
    trade_fraction: float = 0.10
    trade_threshold_pct: float = 60.0
    lot_policy: str = "random"
    lot_policy_seed: int | None = 42

@dataclass(slots=True)
class BTRun:
    trades: list[TradeRecord]
    equity_curve: list[tuple[datetime, float]]   # balance + open lots marked at close
    start_balance: float
    end_balance: float
    open_lots: list[Lot]

def _mark_to_market(portfolio: Portfolio, price: float, symbol: str) -> float:
    held = sum(l.quantity for l in portfolio.lots if l.symbol == symbol)
    return portfolio.balance + held * price

def backtest(
    series: Sequence[Candle],
    starting_balance: float,
    strategy_kinds: Iterable[str | IndicatorKind],
    cfg: BTConfig | None = None,
    policy: LotSelectionPolicy | None = None,
) -> BTRun:
    """
    Replay the live decision pipeline over `series` with a trailing window of
    `cfg.window` candles. Runs on its own portfolio and ledger; nothing here
    touches live session state.
    """
    cfg = cfg or BTConfig()
    strategy = StrategyConfig.for_backtest(strategy_kinds)
    agg_cfg = AggregationConfig(trade_threshold_pct=cfg.trade_threshold_pct)
    ledger = PortfolioLedger(policy or make_policy(cfg.lot_policy, cfg.lot_policy_seed),
                             trade_fraction=cfg.trade_fraction)
    portfolio = Portfolio(balance=float(starting_balance))

    trades: list[TradeRecord] = []
    equity_curve: list[tuple[datetime, float]] = []

    if len(series) <= cfg.window:
        logger.warning("backtest needs more than %d candles, got %d", cfg.window, len(series))
        return BTRun(trades=trades, equity_curve=equity_curve, start_balance=portfolio.balance,
                     end_balance=portfolio.balance, open_lots=[])

    for i in range(cfg.window, len(series)):
        candle = series[i]
        history = series[i - cfg.window:i]
        _, decision = evaluate(candle, history, strategy, agg_cfg)
        if decision.should_trade:
            record = ledger.execute(portfolio, candle, decision.action)
            if record is not None:
                trades.append(record)
        equity_curve.append((candle.time, _mark_to_market(portfolio, candle.close, candle.symbol)))

    logger.info("backtest done: %d candles, %d trades, balance %.2f -> %.2f",
                len(series), len(trades), starting_balance, portfolio.balance)
    return BTRun(trades=trades, equity_curve=equity_curve, start_balance=float(starting_balance),
                 end_balance=portfolio.balance, open_lots=list(portfolio.lots))
