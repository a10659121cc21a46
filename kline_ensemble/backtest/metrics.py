# kline_ensemble/backtest/metrics.py
from __future__ import annotations
from typing import Sequence

from ..types import TradeRecord
from .engine import BTRun

def max_drawdown(equity: Sequence[float]) -> float:
    peak = equity[0] if equity else 0.0
    max_dd = 0.0
    for v in equity:
        peak = max(peak, v)
        dd = (peak - v) / peak if peak > 0 else 0.0
        max_dd = max(max_dd, dd)
    return max_dd

def summarize(run: BTRun) -> dict:
    trades: Sequence[TradeRecord] = run.trades
    buys = [t for t in trades if t.action == "buy"]
    sells = [t for t in trades if t.action == "sell"]
    wins = [t for t in sells if t.profit_or_loss > 0]
    realized = sum(t.profit_or_loss for t in sells)
    win_rate = len(wins)/len(sells) if sells else 0.0

    eq = [e for _, e in run.equity_curve]
    return {
        "trades": len(trades),
        "buys": len(buys),
        "sells": len(sells),
        "win_rate": round(win_rate, 4),
        "realized_pnl": round(realized, 4),
        "open_lots": len(run.open_lots),
        "max_drawdown": round(max_drawdown(eq), 4),
        "start_balance": round(run.start_balance, 2),
        "end_balance": round(run.end_balance, 2),
    }
