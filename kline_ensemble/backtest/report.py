# kline_ensemble/backtest/report.py
from __future__ import annotations
import csv
from pathlib import Path
from .engine import BTRun
from .metrics import summarize

TRADE_COLUMNS = ["time", "action", "symbol", "price", "quantity", "balance", "profit_or_loss"]

def _write_rows(path: Path, header: list[str], rows) -> None:
    with open(path, "w", newline="") as f:
        w = csv.writer(f)
        w.writerow(header)
        w.writerows(rows)

def save_report(run: BTRun, out_dir: str) -> dict:
    """trades.csv, equity.csv, lots.csv (inventory still held at the end) and summary.txt."""
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    _write_rows(p/"trades.csv", TRADE_COLUMNS,
                ([tr.time.isoformat(), tr.action, tr.symbol, f"{tr.price:.8f}", f"{tr.quantity:.8f}",
                  f"{tr.balance:.2f}", f"{tr.profit_or_loss:.4f}"] for tr in run.trades))
    _write_rows(p/"equity.csv", ["time", "equity"],
                ([ts.isoformat(), f"{eq:.2f}"] for ts, eq in run.equity_curve))
    _write_rows(p/"lots.csv", ["symbol", "quantity", "bought_at_price"],
                ([lot.symbol, f"{lot.quantity:.8f}", f"{lot.bought_at_price:.8f}"] for lot in run.open_lots))

    summary = summarize(run)
    with open(p/"summary.txt", "w") as f:
        f.write(f"Backtest summary ({len(run.trades)} trades)\n")
        for k, v in summary.items():
            f.write(f"{k}: {v}\n")
    return summary
