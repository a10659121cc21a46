# kline_ensemble/app.py
from __future__ import annotations
import asyncio
import json
import logging
from datetime import datetime, timezone
from rich import print
from rich.logging import RichHandler
from rich.table import Table
import typer
from .config import settings
from .types import IndicatorKind
from .data.base import MarketDataProvider
from .data.mock_provider import MockProvider
from .backtest.report import save_report
from .errors import KlineEnsembleError
from .service import get_historical_data, run_backtest_report
from .sessions.live import LiveSessionRunner

cli = typer.Typer(help="Indicator-vote paper trader for exchange klines (educational).")

ALL_KINDS = ",".join(k.value for k in IndicatorKind)

@cli.callback()
def main(log_level: str = typer.Option(settings.log_level, help="DEBUG | INFO | WARNING")):
    logging.basicConfig(level=log_level.upper(), format="%(message)s", datefmt="[%X]",
                        handlers=[RichHandler(rich_tracebacks=True)])

def _provider_from_name(name: str) -> MarketDataProvider:
    if name == "binance":
        from .data.binance import BinanceProvider
        return BinanceProvider()
    return MockProvider()

def _parse_time(value: str) -> datetime | None:
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)

def _parse_kinds(value: str) -> list[str]:
    return [k.strip() for k in value.split(",") if k.strip()]

# ============== BACKTEST ==============

@cli.command(name="backtest")
def backtest_cmd(
    symbol: str = typer.Option(settings.default_symbol, help="Ex: BTCUSDT"),
    interval: str = typer.Option(settings.default_interval, help="Ex: 1m, 15m, 1h"),
    provider: str = typer.Option("binance", help="mock | binance"),
    start: str = typer.Option("", help="Start ISO date, ex: 2025-08-01"),
    end: str = typer.Option("", help="End ISO date, ex: 2025-10-01"),
    balance: float = typer.Option(1000.0, help="Starting balance"),
    strategies: str = typer.Option(ALL_KINDS, help="Comma separated indicator kinds"),
    out_dir: str = typer.Option("bt_out", help="Report folder"),
):
    """
    Replay the indicator vote over historical candles. Writes trades.csv, equity.csv, lots.csv, summary.txt
    """
    try:
        asyncio.run(_backtest(symbol, interval, provider, start, end, balance, strategies, out_dir))
    except KlineEnsembleError as e:
        print(f"[red]{e}[/]")
        raise typer.Exit(code=1)

async def _backtest(symbol, interval, provider, start, end, balance, strategies, out_dir):
    mdp = _provider_from_name(provider)
    try:
        run = await run_backtest_report(mdp, symbol, interval, balance,
                                        _parse_time(start), _parse_time(end), _parse_kinds(strategies))
    finally:
        await mdp.close()

    table = Table(title=f"Trades {symbol} / {interval}", show_lines=False)
    for col in ("Time", "Action", "Price", "Qty", "Balance", "P&L"):
        table.add_column(col)
    for tr in run.trades[-20:]:
        table.add_row(tr.time.isoformat(), tr.action, f"{tr.price:.4f}", f"{tr.quantity:.6f}",
                      f"{tr.balance:.2f}", f"{tr.profit_or_loss:.4f}")
    print(table)

    summary = save_report(run, out_dir)
    print("[bold magenta]Summary[/]")
    for k, v in summary.items():
        print(f"{k}: {v}")
    print(f"[green]Reports written to ./{out_dir}[/]")

# ============== HISTORY ==============

@cli.command()
def history(
    symbol: str = typer.Option(settings.default_symbol, help="Ex: BTCUSDT"),
    interval: str = typer.Option(settings.default_interval, help="Ex: 1m"),
    provider: str = typer.Option("binance", help="mock | binance"),
    start: str = typer.Option("", help="Start ISO date (optional)"),
    end: str = typer.Option("", help="End ISO date (optional)"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
):
    asyncio.run(_history(symbol, interval, provider, start, end, json_out))

async def _history(symbol, interval, provider, start, end, json_out):
    mdp = _provider_from_name(provider)
    try:
        candles = await get_historical_data(mdp, symbol, interval, _parse_time(start), _parse_time(end))
    finally:
        await mdp.close()

    if json_out:
        out = [{"time": c.time.isoformat(), "open": c.open, "high": c.high, "low": c.low,
                "close": c.close, "volume": c.volume, "isFinal": c.is_final} for c in candles]
        print(json.dumps(out, indent=2))
        return
    print(f"[bold cyan]Loaded {len(candles)} candles for {symbol} / {interval}[/]")
    for c in candles[-10:]:
        print(f"{c.time.isoformat()}  O {c.open:.4f}  H {c.high:.4f}  L {c.low:.4f}  C {c.close:.4f}")

# ============== LIVE (local session) ==============

@cli.command()
def live(
    symbol: str = typer.Option(settings.default_symbol, help="Ex: BTCUSDT"),
    interval: str = typer.Option(settings.default_interval, help="Ex: 1m"),
    provider: str = typer.Option("mock", help="mock | binance"),
    balance: float = typer.Option(1000.0, help="Starting balance"),
    strategies: str = typer.Option("rsi,sma,ema", help="Comma separated indicator kinds to activate"),
    seconds: float = typer.Option(60.0, help="How long to run"),
):
    """Run one paper-trading session locally and print every outbound message."""
    asyncio.run(_live(symbol, interval, provider, balance, strategies, seconds))

async def _live(symbol, interval, provider, balance, strategies, seconds):
    mdp = _provider_from_name(provider)
    runner = LiveSessionRunner(mdp)

    async def sink(message: dict) -> None:
        style = "green" if message.get("type") == "buy" else \
                "red" if message.get("type") == "sell" or "error" in message else "dim"
        print(f"[{style}]{json.dumps(message)}[/]")

    conn = await runner.connect(sink)
    try:
        await runner.receive(conn, {"balance": balance})
        for kind in _parse_kinds(strategies):
            await runner.receive(conn, {"strategy": {"type": kind, "active": True}})
        await runner.receive(conn, {"symbol": symbol, "interval": interval})
        await asyncio.sleep(seconds)
    finally:
        await runner.close()
        await mdp.close()

if __name__ == "__main__":
    cli()
