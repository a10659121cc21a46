# kline_ensemble/utils/ta.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence
import numpy as np
from ..errors import InsufficientHistory
from ..types import Candle

# All functions take the full history (oldest first) and return the value at the last point.

@dataclass(frozen=True, slots=True)
class BollingerBands:
    lower: float
    upper: float
    sma: float

@dataclass(frozen=True, slots=True)
class MacdResult:
    macd: float
    signal: float

@dataclass(frozen=True, slots=True)
class DmiResult:
    adx: float
    di_plus: float
    di_minus: float

def _require(name: str, values, required: int) -> None:
    if len(values) < required:
        raise InsufficientHistory(name, required, len(values))

def _hlc(candles: Sequence[Candle]):
    highs = np.array([c.high for c in candles], dtype=float)
    lows = np.array([c.low for c in candles], dtype=float)
    closes = np.array([c.close for c in candles], dtype=float)
    return highs, lows, closes

def _true_ranges(highs: np.ndarray, lows: np.ndarray, closes: np.ndarray) -> np.ndarray:
    # one value per consecutive pair, i.e. len(candles) - 1
    prev_close = closes[:-1]
    h, l = highs[1:], lows[1:]
    return np.maximum(h - l, np.maximum(np.abs(h - prev_close), np.abs(l - prev_close)))

def sma(prices: Sequence[float]) -> float:
    _require("SMA", prices, 1)
    return float(np.mean(np.asarray(prices, dtype=float)))

def std_dev(prices: Sequence[float], mean: float) -> float:
    """Population standard deviation (divides by N)."""
    _require("StdDev", prices, 1)
    arr = np.asarray(prices, dtype=float)
    return float(np.sqrt(np.mean((arr - mean) ** 2)))

def bollinger_bands(prices: Sequence[float], period: int = 20, mult: float = 2.0) -> BollingerBands:
    _require("BollingerBands", prices, period)
    window = np.asarray(prices[-period:], dtype=float)
    m = sma(window)
    s = std_dev(window, m)
    return BollingerBands(lower=m - mult * s, upper=m + mult * s, sma=m)

def rsi(prices: Sequence[float], period: int = 14) -> float:
    _require("RSI", prices, period)
    recent = np.asarray(prices[-(period + 1):], dtype=float)
    changes = np.diff(recent)[:period]
    gains = np.where(changes > 0, changes, 0.0)
    losses = np.where(changes < 0, -changes, 0.0)
    avg_gain = float(np.sum(gains)) / period
    avg_loss = float(np.sum(losses)) / period
    if avg_loss == 0:
        # RS -> +inf; a flat window lands here too
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)

def ema_series(prices: Sequence[float], period: int, smoothing: float = 2.0) -> np.ndarray:
    """EMA after each price from index `period` on, seeded with the SMA of the first `period` prices."""
    if period <= 0: raise ValueError("period must be > 0")
    _require("EMA", prices, period + 1)
    arr = np.asarray(prices, dtype=float)
    multiplier = smoothing / (period + 1)
    value = float(np.mean(arr[:period]))
    out = np.empty(len(arr) - period, dtype=float)
    for j, price in enumerate(arr[period:]):
        value = (price - value) * multiplier + value
        out[j] = value
    return out

def ema(prices: Sequence[float], period: int, smoothing: float = 2.0) -> float:
    return float(ema_series(prices, period, smoothing)[-1])

def macd(prices: Sequence[float], short_period: int = 12, long_period: int = 26,
         signal_period: int = 9) -> MacdResult:
    """
    Simplified MACD: the signal line is the EMA of the single point [macd], which
    collapses to macd itself. Use `macd_rolling` for a signal over the MACD history.
    """
    line = ema(prices, short_period) - ema(prices, long_period)
    return MacdResult(macd=line, signal=line)

def macd_rolling(prices: Sequence[float], short_period: int = 12, long_period: int = 26,
                 signal_period: int = 9) -> MacdResult:
    _require("MACD", prices, long_period + signal_period + 1)
    short = ema_series(prices, short_period)
    long = ema_series(prices, long_period)
    # align both series on the price index (short starts earlier)
    history = short[long_period - short_period:] - long if long_period >= short_period \
        else short - long[short_period - long_period:]
    return MacdResult(macd=float(history[-1]), signal=ema(history, signal_period))

def supertrend(candles: Sequence[Candle], period: int = 14, multiplier: float = 3.0) -> float:
    _require("SuperTrend", candles, period + 1)
    h, l, c = _hlc(candles)
    atr = float(np.mean(_true_ranges(h, l, c)[-period:]))
    mid = (h[-1] + l[-1]) / 2
    upper = mid + multiplier * atr
    lower = mid - multiplier * atr
    # single candle of lookback for the flip; below-lower and no-flip both stay on the upper band
    if c[-2] > upper:
        return float(lower)
    return float(upper)

def dmi(candles: Sequence[Candle], period: int = 14) -> DmiResult:
    """DI+/DI-/ADX with simple means over the last `period` moves (not Wilder smoothing)."""
    _require("DMI", candles, period + 1)
    h, l, c = _hlc(candles)
    up = h[1:] - h[:-1]
    down = l[:-1] - l[1:]
    plus_dm = np.where(up > down, np.maximum(up, 0.0), 0.0)
    minus_dm = np.where(down > up, np.maximum(down, 0.0), 0.0)
    tr = _true_ranges(h, l, c)

    sm_plus = float(np.mean(plus_dm[-period:]))
    sm_minus = float(np.mean(minus_dm[-period:]))
    sm_tr = float(np.mean(tr[-period:]))
    if sm_tr == 0:
        return DmiResult(adx=0.0, di_plus=0.0, di_minus=0.0)

    di_plus = 100.0 * sm_plus / sm_tr
    di_minus = 100.0 * sm_minus / sm_tr
    di_sum = di_plus + di_minus
    adx = 100.0 * abs(di_plus - di_minus) / di_sum if di_sum else 0.0
    return DmiResult(adx=adx, di_plus=di_plus, di_minus=di_minus)
