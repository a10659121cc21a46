from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal
from datetime import datetime

Action = Literal["buy", "sell"]
Vote = Literal["buy", "sell", "none"]

class IndicatorKind(str, Enum):
    BOLLINGER_BANDS = "bollingerBands"
    RSI = "rsi"
    SMA = "sma"
    EMA = "ema"
    MACD = "macd"
    SUPER_TREND = "superTrend"
    DMI = "dmi"

@dataclass(frozen=True, slots=True)
class Candle:
    symbol: str
    interval: str
    time: datetime            # open time (UTC)
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    close_time: datetime | None = None
    is_final: bool = True

@dataclass(slots=True)
class Lot:
    symbol: str
    quantity: float
    bought_at_price: float

@dataclass(slots=True)
class Portfolio:
    """Cash balance plus the open lots, oldest first."""
    balance: float
    lots: list[Lot] = field(default_factory=list)

@dataclass(frozen=True, slots=True)
class TradeRecord:
    action: Action
    symbol: str
    price: float
    quantity: float
    balance: float            # balance after the trade
    profit_or_loss: float     # 0 for buys
    time: datetime

@dataclass(slots=True)
class SignalTally:
    buy_count: int = 0
    sell_count: int = 0
    total_evaluated: int = 0
    votes: dict[IndicatorKind, Vote] = field(default_factory=dict)

@dataclass(frozen=True, slots=True)
class Decision:
    should_trade: bool
    action: Action
    buy_pct: float
    sell_pct: float
