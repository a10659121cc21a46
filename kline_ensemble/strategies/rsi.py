# kline_ensemble/strategies/rsi.py
from __future__ import annotations
from typing import Sequence
from ..types import Candle, IndicatorKind, Vote
from ..utils.ta import rsi
from .base import IndicatorRule
from .config import RsiConfig
from .helpers import closes

class RsiRule(IndicatorRule):
    kind = IndicatorKind.RSI

    def vote(self, candle: Candle, history: Sequence[Candle], cfg: RsiConfig) -> Vote:
        value = rsi(closes(history), cfg.period)
        if value < cfg.oversold:
            return "buy"
        if value > cfg.overbought:
            return "sell"
        return "none"
