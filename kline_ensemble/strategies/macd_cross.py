# kline_ensemble/strategies/macd_cross.py
from __future__ import annotations
from typing import Sequence
from ..types import Candle, IndicatorKind, Vote
from ..utils.ta import macd, macd_rolling
from .base import IndicatorRule
from .config import MacdConfig
from .helpers import closes

class MacdRule(IndicatorRule):
    kind = IndicatorKind.MACD

    def vote(self, candle: Candle, history: Sequence[Candle], cfg: MacdConfig) -> Vote:
        fn = macd_rolling if cfg.rolling_signal else macd
        res = fn(closes(history), cfg.short_period, cfg.long_period, cfg.signal_period)
        if res.macd < res.signal:
            return "buy"
        if res.macd > res.signal:
            return "sell"
        return "none"
