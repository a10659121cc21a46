# kline_ensemble/strategies/supertrend.py
from __future__ import annotations
from typing import Sequence
from ..types import Candle, IndicatorKind, Vote
from ..utils.ta import supertrend
from .base import IndicatorRule, price_vote
from .config import SuperTrendConfig

class SuperTrendRule(IndicatorRule):
    kind = IndicatorKind.SUPER_TREND

    def vote(self, candle: Candle, history: Sequence[Candle], cfg: SuperTrendConfig) -> Vote:
        line = supertrend(history, cfg.period, cfg.multiplier)
        return price_vote(candle.close, line, line)
