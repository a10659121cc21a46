# kline_ensemble/strategies/moving_average.py
from __future__ import annotations
from typing import Sequence
from ..errors import InsufficientHistory
from ..types import Candle, IndicatorKind, Vote
from ..utils.ta import ema, sma
from .base import IndicatorRule, price_vote
from .config import EmaConfig, SmaConfig
from .helpers import closes

class SmaRule(IndicatorRule):
    kind = IndicatorKind.SMA

    def vote(self, candle: Candle, history: Sequence[Candle], cfg: SmaConfig) -> Vote:
        if len(history) < cfg.period:
            raise InsufficientHistory("SMA", cfg.period, len(history))
        avg = sma(closes(history[-cfg.period:]))
        return price_vote(candle.close, avg, avg)

class EmaRule(IndicatorRule):
    kind = IndicatorKind.EMA

    def vote(self, candle: Candle, history: Sequence[Candle], cfg: EmaConfig) -> Vote:
        avg = ema(closes(history), cfg.period, cfg.smoothing)
        return price_vote(candle.close, avg, avg)
