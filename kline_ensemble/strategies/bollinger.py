# kline_ensemble/strategies/bollinger.py
from __future__ import annotations
from typing import Sequence
from ..types import Candle, IndicatorKind, Vote
from ..utils.ta import bollinger_bands
from .base import IndicatorRule, price_vote
from .config import BollingerConfig
from .helpers import closes

class BollingerRule(IndicatorRule):
    kind = IndicatorKind.BOLLINGER_BANDS

    def vote(self, candle: Candle, history: Sequence[Candle], cfg: BollingerConfig) -> Vote:
        bands = bollinger_bands(closes(history), cfg.period, cfg.multiplier)
        return price_vote(candle.close, bands.lower, bands.upper)
