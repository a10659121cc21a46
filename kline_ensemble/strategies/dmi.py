# kline_ensemble/strategies/dmi.py
from __future__ import annotations
from typing import Sequence
from ..types import Candle, IndicatorKind, Vote
from ..utils.ta import dmi
from .base import IndicatorRule
from .config import DmiConfig

class DmiRule(IndicatorRule):
    kind = IndicatorKind.DMI

    def vote(self, candle: Candle, history: Sequence[Candle], cfg: DmiConfig) -> Vote:
        res = dmi(history, cfg.period)
        if res.adx <= cfg.threshold:
            return "none"
        if res.di_plus > res.di_minus:
            return "buy"
        if res.di_minus > res.di_plus:
            return "sell"
        return "none"
