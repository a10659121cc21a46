from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Sequence
from ..types import Candle, IndicatorKind, Vote
from .config import IndicatorConfig

class IndicatorRule(ABC):
    kind: IndicatorKind

    @abstractmethod
    def vote(self, candle: Candle, history: Sequence[Candle], cfg: IndicatorConfig) -> Vote:
        """
        Compare the candle under test with the indicator computed over `history`
        (the candles before it, oldest first) and return buy/sell/none.
        Raises InsufficientHistory when `history` is too short; must not mutate anything.
        """

def price_vote(price: float, low: float, high: float) -> Vote:
    """buy below `low`, sell above `high`."""
    if price < low:
        return "buy"
    if price > high:
        return "sell"
    return "none"
