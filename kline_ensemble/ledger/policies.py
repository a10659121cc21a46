# kline_ensemble/ledger/policies.py
from __future__ import annotations
import random
from abc import ABC, abstractmethod
from typing import Sequence
from ..errors import NoMatchingLot
from ..types import Lot

class LotSelectionPolicy(ABC):
    """Picks the lot a sell closes. Returns its index or raises NoMatchingLot."""
    name: str

    @abstractmethod
    def select(self, lots: Sequence[Lot], symbol: str) -> int: ...

def _checked(lots: Sequence[Lot], idx: int, symbol: str) -> int:
    if lots[idx].symbol != symbol:
        raise NoMatchingLot(f"selected lot is {lots[idx].symbol}, candle is {symbol}")
    return idx

class RandomLotPolicy(LotSelectionPolicy):
    """
    Uniform pick over all lots regardless of symbol; a mismatch aborts the sell
    instead of retrying. Seeded so replays are reproducible.
    """
    name = "random"

    def __init__(self, seed: int | None = 42):
        self._rnd = random.Random(seed)

    def select(self, lots: Sequence[Lot], symbol: str) -> int:
        if not lots:
            raise NoMatchingLot("inventory is empty")
        return _checked(lots, self._rnd.randrange(len(lots)), symbol)

class FifoLotPolicy(LotSelectionPolicy):
    """Oldest lot overall; aborts when it belongs to another symbol."""
    name = "fifo"

    def select(self, lots: Sequence[Lot], symbol: str) -> int:
        if not lots:
            raise NoMatchingLot("inventory is empty")
        return _checked(lots, 0, symbol)

class MatchingFifoLotPolicy(LotSelectionPolicy):
    """Oldest lot of the candle's symbol."""
    name = "matching_fifo"

    def select(self, lots: Sequence[Lot], symbol: str) -> int:
        for i, lot in enumerate(lots):
            if lot.symbol == symbol:
                return i
        raise NoMatchingLot(f"no {symbol} lot in inventory")

class BestTaxLotPolicy(LotSelectionPolicy):
    """Matching lot with the highest purchase price (smallest realized gain); oldest wins ties."""
    name = "best_tax_lot"

    def select(self, lots: Sequence[Lot], symbol: str) -> int:
        best: int | None = None
        for i, lot in enumerate(lots):
            if lot.symbol == symbol and (best is None or lot.bought_at_price > lots[best].bought_at_price):
                best = i
        if best is None:
            raise NoMatchingLot(f"no {symbol} lot in inventory")
        return best

def make_policy(name: str, seed: int | None = 42) -> LotSelectionPolicy:
    if name == RandomLotPolicy.name:
        return RandomLotPolicy(seed)
    if name == FifoLotPolicy.name:
        return FifoLotPolicy()
    if name == MatchingFifoLotPolicy.name:
        return MatchingFifoLotPolicy()
    if name == BestTaxLotPolicy.name:
        return BestTaxLotPolicy()
    raise ValueError(f"unknown lot policy: {name!r}")
