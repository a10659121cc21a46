# kline_ensemble/strategies/helpers.py
from __future__ import annotations
from typing import Sequence
import numpy as np
from ..types import Candle

def closes(candles: Sequence[Candle]) -> np.ndarray:
    return np.array([c.close for c in candles], dtype=float)
