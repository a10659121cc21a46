# kline_ensemble/strategies/__init__.py
from .base import IndicatorRule
from .config import IndicatorConfig, StrategyConfig
from .bollinger import BollingerRule
from .rsi import RsiRule
from .moving_average import SmaRule, EmaRule
from .macd_cross import MacdRule
from .supertrend import SuperTrendRule
from .dmi import DmiRule
from ..types import IndicatorKind

def default_rules() -> dict[IndicatorKind, IndicatorRule]:
    rules: list[IndicatorRule] = [
        BollingerRule(),
        RsiRule(),
        SmaRule(),
        EmaRule(),
        MacdRule(),
        SuperTrendRule(),
        DmiRule(),
    ]
    return {r.kind: r for r in rules}
