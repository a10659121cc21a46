# kline_ensemble/ensemble/aggregator.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Mapping, Sequence
from ..errors import InsufficientHistory
from ..strategies import IndicatorRule, StrategyConfig, default_rules
from ..types import Candle, Decision, IndicatorKind, SignalTally

logger = logging.getLogger(__name__)

_RULES = default_rules()

@dataclass(slots=True)
class AggregationConfig:
    trade_threshold_pct: float = 60.0   # buy% or sell% must exceed this

def tally_votes(
    candle: Candle, history: Sequence[Candle], config: StrategyConfig,
    rules: Mapping[IndicatorKind, IndicatorRule] | None = None,
) -> SignalTally:
    rules = _RULES if rules is None else rules
    tally = SignalTally()
    for kind, cfg in config.items():
        if not cfg.active:
            continue
        try:
            vote = rules[kind].vote(candle, history, cfg)
        except InsufficientHistory as e:
            logger.debug("skipping %s: %s", kind.value, e)
            continue
        tally.votes[kind] = vote
        tally.total_evaluated += 1
        if vote == "buy":
            tally.buy_count += 1
        elif vote == "sell":
            tally.sell_count += 1
    return tally

def decide(tally: SignalTally, cfg: AggregationConfig | None = None) -> Decision:
    cfg = cfg or AggregationConfig()
    if tally.total_evaluated == 0:
        return Decision(should_trade=False, action="sell", buy_pct=0.0, sell_pct=0.0)

    buy_pct = tally.buy_count / tally.total_evaluated * 100
    sell_pct = tally.sell_count / tally.total_evaluated * 100
    should_trade = buy_pct > cfg.trade_threshold_pct or sell_pct > cfg.trade_threshold_pct
    # ties go to sell
    action = "buy" if buy_pct > sell_pct else "sell"
    return Decision(should_trade=should_trade, action=action, buy_pct=buy_pct, sell_pct=sell_pct)

def evaluate(
    candle: Candle, history: Sequence[Candle], config: StrategyConfig,
    cfg: AggregationConfig | None = None,
    rules: Mapping[IndicatorKind, IndicatorRule] | None = None,
) -> tuple[SignalTally, Decision]:
    """Vote every active indicator on `candle` against `history` and turn the tally into a decision."""
    tally = tally_votes(candle, history, config, rules)
    return tally, decide(tally, cfg)
