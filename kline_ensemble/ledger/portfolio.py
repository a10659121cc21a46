# kline_ensemble/ledger/portfolio.py
from __future__ import annotations
import logging
from ..errors import InsufficientFunds, TradeRejected
from ..types import Action, Candle, Lot, Portfolio, TradeRecord
from .policies import LotSelectionPolicy, RandomLotPolicy

logger = logging.getLogger(__name__)

class PortfolioLedger:
    """
    Executes buy/sell decisions against a Portfolio. A rejected trade leaves the
    portfolio untouched and yields None.

    Buys spend `trade_fraction` of the current balance at the candle's close and
    open a new lot. Sells close the whole lot chosen by the selection policy;
    the fraction sizes buys only.
    """

    def __init__(self, policy: LotSelectionPolicy | None = None, trade_fraction: float = 0.10):
        if not 0 < trade_fraction <= 1:
            raise ValueError("trade_fraction must be in (0, 1]")
        self.policy = policy or RandomLotPolicy()
        self.trade_fraction = trade_fraction

    def execute(self, portfolio: Portfolio, candle: Candle, action: Action) -> TradeRecord | None:
        if candle.close <= 0:
            logger.debug("ignoring %s on non-positive close %s", action, candle.close)
            return None
        try:
            if action == "buy":
                record = self._buy(portfolio, candle)
            else:
                record = self._sell(portfolio, candle)
        except TradeRejected as e:
            logger.debug("%s %s rejected at %s: %s", action, candle.symbol, candle.close, e)
            return None
        logger.info("%s %.8f %s @ %s -> balance %.2f", record.action, record.quantity,
                    record.symbol, record.price, record.balance)
        return record

    def _buy(self, portfolio: Portfolio, candle: Candle) -> TradeRecord:
        price = candle.close
        quantity = portfolio.balance * self.trade_fraction / price
        cost = price * quantity
        if quantity <= 0 or cost > portfolio.balance:
            raise InsufficientFunds(f"cost {cost} exceeds balance {portfolio.balance}")

        portfolio.balance -= cost
        portfolio.lots.append(Lot(symbol=candle.symbol, quantity=quantity, bought_at_price=price))
        return TradeRecord(action="buy", symbol=candle.symbol, price=price, quantity=quantity,
                           balance=portfolio.balance, profit_or_loss=0.0, time=candle.time)

    def _sell(self, portfolio: Portfolio, candle: Candle) -> TradeRecord:
        price = candle.close
        idx = self.policy.select(portfolio.lots, candle.symbol)
        lot = portfolio.lots[idx]
        earnings = price * lot.quantity
        pnl = lot.quantity * (price - lot.bought_at_price)

        portfolio.balance += earnings
        del portfolio.lots[idx]
        return TradeRecord(action="sell", symbol=candle.symbol, price=price, quantity=lot.quantity,
                           balance=portfolio.balance, profit_or_loss=pnl, time=candle.time)
