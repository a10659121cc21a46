# kline_ensemble/sessions/messages.py
from __future__ import annotations
import json
from typing import Any, Literal, Union
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from ..errors import ValidationError
from ..types import Candle, IndicatorKind, TradeRecord

MISSING_SYMBOL_INTERVAL = "Symbol and interval are required."

# ---- inbound

class SetBalance(BaseModel):
    balance: float = Field(ge=0)

class StrategyUpdate(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: IndicatorKind
    active: bool | None = None
    period: int | None = None

    def params(self) -> dict[str, Any]:
        return self.model_dump(exclude={"type"}, exclude_none=True)

class UpdateStrategy(BaseModel):
    strategy: StrategyUpdate

class Subscribe(BaseModel):
    symbol: str = Field(min_length=1)
    interval: str = Field(min_length=1)

InboundMessage = Union[SetBalance, UpdateStrategy, Subscribe]

def decode_inbound(raw: str | bytes | dict) -> InboundMessage:
    """
    Decode one client message into an explicit variant. The legacy wire format
    has no tag, so the variant is chosen by its identifying field:
    `balance`, then `strategy`, otherwise a subscription.
    """
    if isinstance(raw, (str, bytes)):
        try:
            payload = json.loads(raw)
        except ValueError:
            raise ValidationError("Message is not valid JSON.") from None
    else:
        payload = raw
    if not isinstance(payload, dict):
        raise ValidationError("Message must be a JSON object.")

    if "balance" in payload:
        model: type[BaseModel] = SetBalance
    elif "strategy" in payload:
        model = UpdateStrategy
    else:
        if not payload.get("symbol") or not payload.get("interval"):
            raise ValidationError(MISSING_SYMBOL_INTERVAL)
        model = Subscribe
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        err = e.errors()[0]
        where = ".".join(str(p) for p in err["loc"])
        raise ValidationError(f"Invalid {where}: {err['msg']}") from e

# ---- outbound

class _Outbound(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

class CandleOut(_Outbound):
    type: Literal["candle"] = "candle"
    symbol: str
    interval: str
    open: float
    high: float
    low: float
    close: float
    volume: float
    time: int          # epoch ms of the candle's open time
    is_final: bool

class TradeOut(_Outbound):
    type: Literal["buy", "sell"]
    price: float
    quantity: float
    balance: float
    profit_or_loss: float
    time: int

class ErrorOut(_Outbound):
    error: str

def _ms(ts) -> int:
    return int(ts.timestamp() * 1000)

def candle_message(candle: Candle) -> dict[str, Any]:
    return CandleOut(symbol=candle.symbol, interval=candle.interval, open=candle.open,
                     high=candle.high, low=candle.low, close=candle.close,
                     volume=candle.volume, time=_ms(candle.time), is_final=candle.is_final).to_dict()

def trade_message(record: TradeRecord) -> dict[str, Any]:
    return TradeOut(type=record.action, price=record.price, quantity=record.quantity,
                    balance=record.balance, profit_or_loss=record.profit_or_loss,
                    time=_ms(record.time)).to_dict()

def error_message(text: str) -> dict[str, Any]:
    return ErrorOut(error=text).to_dict()
