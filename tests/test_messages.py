import json
import pytest
from kline_ensemble.errors import ValidationError
from kline_ensemble.sessions.messages import (MISSING_SYMBOL_INTERVAL, SetBalance, Subscribe,
                                              UpdateStrategy, candle_message, decode_inbound,
                                              error_message, trade_message)
from kline_ensemble.strategies import StrategyConfig
from kline_ensemble.strategies.config import MacdConfig, RsiConfig
from kline_ensemble.types import IndicatorKind, TradeRecord
from factories import T0, candle

def test_decode_balance():
    msg = decode_inbound('{"balance": 250.5}')
    assert isinstance(msg, SetBalance) and msg.balance == 250.5

def test_negative_balance_is_rejected():
    with pytest.raises(ValidationError):
        decode_inbound({"balance": -1})

def test_decode_strategy_keeps_type_specific_params():
    msg = decode_inbound({"strategy": {"type": "macd", "active": True, "shortPeriod": 8}})
    assert isinstance(msg, UpdateStrategy)
    assert msg.strategy.type is IndicatorKind.MACD
    assert msg.strategy.params() == {"active": True, "shortPeriod": 8}

def test_unknown_strategy_type():
    with pytest.raises(ValidationError):
        decode_inbound({"strategy": {"type": "ichimoku", "active": True}})

def test_decode_subscribe():
    msg = decode_inbound(json.dumps({"symbol": "ethusdt", "interval": "5m"}))
    assert isinstance(msg, Subscribe)
    assert (msg.symbol, msg.interval) == ("ethusdt", "5m")

@pytest.mark.parametrize("payload", [{"symbol": "BTCUSDT"}, {"interval": "1m"}, {}, {"symbol": "", "interval": "1m"}])
def test_subscribe_requires_symbol_and_interval(payload):
    with pytest.raises(ValidationError, match=MISSING_SYMBOL_INTERVAL):
        decode_inbound(payload)

@pytest.mark.parametrize("raw", ["not json", "[1, 2]", b"42"])
def test_garbage_is_a_validation_error(raw):
    with pytest.raises(ValidationError):
        decode_inbound(raw)

def test_candle_message_fields():
    msg = candle_message(candle(101.0, 3, is_final=False))
    assert set(msg) == {"type", "symbol", "interval", "open", "high", "low", "close", "volume", "time", "isFinal"}
    assert msg["type"] == "candle"
    assert msg["isFinal"] is False
    assert msg["time"] == int(T0.timestamp() * 1000) + 3 * 60_000

def test_trade_message_fields():
    rec = TradeRecord(action="sell", symbol="BTCUSDT", price=120.0, quantity=1.0, balance=1020.0,
                      profit_or_loss=20.0, time=T0)
    msg = trade_message(rec)
    assert msg == {"type": "sell", "price": 120.0, "quantity": 1.0, "balance": 1020.0,
                   "profitOrLoss": 20.0, "time": int(T0.timestamp() * 1000)}

def test_error_message():
    assert error_message("boom") == {"error": "boom"}

# ---- strategy config

def test_live_and_backtest_defaults_differ_only_where_intended():
    live = StrategyConfig.live_defaults()
    bt = StrategyConfig.for_backtest(["rsi", "sma"])
    assert len(dict(live.items())) == len(dict(bt.items())) == 7
    assert live[IndicatorKind.RSI].period == 20
    assert bt[IndicatorKind.RSI].period == 14
    assert live.active_kinds() == []
    assert set(bt.active_kinds()) == {IndicatorKind.RSI, IndicatorKind.SMA}
    assert bt[IndicatorKind.SMA].period == 20

def test_update_merges_camel_and_snake_case():
    cfg = StrategyConfig.live_defaults()
    cfg.update("macd", {"type": "macd", "shortPeriod": 8, "active": True})
    cfg.update(IndicatorKind.MACD, {"signal_period": 5})
    macd = cfg[IndicatorKind.MACD]
    assert isinstance(macd, MacdConfig)
    assert (macd.short_period, macd.long_period, macd.signal_period, macd.active) == (8, 26, 5, True)

def test_update_keeps_other_params():
    cfg = StrategyConfig.live_defaults()
    cfg.update("rsi", {"oversold": 25})
    cfg.update("rsi", {"active": True})
    rsi = cfg[IndicatorKind.RSI]
    assert isinstance(rsi, RsiConfig)
    assert (rsi.period, rsi.oversold, rsi.overbought, rsi.active) == (20, 25, 70, True)

def test_update_rejects_bad_values_and_kinds():
    cfg = StrategyConfig.live_defaults()
    with pytest.raises(ValidationError):
        cfg.update("sma", {"period": 0})
    with pytest.raises(ValidationError):
        cfg.update("vwap", {"active": True})
    with pytest.raises(ValidationError):
        StrategyConfig.for_backtest(["sma", "vwap"])
    assert cfg[IndicatorKind.SMA].period == 20
