import random
import pytest
from kline_ensemble.ledger.policies import (BestTaxLotPolicy, FifoLotPolicy, MatchingFifoLotPolicy,
                                            RandomLotPolicy, make_policy)
from kline_ensemble.ledger.portfolio import PortfolioLedger
from kline_ensemble.types import Lot, Portfolio
from factories import candle

ALL_POLICIES = [RandomLotPolicy(1), FifoLotPolicy(), MatchingFifoLotPolicy(), BestTaxLotPolicy()]

def snapshot(p: Portfolio):
    return p.balance, [(l.symbol, l.quantity, l.bought_at_price) for l in p.lots]

def test_buy_spends_ten_percent_and_opens_lot():
    p = Portfolio(balance=1000.0)
    rec = PortfolioLedger(FifoLotPolicy()).execute(p, candle(100.0), "buy")
    assert rec is not None
    assert rec.action == "buy"
    assert rec.quantity == pytest.approx(1.0)
    assert rec.price == 100.0
    assert rec.profit_or_loss == 0.0
    assert p.balance == pytest.approx(900.0) == rec.balance
    assert p.lots == [Lot("BTCUSDT", pytest.approx(1.0), 100.0)]

def test_buy_with_empty_balance_is_rejected():
    p = Portfolio(balance=0.0)
    assert PortfolioLedger().execute(p, candle(100.0), "buy") is None
    assert snapshot(p) == (0.0, [])

def test_non_positive_close_is_ignored():
    p = Portfolio(balance=1000.0, lots=[Lot("BTCUSDT", 1.0, 10.0)])
    before = snapshot(p)
    ledger = PortfolioLedger(MatchingFifoLotPolicy())
    assert ledger.execute(p, candle(0.0), "buy") is None
    assert ledger.execute(p, candle(0.0), "sell") is None
    assert snapshot(p) == before

def test_sell_closes_lot_and_realizes_pnl():
    p = Portfolio(balance=1000.0)
    ledger = PortfolioLedger(FifoLotPolicy())
    ledger.execute(p, candle(100.0, 0), "buy")
    rec = ledger.execute(p, candle(120.0, 1), "sell")
    assert rec is not None
    assert rec.action == "sell"
    assert rec.quantity == pytest.approx(1.0)
    assert rec.profit_or_loss == pytest.approx(20.0)
    assert p.balance == pytest.approx(900.0 + 120.0) == rec.balance
    assert p.lots == []

@pytest.mark.parametrize("policy", ALL_POLICIES, ids=lambda pol: pol.name)
def test_sell_with_empty_inventory_is_noop(policy):
    p = Portfolio(balance=500.0)
    assert PortfolioLedger(policy).execute(p, candle(100.0), "sell") is None
    assert snapshot(p) == (500.0, [])

def test_fifo_aborts_when_oldest_lot_is_other_symbol():
    p = Portfolio(balance=100.0, lots=[Lot("ETHUSDT", 2.0, 10.0), Lot("BTCUSDT", 1.0, 50.0)])
    before = snapshot(p)
    assert PortfolioLedger(FifoLotPolicy()).execute(p, candle(60.0), "sell") is None
    assert snapshot(p) == before

def test_matching_fifo_finds_the_symbol():
    p = Portfolio(balance=100.0, lots=[Lot("ETHUSDT", 2.0, 10.0), Lot("BTCUSDT", 1.0, 50.0)])
    rec = PortfolioLedger(MatchingFifoLotPolicy()).execute(p, candle(60.0), "sell")
    assert rec.profit_or_loss == pytest.approx(10.0)
    assert p.balance == pytest.approx(160.0)
    assert [l.symbol for l in p.lots] == ["ETHUSDT"]

def test_best_tax_lot_sells_most_expensive_lot():
    lots = [Lot("BTCUSDT", 1.0, 50.0), Lot("BTCUSDT", 1.0, 80.0), Lot("BTCUSDT", 1.0, 60.0)]
    p = Portfolio(balance=0.0, lots=list(lots))
    rec = PortfolioLedger(BestTaxLotPolicy()).execute(p, candle(70.0), "sell")
    assert rec.profit_or_loss == pytest.approx(-10.0)
    assert [l.bought_at_price for l in p.lots] == [50.0, 60.0]

def test_random_policy_aborts_on_mismatch_without_retry():
    p = Portfolio(balance=100.0, lots=[Lot("ETHUSDT", 1.0, 10.0)])
    ledger = PortfolioLedger(RandomLotPolicy(3))
    for _ in range(10):
        assert ledger.execute(p, candle(60.0), "sell") is None
    assert len(p.lots) == 1

def test_random_policy_is_reproducible_with_seed():
    lots = [Lot("BTCUSDT", 1.0, float(i)) for i in range(10)]
    a, b = RandomLotPolicy(7), RandomLotPolicy(7)
    assert [a.select(lots, "BTCUSDT") for _ in range(20)] == [b.select(lots, "BTCUSDT") for _ in range(20)]

def test_make_policy():
    assert isinstance(make_policy("fifo"), FifoLotPolicy)
    assert isinstance(make_policy("random", seed=1), RandomLotPolicy)
    with pytest.raises(ValueError):
        make_policy("lifo")

@pytest.mark.parametrize("policy_name", ["random", "fifo", "matching_fifo", "best_tax_lot"])
def test_ledger_invariants_over_random_walk(policy_name):
    rnd = random.Random(11)
    ledger = PortfolioLedger(make_policy(policy_name, seed=5))
    p = Portfolio(balance=1000.0)
    price = 100.0
    for i in range(300):
        price = max(1.0, price + rnd.uniform(-5, 5))
        symbol = rnd.choice(["BTCUSDT", "ETHUSDT"])
        action = rnd.choice(["buy", "sell"])
        balance_before, lots_before = p.balance, len(p.lots)
        rec = ledger.execute(p, candle(price, i, symbol=symbol), action)
        assert p.balance >= 0
        assert all(l.quantity > 0 for l in p.lots)
        if rec is None:
            assert (p.balance, len(p.lots)) == (balance_before, lots_before)
        elif rec.action == "buy":
            assert p.balance == pytest.approx(balance_before - rec.price * rec.quantity)
            assert len(p.lots) == lots_before + 1
            assert p.lots[-1].bought_at_price == price
        else:
            assert p.balance == pytest.approx(balance_before + rec.price * rec.quantity)
            assert len(p.lots) == lots_before - 1
            assert rec.quantity > 0
