import asyncio
from datetime import datetime, timedelta, timezone
import httpx
from kline_ensemble.data.binance import BinanceProvider, parse_klines
from factories import T0

def ms(ts):
    return int(ts.timestamp() * 1000)

def kline_row(open_time, close=100.0, minutes=1):
    close_time = open_time + timedelta(minutes=minutes) - timedelta(milliseconds=1)
    return [ms(open_time), "99.5", "101.0", "99.0", str(close), "12.5", ms(close_time),
            "1250.0", 42, "6.0", "600.0", "0"]

def provider_with(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BinanceProvider(base_url="https://api.test", poll_seconds=0, client=client)

def test_parse_klines_marks_forming_candle():
    now = T0 + timedelta(minutes=2, seconds=30)
    rows = [kline_row(T0 + timedelta(minutes=2), 102.0), kline_row(T0, 100.0), kline_row(T0 + timedelta(minutes=1), 101.0)]
    candles = parse_klines("btcusdt", "1m", rows, now=now)
    assert [c.close for c in candles] == [100.0, 101.0, 102.0]
    assert [c.is_final for c in candles] == [True, True, False]
    assert candles[0].symbol == "BTCUSDT"
    assert candles[0].time == T0
    assert candles[0].open == 99.5 and candles[0].high == 101.0 and candles[0].volume == 12.5

def test_fetch_candles_sends_capped_request():
    seen = {}

    def handler(request: httpx.Request):
        seen.update(request.url.params)
        seen["path"] = request.url.path
        return httpx.Response(200, json=[kline_row(T0), kline_row(T0 + timedelta(minutes=1))])

    async def main():
        p = provider_with(handler)
        try:
            return await p.fetch_candles("btcusdt", "1m", start_time=T0, limit=5000)
        finally:
            await p.close()

    candles = asyncio.run(main())
    assert len(candles) == 2
    assert seen["path"] == "/api/v3/klines"
    assert seen["symbol"] == "BTCUSDT"
    assert seen["limit"] == "1000"
    assert seen["startTime"] == str(ms(T0))
    assert "endTime" not in seen

def test_fetch_candles_returns_empty_on_http_error():
    async def main():
        p = provider_with(lambda request: httpx.Response(500, json={"msg": "down"}))
        try:
            return await p.fetch_candles("BTCUSDT", "1m")
        finally:
            await p.close()

    assert asyncio.run(main()) == []

def test_fetch_candles_returns_empty_on_malformed_payload():
    async def main():
        p = provider_with(lambda request: httpx.Response(200, json={"code": -1121, "msg": "Invalid symbol."}))
        q = provider_with(lambda request: httpx.Response(200, json=[["oops"]]))
        try:
            return await p.fetch_candles("NOPE", "1m"), await q.fetch_candles("BTCUSDT", "1m")
        finally:
            await p.close()
            await q.close()

    assert asyncio.run(main()) == ([], [])

def test_polling_subscription_emits_each_final_candle_once():
    now = datetime.now(timezone.utc)
    closed_open = now - timedelta(minutes=2)
    forming_open = now - timedelta(seconds=30)

    def handler(request):
        return httpx.Response(200, json=[kline_row(closed_open), kline_row(forming_open, 105.0)])

    async def main():
        p = provider_with(handler)
        sub = p.subscribe("btcusdt", "1m")
        got = [await sub.__anext__() for _ in range(3)]
        await sub.close()
        await sub.close()
        await p.close()
        return got, sub

    got, sub = asyncio.run(main())
    assert [c.is_final for c in got] == [True, False, False]
    assert got[1].close == got[2].close == 105.0
    assert sub.closed
