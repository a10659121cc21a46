# kline_ensemble/sessions/live.py
from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from ..config import settings
from ..data.base import CandleSubscription, MarketDataProvider
from ..ensemble.aggregator import AggregationConfig, evaluate
from ..errors import ValidationError
from ..ledger.policies import make_policy
from ..ledger.portfolio import PortfolioLedger
from ..types import Candle
from .messages import (SetBalance, Subscribe, UpdateStrategy, candle_message, decode_inbound,
                       error_message, trade_message)
from .store import HistoryWindow, SessionState, SessionStore

logger = logging.getLogger(__name__)

Sink = Callable[[dict[str, Any]], Awaitable[None]]

def default_ledger() -> PortfolioLedger:
    return PortfolioLedger(make_policy(settings.lot_policy, settings.lot_policy_seed),
                           trade_fraction=settings.trade_fraction)

@dataclass(eq=False)
class _SessionActor:
    """Single writer for one session: every mutation goes through `queue`, in arrival order."""
    state: SessionState
    ledger: PortfolioLedger
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    sinks: dict[str, Sink] = field(default_factory=dict)
    task: asyncio.Task | None = None
    subscription: CandleSubscription | None = None
    pump: asyncio.Task | None = None

class LiveSessionRunner:
    """
    Drives the aggregator and ledger for every connected session as candles arrive.

    Inbound messages from all connections of a session and the candles of its
    feed share one queue, so they are applied strictly in arrival order (the
    last balance or strategy message wins).
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        store: SessionStore | None = None,
        *,
        window_size: int | None = None,
        history_limit: int | None = None,
        agg_cfg: AggregationConfig | None = None,
        ledger_factory: Callable[[], PortfolioLedger] = default_ledger,
    ):
        self.provider = provider
        self.store = store if store is not None else SessionStore(
            share_by_address=settings.share_sessions_by_address)
        self.window_size = window_size or settings.backtest_window
        self.history_limit = history_limit or settings.history_limit
        self.agg_cfg = agg_cfg or AggregationConfig(trade_threshold_pct=settings.vote_threshold_pct)
        self.ledger_factory = ledger_factory
        self._actors: dict[str, _SessionActor] = {}

    # ---- connection lifecycle

    async def connect(self, sink: Sink, address: str | None = None) -> str:
        connection_id, state = self.store.open(address)
        actor = self._actors.get(state.key)
        if actor is None:
            actor = _SessionActor(state=state, ledger=self.ledger_factory())
            actor.task = asyncio.create_task(self._run(actor), name=f"session-{state.key}")
            self._actors[state.key] = actor
        actor.sinks[connection_id] = sink
        return connection_id

    async def receive(self, connection_id: str, raw: str | bytes | dict) -> None:
        actor = self._actor_for(connection_id)
        await actor.queue.put(("message", connection_id, raw))

    async def disconnect(self, connection_id: str) -> None:
        actor = self._actor_for(connection_id)
        actor.sinks.pop(connection_id, None)
        released = self.store.close(connection_id)
        if released is None:
            return
        # detach first: a connection opened while this actor drains gets a fresh one
        if self._actors.get(released.key) is actor:
            del self._actors[released.key]
        await actor.queue.put(("stop", None, None))
        if actor.task is not None:
            await actor.task

    async def wait_idle(self, connection_id: str) -> None:
        """Block until everything queued for this connection's session has been applied."""
        await self._actor_for(connection_id).queue.join()

    async def close(self) -> None:
        for actor in list(self._actors.values()):
            for connection_id in list(actor.sinks):
                await self.disconnect(connection_id)

    def session(self, connection_id: str) -> SessionState | None:
        return self.store.session_for(connection_id)

    def _actor_for(self, connection_id: str) -> _SessionActor:
        state = self.store.session_for(connection_id)
        if state is None or state.key not in self._actors:
            raise KeyError(f"unknown connection {connection_id}")
        return self._actors[state.key]

    # ---- session worker

    async def _run(self, actor: _SessionActor) -> None:
        try:
            while True:
                kind, connection_id, payload = await actor.queue.get()
                try:
                    if kind == "stop":
                        return
                    if kind == "message":
                        await self._handle_message(actor, connection_id, payload)
                    else:
                        await self._handle_candle(actor, payload)
                except Exception:
                    logger.exception("session %s failed to handle %s", actor.state.key, kind)
                finally:
                    actor.queue.task_done()
        finally:
            await self._stop_feed(actor)

    async def _handle_message(self, actor: _SessionActor, connection_id: str, raw) -> None:
        state = actor.state
        try:
            msg = decode_inbound(raw)
            if isinstance(msg, SetBalance):
                self.store.set_balance(state, msg.balance)
                logger.info("session %s balance set to %.2f", state.key, msg.balance)
            elif isinstance(msg, UpdateStrategy):
                updated = state.config.update(msg.strategy.type, msg.strategy.params())
                logger.info("session %s %s -> %s", state.key, msg.strategy.type.value, updated)
            elif isinstance(msg, Subscribe):
                await self._switch_feed(actor, msg.symbol.upper(), msg.interval)
        except ValidationError as e:
            await self._send(actor, error_message(str(e)), only=connection_id)

    async def _switch_feed(self, actor: _SessionActor, symbol: str, interval: str) -> None:
        await self._stop_feed(actor)
        state = actor.state
        if state.window is None or not state.window.matches(symbol, interval):
            if state.window is not None:
                self.store.remember_window(state.window)
            state.window = self.store.cached_window(symbol, interval)
            if state.window is None:
                candles = await self.provider.fetch_candles(symbol, interval, limit=self.history_limit)
                state.window = HistoryWindow(symbol, interval, list(candles), max_len=self.history_limit)
                logger.info("session %s loaded %d %s %s candles", state.key, len(candles), symbol, interval)
            else:
                logger.info("session %s reused %d cached %s %s candles", state.key,
                            len(state.window.candles), symbol, interval)
        actor.subscription = self.provider.subscribe(symbol, interval)
        actor.pump = asyncio.create_task(self._pump(actor, actor.subscription))

    async def _pump(self, actor: _SessionActor, subscription: CandleSubscription) -> None:
        try:
            async for candle in subscription:
                await actor.queue.put(("candle", None, candle))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("feed %s %s failed: %s", subscription.symbol, subscription.interval, e)

    async def _stop_feed(self, actor: _SessionActor) -> None:
        pump, subscription = actor.pump, actor.subscription
        actor.pump = actor.subscription = None
        if pump is not None and not pump.done():
            pump.cancel()
            try:
                await pump
            except asyncio.CancelledError:
                pass
        if subscription is not None:
            await subscription.close()
            logger.info("session %s closed feed %s %s", actor.state.key,
                        subscription.symbol, subscription.interval)

    async def _handle_candle(self, actor: _SessionActor, candle: Candle) -> None:
        state = actor.state
        window = state.window
        # candles still queued from a feed we already switched away from
        if window is None or not window.matches(candle.symbol, candle.interval):
            return
        window.update(candle)
        await self._send(actor, candle_message(candle))

        if state.portfolio is None:
            return
        history = window.history_before(candle, self.window_size)
        _, decision = evaluate(candle, history, state.config, self.agg_cfg)
        if not decision.should_trade:
            return
        record = actor.ledger.execute(state.portfolio, candle, decision.action)
        if record is not None:
            await self._send(actor, trade_message(record))

    async def _send(self, actor: _SessionActor, message: dict[str, Any], only: str | None = None) -> None:
        if only is None:
            targets = list(actor.sinks.items())
        else:
            targets = [(only, actor.sinks[only])] if only in actor.sinks else []
        for connection_id, sink in targets:
            try:
                await sink(message)
            except Exception as e:
                logger.warning("dropping message for %s: %s", connection_id, e)
