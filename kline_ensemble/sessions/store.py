# kline_ensemble/sessions/store.py
from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass, field
from typing import Sequence
from ..strategies import StrategyConfig
from ..types import Candle, Portfolio

logger = logging.getLogger(__name__)

@dataclass(slots=True)
class HistoryWindow:
    """Cached candles for one (symbol, interval), oldest first."""
    symbol: str
    interval: str
    candles: list[Candle] = field(default_factory=list)
    max_len: int = 1000

    def matches(self, symbol: str, interval: str) -> bool:
        return self.symbol == symbol and self.interval == interval

    def update(self, candle: Candle) -> None:
        """Replace the forming candle with the same open time, append newer ones, drop stale ones."""
        if self.candles and candle.time == self.candles[-1].time:
            self.candles[-1] = candle
        elif not self.candles or candle.time > self.candles[-1].time:
            self.candles.append(candle)
            if len(self.candles) > self.max_len:
                del self.candles[: len(self.candles) - self.max_len]

    def history_before(self, candle: Candle, size: int) -> Sequence[Candle]:
        older = [c for c in self.candles if c.time < candle.time]
        return older[-size:]

@dataclass(slots=True)
class SessionState:
    key: str
    config: StrategyConfig = field(default_factory=StrategyConfig.live_defaults)
    portfolio: Portfolio | None = None     # created by the first balance message
    window: HistoryWindow | None = None

class SessionStore:
    """
    Owns every live session. By default each connection gets its own session
    token. With `share_by_address=True` all connections from one address share
    one session, which lives until the last of them disconnects.
    """

    def __init__(self, share_by_address: bool = False):
        self.share_by_address = share_by_address
        self._sessions: dict[str, SessionState] = {}
        self._connections: dict[str, str] = {}   # connection id -> session key
        self._windows: dict[tuple[str, str], HistoryWindow] = {}   # outlives sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def open(self, address: str | None = None) -> tuple[str, SessionState]:
        connection_id = uuid.uuid4().hex
        if self.share_by_address and address:
            key = f"addr:{address}"
        else:
            key = connection_id
        state = self._sessions.get(key)
        if state is None:
            state = SessionState(key=key)
            self._sessions[key] = state
            logger.info("session %s opened", key)
        self._connections[connection_id] = key
        return connection_id, state

    def get(self, key: str) -> SessionState | None:
        return self._sessions.get(key)

    def session_for(self, connection_id: str) -> SessionState | None:
        key = self._connections.get(connection_id)
        return self._sessions.get(key) if key else None

    def connections_of(self, key: str) -> list[str]:
        return [c for c, k in self._connections.items() if k == key]

    def close(self, connection_id: str) -> SessionState | None:
        """Drop a connection. Returns the session state if this was its last connection."""
        key = self._connections.pop(connection_id, None)
        if key is None or self.connections_of(key):
            return None
        logger.info("session %s closed", key)
        state = self._sessions.pop(key, None)
        if state is not None and state.window is not None:
            self.remember_window(state.window)
        return state

    def remember_window(self, window: HistoryWindow) -> None:
        self._windows[(window.symbol, window.interval)] = window

    def cached_window(self, symbol: str, interval: str) -> HistoryWindow | None:
        """Private copy of the last window kept for (symbol, interval), if any."""
        window = self._windows.get((symbol, interval))
        if window is None:
            return None
        return HistoryWindow(window.symbol, window.interval, list(window.candles), max_len=window.max_len)

    @staticmethod
    def set_balance(state: SessionState, balance: float) -> None:
        """Initial balance; resets the inventory."""
        state.portfolio = Portfolio(balance=float(balance))
