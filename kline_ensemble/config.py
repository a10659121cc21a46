from __future__ import annotations
import os
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()

def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")

class Settings(BaseModel):
    binance_rest_url: str = os.getenv("BINANCE_REST_URL", "https://api.binance.com")
    default_symbol: str = os.getenv("DEFAULT_SYMBOL", "BTCUSDT")
    default_interval: str = os.getenv("DEFAULT_INTERVAL", "1m")

    backtest_window: int = int(os.getenv("BACKTEST_WINDOW", "100"))
    trade_fraction: float = float(os.getenv("TRADE_FRACTION", "0.10"))
    vote_threshold_pct: float = float(os.getenv("VOTE_THRESHOLD_PCT", "60"))
    lot_policy: str = os.getenv("LOT_POLICY", "random")  # random | fifo | matching_fifo | best_tax_lot
    lot_policy_seed: int = int(os.getenv("LOT_POLICY_SEED", "42"))

    feed_poll_seconds: float = float(os.getenv("FEED_POLL_SECONDS", "2.0"))
    history_limit: int = int(os.getenv("HISTORY_LIMIT", "1000"))
    max_backtest_candles: int = int(os.getenv("MAX_BACKTEST_CANDLES", "5000"))
    share_sessions_by_address: bool = _env_bool("SHARE_SESSIONS_BY_ADDRESS", False)

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
