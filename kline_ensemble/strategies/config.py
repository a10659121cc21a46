# kline_ensemble/strategies/config.py
from __future__ import annotations
from typing import Any, Iterable, Mapping
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from ..errors import ValidationError
from ..types import IndicatorKind

class IndicatorConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    period: int = Field(20, gt=0)
    active: bool = False

class BollingerConfig(IndicatorConfig):
    multiplier: float = Field(2.0, gt=0)

class RsiConfig(IndicatorConfig):
    oversold: float = Field(30.0, ge=0, le=100)
    overbought: float = Field(70.0, ge=0, le=100)

class SmaConfig(IndicatorConfig):
    pass

class EmaConfig(IndicatorConfig):
    smoothing: float = Field(2.0, gt=0)

class MacdConfig(IndicatorConfig):
    short_period: int = Field(12, gt=0)
    long_period: int = Field(26, gt=0)
    signal_period: int = Field(9, gt=0)
    rolling_signal: bool = False

class SuperTrendConfig(IndicatorConfig):
    multiplier: float = Field(3.0, gt=0)

class DmiConfig(IndicatorConfig):
    threshold: float = Field(25.0, ge=0)

CONFIG_TYPES: dict[IndicatorKind, type[IndicatorConfig]] = {
    IndicatorKind.BOLLINGER_BANDS: BollingerConfig,
    IndicatorKind.RSI: RsiConfig,
    IndicatorKind.SMA: SmaConfig,
    IndicatorKind.EMA: EmaConfig,
    IndicatorKind.MACD: MacdConfig,
    IndicatorKind.SUPER_TREND: SuperTrendConfig,
    IndicatorKind.DMI: DmiConfig,
}

def parse_kind(value: str | IndicatorKind) -> IndicatorKind:
    try:
        return IndicatorKind(value)
    except ValueError:
        raise ValidationError(f"Unknown strategy type: {value!r}") from None

class StrategyConfig:
    """
    One config per indicator kind, always all seven. Live sessions and backtests
    start from different RSI periods (20 vs 14); both defaults are kept as-is.
    """

    LIVE_RSI_PERIOD = 20
    BACKTEST_RSI_PERIOD = 14

    def __init__(self, configs: Mapping[IndicatorKind, IndicatorConfig]):
        missing = set(IndicatorKind) - set(configs)
        if missing:
            raise ValueError(f"missing indicator configs: {sorted(k.value for k in missing)}")
        self._configs: dict[IndicatorKind, IndicatorConfig] = dict(configs)

    @classmethod
    def live_defaults(cls) -> "StrategyConfig":
        configs = {kind: model() for kind, model in CONFIG_TYPES.items()}
        configs[IndicatorKind.RSI] = RsiConfig(period=cls.LIVE_RSI_PERIOD)
        return cls(configs)

    @classmethod
    def for_backtest(cls, kinds: Iterable[str | IndicatorKind]) -> "StrategyConfig":
        wanted = {parse_kind(k) for k in kinds}
        configs = {kind: model(active=kind in wanted) for kind, model in CONFIG_TYPES.items()}
        configs[IndicatorKind.RSI] = RsiConfig(period=cls.BACKTEST_RSI_PERIOD,
                                               active=IndicatorKind.RSI in wanted)
        return cls(configs)

    def __getitem__(self, kind: IndicatorKind) -> IndicatorConfig:
        return self._configs[kind]

    def items(self):
        return self._configs.items()

    def active_kinds(self) -> list[IndicatorKind]:
        return [k for k, cfg in self._configs.items() if cfg.active]

    def update(self, kind: str | IndicatorKind, params: Mapping[str, Any]) -> IndicatorConfig:
        """Merge `params` (camelCase or snake_case) into the current config of `kind`."""
        kind = parse_kind(kind)
        current = self._configs[kind]
        incoming = {(to_camel(k) if "_" in k else k): v for k, v in params.items() if k != "type"}
        merged = {**current.model_dump(by_alias=True), **incoming}
        try:
            updated = CONFIG_TYPES[kind].model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid {kind.value} config: {e.errors()[0]['msg']}") from e
        self._configs[kind] = updated
        return updated
