"""Run configuration for single backtests and parameter sweeps."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import pandas as pd

from .strategy import Frequency

MODE_SINGLE = "SINGLE"
MODE_SWEEP = "SWEEP"


class ConfigError(ValueError):
    """Raised when a run configuration is invalid."""


def _check_dates(start_date: Optional[str], end_date: Optional[str]) -> None:
    try:
        start = pd.Timestamp(start_date) if start_date else None
        end = pd.Timestamp(end_date) if end_date else None
    except ValueError as e:
        raise ConfigError(f"Invalid date: {e}") from e
    if start is not None and end is not None and start > end:
        raise ConfigError("start_date must be <= end_date")


def _check_common(transaction_cost_pct: float, initial_capital: float) -> None:
    if transaction_cost_pct < 0:
        raise ConfigError("transaction_cost_pct must be >= 0")
    if initial_capital <= 0:
        raise ConfigError("initial_capital must be > 0")


@dataclass(frozen=True)
class SimulationConfig:
    lookback_months: float = 12
    smoothing_window: int = 0
    rebalance_frequency: str = Frequency.MONTHLY.value
    transaction_cost_pct: float = 0.1
    initial_capital: float = 10000.0
    use_leverage: bool = False
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    mode = MODE_SINGLE

    def validate(self) -> "SimulationConfig":
        if self.lookback_months < 1:
            raise ConfigError("lookback_months must be >= 1")
        if self.smoothing_window < 0:
            raise ConfigError("smoothing_window must be >= 0")
        _check_common(self.transaction_cost_pct, self.initial_capital)
        _check_dates(self.start_date, self.end_date)
        return self

    def to_config(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["mode"] = self.mode
        return payload


@dataclass(frozen=True)
class SweepConfig:
    lookback_start: float = 1
    lookback_end: float = 12
    lookback_step: float = 1
    smoothing_start: int = 1
    smoothing_end: int = 50
    smoothing_step: int = 5
    frequencies: Tuple[str, ...] = (Frequency.MONTHLY.value, Frequency.QUARTERLY.value)
    transaction_cost_pct: float = 0.1
    initial_capital: float = 10000.0
    use_leverage: bool = False
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    mode = MODE_SWEEP

    def validate(self) -> "SweepConfig":
        if self.lookback_start < 1 or self.lookback_end < 1:
            raise ConfigError("lookback range must start at >= 1 month")
        if self.smoothing_start < 0 or self.smoothing_end < 0:
            raise ConfigError("smoothing range must be >= 0")
        if self.lookback_step <= 0 or self.smoothing_step <= 0:
            raise ConfigError("range steps must be > 0")
        if not self.frequencies:
            raise ConfigError("Select at least one rebalance frequency")
        _check_common(self.transaction_cost_pct, self.initial_capital)
        _check_dates(self.start_date, self.end_date)
        return self

    def to_config(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["frequencies"] = list(self.frequencies)
        payload["mode"] = self.mode
        return payload


RunConfig = Union[SimulationConfig, SweepConfig]

_TRUE_STRINGS = ("true", "1", "yes")
_FALSE_STRINGS = ("false", "0", "no")


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError(f"not a boolean: {value!r}")


_CASTS = {
    "lookback_months": float,
    "smoothing_window": int,
    "lookback_start": float,
    "lookback_end": float,
    "lookback_step": float,
    "smoothing_start": int,
    "smoothing_end": int,
    "smoothing_step": int,
    "transaction_cost_pct": float,
    "initial_capital": float,
    "use_leverage": _to_bool,
}


def _coerce(key: str, value: Any) -> Any:
    if value is None:
        return None
    if key == "frequencies":
        if isinstance(value, str):
            value = [item.strip() for item in value.split(",") if item.strip()]
        return tuple(str(item) for item in value)
    if key in ("start_date", "end_date", "rebalance_frequency"):
        return str(value) if value != "" else None
    cast = _CASTS.get(key)
    if cast is None:
        return value
    try:
        number = cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {key}: {value!r}") from e
    if key.startswith("lookback") and float(number).is_integer():
        return int(number)
    return number


def config_from_mapping(payload: Mapping[str, Any]) -> RunConfig:
    """Build a validated config from a plain mapping (e.g. parsed JSON).

    ``mode`` selects the config type (``SINGLE`` by default). Keys that the
    selected config does not define are rejected.
    """

    data = dict(payload)
    mode = str(data.pop("mode", MODE_SINGLE)).upper()
    if mode == MODE_SINGLE:
        cls = SimulationConfig
    elif mode == MODE_SWEEP:
        cls = SweepConfig
    else:
        raise ConfigError(f"Unknown mode '{mode}'; expected {MODE_SINGLE} or {MODE_SWEEP}")

    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        joined = ", ".join(unknown)
        raise ConfigError(f"Unknown {mode.lower()} config key(s): {joined}")

    kwargs = {key: _coerce(key, value) for key, value in data.items() if value is not None}
    return cls(**kwargs).validate()


def load_config_file(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        try:
            payload = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return payload


__all__ = [
    "ConfigError",
    "MODE_SINGLE",
    "MODE_SWEEP",
    "RunConfig",
    "SimulationConfig",
    "SweepConfig",
    "config_from_mapping",
    "load_config_file",
]
