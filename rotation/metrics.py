"""Risk/return statistics for a balance trajectory."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Dict

import numpy as np

TRADING_DAYS = 252
# Fixed 4% annual baseline for Sharpe, independent of the rate series that
# drives the strategy's cash leg.
SHARPE_RISK_FREE = 0.04


@dataclass(frozen=True)
class PerformanceMetrics:
    cagr: float
    max_drawdown: float
    sharpe_ratio: float
    final_balance: float
    volatility: float
    trade_count: int = 0

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def max_drawdown(values) -> float:
    """Most negative drawdown from the running peak (0 if never below it)."""

    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return 0.0
    running_max = np.maximum.accumulate(arr)
    drawdowns = (arr - running_max) / running_max
    return float(min(0.0, np.min(drawdowns)))


def compute_metrics(values, trade_count: int = 0) -> PerformanceMetrics:
    """Reduce a balance trajectory to CAGR, drawdown, Sharpe and volatility.

    ``values`` starts at the initial capital; each point counts as one trading
    day (252 per year). Volatility uses the sample standard deviation of the
    simple period returns. Sharpe is defined as 0 when volatility is 0.
    """

    arr = np.asarray(values, dtype=float)
    if arr.ndim != 1 or arr.size < 2:
        raise ValueError("A balance trajectory needs at least two points")

    initial = float(arr[0])
    final = float(arr[-1])
    years = arr.size / TRADING_DAYS
    cagr = (final / initial) ** (1.0 / years) - 1.0 if years > 0 else 0.0

    rets = np.diff(arr) / arr[:-1]
    avg = float(np.mean(rets))
    std = float(np.std(rets, ddof=1)) if rets.size > 1 else 0.0
    volatility = std * math.sqrt(TRADING_DAYS)
    if volatility == 0:
        sharpe = 0.0
    else:
        sharpe = (avg - SHARPE_RISK_FREE / TRADING_DAYS) / std * math.sqrt(TRADING_DAYS)

    return PerformanceMetrics(
        cagr=float(cagr),
        max_drawdown=max_drawdown(arr),
        sharpe_ratio=float(sharpe),
        final_balance=final,
        volatility=float(volatility),
        trade_count=int(trade_count),
    )


__all__ = [
    "PerformanceMetrics",
    "SHARPE_RISK_FREE",
    "TRADING_DAYS",
    "compute_metrics",
    "max_drawdown",
]
