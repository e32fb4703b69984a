"""Grid sweep over lookback, smoothing and rebalance frequency."""

from __future__ import annotations

import logging
import math
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import ConfigError, SweepConfig
from .metrics import PerformanceMetrics, compute_metrics
from .strategy import MarketEnvironment, simulate_rotation

logger = logging.getLogger(__name__)

Cell = Tuple[float, int, str]


@dataclass(frozen=True)
class SweepPoint:
    lookback: float
    smoothing: int
    frequency: str
    metrics: PerformanceMetrics


@dataclass
class SweepResult:
    config: SweepConfig
    points: List[SweepPoint] = field(default_factory=list)
    benchmark_a: Optional[PerformanceMetrics] = None
    benchmark_b: Optional[PerformanceMetrics] = None

    def to_frame(self) -> pd.DataFrame:
        """One row per grid cell, in grid order."""

        records = []
        for point in self.points:
            record = {
                "lookback": point.lookback,
                "smoothing": point.smoothing,
                "frequency": point.frequency,
            }
            record.update(point.metrics.as_dict())
            records.append(record)
        columns = ["lookback", "smoothing", "frequency", "cagr", "max_drawdown",
                   "sharpe_ratio", "final_balance", "volatility", "trade_count"]
        return pd.DataFrame(records, columns=columns)


def parameter_range(start, end, step) -> List:
    """Inclusive ascending range ``start, start + step, ... <= end``."""

    if step <= 0:
        raise ConfigError("range steps must be > 0")
    if end < start:
        return []
    count = int(math.floor((end - start) / step + 1e-9)) + 1
    values = [start + k * step for k in range(count)]
    if all(float(v).is_integer() for v in values):
        return [int(v) for v in values]
    return values


def build_grid(config: SweepConfig) -> List[Cell]:
    """Cells ordered lookback (outer), smoothing, frequency (inner)."""

    lookbacks = parameter_range(config.lookback_start, config.lookback_end, config.lookback_step)
    smoothings = parameter_range(config.smoothing_start, config.smoothing_end, config.smoothing_step)
    return [
        (lookback, int(smoothing), str(freq))
        for lookback in lookbacks
        for smoothing in smoothings
        for freq in config.frequencies
    ]


def _run_cell(
    env: MarketEnvironment,
    transaction_cost_pct: float,
    initial_capital: float,
    cell: Cell,
) -> SweepPoint:
    lookback, smoothing, freq = cell
    result = simulate_rotation(
        env,
        lookback_months=lookback,
        frequency=freq,
        smoothing=smoothing,
        transaction_cost_pct=transaction_cost_pct,
        initial_capital=initial_capital,
        record_history=False,
    )
    return SweepPoint(
        lookback=lookback,
        smoothing=smoothing,
        frequency=freq,
        metrics=result.strategy_metrics(),
    )


def buy_and_hold_metrics(prices: Sequence[float], initial_capital: float) -> PerformanceMetrics:
    """Metrics for holding one asset throughout, scaled to ``initial_capital``."""

    arr = np.asarray(prices, dtype=float)
    normalized = arr * (initial_capital / arr[0])
    return compute_metrics(normalized, trade_count=1)


def run_sweep(
    frame: pd.DataFrame,
    config: SweepConfig,
    *,
    max_workers: Optional[int] = None,
) -> SweepResult:
    """Run one simulation per grid cell over an aligned (optionally leveraged) frame.

    The frame is not modified. Points are returned in grid order whether
    cells run sequentially or, with ``max_workers > 1``, in a process pool.
    Ranking is left to the caller.
    """

    env = MarketEnvironment.from_frame(frame)
    cells = build_grid(config)
    logger.info("Running sweep over %d cells (%d rows)", len(cells), len(env))

    run = partial(_run_cell, env, config.transaction_cost_pct, config.initial_capital)
    if max_workers is not None and max_workers > 1 and len(cells) > 1:
        chunksize = max(1, len(cells) // (max_workers * 4))
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            points = list(executor.map(run, cells, chunksize=chunksize))
    else:
        points = [run(cell) for cell in cells]

    return SweepResult(
        config=config,
        points=points,
        benchmark_a=buy_and_hold_metrics(env.asset_a, config.initial_capital),
        benchmark_b=buy_and_hold_metrics(env.asset_b, config.initial_capital),
    )


__all__ = [
    "SweepPoint",
    "SweepResult",
    "build_grid",
    "buy_and_hold_metrics",
    "parameter_range",
    "run_sweep",
]
