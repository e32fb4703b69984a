"""Entry points that take raw CSV text plus a config and return results."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import pandas as pd

from .config import SimulationConfig, SweepConfig
from .dataset import load_price_text, prepare_market_data
from .leverage import DEFAULT_LEVERAGE, leverage_view, synthesize_leveraged
from .metrics import PerformanceMetrics, compute_metrics
from .strategy import HistoryPoint, MarketEnvironment, simulate_rotation
from .sweep import SweepResult, run_sweep


@dataclass(frozen=True)
class MarketInputs:
    """Raw delimited text for each input series."""

    asset_a: str
    asset_b: str
    rates: str
    leveraged: Optional[str] = None

    @classmethod
    def from_paths(
        cls,
        asset_a: str,
        asset_b: str,
        rates: str,
        leveraged: Optional[str] = None,
    ) -> "MarketInputs":
        return cls(
            asset_a=load_price_text(asset_a),
            asset_b=load_price_text(asset_b),
            rates=load_price_text(rates),
            leveraged=load_price_text(leveraged) if leveraged else None,
        )


@dataclass
class BacktestResult:
    config: SimulationConfig
    strategy: PerformanceMetrics
    benchmark_a: PerformanceMetrics
    benchmark_b: PerformanceMetrics
    history: List[HistoryPoint]
    analysis: str

    def history_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame([asdict(point) for point in self.history])
        if not frame.empty:
            frame["date"] = pd.to_datetime(frame["date"])
            frame = frame.set_index("date")
        return frame

    def to_payload(self) -> Dict[str, Any]:
        return {
            "config": self.config.to_config(),
            "metrics": {
                "strategy": self.strategy.as_dict(),
                "benchmark_a": self.benchmark_a.as_dict(),
                "benchmark_b": self.benchmark_b.as_dict(),
            },
            "history": [asdict(point) for point in self.history],
            "analysis": self.analysis,
        }


def _prepare(inputs: MarketInputs, start_date, end_date, use_leverage: bool) -> pd.DataFrame:
    frame = prepare_market_data(
        inputs.asset_a,
        inputs.asset_b,
        inputs.rates,
        inputs.leveraged,
        start=start_date,
        end=end_date,
    )
    if use_leverage:
        frame = synthesize_leveraged(frame, DEFAULT_LEVERAGE)
    return frame


def format_analysis(metrics: PerformanceMetrics, config: SimulationConfig) -> str:
    leverage_text = " | 3x LEVERAGE (Synthetic)" if config.use_leverage else ""
    return (
        f"ANALYSIS ({config.rebalance_frequency} Rebalancing{leverage_text})\n"
        f"CAGR: {metrics.cagr * 100:.1f}% | Max DD: {metrics.max_drawdown * 100:.1f}% | "
        f"Sharpe: {metrics.sharpe_ratio:.2f}\n"
        f"Trades: {metrics.trade_count} | Signal: {config.smoothing_window}d SMA, "
        f"Lookback: {config.lookback_months} Mo"
    )


def run_backtest(config: SimulationConfig, inputs: MarketInputs) -> BacktestResult:
    """Single simulation with history, benchmark metrics and a text summary."""

    config.validate()
    frame = _prepare(inputs, config.start_date, config.end_date, config.use_leverage)
    env = MarketEnvironment.from_frame(frame)

    result = simulate_rotation(
        env,
        lookback_months=config.lookback_months,
        frequency=config.rebalance_frequency,
        smoothing=config.smoothing_window,
        transaction_cost_pct=config.transaction_cost_pct,
        initial_capital=config.initial_capital,
        record_history=True,
    )
    strategy = result.strategy_metrics()
    return BacktestResult(
        config=config,
        strategy=strategy,
        benchmark_a=compute_metrics(result.benchmark_a, trade_count=1),
        benchmark_b=compute_metrics(result.benchmark_b, trade_count=1),
        history=list(result.history or []),
        analysis=format_analysis(strategy, config),
    )


def run_sweep_request(
    config: SweepConfig,
    inputs: MarketInputs,
    *,
    max_workers: Optional[int] = None,
) -> SweepResult:
    config.validate()
    frame = _prepare(inputs, config.start_date, config.end_date, config.use_leverage)
    return run_sweep(frame, config, max_workers=max_workers)


def visualize_inputs(inputs: MarketInputs, leverage: float = DEFAULT_LEVERAGE) -> List[Dict[str, Any]]:
    """Per-date records of the aligned inputs next to the synthetic leveraged path.

    Uses the full date range; no strategy logic is involved.
    """

    frame = prepare_market_data(inputs.asset_a, inputs.asset_b, inputs.rates, inputs.leveraged)
    view = leverage_view(frame, leverage)
    return [
        {
            "date": ts.strftime("%Y-%m-%d"),
            "asset_a": float(row.asset_a),
            "asset_b": float(row.asset_b),
            "synthetic_leveraged": float(row.synthetic_leveraged),
            "is_real_leveraged": bool(row.is_real_leveraged),
        }
        for ts, row in zip(view.index, view.itertuples(index=False))
    ]


__all__ = [
    "BacktestResult",
    "MarketInputs",
    "format_analysis",
    "run_backtest",
    "run_sweep_request",
    "visualize_inputs",
]
