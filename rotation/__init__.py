"""Momentum rotation backtesting between two risky assets and cash."""

from .backtest import (
    BacktestResult,
    MarketInputs,
    format_analysis,
    run_backtest,
    run_sweep_request,
    visualize_inputs,
)
from .config import ConfigError, SimulationConfig, SweepConfig, config_from_mapping, load_config_file
from .dataset import (
    EmptySeriesError,
    InsufficientDataError,
    PriceDataError,
    align_series,
    load_price_text,
    parse_price_text,
    prepare_market_data,
)
from .leverage import leverage_view, synthesize_leveraged
from .metrics import PerformanceMetrics, compute_metrics
from .strategy import Frequency, Holding, MarketEnvironment, simulate_rotation
from .sweep import SweepPoint, SweepResult, run_sweep

__all__ = [
    "BacktestResult",
    "MarketInputs",
    "format_analysis",
    "run_backtest",
    "run_sweep_request",
    "visualize_inputs",
    "ConfigError",
    "SimulationConfig",
    "SweepConfig",
    "config_from_mapping",
    "load_config_file",
    "EmptySeriesError",
    "InsufficientDataError",
    "PriceDataError",
    "align_series",
    "load_price_text",
    "parse_price_text",
    "prepare_market_data",
    "leverage_view",
    "synthesize_leveraged",
    "PerformanceMetrics",
    "compute_metrics",
    "Frequency",
    "Holding",
    "MarketEnvironment",
    "simulate_rotation",
    "SweepPoint",
    "SweepResult",
    "run_sweep",
]
