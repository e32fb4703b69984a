#!/usr/bin/env python3
"""
Momentum rotation backtester (asset A vs asset B vs cash)

Overview
--------
Runs the relative-momentum rotation strategy from the ``rotation`` package on
local CSV exports: two risky assets (e.g. BRK-A and the Nasdaq-100), a short
rate series (e.g. ^IRX or FRED DGS3MO, annual percent) and, optionally, a real
3x leveraged fund (e.g. TQQQ) used to patch the synthetic leveraged series.

Modes
-----
single   One parameter combination. Prints the summary plus strategy and
         buy-and-hold metrics and plots the equity curves with drawdown.
sweep    Lookback x smoothing x frequency grid. Prints the buy-and-hold
         benchmarks and the top cells, and plots CAGR against max drawdown
         (or, with --plot heatmap, the --rank-by metric per lookback and
         smoothing for each frequency).
inspect  Aligned inputs next to the synthetic 3x series, flagging the dates
         covered by real leveraged data.

CSV columns are auto-detected (Yahoo, FRED and plain date/value exports all
work). Values from ``--config`` (JSON object with config field names) are
overridden by explicit flags.

Run
---
python run_rotation.py --asset-a brk.csv --asset-b ndx.csv --rates irx.csv \
  [--leveraged tqqq.csv] [--mode single|sweep|inspect] [--config run.json] \
  [--lookback 12] [--smoothing 0] [--frequency Monthly] \
  [--lookback-range 1 12 1] [--smoothing-range 1 50 5] [--frequencies Monthly Quarterly] \
  [--transaction-cost 0.1] [--initial-capital 10000] [--leverage] \
  [--start 2010-01-01] [--end 2024-12-31] [--workers 4] [--top 10] [--rank-by sharpe] [--plot scatter|heatmap] \
  [--save-json out.json] [--save-csv out.csv] [--save-plot out.png] [--no-show] [--verbose]
"""

from __future__ import annotations

import argparse
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import matplotlib.pyplot as plt
import pandas as pd

from rotation import (
    BacktestResult,
    ConfigError,
    MarketInputs,
    PerformanceMetrics,
    PriceDataError,
    SweepPoint,
    SweepResult,
    config_from_mapping,
    load_config_file,
    run_backtest,
    run_sweep_request,
    visualize_inputs,
)
from rotation.config import MODE_SINGLE, MODE_SWEEP

# --rank-by name -> PerformanceMetrics field
RANK_KEYS = {
    "sharpe": "sharpe_ratio",
    "cagr": "cagr",
    # least negative drawdown first
    "drawdown": "max_drawdown",
    "volatility": "volatility",
    "trades": "trade_count",
}
# Ranked lowest first; the rest highest first.
ASCENDING_RANKS = ("volatility", "trades")

# Heatmap colour maps with the "good" end in green (or a plain scale for counts).
HEATMAP_CMAPS = {
    "sharpe": "RdYlGn",
    "cagr": "RdYlGn",
    "drawdown": "RdYlGn",
    "volatility": "RdYlGn_r",
    "trades": "Blues",
}


def format_percent(value: float) -> str:
    return f"{value * 100:.1f}%"


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Backtest a momentum rotation between two assets and cash",
    )
    parser.add_argument("--asset-a", required=True, help="CSV for asset A (e.g. BRK-A)")
    parser.add_argument("--asset-b", required=True, help="CSV for asset B (e.g. NDX); replaced by synthetic 3x with --leverage")
    parser.add_argument("--rates", required=True, help="CSV for the short-term rate in annual percent (e.g. ^IRX)")
    parser.add_argument("--leveraged", default=None, help="Optional CSV of a real 3x fund (e.g. TQQQ)")
    parser.add_argument(
        "--mode",
        choices=["single", "sweep", "inspect"],
        default=None,
        help="Run mode (default: the config file's mode, else single)",
    )
    parser.add_argument("--config", default=None, help="JSON file with config fields")
    parser.add_argument("--name-a", default="Asset A", help="Display name for asset A")
    parser.add_argument("--name-b", default="Asset B", help="Display name for asset B")

    single = parser.add_argument_group("single run")
    single.add_argument("--lookback", type=float, default=None, help="Lookback in months (default 12)")
    single.add_argument("--smoothing", type=int, default=None, help="SMA window in trading days (default 0)")
    single.add_argument(
        "--frequency",
        default=None,
        help="Weekly, Monthly, Quarterly, Semi-Annually or Annually (default Monthly)",
    )

    sweep = parser.add_argument_group("sweep")
    sweep.add_argument("--lookback-range", type=float, nargs=3, metavar=("START", "END", "STEP"), default=None)
    sweep.add_argument("--smoothing-range", type=int, nargs=3, metavar=("START", "END", "STEP"), default=None)
    sweep.add_argument("--frequencies", nargs="+", default=None, help="Frequencies to sweep (default Monthly Quarterly)")
    sweep.add_argument("--workers", type=int, default=None, help="Process pool size for the sweep (default: sequential)")
    sweep.add_argument("--top", type=int, default=10, help="Number of ranked cells to print (default 10)")
    sweep.add_argument(
        "--rank-by",
        choices=sorted(RANK_KEYS),
        default="sharpe",
        help="Ranking metric, also the heatmap colour (default sharpe; volatility and trades rank lowest first)",
    )
    sweep.add_argument(
        "--plot",
        choices=["scatter", "heatmap"],
        default="scatter",
        help="Sweep chart: CAGR vs drawdown scatter or lookback x smoothing heatmap (default scatter)",
    )

    parser.add_argument("--transaction-cost", type=float, default=None, help="Cost per switch in percent (default 0.1)")
    parser.add_argument("--initial-capital", type=float, default=None, help="Starting balance (default 10000)")
    parser.add_argument("--leverage", action="store_true", default=None, help="Replace asset B with a synthetic 3x series")
    parser.add_argument("--start", default=None, help="Start date (YYYY-MM-DD) inclusive")
    parser.add_argument("--end", default=None, help="End date (YYYY-MM-DD) inclusive")

    parser.add_argument("--save-json", default=None, help="If set, write the results as JSON here")
    parser.add_argument("--save-csv", default=None, help="If set, write history / grid / inspection rows here")
    parser.add_argument("--save-plot", default=None, help="If set, save the figure to this PNG path")
    parser.add_argument("--no-show", action="store_true", help="Do not display the plot")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def build_config_payload(args: argparse.Namespace) -> Dict[str, Any]:
    """Merge the optional config file with explicit command-line flags."""

    payload: Dict[str, Any] = load_config_file(args.config) if args.config else {}
    if args.mode in ("single", "sweep"):
        payload["mode"] = MODE_SWEEP if args.mode == "sweep" else MODE_SINGLE
    mode = str(payload.get("mode", MODE_SINGLE)).upper()

    overrides: Dict[str, Any] = {
        "transaction_cost_pct": args.transaction_cost,
        "initial_capital": args.initial_capital,
        "use_leverage": args.leverage,
        "start_date": args.start,
        "end_date": args.end,
    }
    if mode == MODE_SWEEP:
        if args.lookback_range is not None:
            overrides.update(
                lookback_start=args.lookback_range[0],
                lookback_end=args.lookback_range[1],
                lookback_step=args.lookback_range[2],
            )
        if args.smoothing_range is not None:
            overrides.update(
                smoothing_start=args.smoothing_range[0],
                smoothing_end=args.smoothing_range[1],
                smoothing_step=args.smoothing_range[2],
            )
        overrides["frequencies"] = args.frequencies
    else:
        overrides.update(
            lookback_months=args.lookback,
            smoothing_window=args.smoothing,
            rebalance_frequency=args.frequency,
        )

    payload.update({key: value for key, value in overrides.items() if value is not None})
    return payload


def _metrics_line(label: str, metrics: PerformanceMetrics) -> str:
    return (
        f"  {label:<12} CAGR {format_percent(metrics.cagr):>7} | "
        f"Max DD {format_percent(metrics.max_drawdown):>7} | "
        f"Sharpe {metrics.sharpe_ratio:5.2f} | Vol {format_percent(metrics.volatility):>6} | "
        f"Final {metrics.final_balance:,.2f} | Trades {metrics.trade_count}"
    )


def rank_points(points: Sequence[SweepPoint], key: str, top: int) -> List[SweepPoint]:
    field_name = RANK_KEYS[key]
    ranked = sorted(
        points,
        key=lambda p: getattr(p.metrics, field_name),
        reverse=key not in ASCENDING_RANKS,
    )
    return ranked[: max(top, 0)]


def heatmap_frame(grid: pd.DataFrame, key: str, frequency: str) -> pd.DataFrame:
    """Metric values for one frequency: smoothing rows x lookback columns."""

    subset = grid.loc[grid["frequency"] == frequency]
    return subset.pivot_table(index="smoothing", columns="lookback", values=RANK_KEYS[key], aggfunc="mean")


def sweep_payload(result: SweepResult) -> Dict[str, Any]:
    return {
        "config": result.config.to_config(),
        "points": [
            {
                "lookback": p.lookback,
                "smoothing": p.smoothing,
                "frequency": p.frequency,
                "metrics": p.metrics.as_dict(),
            }
            for p in result.points
        ],
        "benchmarks": {
            "benchmark_a": result.benchmark_a.as_dict() if result.benchmark_a else None,
            "benchmark_b": result.benchmark_b.as_dict() if result.benchmark_b else None,
        },
    }


def report_single(result: BacktestResult, args: argparse.Namespace) -> None:
    print(result.analysis)
    print()
    print(_metrics_line("Strategy", result.strategy))
    print(_metrics_line(args.name_a, result.benchmark_a))
    print(_metrics_line(args.name_b, result.benchmark_b))

    history = result.history_frame()
    if args.save_json:
        with open(args.save_json, "w", encoding="utf-8") as f:
            json.dump(result.to_payload(), f, indent=2)
    if args.save_csv:
        history.to_csv(args.save_csv)

    fig, (ax_eq, ax_dd) = plt.subplots(
        2, 1, figsize=(10, 7), sharex=True, gridspec_kw={"height_ratios": [3, 1]}
    )
    ax_eq.semilogy(history.index, history["strategy"], label=f"Strategy (CAGR {format_percent(result.strategy.cagr)})", color="#2ca02c")
    ax_eq.semilogy(history.index, history["benchmark_a"], label=args.name_a, color="#1f77b4", alpha=0.8)
    ax_eq.semilogy(history.index, history["benchmark_b"], label=args.name_b, color="#d62728", alpha=0.8)
    ax_eq.set_ylabel("Balance (log scale)")
    ax_eq.set_title(result.analysis.splitlines()[0])
    ax_eq.grid(True, which="both", linestyle=":", alpha=0.4)
    ax_eq.legend(loc="upper left")

    ax_dd.fill_between(history.index, history["drawdown"] * 100.0, 0.0, color="#d62728", alpha=0.4)
    ax_dd.set_ylabel("Drawdown (%)")
    ax_dd.set_xlabel("Date")
    ax_dd.grid(True, linestyle=":", alpha=0.4)
    fig.tight_layout()
    _finish_plot(fig, args)


def report_sweep(result: SweepResult, args: argparse.Namespace) -> None:
    print(f"Sweep cells: {len(result.points)}")
    if result.benchmark_a is not None:
        print(_metrics_line(args.name_a, result.benchmark_a))
    if result.benchmark_b is not None:
        print(_metrics_line(args.name_b, result.benchmark_b))
    print()
    print(f"Top {args.top} by {args.rank_by}:")
    for point in rank_points(result.points, args.rank_by, args.top):
        label = f"{point.lookback}mo/{point.smoothing}d/{point.frequency}"
        print(_metrics_line(label, point.metrics))

    if args.save_json:
        with open(args.save_json, "w", encoding="utf-8") as f:
            json.dump(sweep_payload(result), f, indent=2)
    if args.save_csv:
        result.to_frame().to_csv(args.save_csv, index=False)

    grid = result.to_frame()
    if args.plot == "heatmap":
        plot_sweep_heatmap(grid, args)
        return

    fig, ax = plt.subplots(figsize=(9, 6))
    for freq, group in grid.groupby("frequency", sort=False):
        ax.scatter(group["max_drawdown"] * 100.0, group["cagr"] * 100.0, s=14, alpha=0.7, label=str(freq))
    for name, bench, marker in (
        (args.name_a, result.benchmark_a, "s"),
        (args.name_b, result.benchmark_b, "D"),
    ):
        if bench is not None:
            ax.scatter([bench.max_drawdown * 100.0], [bench.cagr * 100.0], marker=marker, s=60, color="black")
            ax.annotate(name, (bench.max_drawdown * 100.0, bench.cagr * 100.0), xytext=(6, 6), textcoords="offset points")
    ax.set_xlabel("Max drawdown (%)")
    ax.set_ylabel("CAGR (%)")
    ax.set_title("Parameter sweep: CAGR vs max drawdown")
    ax.grid(True, linestyle=":", alpha=0.4)
    ax.legend(loc="lower right")
    fig.tight_layout()
    _finish_plot(fig, args)


def plot_sweep_heatmap(grid: pd.DataFrame, args: argparse.Namespace) -> None:
    """One lookback x smoothing panel per swept frequency, coloured by --rank-by."""

    frequencies = list(dict.fromkeys(grid["frequency"]))
    if not frequencies:
        return
    fig, axes = plt.subplots(
        1, len(frequencies), figsize=(5.5 * len(frequencies), 5), squeeze=False
    )
    for ax, freq in zip(axes[0], frequencies):
        table = heatmap_frame(grid, args.rank_by, freq)
        image = ax.imshow(
            table.to_numpy(dtype=float),
            cmap=HEATMAP_CMAPS[args.rank_by],
            aspect="auto",
            origin="lower",
        )
        ax.set_xticks(range(len(table.columns)))
        ax.set_xticklabels([str(c) for c in table.columns])
        ax.set_yticks(range(len(table.index)))
        ax.set_yticklabels([str(i) for i in table.index])
        ax.set_xlabel("Lookback (months)")
        ax.set_ylabel("Smoothing (days)")
        ax.set_title(f"{freq}: {args.rank_by}")
        fig.colorbar(image, ax=ax)
    fig.tight_layout()
    _finish_plot(fig, args)


def report_inspect(records: List[Dict[str, Any]], args: argparse.Namespace) -> None:
    frame = pd.DataFrame(records)
    frame["date"] = pd.to_datetime(frame["date"])
    frame = frame.set_index("date")
    real_days = int(frame["is_real_leveraged"].sum())
    print(f"Span: {frame.index[0].date()} -> {frame.index[-1].date()} ({len(frame)} rows)")
    print(f"  Rows with real leveraged data: {real_days}")
    print(f"  Synthetic 3x end value:        {frame['synthetic_leveraged'].iloc[-1]:.4f}")

    if args.save_json:
        with open(args.save_json, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2)
    if args.save_csv:
        frame.to_csv(args.save_csv)

    fig, ax = plt.subplots(figsize=(10, 5))
    ax.semilogy(frame.index, frame["asset_a"], label=args.name_a, color="#1f77b4")
    ax.semilogy(frame.index, frame["asset_b"], label=args.name_b, color="#ff7f0e")
    ax.semilogy(frame.index, frame["synthetic_leveraged"], label="Synthetic 3x", color="#d62728")
    real = frame.loc[frame["is_real_leveraged"]]
    if not real.empty:
        ax.axvspan(real.index[0], real.index[-1], color="#d62728", alpha=0.08, label="Real leveraged data")
    ax.set_xlabel("Date")
    ax.set_ylabel("Price (log scale)")
    ax.grid(True, which="both", linestyle=":", alpha=0.4)
    ax.legend(loc="upper left")
    fig.tight_layout()
    _finish_plot(fig, args)


def _finish_plot(fig, args: argparse.Namespace) -> None:
    if args.save_plot:
        fig.savefig(args.save_plot, dpi=150)
    if not args.no_show:
        plt.show()
    plt.close(fig)


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        inputs = MarketInputs.from_paths(args.asset_a, args.asset_b, args.rates, args.leveraged)
        if args.mode == "inspect":
            report_inspect(visualize_inputs(inputs), args)
            return

        config = config_from_mapping(build_config_payload(args))
        if config.mode == MODE_SWEEP:
            report_sweep(run_sweep_request(config, inputs, max_workers=args.workers), args)
        else:
            report_single(run_backtest(config, inputs), args)
    except (PriceDataError, ConfigError, FileNotFoundError) as e:
        parser.exit(2, f"error: {e}\n")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
