import pytest

pd = pytest.importorskip("pandas")
np = pytest.importorskip("numpy")

from rotation.backtest import (
    MarketInputs,
    format_analysis,
    run_backtest,
    run_sweep_request,
    visualize_inputs,
)
from rotation.config import SimulationConfig, SweepConfig
from rotation.dataset import EmptySeriesError
from rotation.metrics import PerformanceMetrics


def _yahoo_text(frame, column):
    lines = ["Date,Open,High,Low,Close,Adj Close,Volume"]
    for ts, value in zip(frame.index, frame[column]):
        lines.append(f"{ts.strftime('%Y-%m-%d')},1,1,1,1,{value},100")
    return "\n".join(lines)


def _fred_text(frame):
    lines = ["observation_date,DGS3MO"]
    for i, (ts, value) in enumerate(zip(frame.index, frame["rate"])):
        lines.append(f"{ts.strftime('%Y-%m-%d')},{'.' if i % 7 == 3 else value}")
    return "\n".join(lines)


@pytest.fixture
def inputs(make_frame, make_csv):
    frame = make_frame(120, b_growth=0.002)
    leveraged = make_frame(120, b_growth=0.006)
    leveraged_text = make_csv(leveraged.iloc[60:], "asset_b")
    return MarketInputs(
        asset_a=_yahoo_text(frame, "asset_a"),
        asset_b=make_csv(frame, "asset_b"),
        rates=_fred_text(frame),
        leveraged=leveraged_text,
    )


def test_single_run_reports_metrics_history_and_summary(inputs):
    config = SimulationConfig(lookback_months=1, smoothing_window=0, rebalance_frequency="Monthly")

    result = run_backtest(config, inputs)

    assert result.strategy.trade_count == 1
    assert result.benchmark_a.trade_count == 1
    assert result.benchmark_a.final_balance == pytest.approx(10000.0 * 1.01 ** 119)
    assert len(result.history) == 25
    assert result.analysis.splitlines()[0] == "ANALYSIS (Monthly Rebalancing)"
    assert "Trades: 1 | Signal: 0d SMA, Lookback: 1 Mo" in result.analysis

    history = result.history_frame()
    assert list(history.columns) == ["strategy", "benchmark_a", "benchmark_b", "held_asset", "drawdown"]
    payload = result.to_payload()
    assert payload["config"]["mode"] == "SINGLE"
    assert payload["metrics"]["strategy"]["trade_count"] == 1


def test_leveraged_run_uses_synthetic_asset_b(inputs):
    plain = run_backtest(SimulationConfig(lookback_months=1), inputs)
    levered = run_backtest(SimulationConfig(lookback_months=1, use_leverage=True), inputs)

    assert "3x LEVERAGE" in levered.analysis
    assert levered.benchmark_a == plain.benchmark_a
    assert levered.benchmark_b.final_balance > plain.benchmark_b.final_balance


def test_sweep_request_runs_the_grid(inputs):
    config = SweepConfig(lookback_start=1, lookback_end=2, smoothing_start=5, smoothing_end=5, frequencies=("Monthly",))

    result = run_sweep_request(config, inputs)

    assert [p.lookback for p in result.points] == [1, 2]
    assert result.benchmark_a.trade_count == 1


def test_missing_required_series_is_reported(inputs):
    broken = MarketInputs(asset_a=inputs.asset_a, asset_b=inputs.asset_b, rates="DATE\n")

    with pytest.raises(EmptySeriesError):
        run_backtest(SimulationConfig(), broken)


def test_visualize_inputs_marks_real_leveraged_dates(inputs):
    records = visualize_inputs(inputs)

    assert len(records) == 120
    assert set(records[0]) == {"date", "asset_a", "asset_b", "synthetic_leveraged", "is_real_leveraged"}
    assert records[0]["synthetic_leveraged"] == records[0]["asset_b"]
    assert [r["is_real_leveraged"] for r in records].count(True) == 60
    assert records[59]["is_real_leveraged"] is False
    assert records[60]["is_real_leveraged"] is True


def test_format_analysis():
    metrics = PerformanceMetrics(
        cagr=0.1234,
        max_drawdown=-0.2,
        sharpe_ratio=1.234,
        final_balance=1.0,
        volatility=0.1,
        trade_count=3,
    )
    config = SimulationConfig(lookback_months=6, smoothing_window=10, rebalance_frequency="Quarterly", use_leverage=True)

    assert format_analysis(metrics, config) == (
        "ANALYSIS (Quarterly Rebalancing | 3x LEVERAGE (Synthetic))\n"
        "CAGR: 12.3% | Max DD: -20.0% | Sharpe: 1.23\n"
        "Trades: 3 | Signal: 10d SMA, Lookback: 6 Mo"
    )
