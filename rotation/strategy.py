"""Relative-momentum rotation between two risky assets and cash.

Overview
--------
The strategy holds 100% of capital in at most one of asset A, asset B or
cash. On each rebalance date it measures the momentum of both assets over the
lookback window (optionally on SMA-smoothed prices) and holds the stronger
asset, provided its momentum beats the risk-free rate pro-rated to the
window; otherwise it sits in cash. Switching holdings costs a proportional
transaction fee.

Model
-----
For row t with previous row t-1:
  cash_return_t = (rate_{t-1} / 100) / 252
  balance_t     = balance_{t-1} * (1 + return of the held leg)

On rebalance rows, with the lookback horizon L = lookback_months * 30.44 days:
  past  = last row at least L calendar days before t
  mom_X = (sma_X[t] - sma_X[past]) / sma_X[past]
  hurdle = (rate_t / 100) * (lookback_months / 12)

A is selected when mom_A > mom_B and mom_A > hurdle; otherwise B when
mom_B > hurdle; otherwise cash. Equal momentum falls through to B.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd

from .dataset import require_columns
from .metrics import TRADING_DAYS, PerformanceMetrics, compute_metrics

DAYS_PER_MONTH = 30.44
# A signal is only evaluated once this share of the lookback horizon exists.
WARMUP_FRACTION = 0.9
HISTORY_STRIDE = 5


class Holding(enum.Enum):
    CASH = "CASH"
    A = "A"
    B = "B"


class Frequency(str, enum.Enum):
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    SEMI_ANNUALLY = "Semi-Annually"
    ANNUALLY = "Annually"

    @classmethod
    def parse(cls, value) -> "Frequency":
        """Map a label to a member; unrecognised labels fall back to monthly."""

        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value == value:
                return member
        return cls.MONTHLY


@dataclass(frozen=True)
class MarketEnvironment:
    """Read-only arrays shared by every simulation over one aligned dataset."""

    dates: pd.DatetimeIndex
    day_offsets: np.ndarray
    asset_a: np.ndarray
    asset_b: np.ndarray
    rate: np.ndarray

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "MarketEnvironment":
        require_columns(frame, ["asset_a", "asset_b", "rate"])
        dates = pd.DatetimeIndex(frame.index)
        if len(dates) > 0:
            offsets = np.asarray((dates - dates[0]) / pd.Timedelta(days=1), dtype=float)
        else:
            offsets = np.empty(0, dtype=float)

        def frozen(values) -> np.ndarray:
            arr = np.array(values, dtype=float, copy=True)
            arr.setflags(write=False)
            return arr

        return cls(
            dates=dates,
            day_offsets=frozen(offsets),
            asset_a=frozen(frame["asset_a"].to_numpy(dtype=float)),
            asset_b=frozen(frame["asset_b"].to_numpy(dtype=float)),
            rate=frozen(frame["rate"].to_numpy(dtype=float)),
        )

    def __len__(self) -> int:
        return len(self.dates)


@dataclass(frozen=True)
class HistoryPoint:
    date: str
    strategy: float
    benchmark_a: float
    benchmark_b: float
    held_asset: str
    drawdown: float


@dataclass
class SimulationResult:
    strategy: np.ndarray
    benchmark_a: np.ndarray
    benchmark_b: np.ndarray
    trade_count: int
    final_holding: Holding
    history: Optional[List[HistoryPoint]] = None

    def strategy_metrics(self) -> PerformanceMetrics:
        return compute_metrics(self.strategy, trade_count=self.trade_count)


def rebalance_mask(dates: pd.DatetimeIndex, frequency) -> np.ndarray:
    """Flag the rows on which the strategy may change its holding.

    Each row is compared with the next one; the final row is always flagged.
    Weekday numbers run Sunday=0 .. Saturday=6.
    """

    n = len(dates)
    mask = np.zeros(n, dtype=bool)
    if n == 0:
        return mask
    mask[-1] = True
    if n == 1:
        return mask

    dates = pd.DatetimeIndex(dates)
    cur = dates[:-1]
    nxt = dates[1:]
    freq = Frequency.parse(frequency)

    if freq is Frequency.WEEKLY:
        cur_day = (np.asarray(cur.dayofweek) + 1) % 7
        nxt_day = (np.asarray(nxt.dayofweek) + 1) % 7
        gap_days = np.asarray((nxt - cur) / pd.Timedelta(days=1), dtype=float)
        events = (nxt_day < cur_day) | (gap_days > 6)
    elif freq is Frequency.ANNUALLY:
        events = np.asarray(cur.year) != np.asarray(nxt.year)
    else:
        cur_month = np.asarray(cur.month)
        month_change = cur_month != np.asarray(nxt.month)
        if freq is Frequency.QUARTERLY:
            events = month_change & (cur_month % 3 == 0)
        elif freq is Frequency.SEMI_ANNUALLY:
            events = month_change & (cur_month % 6 == 0)
        else:
            events = month_change

    mask[:-1] = events
    return mask


def smoothed_prices(prices: np.ndarray, window: int) -> np.ndarray:
    """Trailing simple moving average, clipped at the start of the series."""

    if window <= 1:
        return prices
    return pd.Series(prices).rolling(int(window), min_periods=1).mean().to_numpy(dtype=float)


def select_holding(mom_a: float, mom_b: float, hurdle: float) -> Holding:
    if mom_a > mom_b:
        return Holding.A if mom_a > hurdle else Holding.CASH
    return Holding.B if mom_b > hurdle else Holding.CASH


def simulate_rotation(
    env: MarketEnvironment,
    *,
    lookback_months: float,
    frequency,
    smoothing: int,
    transaction_cost_pct: float,
    initial_capital: float,
    record_history: bool = False,
) -> SimulationResult:
    """Walk the dataset once and return the balance trajectories.

    Trajectories start with ``initial_capital`` followed by one balance per
    row. ``record_history`` additionally keeps every 5th row (and the last)
    for charting. Windows longer than the available data simply never
    produce a signal, leaving the strategy in cash.
    """

    n = len(env)
    cost = float(transaction_cost_pct) / 100.0
    events = rebalance_mask(env.dates, frequency)
    target_days = float(lookback_months) * DAYS_PER_MONTH
    hurdle_scale = float(lookback_months) / 12.0
    sma_a = smoothed_prices(env.asset_a, smoothing)
    sma_b = smoothed_prices(env.asset_b, smoothing)
    days = env.day_offsets
    price_a = env.asset_a
    price_b = env.asset_b
    rate = env.rate

    strategy = np.empty(n + 1, dtype=float)
    bench_a = np.empty(n + 1, dtype=float)
    bench_b = np.empty(n + 1, dtype=float)
    balance = a_balance = b_balance = float(initial_capital)
    strategy[0] = bench_a[0] = bench_b[0] = balance

    holding = Holding.CASH
    peak = balance
    trade_count = 0
    cursor = 0
    history: Optional[List[HistoryPoint]] = [] if record_history else None

    with np.errstate(divide="ignore", invalid="ignore"):
        for i in range(n):
            if i > 0:
                ret_a = (price_a[i] - price_a[i - 1]) / price_a[i - 1]
                ret_b = (price_b[i] - price_b[i - 1]) / price_b[i - 1]
                ret_cash = (rate[i - 1] / 100.0) / TRADING_DAYS

                if holding is Holding.A:
                    balance *= 1.0 + ret_a
                elif holding is Holding.B:
                    balance *= 1.0 + ret_b
                else:
                    balance *= 1.0 + ret_cash

                a_balance *= 1.0 + ret_a
                b_balance *= 1.0 + ret_b

            if balance > peak:
                peak = balance
            drawdown = (balance - peak) / peak

            if events[i]:
                while cursor < i and days[i] - days[cursor] > target_days:
                    cursor += 1
                past = cursor - 1 if cursor > 0 else 0

                if days[i] - days[past] >= target_days * WARMUP_FRACTION:
                    mom_a = (sma_a[i] - sma_a[past]) / sma_a[past]
                    mom_b = (sma_b[i] - sma_b[past]) / sma_b[past]
                    hurdle = (rate[i] / 100.0) * hurdle_scale

                    selected = select_holding(mom_a, mom_b, hurdle)
                    if selected is not holding:
                        balance *= 1.0 - cost
                        holding = selected
                        trade_count += 1

            strategy[i + 1] = balance
            bench_a[i + 1] = a_balance
            bench_b[i + 1] = b_balance

            if history is not None and (i % HISTORY_STRIDE == 0 or i == n - 1):
                history.append(
                    HistoryPoint(
                        date=env.dates[i].strftime("%Y-%m-%d"),
                        strategy=float(balance),
                        benchmark_a=float(a_balance),
                        benchmark_b=float(b_balance),
                        held_asset=holding.value,
                        drawdown=float(drawdown),
                    )
                )

    return SimulationResult(
        strategy=strategy,
        benchmark_a=bench_a,
        benchmark_b=bench_b,
        trade_count=trade_count,
        final_holding=holding,
        history=history,
    )


__all__ = [
    "DAYS_PER_MONTH",
    "Frequency",
    "HistoryPoint",
    "Holding",
    "MarketEnvironment",
    "SimulationResult",
    "rebalance_mask",
    "select_holding",
    "simulate_rotation",
    "smoothed_prices",
]
