"""Synthetic leveraged series built from asset B and optional real data."""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np
import pandas as pd

from .dataset import require_columns

logger = logging.getLogger(__name__)

DEFAULT_LEVERAGE = 3.0
PRICE_FLOOR = 0.01


def _compound_leveraged(
    base: np.ndarray,
    real: np.ndarray,
    leverage: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Compound the leveraged path and report which steps used real data."""

    prices = np.empty_like(base, dtype=float)
    used_real = np.zeros(base.shape, dtype=bool)
    if base.size == 0:
        return prices, used_real

    prices[0] = base[0]
    has_real = np.isfinite(real) & (real > 0)

    for i in range(1, len(base)):
        if has_real[i] and has_real[i - 1]:
            effective = (real[i] - real[i - 1]) / real[i - 1]
            used_real[i] = True
        else:
            effective = leverage * ((base[i] - base[i - 1]) / base[i - 1])
        price = prices[i - 1] * (1.0 + effective)
        prices[i] = price if price >= PRICE_FLOOR else PRICE_FLOOR

    return prices, used_real


def synthesize_leveraged(frame: pd.DataFrame, leverage: float = DEFAULT_LEVERAGE) -> pd.DataFrame:
    """Return a copy of ``frame`` with ``asset_b`` replaced by a leveraged path.

    Daily returns come from the real ``leveraged`` column when it has positive
    values on both the current and the previous row, and from ``leverage``
    times the asset-B return otherwise. The path starts at asset B's first
    price and is floored at 0.01. ``asset_a`` and the input frame itself are
    left untouched.
    """

    require_columns(frame, ["asset_b", "leveraged"])
    out = frame.copy()
    if len(out) < 2:
        return out

    base = frame["asset_b"].to_numpy(dtype=float)
    real = frame["leveraged"].to_numpy(dtype=float)
    prices, used_real = _compound_leveraged(base, real, float(leverage))
    logger.debug(
        "Leveraged path: %d of %d steps from real data, %.1fx synthetic elsewhere",
        int(used_real.sum()),
        len(prices) - 1,
        leverage,
    )
    out["asset_b"] = prices
    return out


def leverage_view(frame: pd.DataFrame, leverage: float = DEFAULT_LEVERAGE) -> pd.DataFrame:
    """Diagnostic frame showing the synthetic series next to its inputs.

    ``is_real_leveraged`` marks rows that carry a positive real leveraged
    observation.
    """

    require_columns(frame, ["asset_a", "asset_b", "leveraged"])
    base = frame["asset_b"].to_numpy(dtype=float)
    real = frame["leveraged"].to_numpy(dtype=float)
    prices, _ = _compound_leveraged(base, real, float(leverage))

    return pd.DataFrame(
        {
            "asset_a": frame["asset_a"].to_numpy(dtype=float),
            "asset_b": base,
            "synthetic_leveraged": prices,
            "is_real_leveraged": np.isfinite(real) & (real > 0),
        },
        index=frame.index.copy(),
    )


__all__ = ["DEFAULT_LEVERAGE", "PRICE_FLOOR", "leverage_view", "synthesize_leveraged"]
