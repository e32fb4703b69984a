"""Parsing and calendar alignment for the price and rate series."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

import logging
import math
import re

import pandas as pd

logger = logging.getLogger(__name__)

MIN_ALIGNED_ROWS = 50

DATE_HEADERS = ("date", "time", "day", "observation_date")
VALUE_HEADERS = (
    "adj close",
    "adjclose",
    "close",
    "price",
    "value",
    "rate",
    "yield",
    "irx",
    "tnx",
    "dgs3mo",
)

ALIGNED_COLUMNS = ["asset_a", "asset_b", "rate", "leveraged"]

_LINE_SPLIT = re.compile(r"\r?\n")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class PriceDataError(RuntimeError):
    """Raised when an input series cannot support a simulation."""


class EmptySeriesError(PriceDataError):
    """A required series parsed to zero usable observations."""


class InsufficientDataError(PriceDataError):
    """Too few aligned rows remain after filtering."""


def _empty_series() -> pd.DataFrame:
    return pd.DataFrame({"date": pd.Series(dtype=str), "value": pd.Series(dtype=float)})


def _detect_columns(header: Sequence[str]) -> Tuple[int, int]:
    date_idx = next((i for i, name in enumerate(header) if name in DATE_HEADERS), 0)

    value_idx = -1
    for keyword in VALUE_HEADERS:
        if keyword in header:
            value_idx = header.index(keyword)
            break

    if value_idx == -1:
        # Yahoo exports are Date,Open,High,Low,Close,Adj Close,Volume
        if len(header) >= 6:
            value_idx = 5
        else:
            value_idx = 1
    return date_idx, value_idx


def _to_int(token: str) -> Optional[int]:
    try:
        return int(token.strip())
    except ValueError:
        return None


def normalize_date(raw: str) -> str:
    """Normalise ``raw`` to ``YYYY-MM-DD`` where the encoding is recognised.

    ISO dates pass through untouched. Slash-delimited dates with a leading
    4-digit year are read as ``Y/M/D``. Otherwise, when the trailing part is
    the year, a first component above 12 cannot be a month so the date is
    read as ``D/M/Y``; anything else is assumed to be ``M/D/Y``. Dates such as
    ``03/04/2020`` are therefore always read as March 4th even when the file
    is day-first. Unrecognised encodings are returned unchanged and fail the
    later ISO check.
    """

    if "/" not in raw:
        return raw
    parts = raw.split("/")
    if len(parts) != 3:
        return raw
    p0, p1, p2 = (_to_int(part) for part in parts)
    if p0 is None or p1 is None or p2 is None:
        return raw
    if p0 > 1000:
        return f"{p0}-{p1:02d}-{p2:02d}"
    if p2 > 1000:
        if p0 > 12:
            return f"{p2}-{p1:02d}-{p0:02d}"
        return f"{p2}-{p0:02d}-{p1:02d}"
    return raw


def _parse_value(raw: str) -> Optional[float]:
    try:
        value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def parse_price_text(text: str) -> pd.DataFrame:
    """Parse delimited ``text`` into a ``date``/``value`` frame sorted by date.

    The header decides which columns hold the date and the value (see
    ``DATE_HEADERS`` and ``VALUE_HEADERS``). Lines with an unparseable date
    or a non-finite value are skipped. When a date appears more than once the
    last line wins. Returns an empty frame if there is no data line.
    """

    lines = _LINE_SPLIT.split(text)
    if len(lines) < 2:
        return _empty_series()

    header = [name.strip() for name in lines[0].lower().split(",")]
    date_idx, value_idx = _detect_columns(header)

    dates: List[str] = []
    values: List[float] = []
    dropped = 0
    for raw_line in lines[1:]:
        line = raw_line.strip()
        if not line:
            continue
        parts = line.split(",")
        if len(parts) <= value_idx or len(parts) <= date_idx:
            dropped += 1
            continue

        date_str = normalize_date(parts[date_idx].strip())
        value = _parse_value(parts[value_idx].strip())
        if value is None or not _ISO_DATE.match(date_str):
            dropped += 1
            continue
        dates.append(date_str)
        values.append(value)

    if dropped:
        logger.debug("Dropped %d malformed line(s) while parsing series", dropped)
    if not dates:
        return _empty_series()

    df = pd.DataFrame({"date": dates, "value": values})
    # The pattern check admits impossible days such as 2020-02-30.
    valid = pd.to_datetime(df["date"], format="%Y-%m-%d", errors="coerce").notna()
    if not valid.all():
        logger.debug("Dropped %d line(s) with an invalid calendar date", int((~valid).sum()))
        df = df.loc[valid]
        if df.empty:
            return _empty_series()
    df = df.drop_duplicates(subset="date", keep="last")
    df = df.sort_values("date", kind="mergesort").reset_index(drop=True)
    return df


def load_price_text(path: str) -> str:
    """Read a CSV export from disk as text (a UTF-8 BOM is tolerated)."""

    with open(path, "r", encoding="utf-8-sig") as f:
        return f.read()


def _as_lookup(series: Optional[pd.DataFrame]) -> dict:
    if series is None or series.empty:
        return {}
    return dict(zip(series["date"], series["value"].astype(float)))


def _to_timestamp(value) -> Optional[pd.Timestamp]:
    if value is None or value == "":
        return None
    return pd.Timestamp(value)


def align_series(
    asset_a: pd.DataFrame,
    asset_b: pd.DataFrame,
    rates: pd.DataFrame,
    leveraged: Optional[pd.DataFrame] = None,
    *,
    start=None,
    end=None,
) -> pd.DataFrame:
    """Join parsed series onto the calendar of the two risky assets.

    Candidate dates are the union of both risky-asset dates; a row is kept
    only when both assets have a positive value on that date. The rate is
    carried forward from the last observation seen on a candidate date,
    seeded with the first positive rate in ``rates`` (0 when none). The
    optional ``leveraged`` value is attached where present and left as NaN
    elsewhere. ``start``/``end`` bound the result inclusively.
    """

    a_map = _as_lookup(asset_a)
    b_map = _as_lookup(asset_b)
    rate_map = _as_lookup(rates)
    lev_map = _as_lookup(leveraged)

    last_rate = 0.0
    if rates is not None and not rates.empty:
        positive = rates.loc[rates["value"] > 0, "value"]
        if not positive.empty:
            last_rate = float(positive.iloc[0])

    rows: List[Tuple[str, float, float, float, float]] = []
    for date in sorted(set(a_map) | set(b_map)):
        rate = rate_map.get(date)
        if rate is not None:
            last_rate = rate

        a_val = a_map.get(date)
        b_val = b_map.get(date)
        if a_val is None or b_val is None:
            continue
        if a_val <= 0 or b_val <= 0:
            continue
        rows.append((date, a_val, b_val, last_rate, lev_map.get(date, float("nan"))))

    frame = pd.DataFrame(rows, columns=["date"] + ALIGNED_COLUMNS)
    frame["date"] = pd.to_datetime(frame["date"])
    frame = frame.set_index("date")
    frame = frame.astype(float)

    start_ts = _to_timestamp(start)
    end_ts = _to_timestamp(end)
    if start_ts is not None:
        frame = frame.loc[frame.index >= start_ts]
    if end_ts is not None:
        frame = frame.loc[frame.index <= end_ts]
    return frame


def _require_series(name: str, series: pd.DataFrame, hint: str) -> None:
    if series.empty:
        raise EmptySeriesError(
            f"{name} CSV is empty or invalid. Ensure it has Date and {hint} columns."
        )


def prepare_market_data(
    asset_a_text: str,
    asset_b_text: str,
    rate_text: str,
    leveraged_text: Optional[str] = None,
    *,
    start=None,
    end=None,
    min_rows: int = MIN_ALIGNED_ROWS,
) -> pd.DataFrame:
    """Parse and align the raw inputs, enforcing the minimum dataset size."""

    asset_a = parse_price_text(asset_a_text)
    asset_b = parse_price_text(asset_b_text)
    rates = parse_price_text(rate_text)

    _require_series("Asset A", asset_a, "Close/Adj Close")
    _require_series("Asset B", asset_b, "Close/Adj Close")
    _require_series("Rate", rates, "Price/Rate/Close")

    leveraged = None
    if leveraged_text is not None and leveraged_text.strip():
        leveraged = parse_price_text(leveraged_text)
        if leveraged.empty:
            logger.warning("Leveraged series could not be parsed; using synthetic leverage only")
            leveraged = None

    frame = align_series(asset_a, asset_b, rates, leveraged, start=start, end=end)
    if len(frame) < min_rows:
        raise InsufficientDataError(
            f"Data set is too small after filtering ({len(frame)} < {min_rows} rows). "
            "Expand your date range."
        )

    logger.info(
        "Aligned %d rows: %s -> %s",
        len(frame),
        frame.index[0].date(),
        frame.index[-1].date(),
    )
    return frame


def require_columns(frame: pd.DataFrame, required: Iterable[str]) -> None:
    missing = [col for col in required if col not in frame.columns]
    if missing:
        joined = ", ".join(missing)
        raise PriceDataError(f"Missing required column(s): {joined}")


__all__ = [
    "ALIGNED_COLUMNS",
    "EmptySeriesError",
    "InsufficientDataError",
    "MIN_ALIGNED_ROWS",
    "PriceDataError",
    "align_series",
    "load_price_text",
    "normalize_date",
    "parse_price_text",
    "prepare_market_data",
    "require_columns",
]
