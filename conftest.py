import pytest

pd = pytest.importorskip("pandas")
np = pytest.importorskip("numpy")


def _build_frame(n=100, *, a_growth=0.01, b_growth=0.0, rate=2.0, start="2020-01-01", leveraged=None):
    dates = pd.bdate_range(start, periods=n)
    steps = np.arange(n, dtype=float)
    frame = pd.DataFrame(
        {
            "asset_a": 100.0 * (1.0 + a_growth) ** steps,
            "asset_b": 50.0 * (1.0 + b_growth) ** steps,
            "rate": np.full(n, float(rate)),
            "leveraged": np.full(n, np.nan) if leveraged is None else np.asarray(leveraged, dtype=float),
        },
        index=pd.DatetimeIndex(dates, name="date"),
    )
    return frame


def _csv_text(frame, column, header="date,close"):
    lines = [header]
    for ts, value in zip(frame.index, frame[column]):
        lines.append(f"{ts.strftime('%Y-%m-%d')},{value}")
    return "\n".join(lines) + "\n"


@pytest.fixture
def make_frame():
    return _build_frame


@pytest.fixture
def make_csv():
    return _csv_text
