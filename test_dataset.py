import math

import pytest

pd = pytest.importorskip("pandas")

from rotation.dataset import (
    EmptySeriesError,
    InsufficientDataError,
    align_series,
    normalize_date,
    parse_price_text,
    prepare_market_data,
)


def _series(pairs):
    return pd.DataFrame({"date": [d for d, _ in pairs], "value": [float(v) for _, v in pairs]})


def test_iso_and_us_dates_parse_identically():
    iso = parse_price_text("date,close\n2020-03-15,100.0\n")
    us = parse_price_text("date,close\n03/15/2020,100.0\n")

    assert iso.to_dict("records") == [{"date": "2020-03-15", "value": 100.0}]
    assert us.to_dict("records") == iso.to_dict("records")


def test_slash_date_heuristics():
    assert normalize_date("2020/3/5") == "2020-03-05"
    assert normalize_date("15/03/2020") == "2020-03-15"
    # Both parts <= 12: always month first, even for day-first files.
    assert normalize_date("03/04/2020") == "2020-03-04"
    assert normalize_date("3/4/20") == "3/4/20"
    assert normalize_date("2020-01-02") == "2020-01-02"


def test_yahoo_export_uses_adj_close():
    text = (
        "Date,Open,High,Low,Close,Adj Close,Volume\n"
        "2020-01-03,10,11,9,10.5,10.25,1000\n"
        "2020-01-02,10,11,9,10.0,9.75,1000\n"
    )
    df = parse_price_text(text)

    assert list(df["date"]) == ["2020-01-02", "2020-01-03"]
    assert list(df["value"]) == [9.75, 10.25]


def test_value_column_fallbacks():
    wide = "when,a,b,c,d,e,f\n2020-01-02,1,2,3,4,5,6\n"
    assert parse_price_text(wide)["value"].tolist() == [5.0]

    fred = "observation_date,DGS3MO\n2020-01-02,1.5\n2020-01-03,.\n"
    df = parse_price_text(fred)
    assert df.to_dict("records") == [{"date": "2020-01-02", "value": 1.5}]

    three = "stamp,x,y\n2020-01-02,7,8\n"
    assert parse_price_text(three)["value"].tolist() == [7.0]


def test_malformed_lines_are_dropped():
    text = (
        "date,close\r\n"
        "2020-01-02,100\r\n"
        "\r\n"
        "not-a-date,5\r\n"
        "2020-01-03,null\r\n"
        "2020-01-06,inf\r\n"
        "2020-01-07\r\n"
        "2020-02-30,7\r\n"
        "13/13/2020,8\r\n"
        "2020-01-08,101.5\r\n"
    )
    df = parse_price_text(text)

    assert list(df["date"]) == ["2020-01-02", "2020-01-08"]
    assert list(df["value"]) == [100.0, 101.5]


def test_invalid_calendar_dates_do_not_reach_alignment(make_frame, make_csv):
    frame = make_frame(60)
    a_text = make_csv(frame, "asset_a") + "2020-02-30,100\n"
    b_text = make_csv(frame, "asset_b") + "2020-02-30,100\n"
    r_text = make_csv(frame, "rate", header="date,rate")

    aligned = prepare_market_data(a_text, b_text, r_text)

    assert len(aligned) == 60
    assert parse_price_text("date,close\n2020-02-30,1\n").empty


def test_duplicate_dates_keep_last_line():
    df = parse_price_text("date,close\n2020-01-02,1\n2020-01-01,5\n2020-01-02,2\n")

    assert df.to_dict("records") == [
        {"date": "2020-01-01", "value": 5.0},
        {"date": "2020-01-02", "value": 2.0},
    ]


def test_header_only_text_is_empty():
    assert parse_price_text("date,close").empty
    assert parse_price_text("").empty


def _alignment_inputs():
    asset_a = _series([("2020-01-01", 10), ("2020-01-02", 11), ("2020-01-06", -1), ("2020-01-08", 13)])
    asset_b = _series([("2020-01-01", 20), ("2020-01-02", 21), ("2020-01-03", 22), ("2020-01-06", 23), ("2020-01-07", 24), ("2020-01-08", 25)])
    rates = _series([("2019-12-31", 0.0), ("2020-01-02", 2.0), ("2020-01-04", 9.0), ("2020-01-07", 3.0)])
    leveraged = _series([("2020-01-02", 50.0)])
    return asset_a, asset_b, rates, leveraged


def test_align_series_forward_fills_rate_on_asset_calendar():
    asset_a, asset_b, rates, leveraged = _alignment_inputs()

    frame = align_series(asset_a, asset_b, rates, leveraged)

    assert [ts.strftime("%Y-%m-%d") for ts in frame.index] == ["2020-01-01", "2020-01-02", "2020-01-08"]
    assert frame["asset_a"].tolist() == [10.0, 11.0, 13.0]
    assert frame["asset_b"].tolist() == [20.0, 21.0, 25.0]
    # Seeded with the first positive rate; 2020-01-04 is not a candidate date.
    assert frame["rate"].tolist() == [2.0, 2.0, 3.0]
    assert math.isnan(frame["leveraged"].iloc[0])
    assert frame["leveraged"].iloc[1] == 50.0
    assert math.isnan(frame["leveraged"].iloc[2])


def test_align_series_is_symmetric_in_the_risky_assets():
    asset_a, asset_b, rates, _ = _alignment_inputs()

    forward = align_series(asset_a, asset_b, rates)
    swapped = align_series(asset_b, asset_a, rates)

    assert list(forward.index) == list(swapped.index)
    assert forward["asset_a"].tolist() == swapped["asset_b"].tolist()
    assert forward["asset_b"].tolist() == swapped["asset_a"].tolist()
    assert forward["rate"].tolist() == swapped["rate"].tolist()


def test_align_series_applies_inclusive_window():
    asset_a, asset_b, rates, _ = _alignment_inputs()

    frame = align_series(asset_a, asset_b, rates, start="2020-01-02", end="2020-01-08")

    assert [ts.strftime("%Y-%m-%d") for ts in frame.index] == ["2020-01-02", "2020-01-08"]


def test_align_series_without_positive_rate_starts_at_zero():
    asset_a, asset_b, _, _ = _alignment_inputs()

    frame = align_series(asset_a, asset_b, _series([("2020-01-08", 0.0)]))

    assert frame["rate"].tolist() == [0.0, 0.0, 0.0]


def test_prepare_market_data_rejects_empty_required_series(make_frame, make_csv):
    frame = make_frame(60)
    a_text = make_csv(frame, "asset_a")
    b_text = make_csv(frame, "asset_b")

    with pytest.raises(EmptySeriesError, match="Rate"):
        prepare_market_data(a_text, b_text, "date,rate\n")


def test_prepare_market_data_requires_fifty_rows(make_frame, make_csv):
    frame = make_frame(60)
    a_text = make_csv(frame, "asset_a")
    b_text = make_csv(frame, "asset_b")
    r_text = make_csv(frame, "rate", header="date,rate")

    aligned = prepare_market_data(a_text, b_text, r_text, "   ")
    assert len(aligned) == 60
    assert aligned["leveraged"].isna().all()

    with pytest.raises(InsufficientDataError):
        prepare_market_data(a_text, b_text, r_text, end=frame.index[48])

    assert len(prepare_market_data(a_text, b_text, r_text, end=frame.index[49])) == 50
