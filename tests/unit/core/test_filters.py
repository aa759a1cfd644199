"""Unit tests for the year-range filter and filter normalization."""

from __future__ import annotations

import pandas as pd
import pytest

from core.config import PipelineSettings
from core.errors import InvalidParameter, InvalidRange, NonFiniteInput, UnorderedSeries
from core.filters import DashboardFilters, YearRange, filter_series, normalize_filters
from core.series import empty_series


def test_filter_returns_requested_years_in_order(decade_series: pd.DataFrame) -> None:
    """2010-2024 filtered to 2020-2024 keeps exactly those five records."""
    out = filter_series(decade_series, YearRange(2020, 2024), False)

    assert out["year"].tolist() == [2020, 2021, 2022, 2023, 2024]
    assert out["rate"].tolist() == [1100.0, 1110.0, 1120.0, 1130.0, 1140.0]


@pytest.mark.parametrize("lo,hi", [(2010, 2010), (2005, 2012), (2013, 2030), (2000, 2100)])
def test_filter_keeps_only_years_inside_range(decade_series: pd.DataFrame, lo: int, hi: int) -> None:
    """Every surviving year is inside the inclusive range and order is kept."""
    out = filter_series(decade_series, YearRange(lo, hi))

    assert out["year"].between(lo, hi).all()
    assert out["year"].is_monotonic_increasing
    expected = [y for y in decade_series["year"] if lo <= y <= hi]
    assert out["year"].tolist() == expected


def test_filter_does_not_mutate_input(decade_series: pd.DataFrame) -> None:
    """Seasonality adjusts a copy, never the caller's frame."""
    before = decade_series.copy()

    filter_series(decade_series, YearRange(2010, 2024), True)

    pd.testing.assert_frame_equal(decade_series, before)


def test_seasonality_changes_rate_at_every_fourth_position(decade_series: pd.DataFrame) -> None:
    """Same years either way; only positions 0, 4, 8 lose 10 rate units."""
    plain = filter_series(decade_series, YearRange(2012, 2022), False)
    adjusted = filter_series(decade_series, YearRange(2012, 2022), True)

    assert adjusted["year"].tolist() == plain["year"].tolist()
    diff = (plain["rate"] - adjusted["rate"]).tolist()
    assert diff == [10.0 if i % 4 == 0 else 0.0 for i in range(len(plain))]
    pd.testing.assert_series_equal(adjusted["incidents"], plain["incidents"])


def test_seasonality_uses_configured_period_and_offset(decade_series: pd.DataFrame) -> None:
    """Period and offset come from PipelineSettings."""
    settings = PipelineSettings(seasonality_offset=25.0, seasonality_period=2)

    out = filter_series(decade_series, YearRange(2010, 2013), True, settings)

    assert out["rate"].tolist() == [975.0, 1010.0, 995.0, 1030.0]


def test_seasonality_floors_rate_at_zero(make_series) -> None:
    """Adjusted rates never drop below zero."""
    out = filter_series(make_series([(2020, 4.0)]), YearRange(2020, 2020), True)

    assert out["rate"].tolist() == [0.0]


def test_filter_empty_input_and_empty_intersection(decade_series: pd.DataFrame) -> None:
    """No overlap or no data yields an empty series, not an error."""
    assert filter_series(empty_series(), YearRange(2020, 2024), True).empty
    out = filter_series(decade_series, YearRange(1990, 1999), True)
    assert out.empty
    assert list(out.columns) == ["year", "rate", "incidents", "cleared"]


def test_year_range_rejects_reversed_bounds() -> None:
    """from > to is rejected rather than swapped."""
    with pytest.raises(InvalidRange):
        YearRange(2024, 2020)


def test_year_range_rejects_non_integer_years() -> None:
    """Years must be integers."""
    with pytest.raises(InvalidRange):
        YearRange(2020.5, 2024)  # type: ignore[arg-type]


def test_filter_rejects_unordered_series(make_series) -> None:
    """Unordered input fails before filtering."""
    with pytest.raises(UnorderedSeries):
        filter_series(make_series([(2022, 1.0), (2021, 2.0)]), YearRange(2000, 2030))


def test_normalize_filters_defaults() -> None:
    """An empty request gets dashboard defaults."""
    assert normalize_filters({}) == DashboardFilters()


def test_normalize_filters_coerces_values() -> None:
    """String years and numeric strings are accepted."""
    f = normalize_filters(
        {
            "scope": " Toronto ",
            "from_year": "2015",
            "to_year": 2020.0,
            "forecast_horizon": "10",
            "seasonality": True,
            "growth_rate": "0.05",
        }
    )

    assert f.scope == "Toronto"
    assert f.year_range == YearRange(2015, 2020)
    assert f.forecast_horizon == 10
    assert f.seasonality is True
    assert f.growth_rate == 0.05


@pytest.mark.parametrize(
    "raw,error",
    [
        ({"from_year": 2024, "to_year": 2020}, InvalidRange),
        ({"from_year": "twenty"}, InvalidRange),
        ({"to_year": 2020.5}, InvalidRange),
        ({"forecast_horizon": 0}, InvalidParameter),
        ({"forecast_horizon": 2.5}, InvalidParameter),
        ({"growth_rate": -1.5}, InvalidParameter),
        ({"growth_rate": float("inf")}, NonFiniteInput),
        ({"clearance_delta_points": float("nan")}, NonFiniteInput),
        ({"theft_percent_delta": "lots"}, NonFiniteInput),
    ],
)
def test_normalize_filters_rejects_malformed_input(raw: dict, error: type) -> None:
    """Malformed values raise a single typed validation error."""
    with pytest.raises(error):
        normalize_filters(raw)
