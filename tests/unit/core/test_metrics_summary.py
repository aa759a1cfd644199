"""Unit tests for the KPI summary stage."""

from __future__ import annotations

import pytest

from core.data import StaticFixtureSource, prepare_context
from core.filters import DashboardFilters
from core.metrics_summary import SummaryView, compute_summary, resolve_year_record, summarize
from core.series import AnnualRecord


def test_summarize_computes_percent_cleared() -> None:
    """percent_cleared is 100 * cleared / incidents."""
    view = summarize(AnnualRecord(year=2023, rate=4500.2, incidents=123456, cleared=78000))

    assert view == SummaryView(
        year=2023,
        total_incidents=123456,
        crime_rate_per_100k=4500.2,
        cleared_incidents=78000,
        percent_cleared=pytest.approx(63.18056, rel=1e-6),
    )


def test_summarize_zero_incidents_gives_none() -> None:
    """Division by zero is guarded with None, not NaN or an exception."""
    view = summarize(AnnualRecord(year=2023, rate=0.0, incidents=0, cleared=0))

    assert view.percent_cleared is None


def test_resolve_year_record_exact_match_only(make_series) -> None:
    """Missing years resolve to None instead of a neighbouring year."""
    series = make_series([(2010, 5.0), (2015, 4.0)])

    assert resolve_year_record(series, 2015) == AnnualRecord(2015, 4.0, 1000, 500)
    assert resolve_year_record(series, 2012) is None


def test_compute_summary_for_fixture_year() -> None:
    """The 2023 Ontario fixture row becomes the summary payload."""
    filters = DashboardFilters(selected_year=2023)
    payload = compute_summary(filters, prepare_context(filters, StaticFixtureSource()))

    assert payload["year"] == 2023
    assert payload["summary"]["total_incidents"] == 123456
    assert payload["summary"]["cleared_incidents"] == 78000
    assert payload["summary"]["crime_rate_per_100k"] == 4500.2


def test_compute_summary_missing_year_is_null() -> None:
    """A year outside the data returns summary None."""
    filters = DashboardFilters(selected_year=1999)
    payload = compute_summary(filters, prepare_context(filters, StaticFixtureSource()))

    assert payload["summary"] is None
