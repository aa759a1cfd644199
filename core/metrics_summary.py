from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import pandas as pd

from core.filters import DashboardFilters
from core.series import AnnualRecord, validate_series


@dataclass(frozen=True)
class SummaryView:
    year: int
    total_incidents: int
    crime_rate_per_100k: float
    cleared_incidents: int
    percent_cleared: Optional[float]


def summarize(record: AnnualRecord) -> SummaryView:
    percent_cleared = 100.0 * record.cleared / record.incidents if record.incidents > 0 else None
    return SummaryView(
        year=record.year,
        total_incidents=record.incidents,
        crime_rate_per_100k=record.rate,
        cleared_incidents=record.cleared,
        percent_cleared=percent_cleared,
    )


def resolve_year_record(series: pd.DataFrame, year: int) -> Optional[AnnualRecord]:
    """Exact-year lookup; None when the series has no record for `year`."""
    validate_series(series)
    hit = series[series["year"] == year]
    if hit.empty:
        return None
    return AnnualRecord.from_row(hit.iloc[0])


def compute_summary(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    series: pd.DataFrame = ctx["series"]
    record = resolve_year_record(series, filters.selected_year)
    summary = asdict(summarize(record)) if record is not None else None
    return {
        "filters": asdict(filters),
        "scope": filters.scope,
        "year": filters.selected_year,
        "summary": summary,
    }
