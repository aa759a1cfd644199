from __future__ import annotations

import math
from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from core.filters import DashboardFilters
from core.metrics_scenario import simulate
from core.metrics_trends import forecast


def compute_debug(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    series: pd.DataFrame = ctx["series"]
    filtered: pd.DataFrame = ctx["filtered_series"]
    settings = ctx["settings"]

    projected = forecast(filtered, filters.forecast_horizon, ctx["growth_rate"])
    simulated = simulate(filtered, filters.clearance_delta_points, filters.theft_percent_delta, settings)

    checks = [
        {
            "name": "forecast length matches horizon when data exists",
            "pass": (filtered.empty and projected.empty)
            or (not filtered.empty and len(projected) == filters.forecast_horizon),
        },
        {
            "name": "filtered years within range",
            "pass": bool(filtered["year"].between(filters.year_range.from_year, filters.year_range.to_year).all()),
        },
        {
            "name": "simulated rate is finite and at or above the floor",
            "pass": math.isfinite(simulated) and simulated >= settings.scenario_floor,
        },
    ]

    payload = {
        "filters": asdict(filters),
        "settings": asdict(settings),
        "row_counts": {
            "series_rows": int(len(series)),
            "filtered_rows": int(len(filtered)),
            "forecast_rows": int(len(projected)),
        },
        "year_coverage": {},
        "checks": checks,
        "all_passed": all(c["pass"] for c in checks),
    }
    if not series.empty:
        years = series["year"].astype(int)
        expected = set(range(int(years.min()), int(years.max()) + 1))
        payload["year_coverage"] = {
            "min": int(years.min()),
            "max": int(years.max()),
            "years_present": int(years.nunique()),
            "missing_years": sorted(expected - set(years.tolist())),
        }
    return payload
