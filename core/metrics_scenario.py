from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional

import pandas as pd

from core.config import PipelineSettings
from core.data import round_half_up
from core.filters import DashboardFilters
from core.series import ensure_finite, validate_series


def simulate(
    filtered: pd.DataFrame,
    clearance_delta_points: float,
    theft_percent_delta: float,
    settings: Optional[PipelineSettings] = None,
) -> int:
    """Hypothetical current crime rate under the scenario deltas.

    base = last observed rate (0 for an empty series)
    result = max(floor, round_half_up(base + base * theft% / 100 - clearance_pts * multiplier))
    """
    settings = settings or PipelineSettings()
    clearance_delta_points = ensure_finite("clearance_delta_points", clearance_delta_points)
    theft_percent_delta = ensure_finite("theft_percent_delta", theft_percent_delta)
    validate_series(filtered)

    base = float(filtered["rate"].iloc[-1]) if not filtered.empty else 0.0
    adjustment = base * (theft_percent_delta / 100) - clearance_delta_points * settings.clearance_multiplier
    # finite deltas can still overflow
    value = ensure_finite("simulated rate", base + adjustment)
    return int(max(settings.scenario_floor, round_half_up(value)))


def compute_scenario(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx["filtered_series"]
    settings: PipelineSettings = ctx["settings"]
    simulated = simulate(filtered, filters.clearance_delta_points, filters.theft_percent_delta, settings)
    baseline = float(filtered["rate"].iloc[-1]) if not filtered.empty else None
    return {
        "filters": asdict(filters),
        "baseline_year": int(filtered["year"].iloc[-1]) if not filtered.empty else None,
        "baseline_rate": baseline,
        "simulated_rate": simulated,
        "delta": (simulated - baseline) if baseline is not None else None,
        "floor": settings.scenario_floor,
    }
