from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import pandas as pd

from core.config import DEFAULT_FROM_YEAR, DEFAULT_TO_YEAR, DEFAULT_YEAR, PROVINCE_SCOPE, PipelineSettings
from core.errors import InvalidParameter, InvalidRange
from core.series import ensure_finite, validate_series


@dataclass(frozen=True)
class YearRange:
    from_year: int
    to_year: int

    def __post_init__(self) -> None:
        for name in ("from_year", "to_year"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise InvalidRange(f"{name} must be an integer year, got {value!r}")
        if self.from_year > self.to_year:
            raise InvalidRange(f"from ({self.from_year}) must not be after to ({self.to_year})")

    def contains(self, year: int) -> bool:
        return self.from_year <= year <= self.to_year


@dataclass(frozen=True)
class DashboardFilters:
    scope: str = PROVINCE_SCOPE
    year_range: YearRange = field(default_factory=lambda: YearRange(DEFAULT_FROM_YEAR, DEFAULT_TO_YEAR))
    selected_year: int = DEFAULT_YEAR
    seasonality: bool = False
    forecast_horizon: int = 5
    growth_rate: Optional[float] = None
    show_forecast: bool = True
    clearance_delta_points: float = 3.0
    theft_percent_delta: float = -5.0


def _as_year(name: str, value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise InvalidRange(f"{name} must be an integer year, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidRange(f"{name} must be an integer year, got {value!r}")
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidRange(f"{name} must be an integer year, got {value!r}") from exc


def as_horizon(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidParameter("forecast_horizon must be a positive integer")
    try:
        horizon = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidParameter(f"forecast_horizon must be a positive integer, got {value!r}") from exc
    if horizon != value and not isinstance(value, str):
        raise InvalidParameter(f"forecast_horizon must be a positive integer, got {value!r}")
    if horizon < 1:
        raise InvalidParameter(f"forecast_horizon must be a positive integer, got {value!r}")
    return horizon


def normalize_filters(raw: dict) -> DashboardFilters:
    """Build DashboardFilters from a raw request dict.

    Missing keys take dashboard defaults; malformed values raise a
    PipelineValidationError subclass instead of being silently dropped.
    """
    scope = (raw.get("scope") or PROVINCE_SCOPE).strip() or PROVINCE_SCOPE

    year_range = YearRange(
        _as_year("from_year", raw.get("from_year"), DEFAULT_FROM_YEAR),
        _as_year("to_year", raw.get("to_year"), DEFAULT_TO_YEAR),
    )
    selected_year = _as_year("selected_year", raw.get("selected_year"), DEFAULT_YEAR)

    growth_rate = raw.get("growth_rate")
    if growth_rate is not None:
        growth_rate = ensure_finite("growth_rate", growth_rate)
        if growth_rate < -1:
            raise InvalidParameter("growth_rate must be >= -1")

    return DashboardFilters(
        scope=scope,
        year_range=year_range,
        selected_year=selected_year,
        seasonality=bool(raw.get("seasonality", False)),
        forecast_horizon=as_horizon(raw.get("forecast_horizon", 5)),
        growth_rate=growth_rate,
        show_forecast=bool(raw.get("show_forecast", True)),
        clearance_delta_points=ensure_finite("clearance_delta_points", raw.get("clearance_delta_points", 3.0)),
        theft_percent_delta=ensure_finite("theft_percent_delta", raw.get("theft_percent_delta", -5.0)),
    )


def filter_series(
    series: pd.DataFrame,
    year_range: YearRange,
    seasonality_on: bool = False,
    settings: Optional[PipelineSettings] = None,
) -> pd.DataFrame:
    """Keep records with from_year <= year <= to_year, preserving order.

    With seasonality on, every `seasonality_period`-th record of the filtered
    sequence (positions 0, period, 2*period, ...) has its rate lowered by
    `seasonality_offset`, floored at 0. This is a placeholder detrending rule,
    not a seasonal decomposition.
    """
    settings = settings or PipelineSettings()
    validate_series(series)

    mask = (series["year"] >= year_range.from_year) & (series["year"] <= year_range.to_year)
    out = series[mask].copy().reset_index(drop=True)
    if out.empty or not seasonality_on:
        return out

    positions = np.arange(len(out))
    hit = positions % settings.seasonality_period == 0
    adjusted = out["rate"].astype("float64").to_numpy() - np.where(hit, settings.seasonality_offset, 0.0)
    out["rate"] = np.clip(adjusted, 0.0, None)
    return out
