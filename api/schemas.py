from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class DashboardFiltersModel(BaseModel):
    scope: str = "Ontario"
    from_year: int = 2010
    to_year: int = 2024
    selected_year: int = 2023
    seasonality: bool = False
    forecast_horizon: int = Field(default=5, ge=1)
    growth_rate: Optional[float] = None
    show_forecast: bool = True
    clearance_delta_points: float = 3.0
    theft_percent_delta: float = -5.0


class SummaryViewModel(BaseModel):
    year: int
    total_incidents: int
    crime_rate_per_100k: float
    cleared_incidents: int
    percent_cleared: Optional[float] = None


class OntarioSummaryResponse(BaseModel):
    year: int
    summary: Optional[SummaryViewModel] = None


class TrendPoint(BaseModel):
    year: int
    crime_rate_per_100k: float
    total_incidents: int
    cleared_incidents: int


class TrendResponse(BaseModel):
    region: Optional[str] = None
    from_: int = Field(alias="from")
    to: int
    trend: List[TrendPoint]

    model_config = {"populate_by_name": True}


class RegionsListResponse(BaseModel):
    regions: List[str]
