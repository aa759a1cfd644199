from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import altair as alt
import numpy as np
import pandas as pd

from core.charts import to_vega_spec
from core.data import round_half_up
from core.errors import InvalidParameter, NonFiniteInput
from core.filters import DashboardFilters, as_horizon
from core.series import ensure_finite, validate_series

FORECAST_COLUMNS = ["year", "rate"]


def empty_forecast() -> pd.DataFrame:
    return pd.DataFrame({"year": pd.Series(dtype="int64"), "rate": pd.Series(dtype="int64")})


def forecast(filtered: pd.DataFrame, horizon: int, growth_rate: float) -> pd.DataFrame:
    """Project `horizon` points past the last record at compound `growth_rate`.

    The last record is taken by position, so `filtered` must be ascending by
    year (checked by validate_series). Each rate is computed in closed form,
    last_rate * (1 + growth_rate) ** k, then rounded half-up.
    """
    horizon = as_horizon(horizon)
    growth_rate = ensure_finite("growth_rate", growth_rate)
    if growth_rate < -1:
        raise InvalidParameter("growth_rate must be >= -1")
    validate_series(filtered)
    if filtered.empty:
        return empty_forecast()

    last = filtered.iloc[-1]
    last_year = int(last["year"])
    last_rate = float(last["rate"])

    steps = np.arange(1, horizon + 1)
    with np.errstate(over="ignore"):
        projected = last_rate * np.power(1.0 + growth_rate, steps)
    if not np.isfinite(projected).all():
        raise NonFiniteInput(f"forecast overflows: growth_rate={growth_rate} over {horizon} years")
    return pd.DataFrame(
        {
            "year": (last_year + steps).astype("int64"),
            "rate": [int(round_half_up(v)) for v in projected],
        }
    )


def _trend_chart(observed: pd.DataFrame, projected: pd.DataFrame) -> alt.LayerChart:
    obs = observed[["year", "rate"]].assign(series="Observed")
    frames = [obs]
    if not projected.empty:
        # Start the forecast line at the last observed point so the two lines join.
        bridge = obs.tail(1).assign(series="Forecast")
        frames.append(bridge)
        frames.append(projected.assign(series="Forecast"))
    long_df = pd.concat(frames, ignore_index=True)

    base = alt.Chart(long_df).encode(
        x=alt.X("year:O", title="Year", axis=alt.Axis(format="d", grid=False)),
        y=alt.Y("rate:Q", title="Crime rate per 100k", axis=alt.Axis(format=",.0f", gridDash=[4, 4], domain=False, ticks=False)),
        color=alt.Color("series:N", title=None, sort=["Observed", "Forecast"]),
    )
    line = base.mark_line().encode(
        strokeDash=alt.StrokeDash("series:N", sort=["Observed", "Forecast"], legend=None),
    )
    points = base.mark_point(filled=True, size=50).encode(
        tooltip=[
            alt.Tooltip("year:O", title="Year"),
            alt.Tooltip("series:N", title="Series"),
            alt.Tooltip("rate:Q", title="Rate", format=",.1f"),
        ],
    )
    return alt.layer(line, points).properties(height=260)


def compute_trends(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx["filtered_series"]
    if filters.show_forecast:
        projected = forecast(filtered, filters.forecast_horizon, ctx["growth_rate"])
    else:
        projected = empty_forecast()

    charts: Dict[str, Any] = {}
    if not filtered.empty:
        charts["rate_trend"] = to_vega_spec(_trend_chart(filtered, projected))

    return {
        "filters": asdict(filters),
        "growth_rate": ctx["growth_rate"],
        "trend": filtered.to_dict(orient="records"),
        "forecast": projected.to_dict(orient="records"),
        "charts": charts,
    }
