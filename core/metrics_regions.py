from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import altair as alt
import pandas as pd

from core.charts import to_vega_spec
from core.metrics_summary import summarize
from core.series import AnnualRecord


def rank_regions(snapshot: pd.DataFrame) -> pd.DataFrame:
    """KPI rows for one year across regions, highest crime rate first."""
    columns = ["rank", "region", "year", "crime_rate_per_100k", "total_incidents", "cleared_incidents", "percent_cleared"]
    if snapshot.empty:
        return pd.DataFrame(columns=columns)

    rows = []
    for _, row in snapshot.iterrows():
        view = summarize(AnnualRecord.from_row(row))
        rows.append({"region": str(row["region"]), **asdict(view)})
    ranked = (
        pd.DataFrame(rows)
        .sort_values(["crime_rate_per_100k", "region"], ascending=[False, True])
        .reset_index(drop=True)
    )
    ranked.insert(0, "rank", ranked.index + 1)
    return ranked[columns]


def compute_regions(year: int, snapshot: pd.DataFrame) -> Dict[str, Any]:
    ranked = rank_regions(snapshot)

    charts: Dict[str, Any] = {}
    if not ranked.empty:
        hover = alt.selection_point(fields=["region"], on="mouseover", empty="all")
        bar = (
            alt.Chart(ranked)
            .mark_bar()
            .encode(
                x=alt.X("crime_rate_per_100k:Q", title="Crime rate per 100k", axis=alt.Axis(format=",.0f", gridDash=[4, 4])),
                y=alt.Y("region:N", title=None, sort="-x"),
                opacity=alt.condition(hover, alt.value(1), alt.value(0.6)),
                tooltip=[
                    alt.Tooltip("region:N", title="Region"),
                    alt.Tooltip("crime_rate_per_100k:Q", title="Rate", format=",.1f"),
                    alt.Tooltip("total_incidents:Q", title="Incidents", format=","),
                    alt.Tooltip("percent_cleared:Q", title="Cleared %", format=".1f"),
                ],
            )
            .add_params(hover)
        )
        charts["rate_by_region"] = to_vega_spec(bar)

    return {
        "year": int(year),
        "regions": ranked.to_dict(orient="records"),
        "charts": charts,
    }
