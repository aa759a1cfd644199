from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from core.errors import NonFiniteInput, PipelineValidationError, UnknownScope, UnorderedSeries

SERIES_COLUMNS = ["year", "rate", "incidents", "cleared"]
NUMERIC_COLUMNS = ["rate", "incidents", "cleared"]


@dataclass(frozen=True)
class AnnualRecord:
    year: int
    rate: float
    incidents: int
    cleared: int

    @classmethod
    def from_row(cls, row: pd.Series) -> "AnnualRecord":
        return cls(
            year=int(row["year"]),
            rate=float(row["rate"]),
            incidents=int(row["incidents"]),
            cleared=int(row["cleared"]),
        )


def empty_series() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "year": pd.Series(dtype="int64"),
            "rate": pd.Series(dtype="float64"),
            "incidents": pd.Series(dtype="int64"),
            "cleared": pd.Series(dtype="int64"),
        }
    )


def records_to_frame(records: Iterable[AnnualRecord | dict]) -> pd.DataFrame:
    rows = [r if isinstance(r, dict) else asdict(r) for r in records]
    if not rows:
        return empty_series()
    df = pd.DataFrame(rows)
    missing = [c for c in SERIES_COLUMNS if c not in df.columns]
    if missing:
        raise PipelineValidationError(f"series is missing columns: {', '.join(missing)}")
    df = df[SERIES_COLUMNS].copy()
    df["rate"] = pd.to_numeric(df["rate"], errors="raise").astype("float64")
    return df.reset_index(drop=True)


def ensure_finite(name: str, value: object) -> float:
    """Coerce a scalar pipeline parameter to float, rejecting NaN/inf."""
    if isinstance(value, bool):
        raise NonFiniteInput(f"{name} must be a number")
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise NonFiniteInput(f"{name} must be a number, got {value!r}") from exc
    if math.isnan(out) or math.isinf(out):
        raise NonFiniteInput(f"{name} must be finite, got {out}")
    return out


def validate_series(df: pd.DataFrame) -> pd.DataFrame:
    """Check a series frame against the AnnualRecord/Series invariants.

    Returns the frame unchanged so callers can chain it. Empty frames are valid.
    """
    missing = [c for c in SERIES_COLUMNS if c not in df.columns]
    if missing:
        raise PipelineValidationError(f"series is missing columns: {', '.join(missing)}")
    if df.empty:
        return df

    numeric = df[SERIES_COLUMNS].apply(pd.to_numeric, errors="coerce").astype("float64")
    for col in SERIES_COLUMNS:
        if not np.isfinite(numeric[col].to_numpy()).all():
            raise NonFiniteInput(f"column {col!r} contains non-finite or non-numeric values")

    years = numeric["year"].to_numpy()
    if not (years == np.floor(years)).all():
        raise PipelineValidationError("years must be integers")
    if len(years) > 1 and not (np.diff(years) > 0).all():
        raise UnorderedSeries("series must be strictly increasing by year")

    if (numeric[NUMERIC_COLUMNS] < 0).any().any():
        raise PipelineValidationError("rate, incidents and cleared must be >= 0")
    if (numeric["cleared"] > numeric["incidents"]).any():
        raise PipelineValidationError("cleared incidents cannot exceed total incidents")
    return df


class SeriesStore:
    """Raw annual records keyed by scope ("Ontario" or a region name)."""

    def __init__(self, series_by_scope: Dict[str, pd.DataFrame]):
        self._series: Dict[str, pd.DataFrame] = {}
        for scope, df in series_by_scope.items():
            frame = validate_series(df[SERIES_COLUMNS].reset_index(drop=True).copy())
            self._series[scope] = frame

    def scopes(self) -> List[str]:
        return sorted(self._series)

    def series(self, scope: str) -> pd.DataFrame:
        if scope not in self._series:
            raise UnknownScope(scope)
        return self._series[scope].copy()

    def record(self, scope: str, year: int) -> Optional[AnnualRecord]:
        df = self.series(scope)
        hit = df[df["year"] == year]
        if hit.empty:
            return None
        return AnnualRecord.from_row(hit.iloc[0])

    def snapshot(self, year: int, scopes: Optional[Iterable[str]] = None) -> pd.DataFrame:
        """One row per scope holding `year`, with a `region` column."""
        rows = []
        for scope in scopes if scopes is not None else self.scopes():
            rec = self.record(scope, year)
            if rec is not None:
                rows.append({"region": scope, **asdict(rec)})
        if not rows:
            return pd.DataFrame(columns=["region", *SERIES_COLUMNS])
        return pd.DataFrame(rows)
