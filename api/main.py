from __future__ import annotations

import logging
import math
import time
from dataclasses import asdict
from typing import Any, Callable, Dict, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.schemas import DashboardFiltersModel, OntarioSummaryResponse, RegionsListResponse, TrendResponse
from core.config import DEFAULT_FROM_YEAR, DEFAULT_TO_YEAR, DEFAULT_YEAR, PROVINCE_SCOPE
from core.data import get_data_source, load_service_config, prepare_context
from core.errors import PipelineValidationError, UnknownScope
from core.filters import DashboardFilters, YearRange, filter_series, normalize_filters
from core.metrics_debug import compute_debug
from core.metrics_regions import compute_regions
from core.metrics_scenario import compute_scenario
from core.metrics_summary import compute_summary, resolve_year_record, summarize
from core.metrics_trends import compute_trends

app = FastAPI(title="Gotham Crime Dashboard API", version="0.2.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[load_service_config().frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Per-client request timestamps inside the current window
_rate_store: dict[str, list[float]] = {}
RATE_WINDOW = 60  # seconds
_RATE_EVICT_INTERVAL = 300  # sweep idle clients every 5 minutes
_last_rate_evict = 0.0


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    client_ip = request.client.host if request.client else "unknown"
    now = time.time()
    limit = load_service_config().rate_limit_per_minute

    global _last_rate_evict
    if now - _last_rate_evict > _RATE_EVICT_INTERVAL:
        stale_ips = [ip for ip, stamps in _rate_store.items() if not stamps or now - stamps[-1] > RATE_WINDOW * 2]
        for ip in stale_ips:
            del _rate_store[ip]
        _last_rate_evict = now

    timestamps = [t for t in _rate_store.get(client_ip, []) if now - t < RATE_WINDOW]
    if len(timestamps) >= limit:
        _rate_store[client_ip] = timestamps
        return JSONResponse(status_code=429, content={"error": "Too many requests, try again in a minute."})

    timestamps.append(now)
    _rate_store[client_ip] = timestamps
    return await call_next(request)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(status_code=404, content={"error": "Not found."})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
            },
        )
    )


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _unknown_scope(exc: UnknownScope) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": f"Unknown region: {exc.args[0]}", "type": "UnknownScope"})


def _trend_rows(df: pd.DataFrame) -> list[dict]:
    out = df.rename(
        columns={"rate": "crime_rate_per_100k", "incidents": "total_incidents", "cleared": "cleared_incidents"}
    )
    return out.to_dict(orient="records")


@app.get("/api/health")
def health():
    return {"ok": True, "source": get_data_source().name}


@app.get("/api/ontario/summary", response_model=OntarioSummaryResponse)
def ontario_summary(year: int = Query(default=DEFAULT_YEAR)):
    try:
        series = get_data_source().series(PROVINCE_SCOPE)
        record = resolve_year_record(series, year)
        summary = asdict(summarize(record)) if record is not None else None
        return {"year": year, "summary": summary}
    except PipelineValidationError as exc:
        return _error(400, exc)
    except Exception:
        logger.exception("ontario_summary failed")
        return JSONResponse(status_code=500, content={"error": "Failed to load Ontario summary."})


@app.get("/api/ontario/trend", response_model=TrendResponse)
def ontario_trend(
    from_year: int = Query(default=DEFAULT_FROM_YEAR, alias="from"),
    to_year: int = Query(default=DEFAULT_TO_YEAR, alias="to"),
):
    try:
        series = get_data_source().series(PROVINCE_SCOPE)
        trend = filter_series(series, YearRange(from_year, to_year))
        return {"from": from_year, "to": to_year, "trend": _trend_rows(trend)}
    except PipelineValidationError as exc:
        return _error(400, exc)
    except Exception:
        logger.exception("ontario_trend failed")
        return JSONResponse(status_code=500, content={"error": "Failed to load Ontario trend."})


@app.get("/api/regions/list", response_model=RegionsListResponse)
def regions_list():
    try:
        return {"regions": get_data_source().list_regions()}
    except Exception:
        logger.exception("regions_list failed")
        return JSONResponse(status_code=500, content={"error": "Failed to load regions list."})


@app.get("/api/regions/crime")
def regions_crime(year: int = Query(default=DEFAULT_YEAR)):
    try:
        snapshot = get_data_source().region_year(year)
        return _json(compute_regions(year, snapshot))
    except PipelineValidationError as exc:
        return _error(400, exc)
    except Exception:
        logger.exception("regions_crime failed")
        return JSONResponse(status_code=500, content={"error": "Failed to load regions crime data."})


@app.get("/api/regions/trend", response_model=TrendResponse)
def regions_trend(
    region: Optional[str] = Query(default=None),
    from_year: int = Query(default=DEFAULT_FROM_YEAR, alias="from"),
    to_year: int = Query(default=DEFAULT_TO_YEAR, alias="to"),
):
    if not region:
        raise HTTPException(status_code=400, detail="region query parameter is required.")
    try:
        series = get_data_source().series(region)
        trend = filter_series(series, YearRange(from_year, to_year))
        return {"region": region, "from": from_year, "to": to_year, "trend": _trend_rows(trend)}
    except UnknownScope as exc:
        return _unknown_scope(exc)
    except PipelineValidationError as exc:
        return _error(400, exc)
    except Exception:
        logger.exception("regions_trend failed")
        return JSONResponse(status_code=500, content={"error": "Failed to load region trend."})


def _dashboard(
    name: str,
    model: DashboardFiltersModel,
    compute: Callable[[DashboardFilters, Dict[str, Any]], Dict[str, Any]],
) -> JSONResponse:
    try:
        f = normalize_filters(model.model_dump())
        ctx = prepare_context(f, get_data_source(), load_service_config().pipeline)
        return _json(compute(f, ctx))
    except UnknownScope as exc:
        return _unknown_scope(exc)
    except PipelineValidationError as exc:
        return _error(400, exc)
    except Exception as exc:
        logger.exception("%s failed", name)
        return _error(500, exc)


@app.post("/api/dashboard/summary")
def dashboard_summary(filters: DashboardFiltersModel):
    return _dashboard("dashboard_summary", filters, compute_summary)


@app.post("/api/dashboard/trends")
def dashboard_trends(filters: DashboardFiltersModel):
    return _dashboard("dashboard_trends", filters, compute_trends)


@app.post("/api/dashboard/scenario")
def dashboard_scenario(filters: DashboardFiltersModel):
    return _dashboard("dashboard_scenario", filters, compute_scenario)


@app.post("/api/dashboard/debug")
def dashboard_debug(filters: DashboardFiltersModel):
    return _dashboard("dashboard_debug", filters, compute_debug)


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host="0.0.0.0", port=load_service_config().port)
