"""Gotham backend configuration & constants."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy.engine import URL

from core.errors import ConfigError

# .env lives at the project root (one level up from core/)
_env_path = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(_env_path)

PROVINCE_SCOPE = "Ontario"
DEFAULT_YEAR = 2023
DEFAULT_FROM_YEAR = 2010
DEFAULT_TO_YEAR = 2024

MSSQL_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class PipelineSettings:
    """Tunable constants of the derived-analytics pipeline.

    growth_rate: year-over-year compound growth used by the forecast.
    scenario_floor: lowest rate the scenario simulation may report.
    clearance_multiplier: rate points removed per clearance percentage point.
    seasonality_offset / seasonality_period: placeholder adjustment that lowers
        the rate of every `period`-th filtered record by `offset`.
    """

    growth_rate: float = 0.02
    scenario_floor: int = 200
    clearance_multiplier: float = 2.0
    seasonality_offset: float = 10.0
    seasonality_period: int = 4

    def __post_init__(self) -> None:
        if self.seasonality_period < 1:
            raise ConfigError("seasonality_period must be >= 1")
        if self.growth_rate < -1:
            raise ConfigError("growth_rate must be >= -1")

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        return cls(
            growth_rate=_env_float("GOTHAM_GROWTH_RATE", 0.02),
            scenario_floor=_env_int("GOTHAM_SCENARIO_FLOOR", 200),
            clearance_multiplier=_env_float("GOTHAM_CLEARANCE_MULTIPLIER", 2.0),
            seasonality_offset=_env_float("GOTHAM_SEASONALITY_OFFSET", 10.0),
            seasonality_period=_env_int("GOTHAM_SEASONALITY_PERIOD", 4),
        )


@dataclass(frozen=True)
class ServiceConfig:
    sql_url: Optional[str] = None
    frontend_origin: str = "http://localhost:5173"
    port: int = 4000
    rate_limit_per_minute: int = 120
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)

    @property
    def use_mock(self) -> bool:
        return not self.sql_url

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        return cls(
            sql_url=_sql_url_from_env(),
            frontend_origin=os.environ.get("FRONTEND_ORIGIN", "http://localhost:5173"),
            port=_env_int("PORT", 4000),
            rate_limit_per_minute=_env_int("RATE_LIMIT_PER_MINUTE", 120),
            pipeline=PipelineSettings.from_env(),
        )


def _sql_url_from_env() -> Optional[str]:
    url = os.environ.get("GOTHAM_SQL_URL", "").strip()
    if url:
        return url
    server = os.environ.get("FABRIC_SQL_SERVER", "").strip()
    if not server:
        return None
    return URL.create(
        "mssql+pyodbc",
        username=os.environ.get("FABRIC_SQL_USER") or None,
        password=os.environ.get("FABRIC_SQL_PASSWORD") or None,
        host=server,
        database=os.environ.get("FABRIC_SQL_DATABASE") or None,
        query={"driver": MSSQL_ODBC_DRIVER, "Encrypt": "yes"},
    ).render_as_string(hide_password=False)
