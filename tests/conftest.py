"""Pytest configuration for repository test runs."""

from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import pytest

ENV_VARS = [
    "GOTHAM_SQL_URL",
    "FABRIC_SQL_SERVER",
    "FABRIC_SQL_DATABASE",
    "FABRIC_SQL_USER",
    "FABRIC_SQL_PASSWORD",
    "FRONTEND_ORIGIN",
    "PORT",
    "RATE_LIMIT_PER_MINUTE",
    "GOTHAM_GROWTH_RATE",
    "GOTHAM_SCENARIO_FLOOR",
    "GOTHAM_CLEARANCE_MULTIPLIER",
    "GOTHAM_SEASONALITY_OFFSET",
    "GOTHAM_SEASONALITY_PERIOD",
]


def pytest_sessionstart() -> None:
    """Add the project root to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Run every test against static fixtures and default settings."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    from core.data import get_data_source, load_service_config

    load_service_config.cache_clear()
    get_data_source.cache_clear()
    yield
    load_service_config.cache_clear()
    get_data_source.cache_clear()


def _make_series(rows: list[tuple]) -> pd.DataFrame:
    full = [r if len(r) == 4 else (r[0], r[1], 1000, 500) for r in rows]
    return pd.DataFrame(full, columns=["year", "rate", "incidents", "cleared"])


@pytest.fixture
def make_series():
    """Series frame from (year, rate[, incidents, cleared]) tuples."""
    return _make_series


@pytest.fixture
def decade_series() -> pd.DataFrame:
    """Contiguous 2010-2024 series with rates 1000, 1010, ..., 1140."""
    return _make_series([(2010 + i, 1000.0 + 10 * i) for i in range(15)])


@pytest.fixture
def short_series() -> pd.DataFrame:
    return _make_series([(2020, 1000.0), (2021, 1020.0), (2022, 1040.0)])
