from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal, localcontext
from functools import lru_cache
from typing import Dict, List, Optional, Tuple

import pandas as pd
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from core.config import PROVINCE_SCOPE, PipelineSettings, ServiceConfig
from core.errors import UnknownScope
from core.filters import DashboardFilters, filter_series
from core.series import SERIES_COLUMNS, AnnualRecord, SeriesStore, records_to_frame, validate_series

logger = logging.getLogger(__name__)

ONTARIO_TABLE = "app_crime_annual_ontario"
REGION_TABLE = "app_crime_annual_region"

# warehouse column -> series column
SQL_COLUMNS = {
    "year": "year",
    "crime_rate_per_100k": "rate",
    "total_incidents": "incidents",
    "cleared_incidents": "cleared",
}

# (year, crime_rate_per_100k, total_incidents, cleared_incidents)
ONTARIO_FIXTURE: List[Tuple[int, float, int, int]] = [
    (2010, 5200.0, 128900, 81200),
    (2011, 5110.4, 127400, 80300),
    (2012, 5034.9, 126800, 79100),
    (2013, 4921.3, 125300, 78400),
    (2014, 4850.6, 124100, 77900),
    (2015, 4800.0, 123900, 77100),
    (2016, 4762.8, 124600, 77800),
    (2017, 4731.5, 125200, 78300),
    (2018, 4705.9, 126300, 79000),
    (2019, 4688.1, 127700, 79600),
    (2020, 4600.0, 119800, 74300),
    (2021, 4548.7, 120900, 75100),
    (2022, 4521.3, 122500, 76800),
    (2023, 4500.2, 123456, 78000),
    (2024, 4476.9, 124300, 78600),
]

# Region series are sparse on purpose: the warehouse only has census years for some CMAs.
REGION_FIXTURES: Dict[str, List[Tuple[int, float, int, int]]] = {
    "Toronto": [
        (2010, 5400.0, 214000, 122000),
        (2015, 5200.0, 207500, 119300),
        (2020, 5000.0, 196000, 112700),
        (2023, 5100.0, 200000, 118000),
        (2024, 4980.0, 198400, 117900),
    ],
    "Ottawa–Gatineau": [
        (2010, 4600.0, 53800, 33100),
        (2015, 4450.0, 52100, 32600),
        (2020, 4350.0, 49200, 30500),
        (2023, 4300.0, 50000, 31000),
        (2024, 4270.0, 50400, 31400),
    ],
    "Hamilton": [
        (2010, 5000.0, 36900, 22800),
        (2015, 4900.0, 36400, 22500),
        (2020, 4700.0, 35100, 21600),
        (2023, 4650.0, 35600, 22100),
    ],
    "London": [
        (2015, 5600.0, 28700, 16100),
        (2020, 5450.0, 28100, 15400),
        (2023, 5520.0, 29300, 16000),
    ],
    "Windsor": [
        (2015, 4950.0, 16800, 9800),
        (2020, 4820.0, 16300, 9500),
        (2023, 4890.0, 16900, 9900),
    ],
}


# Enough digits for any finite float64 (max ~1.8e308) quantized to ndigits places.
_DECIMAL_PREC = 330


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PREC + max(ndigits, 0)
        return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def _fixture_frame(rows: List[Tuple[int, float, int, int]]) -> pd.DataFrame:
    return records_to_frame(AnnualRecord(*row) for row in rows)


def fixture_store() -> SeriesStore:
    series = {PROVINCE_SCOPE: _fixture_frame(ONTARIO_FIXTURE)}
    series.update({region: _fixture_frame(rows) for region, rows in REGION_FIXTURES.items()})
    return SeriesStore(series)


class DataSource(ABC):
    """Supplies well-formed series; the pipeline never talks to storage directly."""

    name: str = "abstract"

    @abstractmethod
    def list_regions(self) -> List[str]:
        ...

    @abstractmethod
    def series(self, scope: str) -> pd.DataFrame:
        """Full series for a scope, ascending by year. Raises UnknownScope."""

    @abstractmethod
    def region_year(self, year: int) -> pd.DataFrame:
        """One row per region for `year`: region + series columns."""


class StaticFixtureSource(DataSource):
    name = "static"

    def __init__(self, store: Optional[SeriesStore] = None):
        self.store = store or fixture_store()

    def list_regions(self) -> List[str]:
        return [s for s in self.store.scopes() if s != PROVINCE_SCOPE]

    def series(self, scope: str) -> pd.DataFrame:
        return self.store.series(scope)

    def region_year(self, year: int) -> pd.DataFrame:
        return self.store.snapshot(year, self.list_regions())


class SqlQuerySource(DataSource):
    """Parameterized queries against the crime warehouse tables."""

    name = "sql"

    def __init__(self, engine: Engine):
        self.engine = engine

    def _read(self, sql: str, params: Optional[dict] = None) -> pd.DataFrame:
        with self.engine.connect() as conn:
            return pd.read_sql(text(sql), conn, params=params or {})

    def _to_series(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.rename(columns=SQL_COLUMNS)
        for col in SERIES_COLUMNS:
            df[col] = pd.to_numeric(df[col], errors="coerce")
        df["year"] = df["year"].astype("int64")
        return validate_series(df[SERIES_COLUMNS].reset_index(drop=True))

    def list_regions(self) -> List[str]:
        df = self._read(f"SELECT DISTINCT region FROM {REGION_TABLE} ORDER BY region")
        return [str(r) for r in df["region"].dropna().tolist()]

    def series(self, scope: str) -> pd.DataFrame:
        if scope == PROVINCE_SCOPE:
            df = self._read(
                f"""
                SELECT year, crime_rate_per_100k, total_incidents, cleared_incidents
                FROM {ONTARIO_TABLE}
                ORDER BY year
                """
            )
            return self._to_series(df)

        df = self._read(
            f"""
            SELECT year, crime_rate_per_100k, total_incidents, cleared_incidents
            FROM {REGION_TABLE}
            WHERE region = :region
            ORDER BY year
            """,
            {"region": scope},
        )
        if df.empty:
            raise UnknownScope(scope)
        return self._to_series(df)

    def region_year(self, year: int) -> pd.DataFrame:
        df = self._read(
            f"""
            SELECT region, year, crime_rate_per_100k, total_incidents, cleared_incidents
            FROM {REGION_TABLE}
            WHERE year = :year
            ORDER BY region
            """,
            {"year": int(year)},
        )
        df = df.rename(columns=SQL_COLUMNS)
        for col in SERIES_COLUMNS:
            df[col] = pd.to_numeric(df[col], errors="coerce")
        return df[["region", *SERIES_COLUMNS]].reset_index(drop=True)


def make_data_source(config: ServiceConfig) -> DataSource:
    if config.use_mock:
        logger.info("No SQL credentials configured, serving static fixtures")
        return StaticFixtureSource()
    logger.info("Using SQL data source")
    engine = create_engine(config.sql_url, pool_pre_ping=True, pool_recycle=1800)
    return SqlQuerySource(engine)


@lru_cache(maxsize=1)
def load_service_config() -> ServiceConfig:
    return ServiceConfig.from_env()


@lru_cache(maxsize=1)
def get_data_source() -> DataSource:
    return make_data_source(load_service_config())


def prepare_context(
    filters: DashboardFilters,
    source: DataSource,
    settings: Optional[PipelineSettings] = None,
) -> Dict[str, object]:
    settings = settings or PipelineSettings()
    series = source.series(filters.scope)
    filtered = filter_series(series, filters.year_range, filters.seasonality, settings)
    growth_rate = filters.growth_rate if filters.growth_rate is not None else settings.growth_rate
    return {
        "filters": filters,
        "settings": settings,
        "growth_rate": growth_rate,
        "series": series,
        "filtered_series": filtered,
    }
