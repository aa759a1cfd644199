"""Core (UI-agnostic) crime dashboard logic.

This package contains:
- configuration (env / .env -> ServiceConfig, PipelineSettings)
- the series store and data sources (static fixtures or SQL)
- the derived-analytics stages: filter, summarize, forecast, simulate
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
