"""
FastAPI service exposing the usage and cache audits as read-only JSON.

The config store is read through a TTL-cached ConfigStoreReader, so
repeated requests inside the validity window do not re-read ~/.claude.json.
The cache audit walks ~/.claude on every request.

Deployment: uvicorn app:app --host 127.0.0.1 --port 8203
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, HTTPException, Query

from analyzers import UsageAggregator, analysis_to_dict, permissions_to_dict, usage_to_dict
from cache_analyzer import CacheAnalyzer
from config_store import ConfigStoreReader
from errors import DirectoryNotFoundError, ReadError
from settings import PERMISSION_MIN_PROJECT_COUNT, TOP_N, AuditSettings, load_settings

logger = logging.getLogger("claude-usage-audit")

# ---------------------------------------------------------------------------
# Shared state (event loop only; routes touching it must be async)
# ---------------------------------------------------------------------------
_settings: AuditSettings | None = None
_reader: ConfigStoreReader | None = None


def get_settings() -> AuditSettings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def get_reader() -> ConfigStoreReader:
    global _reader
    if _reader is None:
        _reader = ConfigStoreReader.from_settings(get_settings())
    return _reader


def get_analyzer() -> CacheAnalyzer:
    return CacheAnalyzer.from_settings(get_settings())


def _store_unavailable(e: ReadError) -> HTTPException:
    logger.warning("Config store unavailable: %s", e)
    return HTTPException(status_code=503, detail=str(e))


# ---------------------------------------------------------------------------
# App lifecycle
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log where data is read from on startup."""
    audit_settings = get_settings()
    logger.info(
        "Serving audits for store %s and cache %s",
        audit_settings.config_store_path, audit_settings.claude_home,
    )
    yield


app = FastAPI(
    title="Claude Usage Audit",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/api/store/stats")
async def api_store_stats():
    """Project and integration counts for the config store."""
    try:
        stats = await get_reader().stats()
    except ReadError as e:
        raise _store_unavailable(e) from e
    return asdict(stats)


@app.get("/api/integrations")
async def api_integrations():
    """Every integration with its capabilities and projects."""
    try:
        integrations = await UsageAggregator(get_reader()).list_integrations()
    except ReadError as e:
        raise _store_unavailable(e) from e
    return [dict(asdict(i), usage_count=i.usage_count) for i in integrations]


@app.get("/api/integrations/discover")
async def api_discover(min_projects: int | None = Query(default=None, ge=1)):
    """Tools granted in at least min_projects projects."""
    if min_projects is None:
        min_projects = get_settings().min_project_count
    try:
        tools = await UsageAggregator(get_reader()).discover_frequent(min_projects)
    except ReadError as e:
        raise _store_unavailable(e) from e
    return usage_to_dict(tools)["tools"]


@app.get("/api/integrations/stats")
async def api_integration_stats():
    """Top integrations and top tools by usage."""
    aggregator = UsageAggregator(get_reader())
    try:
        stats = await aggregator.stats()
    except ReadError as e:
        raise _store_unavailable(e) from e
    return usage_to_dict([], stats)["stats"]


@app.get("/api/permissions/discover")
async def api_permissions_discover(
    min_projects: int = Query(default=PERMISSION_MIN_PROJECT_COUNT, ge=1),
    top_n: int = Query(default=TOP_N, ge=1),
):
    """Permission grants shared by at least min_projects projects."""
    try:
        permissions = await UsageAggregator(get_reader()).discover_permissions(min_projects, top_n)
    except ReadError as e:
        raise _store_unavailable(e) from e
    return permissions_to_dict(permissions)["permissions"]


@app.get("/api/cache")
async def api_cache(include_sessions: bool = Query(default=False)):
    """Storage audit of the cache directory with recommendations."""
    try:
        analysis = await get_analyzer().analyze()
    except DirectoryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return analysis_to_dict(analysis, include_sessions=include_sessions)


@app.get("/api/refresh")
async def api_refresh():
    """Drop the cached config-store snapshot."""
    get_reader().invalidate()
    return {"status": "invalidated"}
