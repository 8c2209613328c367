"""FastAPI application entrypoint for Aura."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from aura.libs.logging_utils import configure_logging

configure_logging()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette_exporter import PrometheusMiddleware, handle_metrics

from aura.apps.api.core.llm import set_router as set_llm_router
from aura.apps.api.routes.companion import router as companion_router
from aura.apps.api.routes.connectivity import router as connectivity_router
from aura.apps.api.routes.entries import router as entries_router
from aura.apps.api.routes.stats import router as stats_router
from aura.apps.api.services.journaling.pipeline import EntryProcessingError
from aura.apps.api.services.journaling.reconcile import ReconciliationError
from aura.apps.api.services.store import (
    EnrichmentUnavailableError,
    OfflineError,
    build_router,
    build_store,
)
from aura.libs.schemas import db
from aura.libs.schemas.settings import get_settings

LOGGER = logging.getLogger(__name__)
SETTINGS = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    if getattr(app.state, "store", None) is None:
        router = build_router(settings)
        set_llm_router(router)
        store = build_store(settings, router=router)
        await store.load()
        app.state.store = store
        LOGGER.info("[Store] ready for %s (online=%s)", store.user_id, store.online)
    try:
        yield
    finally:
        if settings.database_url:
            await db.close_pool()


app = FastAPI(title=f"{SETTINGS.app_name} API", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(PrometheusMiddleware, app_name="aura")
app.add_route("/metrics", handle_metrics)


def _error(status_code: int, error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "error": error, "detail": str(exc)})


@app.exception_handler(EntryProcessingError)
async def entry_processing_failed(request: Request, exc: EntryProcessingError) -> JSONResponse:
    return _error(502, "analysis_failed", exc)


@app.exception_handler(ReconciliationError)
async def reconciliation_rejected(request: Request, exc: ReconciliationError) -> JSONResponse:
    return _error(409, "reconciliation_rejected", exc)


@app.exception_handler(OfflineError)
async def offline(request: Request, exc: OfflineError) -> JSONResponse:
    return _error(409, "offline", exc)


@app.exception_handler(EnrichmentUnavailableError)
async def enrichment_unavailable(request: Request, exc: EnrichmentUnavailableError) -> JSONResponse:
    return _error(502, "enrichment_unavailable", exc)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(entries_router)
app.include_router(stats_router)
app.include_router(connectivity_router)
app.include_router(companion_router)
