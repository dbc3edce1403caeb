from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI

from limits_admission import __version__
from limits_admission.admission.engine import DecisionEngine
from limits_admission.api.routes import admission, health
from limits_admission.metrics import metrics_app
from limits_admission.policy.store import PolicyStore

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    store: PolicyStore | None = app.state.store
    logger.info(
        "app_started",
        app=app.title,
        generation=store.generation_number if store is not None else None,
    )
    yield
    logger.warning("shutting_down", app=app.title)


def create_app(engine: DecisionEngine, store: PolicyStore | None = None) -> FastAPI:
    """Admission webhook application (served over TLS)."""
    app = FastAPI(
        title="Resource Limits Admission",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.store = store

    app.include_router(admission.router, tags=["admission"])
    return app


def create_ops_app(engine: DecisionEngine, store: PolicyStore | None = None) -> FastAPI:
    """Operations application: health check and Prometheus metrics."""
    app = FastAPI(
        title="Resource Limits Admission Ops",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.engine = engine
    app.state.store = store

    app.include_router(health.router, tags=["health"])
    app.mount("/metrics", metrics_app())
    return app
