"""
syntora.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn syntora.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from syntora.api.deps import get_config, get_service  # noqa: E402
from syntora.api.routes.achievements import router as achievements_router  # noqa: E402
from syntora.api.routes.analytics import router as analytics_router  # noqa: E402
from syntora.api.routes.gaming import router as gaming_router  # noqa: E402
from syntora.api.routes.tasks import router as tasks_router  # noqa: E402
from syntora.scheduler import start_scheduler, stop_scheduler  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Dashboard origins allowed by CORS.

    ``CORS_ALLOW_ORIGINS`` (comma-separated) wins over ``FRONTEND_URL``;
    with neither set, cross-origin requests are refused.
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip() or os.getenv("FRONTEND_URL", "").strip()
    return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: warm the engine, optionally start the scheduler."""
    cfg = get_config()
    service = get_service()
    scheduler = start_scheduler(service) if cfg.scheduler_enabled else None
    logger.info("%s API started, engine ready (%s)", cfg.app_name, service.engine.url.database)
    yield
    if scheduler is not None:
        stop_scheduler(scheduler)
    logger.info("%s API shutting down", cfg.app_name)


app = FastAPI(
    title="Syntora Gamification API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(gaming_router, prefix="/api")
app.include_router(analytics_router, prefix="/api")
app.include_router(achievements_router, prefix="/api")
app.include_router(tasks_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
