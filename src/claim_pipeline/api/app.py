"""FastAPI application factory.

``create_app`` builds a fully configured ``FastAPI`` instance with:

* CORS middleware
* Request-logging / exception-handling middleware
* Claim intake and lookup routes
* Lifespan manager that starts the channel consumers on startup and stops
  them on shutdown
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from claim_pipeline import __version__
from claim_pipeline.api.middleware import (
    ExceptionHandlerMiddleware,
    RequestLoggingMiddleware,
    register_exception_handlers,
)
from claim_pipeline.api.routes.claims import router as claims_router
from claim_pipeline.logging.setup import setup_logging
from claim_pipeline.pipelines.factory import Pipeline, create_pipeline

if TYPE_CHECKING:
    from omegaconf import DictConfig


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle for the FastAPI application."""
    pipeline: Pipeline = app.state.pipeline

    # ── Startup: begin consuming the intake channels ─────────────────────
    pipeline.start()
    logger.info("Application startup complete")
    yield
    logger.info("Application shutting down")
    pipeline.stop()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_app(cfg: DictConfig, pipeline: Optional[Pipeline] = None) -> FastAPI:
    """Build and return a fully configured :class:`FastAPI` application.

    Parameters
    ----------
    cfg:
        The merged Hydra configuration.
    pipeline:
        Pre-wired pipeline; built from *cfg* when omitted.

    Returns
    -------
    FastAPI
        Ready-to-run application instance.
    """
    # ── Logging ──────────────────────────────────────────────────────────
    setup_logging(cfg.logging)

    # ── App ──────────────────────────────────────────────────────────────
    app = FastAPI(
        title="Claim Processing Pipeline",
        description="Insurance claim intake, assessment and event fan-out",
        version=__version__,
        lifespan=_lifespan,
    )
    app.state.cfg = cfg

    # ── Pipeline ─────────────────────────────────────────────────────────
    app.state.pipeline = pipeline or create_pipeline(cfg)

    # ── CORS ─────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.server.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Custom middleware (outermost = first to run) ─────────────────────
    app.add_middleware(ExceptionHandlerMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)

    # ── Routes ───────────────────────────────────────────────────────────
    app.include_router(claims_router, prefix="/api/v1")

    return app
