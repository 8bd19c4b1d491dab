"""
FastAPI application entrypoint for the trading summary service.
"""

from __future__ import annotations

from fastapi import FastAPI

from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level, debug_model_io=settings.model.debug_responses)

    app = FastAPI(
        title="Trading Summary Service",
        version="0.1.0",
        description="REST API for AI-generated trade and period summaries.",
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
