"""
FastAPI admin API for the scraping pipeline.

Run with: uvicorn police_tracker.main:app
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from police_tracker.config import load_config
from police_tracker.context import AppContext, build_context
from police_tracker.routes import register_routes
from police_tracker.service import ScrapingService

logger = logging.getLogger(__name__)


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """Build the API. A prebuilt ``context`` is used as-is and left open on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_context = context is None
        ctx = context or await build_context(load_config())
        app.state.context = ctx
        app.state.service = ScrapingService(ctx)
        logger.info("Scraping API started")

        yield

        await app.state.service.stop()
        if owns_context:
            await ctx.close()
        logger.info("Scraping API stopped")

    app = FastAPI(
        title="Police Tracker Scraping API",
        description="Admin API for automated incident scraping and review",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS for the admin dashboard in local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:8080", "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)

    @app.get("/api/health")
    async def health_check():
        ctx: AppContext = app.state.context
        return {"status": "ok", "running_sources": ctx.orchestrator.running_sources()}

    return app


app = create_app()
