"""
Route registration for the scraping admin API.
"""

from fastapi import FastAPI

from police_tracker.routes import scraping


def register_routes(app: FastAPI) -> None:
    """Register all route modules with the FastAPI app."""
    app.include_router(scraping.router)
