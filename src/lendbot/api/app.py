"""FastAPI application factory for the JSON API."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lendbot.api import routes
from lendbot.exceptions import InvalidAddress, NoMatchingReserve, ProviderUnavailable


async def _invalid_address_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def _no_matching_reserve_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": f"Data not available: {exc}"})


async def _provider_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": str(exc)})


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the API application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to start and stop the scheduler.

    Returns:
        Configured FastAPI application. Route handlers read their
        collaborators (stores, scheduler, pipelines) from ``app.state``.
    """
    app = FastAPI(title="Lending Reserve Monitor", lifespan=lifespan)

    app.add_exception_handler(InvalidAddress, _invalid_address_handler)
    app.add_exception_handler(NoMatchingReserve, _no_matching_reserve_handler)
    app.add_exception_handler(ProviderUnavailable, _provider_unavailable_handler)

    app.include_router(routes.router, prefix="/api")
    return app
