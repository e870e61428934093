"""
FastAPI application entry point for the creative canvas relay.

Run with: uvicorn creative_canvas.app:app --port 3000
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from creative_canvas.config import get_settings
from creative_canvas.errors import RelayError, ValidationError
from creative_canvas.routes import router

logger = logging.getLogger(__name__)


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    logger.error(
        "Error in %s %s: %s (%s)", request.method, request.url.path, exc.message, exc.details
    )
    return JSONResponse(status_code=exc.status_code, content=exc.as_body())


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    error = ValidationError("Malformed request body", details=str(exc.errors()))
    return await relay_error_handler(request, error)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error in %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc)},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app = FastAPI(title="Creative Canvas Relay", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RelayError, relay_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
