"""
FastAPI application entry point.
Configures routes, middleware, and error rendering.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from delivery.api import verify_router
from delivery.config import settings
from delivery.errors import DeliveryError, InternalError
from delivery.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifecycle manager."""
    configure_logging()
    logger.info(f"Starting {settings.app_name} ({settings.app_env})")
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="PayPal Delivery",
    description="Verifies PayPal orders and releases their download links",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)


def _cors_headers() -> dict:
    return {"Access-Control-Allow-Origin": settings.allowed_origin}


@app.exception_handler(DeliveryError)
async def delivery_error_handler(request: Request, exc: DeliveryError):
    context = {"reason": exc.reason, "path": request.url.path, "status": exc.status_code}
    if exc.status_code >= 500:
        logger.error(f"{exc.reason}: {exc.message}", extra={"context": context})
    else:
        logger.warning(f"{exc.reason}: {exc.message}", extra={"context": context})
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=_cors_headers(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # 404 for unknown paths, 405 for GET/PUT/... on the verify route
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "reason": "http_error"},
        headers={**(exc.headers or {}), **_cors_headers()},
    )


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    error = InternalError(
        "Payment verification failed: internal_server_error",
        details={"message": str(exc)},
    )
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_dict(),
        headers=_cors_headers(),
    )


@app.middleware("http")
async def convert_unexpected_errors(request: Request, call_next):
    """
    Turn anything the handlers did not catch into an InternalError response,
    so it still goes out with the CORS header.
    """
    try:
        response = await call_next(request)
    except Exception as exc:
        return await global_exception_handler(request, exc)
    response.headers.setdefault("Access-Control-Allow-Origin", settings.allowed_origin)
    return response


# CORS middleware (answers OPTIONS preflight)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.allowed_origin],
    allow_credentials=False,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["*"],
)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "env": settings.app_env,
    }


app.include_router(verify_router, tags=["verify"])
