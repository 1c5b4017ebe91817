"""
Order Pricing & Lifecycle API - Main Application.

FastAPI application with CORS enabled for frontend communication.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import __version__
from api.dependencies import Container, build_container
from config.settings import load_settings
from domain.errors import (
    CommerceError,
    ConflictError,
    CouponInvalidError,
    InsufficientStockError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    PriceUnavailableError,
)

logger = logging.getLogger(__name__)

# Most specific first; InvalidInputError also subclasses ValueError.
ERROR_STATUS_CODES = (
    (InvalidInputError, 400),
    (CouponInvalidError, 400),
    (InsufficientStockError, 400),
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (ConflictError, 409),
    (PriceUnavailableError, 422),
)


def status_code_for(error: CommerceError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


async def commerce_error_handler(request: Request, exc: CommerceError) -> JSONResponse:
    status_code = status_code_for(exc)
    body = {"code": exc.code, "message": exc.message}
    reason = getattr(exc, "reason", None)
    if reason is not None:
        body["reason"] = reason.value
    if status_code >= 500:
        logger.error("Unmapped engine error", extra={"code": exc.code, "path": request.url.path})
    return JSONResponse(status_code=status_code, content=body)


def create_app(container: Optional[Container] = None) -> FastAPI:
    """
    Build the application.

    Tests pass a pre-built container; otherwise settings are read from the
    environment (and `.env`).
    """
    if container is None:
        container = build_container(load_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        container.start()
        yield
        await container.stop()

    app = FastAPI(
        title="Order Pricing & Lifecycle API",
        description="Cart pricing, checkout and order lifecycle for the storefront",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.container = container

    # Configure CORS - Allow all origins for development
    # TODO: Restrict origins to the storefront and admin hosts in production
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(CommerceError, commerce_error_handler)

    @app.get("/health", tags=["Health"])
    def health_check():
        """
        Health check endpoint.

        Returns the API status and version.
        """
        return {
            "status": "healthy",
            "version": __version__,
            "service": "order-pricing-api",
            "backend": container.settings.data_backend,
        }

    # Import and include routers
    from api.routers import cart, orders, webhooks

    app.include_router(cart.router, prefix="/api/v1", tags=["Cart"])
    app.include_router(orders.router, prefix="/api/v1", tags=["Orders"])
    app.include_router(webhooks.router, prefix="/api/v1", tags=["Webhooks"])

    return app


app = create_app()
