"""Middleware and exception handler registration."""

from fastapi import FastAPI

from nexus.config import Settings
from nexus.middleware.cors import setup_cors
from nexus.middleware.error_handler import setup_error_handlers
from nexus.middleware.logging import setup_logging
from nexus.middleware.rate_limit import RateLimitMiddleware
from nexus.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and middleware.

    Starlette runs middleware in reverse-add order, so CORS is added last to
    wrap every response, including 429s from the rate limiter.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
