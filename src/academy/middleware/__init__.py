"""Middleware registration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from academy.config import Settings
from academy.middleware.error_handler import setup_error_handlers
from academy.middleware.logging import setup_logging
from academy.middleware.request_context import REQUEST_ID_HEADER, RequestContextMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and middleware.

    Starlette runs middleware in reverse-add order; CORS goes on last so
    error responses carry the headers too.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
