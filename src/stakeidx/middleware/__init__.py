"""Middleware registration."""

from fastapi import FastAPI

from stakeidx.config import Settings
from stakeidx.middleware.cors import setup_cors
from stakeidx.middleware.error_handler import setup_error_handlers
from stakeidx.middleware.request_context import RequestContextMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register error handlers and middleware; CORS is added last so it is outermost."""
    setup_error_handlers(app)
    app.add_middleware(RequestContextMiddleware, chain_id=settings.chain_id)
    setup_cors(app, settings)
