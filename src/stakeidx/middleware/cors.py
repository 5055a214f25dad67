"""CORS for browser dashboards reading the API from another origin."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stakeidx.config import Settings
from stakeidx.middleware.request_context import CHAIN_ID_HEADER, REQUEST_ID_HEADER


def setup_cors(app: FastAPI, settings: Settings) -> None:
    # Read-only API: no write methods, no credentials
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=[REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER, CHAIN_ID_HEADER],
    )
