"""CORS for the household web app."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from desperado.config import Settings

EXPOSED_HEADERS = ["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit"]

# Any localhost port, for dev servers started on whatever port is free
LOCALHOST_ORIGIN_REGEX = r"^http://(localhost|127\.0\.0\.1)(:\d+)?$"


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow the configured origins; in debug mode also any localhost origin."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=LOCALHOST_ORIGIN_REGEX if settings.debug else None,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-Id"],
        expose_headers=EXPOSED_HEADERS,
    )
