"""
FastAPI Application Entry Point.

Creates the voice-proxy application: routers, error handlers, CORS, the
request-id middleware and, for local blob storage, the static mount that
serves narrated audio.

Usage:
    # Run with uvicorn
    uvicorn voice_proxy.main:app --host 0.0.0.0 --port 3001

    # Or through the CLI
    voice-proxy serve --port 3001
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from voice_proxy import __version__
from voice_proxy.api.articles import router as articles_router
from voice_proxy.api.comments import router as comments_router
from voice_proxy.api.dependencies import get_settings
from voice_proxy.api.routes import (
    handle_unexpected_error,
    handle_validation_error,
    handle_voice_proxy_error,
    router,
    tts_router,
)
from voice_proxy.core.config import Settings
from voice_proxy.core.errors import VoiceProxyError
from voice_proxy.core.logging import configure_logging, set_request_id
from voice_proxy.services.voice_service import VoiceService

REQUEST_ID_HEADER = "X-Request-Id"


def create_app(settings: Optional[Settings] = None, service: Optional[VoiceService] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to build the service from. Defaults to the
            cached settings file (see api.dependencies.get_settings).
        service: A ready VoiceService (tests inject one with mock
            collaborators). Built from ``settings`` when omitted.

    Returns:
        FastAPI: Configured application instance.
    """
    configure_logging()

    if service is None:
        service = VoiceService(settings or get_settings())
    config = service.config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        service.close()

    app = FastAPI(title="voice-proxy", version=__version__, lifespan=lifespan)
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials="*" not in config.api.cors_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", REQUEST_ID_HEADER],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        rid = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())[:12]
        set_request_id(rid)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response

    app.add_exception_handler(VoiceProxyError, handle_voice_proxy_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(router)              # /, /health, /metrics
    app.include_router(tts_router)          # /api/tts
    app.include_router(comments_router)     # /api/comments
    app.include_router(articles_router)     # /api/articles

    storage = config.storage
    if storage.backend == "local" and storage.public_base_url.startswith("/"):
        app.mount(
            storage.public_base_url.rstrip("/"),
            StaticFiles(directory=storage.base_dir, check_dir=False),
            name="audio",
        )

    return app


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
