"""Segment proxy FastAPI applications.

Builds the proxy app, which forwards traffic to the Segment CDN or tracking
API, and the separate health app served on its own port.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request

from segment_proxy.api.routes import health_router, proxy_router
from segment_proxy.core.config import Settings
from segment_proxy.models.schemas import Destination
from segment_proxy.services.proxy import Forwarder
from segment_proxy.services.router import Router


def build_router(settings: Settings) -> Router:
    """Build the fixed routing table; raises ValueError on a bad destination URL."""
    return Router.for_segment(
        content=Destination.from_url(str(settings.cdn_url)),
        tracking=Destination.from_url(str(settings.tracking_url)),
    )


def create_proxy_app(
    settings: Settings,
    log: logging.Logger,
    router: Optional[Router] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Create the proxy app.

    Destinations are resolved here, before any listener exists, so an invalid
    destination fails startup instead of reaching the forwarder.
    """
    router = router or build_router(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with httpx.AsyncClient(
            transport=transport,
            timeout=settings.request_timeout_s,
            follow_redirects=False,
        ) as client:
            app.state.forwarder = Forwarder(router, client, log)
            yield

    app = FastAPI(title="Segment proxy", version=settings.version, lifespan=lifespan,
                  docs_url=None, redoc_url=None, openapi_url=None)
    app.state.settings = settings
    app.state.router = router
    if settings.debug:
        add_access_log(app, log.getChild("access"))
    app.include_router(proxy_router)
    return app


def create_health_app(settings: Settings) -> FastAPI:
    """Create the health app; it shares nothing with the proxy path."""
    app = FastAPI(title="Segment proxy health", version=settings.version,
                  docs_url=None, redoc_url=None, openapi_url=None)
    app.state.settings = settings
    app.include_router(health_router)
    return app


def add_access_log(app: FastAPI, access_log: logging.Logger) -> None:
    """Log one Common Log Format line per request handled by ``app``."""

    @app.middleware("http")
    async def log_access(request: Request, call_next):
        response = await call_next(request)
        client = request.client.host if request.client else "-"
        target = request.url.path + (f"?{request.url.query}" if request.url.query else "")
        http_version = request.scope.get("http_version", "1.1")
        size = response.headers.get("content-length", "-")
        access_log.info(
            '%s - - [%s] "%s %s HTTP/%s" %d %s',
            client,
            time.strftime("%d/%b/%Y:%H:%M:%S %z"),
            request.method,
            target,
            http_version,
            response.status_code,
            size,
        )
        return response
