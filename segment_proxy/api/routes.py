"""API routes for the Segment proxy.

The proxy router forwards every path and method to the upstream picked by
the app's Forwarder. The health router answers liveness and metrics probes
and never touches the routing path.
"""
from __future__ import annotations

from fastapi import APIRouter, Request, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from segment_proxy.services.proxy import Forwarder

proxy_router = APIRouter()
health_router = APIRouter()


async def proxy(request: Request) -> Response:
    """Forward the request as-is to the CDN or the tracking API."""
    forwarder: Forwarder = request.app.state.forwarder
    return await forwarder.forward(request)


# a plain route with no method list accepts every method, extension ones included
proxy_router.add_route("/{path:path}", proxy, include_in_schema=False)


@health_router.api_route("/health", methods=["GET", "HEAD"])
async def health(request: Request):
    """Liveness probe returning the build version as plain text."""
    return PlainTextResponse(request.app.state.settings.version)


@health_router.get("/metrics")
async def metrics(_: Request):
    """Prometheus exposition endpoint for proxy process metrics."""
    data = generate_latest()
    return PlainTextResponse(data.decode("utf-8"), media_type=CONTENT_TYPE_LATEST)
