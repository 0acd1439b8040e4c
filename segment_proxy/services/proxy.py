"""Reverse-proxy forwarding for the Segment proxy.

Rewrites each client request through a RequestRewriter, streams it to the
selected upstream and streams the upstream response back to the client.
"""
from __future__ import annotations

import logging

import httpx
from fastapi import Request, Response
from fastapi.responses import StreamingResponse
from prometheus_client import Counter

from segment_proxy.models.schemas import RequestView, RewrittenRequest
from segment_proxy.services.router import RequestRewriter

# RFC 9110 hop-by-hop headers (must not be forwarded)
HOP_BY_HOP = {
    "connection", "keep-alive", "proxy-authenticate", "proxy-authorization",
    "te", "trailer", "trailers", "transfer-encoding", "upgrade",
}

# Defaults httpx adds on its own; only forward them when the client sent them.
_CLIENT_DEFAULT_HEADERS = ("accept", "accept-encoding", "user-agent")

PROXY_REQUESTS = Counter("segment_proxy_requests_total", "Requests forwarded upstream", ["destination"])
UPSTREAM_ERRORS = Counter("segment_proxy_upstream_errors_total", "Upstream transport failures", ["destination"])


def _hop_headers(connection: str) -> set[str]:
    # Connection may name extra per-hop headers.
    extra = {name.strip().lower() for name in connection.split(",") if name.strip()}
    return HOP_BY_HOP | extra


def _request_headers(req: Request, rewritten: RewrittenRequest) -> httpx.Headers:
    hop = _hop_headers(req.headers.get("connection", ""))
    headers = httpx.Headers(
        [(k, v) for k, v in req.headers.items() if k.lower() not in hop and k.lower() != "host"]
    )
    headers["host"] = rewritten.host_header
    return _add_forwarded(req, headers)


def _add_forwarded(req: Request, headers: httpx.Headers) -> httpx.Headers:
    client_ip = req.client.host if req.client else "unknown"
    prior = headers.get("x-forwarded-for")
    headers["x-forwarded-for"] = f"{prior}, {client_ip}" if prior else client_ip
    headers.setdefault("x-forwarded-proto", req.url.scheme)
    headers.setdefault("x-forwarded-host", req.headers.get("host", ""))
    return headers


def _response_headers(upstream: httpx.Response) -> list[tuple[bytes, bytes]]:
    hop = _hop_headers(upstream.headers.get("connection", ""))
    return [(k, v) for k, v in upstream.headers.raw if k.decode("latin-1").lower() not in hop]


def _has_body(req: Request) -> bool:
    return "content-length" in req.headers or "transfer-encoding" in req.headers


def request_view(req: Request) -> RequestView:
    """Project the client request onto the routing inputs, keeping its encoding."""
    raw_path = req.scope.get("raw_path")
    # some servers leave the query string on raw_path
    path = raw_path.decode("latin-1").partition("?")[0] if raw_path else req.url.path
    return RequestView(path=path, query=req.url.query)


class Forwarder:
    """
    Forward client requests to the upstream chosen by a RequestRewriter.

    Holds a shared httpx.AsyncClient for connection pooling. Upstream
    transport failures are answered with 502 and never retried.
    """

    def __init__(self, rewriter: RequestRewriter, client: httpx.AsyncClient, log: logging.Logger):
        self._rewriter = rewriter
        self._client = client
        self._log = log

    async def forward(self, req: Request) -> Response:
        rewritten = self._rewriter.rewrite(request_view(req))
        self._log.info("Processing request url=%s", rewritten.url)
        PROXY_REQUESTS.labels(destination=rewritten.host).inc()

        upstream_request = self._client.build_request(
            req.method,
            rewritten.url,
            headers=_request_headers(req, rewritten),
            content=req.stream() if _has_body(req) else None,
        )
        for name in _CLIENT_DEFAULT_HEADERS:
            if name not in req.headers and name in upstream_request.headers:
                del upstream_request.headers[name]

        try:
            upstream_response = await self._client.send(upstream_request, stream=True)
        except httpx.RequestError as e:
            UPSTREAM_ERRORS.labels(destination=rewritten.host).inc()
            self._log.warning("Upstream error for %s: %r", rewritten.url, e)
            return Response(status_code=502)

        async def iter_upstream():
            try:
                async for chunk in upstream_response.aiter_raw():
                    yield chunk
            finally:
                await upstream_response.aclose()

        response = StreamingResponse(iter_upstream(), status_code=upstream_response.status_code)
        response.raw_headers = _response_headers(upstream_response)
        return response
