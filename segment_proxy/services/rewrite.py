"""URL path and query string joining helpers."""
from __future__ import annotations


def join_path(base: str, request_path: str) -> str:
    """Join a destination base path and a request path with exactly one slash."""
    base_slash = base.endswith("/")
    request_slash = request_path.startswith("/")
    if base_slash and request_slash:
        return base + request_path[1:]
    if not base_slash and not request_slash:
        return f"{base}/{request_path}"
    return base + request_path


def merge_query(base_query: str, request_query: str) -> str:
    """Append the request query to the destination query, base first."""
    if not base_query or not request_query:
        return base_query + request_query
    return f"{base_query}&{request_query}"
