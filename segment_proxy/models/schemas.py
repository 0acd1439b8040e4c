"""Pydantic models used by the Segment proxy service."""
from __future__ import annotations

from typing import Literal, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict


class Destination(BaseModel):
    """A fixed upstream server requests may be forwarded to."""

    model_config = ConfigDict(frozen=True)

    scheme: str
    host: str
    base_path: str = ""
    base_query: str = ""

    @classmethod
    def from_url(cls, url: str) -> "Destination":
        """Build a destination from an absolute http(s) URL.

        Raises ValueError when the URL has a non-http scheme or no host, so a
        bad destination can never reach the forwarder.
        """
        parts = urlsplit(str(url))
        if parts.scheme not in ("http", "https"):
            raise ValueError(f"Destination {url!r} must use http or https")
        # drop any userinfo, keep host[:port]
        host = parts.netloc.rpartition("@")[2]
        if not host:
            raise ValueError(f"Destination {url!r} has no host")
        return cls(scheme=parts.scheme, host=host, base_path=parts.path, base_query=parts.query)


class RequestView(BaseModel):
    """Read-only projection of a client request used for routing."""

    model_config = ConfigDict(frozen=True)

    path: str
    query: str = ""


class RewrittenRequest(BaseModel):
    """The outgoing request produced by applying a destination."""

    model_config = ConfigDict(frozen=True)

    scheme: str
    host: str
    path: str
    query: str
    host_header: str

    @property
    def url(self) -> str:
        base = f"{self.scheme}://{self.host}{self.path}"
        return f"{base}?{self.query}" if self.query else base


class ListenerOutcome(BaseModel):
    """Terminal signal emitted once by a listener task when it stops."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    source: Literal["proxy", "health"]
    error: Optional[BaseException] = None
