"""Destination selection and request rewriting.

A Router owns an ordered routing table of prefix rules plus one fallback
destination. It is immutable once built and safe to share between
concurrently running request handlers.
"""
from __future__ import annotations

from typing import Iterable, Protocol, Sequence

from segment_proxy.models.schemas import Destination, RequestView, RewrittenRequest
from segment_proxy.services.rewrite import join_path, merge_query

# Paths served by the CDN: project settings and the analytics.js bundle.
CONTENT_PREFIXES = ("/v1/projects", "/analytics.js/v1")


class RequestRewriter(Protocol):
    """Capability consumed by the forwarder to decide where a request goes."""

    def select_destination(self, path: str) -> Destination:
        ...

    def rewrite(self, view: RequestView) -> RewrittenRequest:
        ...


class RoutingRule:
    """Send every path starting with one of ``prefixes`` to ``destination``."""

    __slots__ = ("prefixes", "destination")

    def __init__(self, prefixes: Iterable[str], destination: Destination):
        self.prefixes = tuple(prefixes)
        self.destination = destination

    def matches(self, path: str) -> bool:
        return path.startswith(self.prefixes)

    def __repr__(self) -> str:
        return f"RoutingRule(prefixes={self.prefixes!r}, destination={self.destination.host!r})"


class Router:
    """First-match-wins router over a fixed rule table."""

    def __init__(self, rules: Sequence[RoutingRule], fallback: Destination):
        self._rules = tuple(rules)
        self._fallback = fallback

    @classmethod
    def for_segment(cls, content: Destination, tracking: Destination) -> "Router":
        """Route CDN asset paths to ``content`` and everything else to ``tracking``."""
        return cls([RoutingRule(CONTENT_PREFIXES, content)], fallback=tracking)

    @property
    def rules(self) -> tuple[RoutingRule, ...]:
        return self._rules

    @property
    def fallback(self) -> Destination:
        return self._fallback

    def select_destination(self, path: str) -> Destination:
        for rule in self._rules:
            if rule.matches(path):
                return rule.destination
        return self._fallback

    def rewrite(self, view: RequestView) -> RewrittenRequest:
        """Apply the selected destination to ``view``.

        The Host header always mirrors the destination host, since the
        upstream services pick the virtual host from it.
        """
        target = self.select_destination(view.path)
        return RewrittenRequest(
            scheme=target.scheme,
            host=target.host,
            path=join_path(target.base_path, view.path),
            query=merge_query(target.base_query, view.query),
            host_header=target.host,
        )
