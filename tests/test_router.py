# tests/test_router.py
import pytest

from segment_proxy.models.schemas import Destination, RequestView
from segment_proxy.services.router import Router, RoutingRule

CDN = Destination.from_url("https://cdn.segment.com")
TRACKING = Destination.from_url("https://api.segment.io")


@pytest.fixture
def router():
    return Router.for_segment(content=CDN, tracking=TRACKING)


@pytest.mark.parametrize(
    "path",
    ["/v1/projects", "/v1/projects/abc/settings", "/analytics.js/v1", "/analytics.js/v1/key/analytics.min.js"],
)
def test_asset_paths_go_to_cdn(router, path):
    assert router.select_destination(path) is CDN


@pytest.mark.parametrize(
    "path",
    ["/", "", "/v1/track", "/v1/batch", "/v1/project", "/analytics.js", "/health", "/V1/projects", "v1/projects"],
)
def test_everything_else_goes_to_tracking(router, path):
    assert router.select_destination(path) is TRACKING


def test_rewrite_builds_cdn_url(router):
    out = router.rewrite(RequestView(path="/v1/projects/123", query="id=5"))
    assert out.url == "https://cdn.segment.com/v1/projects/123?id=5"
    assert (out.scheme, out.host) == ("https", "cdn.segment.com")


def test_rewrite_builds_tracking_url_without_query(router):
    out = router.rewrite(RequestView(path="/v1/t"))
    assert out.url == "https://api.segment.io/v1/t"
    assert out.query == ""


@pytest.mark.parametrize("path", ["/v1/projects/x", "/v1/batch", "/"])
def test_host_header_always_matches_host(router, path):
    out = router.rewrite(RequestView(path=path, query="a=b"))
    assert out.host_header == out.host


def test_rewrite_merges_destination_base_path_and_query():
    dest = Destination.from_url("http://upstream.local:9000/base/?token=t")
    router = Router([], fallback=dest)
    out = router.rewrite(RequestView(path="/v1/track", query="x=1"))
    assert out.url == "http://upstream.local:9000/base/v1/track?token=t&x=1"
    assert out.host_header == "upstream.local:9000"


def test_first_declared_rule_wins_on_overlap():
    first = Destination.from_url("https://first.example")
    second = Destination.from_url("https://second.example")
    router = Router(
        [RoutingRule(["/v1"], first), RoutingRule(["/v1/projects"], second)],
        fallback=TRACKING,
    )
    assert router.select_destination("/v1/projects/1") is first


def test_router_does_not_mutate_destinations(router):
    router.rewrite(RequestView(path="/v1/projects/1", query="q=1"))
    assert CDN.base_query == ""
    assert router.rules[0].destination is CDN
    assert router.fallback is TRACKING


@pytest.mark.parametrize("url", ["ftp://cdn.segment.com", "https://", "not a url", "cdn.segment.com"])
def test_destination_from_url_rejects_malformed(url):
    with pytest.raises(ValueError):
        Destination.from_url(url)
