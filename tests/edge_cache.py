from http import HTTPStatus

import pytest
from conftest import ConfigurationStoreMock, OriginMock, edge_cache_factory
from pytest_assume.plugin import assume

from dynamic_html.helpers.config_models.edge import EdgeModel
from dynamic_html.helpers.config_models.store import DEFAULT_PARAMETER_NAME
from dynamic_html.helpers.edge_cache import (
    freshness_ttl,
    parse_cache_control,
    viewer_scheme,
)
from dynamic_html.helpers.endpoint import HtmlEndpoint
from dynamic_html.models.http import HttpResponseModel
from dynamic_html.persistence.iorigin import OriginTimeout, OriginUnreachable
from dynamic_html.persistence.local_origin import LocalOrigin
from dynamic_html.persistence.memory import MemoryCache
from dynamic_html.persistence.memory_configuration import MemoryConfigurationStore


async def _get(edge_cache, method: str = "GET", path: str = "/", **kwargs):
    return await edge_cache.handle(
        headers=kwargs.get("headers", {}),
        host="d111111abcdef8.example.net",
        method=method,
        path=path,
        query=kwargs.get("query", ""),
        scheme=kwargs.get("scheme", "https"),
    )


def test_parse_cache_control() -> None:
    """
    Test directives are parsed case-insensitively, with or without argument.
    """
    assume(parse_cache_control(None) == {})
    assume(parse_cache_control("") == {})
    assume(
        parse_cache_control('Public, Max-Age=60, s-maxage="30",,no-transform')
        == {
            "max-age": "60",
            "no-transform": None,
            "public": None,
            "s-maxage": "30",
        }
    )


@pytest.mark.parametrize(
    "client_host, forwarded_proto, trusted_proxies, scheme",
    [
        pytest.param("203.0.113.7", None, [], "http", id="no_header"),
        pytest.param("203.0.113.7", "https", [], "http", id="untrusted"),
        pytest.param(
            "203.0.113.7", "https", ["10.0.0.0/8"], "http", id="untrusted_network"
        ),
        pytest.param("testclient", "https", ["10.0.0.0/8"], "http", id="not_an_ip"),
        pytest.param(None, "https", ["10.0.0.0/8"], "http", id="no_client"),
        pytest.param("10.1.2.3", "https", ["10.0.0.0/8"], "https", id="trusted"),
        pytest.param(
            "10.1.2.3", "HTTPS, http", ["10.0.0.0/8"], "https", id="trusted_chain"
        ),
        pytest.param(
            "192.0.2.1", "https", ["192.0.2.1"], "https", id="trusted_address"
        ),
    ],
)
def test_viewer_scheme(
    client_host: str | None,
    forwarded_proto: str | None,
    trusted_proxies: list[str],
    scheme: str,
) -> None:
    """
    Test `X-Forwarded-Proto` is only honoured from a trusted proxy.
    """
    assume(
        viewer_scheme(
            client_host=client_host,
            forwarded_proto=forwarded_proto,
            scheme="http",
            trusted_proxies=trusted_proxies,
        )
        == scheme
    )


@pytest.mark.parametrize(
    "cache_control, config, ttl_sec",
    [
        pytest.param(None, {}, 86400, id="default"),
        pytest.param(None, {"default_ttl_sec": 0}, 0, id="default_disabled"),
        pytest.param("max-age=60", {}, 60, id="max_age"),
        pytest.param("max-age=60, s-maxage=10", {}, 10, id="s_maxage_wins"),
        pytest.param("max-age=abc", {}, 86400, id="invalid_max_age"),
        pytest.param("no-store", {}, 0, id="no_store"),
        pytest.param("no-cache", {"min_ttl_sec": 5}, 5, id="no_cache_min_ttl"),
        pytest.param("private, max-age=60", {}, 0, id="private"),
        pytest.param("max-age=600", {"max_ttl_sec": 300}, 300, id="clamp_max"),
        pytest.param("max-age=1", {"min_ttl_sec": 5}, 5, id="clamp_min"),
    ],
)
def test_freshness_ttl(
    cache_control: str | None,
    config: dict,
    ttl_sec: int,
) -> None:
    """
    Test the TTL derived from the origin `Cache-Control` header.
    """
    assume(freshness_ttl(cache_control, EdgeModel(**config)) == ttl_sec)


@pytest.mark.asyncio(loop_scope="session")
async def test_redirect_to_https(
    cache: MemoryCache,
    html_response: HttpResponseModel,
) -> None:
    """
    Test plain HTTP is redirected to HTTPS, without reaching the origin.
    """
    origin = OriginMock(html_response)
    edge_cache = edge_cache_factory(cache, origin)

    res = await _get(edge_cache, path="/html", query="lang=fr", scheme="http")

    assume(res.status_code == HTTPStatus.MOVED_PERMANENTLY)
    assume(res.header("Location") == "https://d111111abcdef8.example.net/html?lang=fr")
    assume(origin.requests == [])


@pytest.mark.asyncio(loop_scope="session")
async def test_https_only(
    cache: MemoryCache,
    html_response: HttpResponseModel,
) -> None:
    """
    Test plain HTTP is rejected with the HTTPS only policy.
    """
    origin = OriginMock(html_response)
    edge_cache = edge_cache_factory(
        cache,
        origin,
        viewer_protocol_policy="https-only",
    )

    res = await _get(edge_cache, scheme="http")

    assume(res.status_code == HTTPStatus.FORBIDDEN)
    assume(origin.requests == [])


@pytest.mark.asyncio(loop_scope="session")
async def test_allow_all(
    cache: MemoryCache,
    html_response: HttpResponseModel,
) -> None:
    """
    Test plain HTTP is forwarded with the allow all policy.
    """
    origin = OriginMock(html_response)
    edge_cache = edge_cache_factory(
        cache,
        origin,
        viewer_protocol_policy="allow-all",
    )

    res = await _get(edge_cache, scheme="http")

    assume(res.status_code == HTTPStatus.OK)
    assume(len(origin.requests) == 1)


@pytest.mark.parametrize(
    "method",
    ["DELETE", "OPTIONS", "PATCH", "POST", "PUT"],
)
@pytest.mark.asyncio(loop_scope="session")
async def test_method_rejected(
    cache: MemoryCache,
    html_response: HttpResponseModel,
    method: str,
) -> None:
    """
    Test methods other than GET and HEAD never reach the origin.
    """
    origin = OriginMock(html_response)
    edge_cache = edge_cache_factory(cache, origin)

    res = await _get(edge_cache, method=method)

    assume(res.status_code == HTTPStatus.METHOD_NOT_ALLOWED)
    assume(res.header("Allow") == "GET, HEAD")
    assume(origin.requests == [])


@pytest.mark.asyncio(loop_scope="session")
async def test_hit_after_miss(
    cache: MemoryCache,
    html_response: HttpResponseModel,
) -> None:
    """
    Test a response is served from the cache on the second request.

    Steps:
    1. Request the root, it is a miss forwarded to /html
    2. Request it again, it is a hit
    3. Check the origin was contacted once
    """
    origin = OriginMock(html_response)
    edge_cache = edge_cache_factory(cache, origin)

    first = await _get(edge_cache)
    assume(first.status_code == HTTPStatus.OK)
    assume(first.header("X-Cache") == "Miss from edge")
    assume(origin.requests == [("GET", "/html", "", {})])

    second = await _get(edge_cache)
    assume(second.status_code == HTTPStatus.OK)
    assume(second.header("X-Cache") == "Hit from edge")
    assume(second.header("Age") is not None)
    assume(second.header("Content-Type") == "text/html")
    assume(second.body == first.body)
    assume(len(origin.requests) == 1)


@pytest.mark.asyncio(loop_scope="session")
async def test_head(
    cache: MemoryCache,
    html_response: HttpResponseModel,
) -> None:
    """
    Test HEAD is forwarded as GET, answered without body, and shares the GET entry.
    """
    origin = OriginMock(html_response)
    edge_cache = edge_cache_factory(cache, origin)

    res = await _get(edge_cache, method="HEAD")
    assume(res.status_code == HTTPStatus.OK)
    assume(res.body == b"")
    assume(origin.requests[0][0] == "GET")

    res = await _get(edge_cache, method="GET")
    assume(res.header("X-Cache") == "Hit from edge")
    assume(res.body == html_response.body)
    assume(len(origin.requests) == 1)


@pytest.mark.parametrize(
    "response",
    [
        pytest.param(
            HttpResponseModel(
                body=b"<p>private</p>",
                headers={"Cache-Control": "no-store"},
            ),
            id="no_store",
        ),
        pytest.param(
            HttpResponseModel.error(
                message="Configuration unavailable",
                status_code=HTTPStatus.BAD_GATEWAY,
            ),
            id="bad_gateway",
        ),
        pytest.param(
            HttpResponseModel.error(
                message="Not found",
                status_code=HTTPStatus.NOT_FOUND,
            ),
            id="not_found",
        ),
    ],
)
@pytest.mark.asyncio(loop_scope="session")
async def test_not_stored(
    cache: MemoryCache,
    response: HttpResponseModel,
) -> None:
    """
    Test uncacheable responses always reach the origin.
    """
    origin = OriginMock(response)
    edge_cache = edge_cache_factory(cache, origin)

    first = await _get(edge_cache)
    second = await _get(edge_cache)

    assume(first.status_code == response.status_code)
    assume(second.header("X-Cache") == "Miss from edge")
    assume(len(origin.requests) == 2)


@pytest.mark.parametrize(
    "error, status_code",
    [
        pytest.param(OriginTimeout("timeout"), HTTPStatus.GATEWAY_TIMEOUT, id="timeout"),
        pytest.param(
            OriginUnreachable("unreachable"), HTTPStatus.BAD_GATEWAY, id="unreachable"
        ),
    ],
)
@pytest.mark.asyncio(loop_scope="session")
async def test_origin_error(
    cache: MemoryCache,
    error: Exception,
    status_code: HTTPStatus,
) -> None:
    """
    Test origin failures are answered by the edge.
    """
    origin = OriginMock(error)
    edge_cache = edge_cache_factory(cache, origin)

    res = await _get(edge_cache)

    assume(res.status_code == status_code)
    assume(res.header("X-Cache") == "Error from edge")


@pytest.mark.asyncio(loop_scope="session")
async def test_cache_key_headers(
    cache: MemoryCache,
    html_response: HttpResponseModel,
) -> None:
    """
    Test configured headers split the cache and are forwarded to the origin.
    """
    origin = OriginMock(html_response)
    edge_cache = edge_cache_factory(
        cache,
        origin,
        cache_key_headers=["Accept-Language"],
    )

    await _get(edge_cache, headers={"accept-language": "fr", "cookie": "a=b"})
    await _get(edge_cache, headers={"accept-language": "en"})
    res = await _get(edge_cache, headers={"Accept-Language": "fr"})

    assume(res.header("X-Cache") == "Hit from edge")
    assume(len(origin.requests) == 2)
    assume(origin.requests[0][3] == {"accept-language": "fr"})
    assume(origin.requests[1][3] == {"accept-language": "en"})


@pytest.mark.asyncio(loop_scope="session")
async def test_query_in_key(
    cache: MemoryCache,
    html_response: HttpResponseModel,
) -> None:
    """
    Test query strings are forwarded and split the cache.
    """
    origin = OriginMock(html_response)
    edge_cache = edge_cache_factory(cache, origin)

    await _get(edge_cache, path="/html", query="a=1")
    await _get(edge_cache, path="/html", query="a=2")

    assume([request[2] for request in origin.requests] == ["a=1", "a=2"])


@pytest.mark.asyncio(loop_scope="session")
async def test_stale_until_invalidated(
    cache: MemoryCache,
    store: MemoryConfigurationStore,
) -> None:
    """
    Test a configuration change stays hidden by the cache until invalidation.

    Steps:
    1. Request the page through the edge
    2. Change the value in the store
    3. Check the edge still serves the previous value
    4. Invalidate the root path
    5. Check the new value is served
    """
    origin = LocalOrigin(
        HtmlEndpoint(
            parameter_name=DEFAULT_PARAMETER_NAME,
            store=store,
        )
    )
    edge_cache = edge_cache_factory(cache, origin)

    res = await _get(edge_cache)
    assume(b"Initial Dynamic String" in res.body)

    store.put(DEFAULT_PARAMETER_NAME, "Updated Dynamic String")
    res = await _get(edge_cache)
    assume(res.header("X-Cache") == "Hit from edge")
    assume(b"Initial Dynamic String" in res.body)

    await edge_cache.invalidate("/")
    res = await _get(edge_cache)
    assume(res.header("X-Cache") == "Miss from edge")
    assume(b"Updated Dynamic String" in res.body)


@pytest.mark.asyncio(loop_scope="session")
async def test_no_store_always_fresh(cache: MemoryCache) -> None:
    """
    Test `no-store` from the API makes every change visible at once.
    """
    store = ConfigurationStoreMock("Initial Dynamic String")
    origin = LocalOrigin(
        HtmlEndpoint(
            cache_control="no-store",
            parameter_name=DEFAULT_PARAMETER_NAME,
            store=store,
        )
    )
    edge_cache = edge_cache_factory(cache, origin)

    await _get(edge_cache)
    store.value = "Updated Dynamic String"
    res = await _get(edge_cache)

    assume(b"Updated Dynamic String" in res.body)
    assume(store.calls == 2)
