import time
from http import HTTPStatus
from ipaddress import ip_address, ip_network

from pydantic import ValidationError

from dynamic_html.helpers.config_models.edge import (
    EdgeModel,
    ViewerProtocolPolicyEnum,
)
from dynamic_html.helpers.logging import logger
from dynamic_html.helpers.monitoring import (
    SpanAttributeEnum,
    counter_add,
    edge_requests,
    histogram_record,
    origin_latency,
    start_as_current_span,
)
from dynamic_html.models.http import CachedResponseModel, HttpResponseModel
from dynamic_html.persistence.icache import ICache
from dynamic_html.persistence.iorigin import IOrigin, OriginTimeout, OriginUnreachable

ALLOWED_METHODS = ("GET", "HEAD")

# Directives forbidding a shared cache to store the response
_NO_STORE_DIRECTIVES = {"no-cache", "no-store", "private"}


def viewer_scheme(
    client_host: str | None,
    forwarded_proto: str | None,
    scheme: str,
    trusted_proxies: list[str],
) -> str:
    """
    Get the scheme used by the viewer.

    `X-Forwarded-Proto` is only honoured when the connection comes from a trusted proxy, any other client could forge it to skip the viewer protocol policy.
    """
    if forwarded_proto and _is_trusted_proxy(client_host, trusted_proxies):
        return forwarded_proto.split(",")[0].strip().lower()
    return scheme.lower()


def _is_trusted_proxy(
    client_host: str | None,
    trusted_proxies: list[str],
) -> bool:
    if not client_host:
        return False
    try:
        address = ip_address(client_host)
    except ValueError:  # Not an IP address, e.g. a Unix socket
        return False
    return any(
        address in ip_network(proxy, strict=False) for proxy in trusted_proxies
    )


def parse_cache_control(value: str | None) -> dict[str, str | None]:
    """
    Parse a `Cache-Control` header into a dict of lower-case directives.

    Directives without argument map to `None`.
    """
    directives: dict[str, str | None] = {}
    if not value:
        return directives
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        name, _, arg = part.partition("=")
        directives[name.strip().lower()] = arg.strip().strip('"') or None
    return directives


def freshness_ttl(
    cache_control: str | None,
    config: EdgeModel,
) -> int:
    """
    Compute how long an origin response stays fresh at the edge, in seconds.

    `s-maxage` wins over `max-age`. Without directive, the configured default applies. Directives forbidding storage fall back to the minimum TTL, zero by default. The result is always clamped to the configured bounds.
    """
    directives = parse_cache_control(cache_control)

    if _NO_STORE_DIRECTIVES & directives.keys():
        return config.min_ttl_sec

    ttl = config.default_ttl_sec
    for name in ("s-maxage", "max-age"):
        arg = directives.get(name)
        if arg is None:
            continue
        try:
            ttl = int(arg)
        except ValueError:
            logger.warning("Ignoring invalid %s directive: %s", name, arg)
            continue
        break

    return max(config.min_ttl_sec, min(config.max_ttl_sec, ttl))


class EdgeCache:
    """
    Caching reverse proxy in front of the API endpoint.

    Viewers are upgraded to HTTPS, only `GET` and `HEAD` are forwarded, and successful origin responses are kept until their freshness expires. A configuration change can then stay invisible to viewers up to the TTL, use `invalidate` to publish it sooner.
    """

    _cache: ICache
    _config: EdgeModel
    _origin: IOrigin

    def __init__(
        self,
        cache: ICache,
        config: EdgeModel,
        origin: IOrigin,
    ):
        self._cache = cache
        self._config = config
        self._origin = origin

    @property
    def config(self) -> EdgeModel:
        return self._config

    @start_as_current_span("edge_handle")
    async def handle(
        self,
        headers: dict[str, str],
        host: str,
        method: str,
        path: str,
        query: str,
        scheme: str,
    ) -> HttpResponseModel:
        """
        Serve a viewer request.
        """
        SpanAttributeEnum.HTTP_METHOD.attribute(method)

        # Viewer protocol policy
        if scheme != "https":
            if (
                self._config.viewer_protocol_policy
                == ViewerProtocolPolicyEnum.REDIRECT_TO_HTTPS
            ):
                location = f"https://{host}{path}"
                if query:
                    location += f"?{query}"
                return HttpResponseModel(
                    headers={
                        "Location": location,
                        "X-Cache": "Redirect from edge",
                    },
                    status_code=HTTPStatus.MOVED_PERMANENTLY,
                )
            if (
                self._config.viewer_protocol_policy
                == ViewerProtocolPolicyEnum.HTTPS_ONLY
            ):
                return HttpResponseModel.error(
                    headers={"X-Cache": "Error from edge"},
                    message="HTTPS required",
                    status_code=HTTPStatus.FORBIDDEN,
                )

        # Allowed methods, nothing else reaches the origin
        if method not in ALLOWED_METHODS:
            return HttpResponseModel.error(
                headers={
                    "Allow": ", ".join(ALLOWED_METHODS),
                    "X-Cache": "Error from edge",
                },
                message=f"Method {method} not allowed",
                status_code=HTTPStatus.METHOD_NOT_ALLOWED,
            )

        path = self._origin_path(path)
        SpanAttributeEnum.EDGE_PATH.attribute(path)
        forwarded_headers = self._forwarded_headers(headers)
        cache_key = self._cache_key(
            headers=forwarded_headers,
            path=path,
            query=query,
        )

        # Try cache
        cached = await self._get(cache_key)
        if cached:
            SpanAttributeEnum.EDGE_CACHE.attribute("hit")
            counter_add(edge_requests, 1)
            res = cached.response.model_copy(
                update={
                    "headers": {
                        **cached.response.headers,
                        "Age": str(cached.age_sec()),
                        "X-Cache": "Hit from edge",
                    },
                },
            )
            return self._for_method(method, res)

        # Try origin, HEAD is derived from the GET response
        SpanAttributeEnum.EDGE_CACHE.attribute("miss")
        counter_add(edge_requests, 1)
        start = time.monotonic()
        try:
            res = await self._origin.fetch(
                headers=forwarded_headers,
                method="GET",
                path=path,
                query=query,
            )
        except OriginTimeout:
            logger.exception("Origin timed out")
            return HttpResponseModel.error(
                headers={"X-Cache": "Error from edge"},
                message="Origin timed out",
                status_code=HTTPStatus.GATEWAY_TIMEOUT,
            )
        except OriginUnreachable:
            logger.exception("Origin unreachable")
            return HttpResponseModel.error(
                headers={"X-Cache": "Error from edge"},
                message="Origin unreachable",
                status_code=HTTPStatus.BAD_GATEWAY,
            )
        finally:
            histogram_record(origin_latency, time.monotonic() - start)

        # Update cache
        if res.status_code == HTTPStatus.OK:
            ttl_sec = freshness_ttl(
                cache_control=res.header("Cache-Control"),
                config=self._config,
            )
            if ttl_sec > 0:
                await self._cache.set(
                    key=cache_key,
                    ttl_sec=ttl_sec,
                    value=CachedResponseModel(
                        response=res,
                        ttl_sec=ttl_sec,
                    ).model_dump_json(),
                )
                logger.debug("Cached %s for %i secs", path, ttl_sec)

        res = res.model_copy(
            update={
                "headers": {
                    **res.headers,
                    "X-Cache": "Miss from edge",
                },
            },
        )
        return self._for_method(method, res)

    async def invalidate(
        self,
        path: str,
        headers: dict[str, str] | None = None,
        query: str = "",
    ) -> None:
        """
        Drop a cached response, the next request reaches the origin.
        """
        path = self._origin_path(path)
        await self._cache.delete(
            self._cache_key(
                headers=self._forwarded_headers(headers or {}),
                path=path,
                query=query,
            )
        )
        logger.info("Invalidated %s", path)

    async def _get(self, key: str) -> CachedResponseModel | None:
        raw = await self._cache.get(key)
        if not raw:
            return None
        try:
            return CachedResponseModel.model_validate_json(raw)
        except ValidationError:
            logger.warning("Dropping unreadable cache entry")
            await self._cache.delete(key)
        return None

    def _origin_path(self, path: str) -> str:
        """
        Rewrite the root path to the default root object.
        """
        if path in ("", "/") and self._config.default_root_object:
            return f"/{self._config.default_root_object.lstrip('/')}"
        return path

    def _forwarded_headers(self, headers: dict[str, str]) -> dict[str, str]:
        """
        Select the request headers part of the cache key, they are also forwarded to the origin.
        """
        lowered = {key.lower(): value for key, value in headers.items()}
        return {
            name.lower(): lowered[name.lower()]
            for name in self._config.cache_key_headers
            if name.lower() in lowered
        }

    @staticmethod
    def _cache_key(
        headers: dict[str, str],
        path: str,
        query: str,
    ) -> str:
        # GET and HEAD share the same entry
        key = f"GET {path}?{query}"
        for name in sorted(headers):
            key += f"\n{name}: {headers[name]}"
        return key

    @staticmethod
    def _for_method(method: str, res: HttpResponseModel) -> HttpResponseModel:
        if method == "HEAD":
            return res.model_copy(update={"body": b""})
        return res
