from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Annotated

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from dynamic_html.helpers.cache import lru_cache
from dynamic_html.helpers.config import CONFIG
from dynamic_html.helpers.edge_cache import EdgeCache, viewer_scheme
from dynamic_html.helpers.http import aiohttp_session
from dynamic_html.helpers.logging import logger
from dynamic_html.helpers.monitoring import start_as_current_span
from dynamic_html.helpers.responses import (
    http_exception_handler,
    internal_exception_handler,
    to_response,
    validation_exception_handler,
)

# First log
logger.info(
    "dynamic-html edge v%s, origin %s, viewer protocol policy %s",
    CONFIG.version,
    CONFIG.edge.origin.mode.value,
    CONFIG.edge.viewer_protocol_policy.value,
)


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    yield

    # Close HTTP session
    await (await aiohttp_session()).close()


# FastAPI, the edge exposes no documentation, every path belongs to the origin
edge = FastAPI(
    docs_url=None,
    lifespan=lifespan,
    openapi_url=None,
    redoc_url=None,
    title="dynamic-html-edge",
    version=CONFIG.version,
)


@lru_cache()
def default_edge_cache() -> EdgeCache:
    """
    Edge cache built from the settings.
    """
    return EdgeCache(
        cache=CONFIG.cache.instance,
        config=CONFIG.edge,
        origin=CONFIG.edge.origin.instance,
    )


def get_edge_cache() -> EdgeCache:
    """
    Dependency providing the edge cache, overridable in tests.
    """
    return default_edge_cache()


@edge.api_route(
    "/{path:path}",
    methods=["DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT"],
    status_code=HTTPStatus.OK,
)
@start_as_current_span("edge_route")
async def edge_route(
    edge_cache: Annotated[EdgeCache, Depends(get_edge_cache)],
    request: Request,
) -> Response:
    """
    Forward a viewer request through the edge cache.

    Scheme is read from `X-Forwarded-Proto` only when the connection comes from one of `edge.trusted_proxies`, e.g. a TLS terminating load balancer.
    """
    res = await edge_cache.handle(
        headers=dict(request.headers),
        host=request.headers.get("host", request.url.netloc),
        method=request.method,
        path=request.url.path,
        query=request.url.query,
        scheme=viewer_scheme(
            client_host=request.client.host if request.client else None,
            forwarded_proto=request.headers.get("x-forwarded-proto"),
            scheme=request.url.scheme,
            trusted_proxies=edge_cache.config.trusted_proxies,
        ),
    )
    return to_response(res)


# Errors are returned in the standard format
edge.add_exception_handler(Exception, internal_exception_handler)
edge.add_exception_handler(RequestValidationError, validation_exception_handler)
edge.add_exception_handler(StarletteHTTPException, http_exception_handler)
