from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Annotated

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dynamic_html.helpers.config import CONFIG
from dynamic_html.helpers.endpoint import HtmlEndpoint, default_endpoint
from dynamic_html.helpers.http import aiohttp_session
from dynamic_html.helpers.logging import logger
from dynamic_html.helpers.monitoring import start_as_current_span
from dynamic_html.helpers.responses import (
    http_exception_handler,
    internal_exception_handler,
    to_response,
    validation_exception_handler,
)
from dynamic_html.models.readiness import (
    ReadinessCheckModel,
    ReadinessEnum,
    ReadinessModel,
)

# First log
logger.info(
    "dynamic-html API v%s, serving parameter %s",
    CONFIG.version,
    CONFIG.parameter_name,
)


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    yield

    # Close HTTP session
    await (await aiohttp_session()).close()


# FastAPI
api = FastAPI(
    description="Render an HTML page from a value held in a centralized configuration store.",
    lifespan=lifespan,
    title="dynamic-html",
    version=CONFIG.version,
)


def get_endpoint() -> HtmlEndpoint:
    """
    Dependency providing the HTML endpoint, overridable in tests.
    """
    return default_endpoint()


@api.get(
    "/health/liveness",
    status_code=HTTPStatus.NO_CONTENT,
)
@start_as_current_span("health_liveness_get")
async def health_liveness_get() -> None:
    """
    Check if the service is running.

    No parameters are expected.

    Returns a 204 No Content if the service is technically running.
    """
    return


@api.get(
    "/health/readiness",
    status_code=HTTPStatus.OK,
)
@start_as_current_span("health_readiness_get")
async def health_readiness_get(
    endpoint: Annotated[HtmlEndpoint, Depends(get_endpoint)],
) -> JSONResponse:
    """
    Check if the service is ready to serve requests.

    No parameters are expected. Services tested are: configuration store, with the configured entry.

    Returns a 200 OK if the service is ready to serve requests. If the service is not ready, it returns a 503 Service Unavailable.
    """
    store_check = await endpoint.store.readiness(endpoint.parameter_name)
    readiness = ReadinessModel(
        status=ReadinessEnum.OK,
        checks=[
            ReadinessCheckModel(id="startup", status=ReadinessEnum.OK),
            ReadinessCheckModel(id="store", status=store_check),
        ],
    )
    # If one of the checks fails, the whole readiness fails
    status_code = HTTPStatus.OK
    for check in readiness.checks:
        if check.status != ReadinessEnum.OK:
            readiness.status = ReadinessEnum.FAIL
            status_code = HTTPStatus.SERVICE_UNAVAILABLE
            break
    return JSONResponse(
        content=readiness.model_dump(mode="json"),
        status_code=status_code,
    )


@api.api_route(
    "/{path:path}",
    include_in_schema=False,
    methods=["DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT"],
)
@start_as_current_span("html_route")
async def html_route(
    endpoint: Annotated[HtmlEndpoint, Depends(get_endpoint)],
    request: Request,
) -> Response:
    """
    Serve the rendered page on `GET /html`.

    Every other method and path is answered by the endpoint itself, with a 404 or a 405, without reading the configuration store.
    """
    res = await endpoint.handle(
        method=request.method,
        path=request.url.path,
    )
    return to_response(res)


# Errors are returned in the standard format
api.add_exception_handler(Exception, internal_exception_handler)
api.add_exception_handler(RequestValidationError, validation_exception_handler)
api.add_exception_handler(StarletteHTTPException, http_exception_handler)
