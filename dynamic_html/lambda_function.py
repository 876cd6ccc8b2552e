import asyncio
from base64 import b64encode
from typing import Any

from dynamic_html.helpers.config import CONFIG
from dynamic_html.helpers.endpoint import HtmlEndpoint, default_endpoint
from dynamic_html.helpers.logging import logger
from dynamic_html.helpers.monitoring import SpanAttributeEnum
from dynamic_html.models.http import HttpResponseModel

# First log, once per cold start
logger.info(
    "dynamic-html Lambda v%s, serving parameter %s",
    CONFIG.version,
    CONFIG.parameter_name,
)

# Loop is kept between invocations of a warm container, async clients are bound to it
_loop = asyncio.new_event_loop()


def handler(
    event: dict[str, Any],
    context: Any,  # noqa: ARG001
    endpoint: HtmlEndpoint | None = None,
) -> dict[str, Any]:
    """
    AWS Lambda entry point for API Gateway proxy integrations.

    Both REST API (payload v1) and HTTP API (payload v2) events are supported.

    Returns the proxy response dict expected by API Gateway.
    """
    method, path = request_line(event)
    # Run in a task, attributes bound to the log context do not leak to the next invocation
    res = _loop.run_until_complete(
        _handle(
            endpoint=endpoint or default_endpoint(),
            method=method,
            path=path,
        )
    )
    return to_proxy_response(res)


async def _handle(
    endpoint: HtmlEndpoint,
    method: str,
    path: str,
) -> HttpResponseModel:
    res = await endpoint.handle(
        method=method,
        path=path,
    )
    SpanAttributeEnum.HTTP_STATUS.attribute(res.status_code)
    return res


def request_line(event: dict[str, Any]) -> tuple[str, str]:
    """
    Extract the method and the path from a proxy event.

    For HTTP API events, the stage prefix is removed from the raw path.
    """
    # HTTP API, payload v2
    if event.get("version") == "2.0":
        context = event.get("requestContext", {})
        method = context.get("http", {}).get("method", "")
        path = event.get("rawPath", "")
        stage = context.get("stage")
        if stage and stage != "$default" and path.startswith(f"/{stage}/"):
            path = path[len(stage) + 1 :]
        return method, path

    # REST API, payload v1, path is already relative to the stage
    return event.get("httpMethod", ""), event.get("path", "")


def to_proxy_response(res: HttpResponseModel) -> dict[str, Any]:
    """
    Convert a response to the API Gateway proxy format.

    Text bodies are sent as-is, other bodies are base64 encoded.
    """
    try:
        body = res.body.decode("utf-8")
        is_base64 = False
    except UnicodeDecodeError:
        body = b64encode(res.body).decode("ascii")
        is_base64 = True
    return {
        "body": body,
        "headers": res.headers,
        "isBase64Encoded": is_base64,
        "statusCode": res.status_code,
    }
