from http import HTTPStatus

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from dynamic_html.helpers.logging import logger
from dynamic_html.helpers.monitoring import SpanAttributeEnum
from dynamic_html.models.http import HttpResponseModel


def to_response(res: HttpResponseModel) -> Response:
    """
    Convert a framework independent response to a Starlette response.

    Headers are passed as-is, `Content-Type` is never guessed.
    """
    SpanAttributeEnum.HTTP_STATUS.attribute(res.status_code)
    return Response(
        content=res.body,
        headers=res.headers,
        status_code=res.status_code,
    )


async def http_exception_handler(
    request: Request,  # noqa: ARG001
    exc: StarletteHTTPException,
) -> Response:
    """
    Handle HTTP exceptions and return the error in a standard format.
    """
    return to_response(
        HttpResponseModel.error(
            message=str(exc.detail),
            status_code=HTTPStatus(exc.status_code),
        )
    )


async def validation_exception_handler(
    request: Request,  # noqa: ARG001
    exc: RequestValidationError,
) -> Response:
    """
    Handle validation exceptions and return the error in a standard format.
    """
    return to_response(
        HttpResponseModel.error(
            details=[str(x) for x in exc.errors()],
            message="Validation error",
            status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
        )
    )


async def internal_exception_handler(
    request: Request,  # noqa: ARG001
    exc: Exception,
) -> Response:
    """
    Handle unexpected exceptions, the cause is logged and never returned.
    """
    logger.error("Unexpected error", exc_info=exc)
    return to_response(
        HttpResponseModel.error(
            message="Internal error",
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        )
    )
