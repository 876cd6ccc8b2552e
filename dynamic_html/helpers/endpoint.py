from http import HTTPStatus

from dynamic_html.helpers.cache import lru_cache
from dynamic_html.helpers.config import CONFIG
from dynamic_html.helpers.logging import logger
from dynamic_html.helpers.monitoring import (
    SpanAttributeEnum,
    counter_add,
    render_errors,
    start_as_current_span,
)
from dynamic_html.helpers.renderer import render
from dynamic_html.models.http import HttpResponseModel
from dynamic_html.persistence.iconfiguration import (
    ConfigurationUnavailable,
    IConfigurationStore,
)

HTML_PATH = "/html"


class HtmlEndpoint:
    """
    Request handling boundary serving the rendered page.

    Only `GET /html` is served. Each served request reads the configuration store exactly once, there is no retry and no state kept between requests.
    """

    _cache_control: str | None
    _parameter_name: str
    _store: IConfigurationStore
    _title: str

    def __init__(
        self,
        parameter_name: str,
        store: IConfigurationStore,
        cache_control: str | None = None,
        title: str = "Dynamic HTML",
    ):
        self._cache_control = cache_control
        self._parameter_name = parameter_name
        self._store = store
        self._title = title

    @property
    def parameter_name(self) -> str:
        return self._parameter_name

    @property
    def store(self) -> IConfigurationStore:
        return self._store

    @start_as_current_span("endpoint_handle")
    async def handle(self, method: str, path: str) -> HttpResponseModel:
        """
        Serve a request.

        Returns:
        - 200 with the rendered page
        - 404 if the path is not `/html`
        - 405 if the method is not `GET`
        - 502 if the configuration is unavailable
        - 500 on any other failure
        """
        SpanAttributeEnum.HTTP_METHOD.attribute(method)

        # Route
        if path != HTML_PATH:
            return HttpResponseModel.error(
                message=f"Path {path} not found",
                status_code=HTTPStatus.NOT_FOUND,
            )
        if method != "GET":
            return HttpResponseModel.error(
                headers={"Allow": "GET"},
                message=f"Method {method} not allowed",
                status_code=HTTPStatus.METHOD_NOT_ALLOWED,
            )

        # Read and render
        SpanAttributeEnum.PARAMETER_NAME.attribute(self._parameter_name)
        try:
            value = await self._store.get(self._parameter_name)
            document = render(
                title=self._title,
                value=value,
            )
        except ConfigurationUnavailable as e:
            logger.warning("Cannot render page: %s", e)
            counter_add(render_errors, 1)
            return HttpResponseModel.error(
                details=[e.reason],
                message="Configuration unavailable",
                status_code=HTTPStatus.BAD_GATEWAY,
            )
        except Exception:
            logger.exception("Unexpected error while rendering page")
            counter_add(render_errors, 1)
            return HttpResponseModel.error(
                message="Internal error",
                status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            )

        headers = {"Content-Type": document.content_type}
        if self._cache_control:
            headers["Cache-Control"] = self._cache_control
        return HttpResponseModel(
            body=document.body,
            headers=headers,
            status_code=HTTPStatus.OK,
        )


@lru_cache()
def default_endpoint() -> HtmlEndpoint:
    """
    Endpoint built from the settings.

    Object is cached, the store client is shared by all requests.
    """
    return HtmlEndpoint(
        cache_control=CONFIG.api.cache_control,
        parameter_name=CONFIG.parameter_name,
        store=CONFIG.store.instance,
        title=CONFIG.api.title,
    )
