from dynamic_html.helpers.endpoint import HtmlEndpoint
from dynamic_html.models.http import HttpResponseModel
from dynamic_html.persistence.iorigin import IOrigin


class LocalOrigin(IOrigin):
    """
    Origin calling the API endpoint in the same process.

    Used for local development and tests, the network hop is skipped.
    """

    _endpoint: HtmlEndpoint

    def __init__(self, endpoint: HtmlEndpoint):
        self._endpoint = endpoint

    async def fetch(
        self,
        headers: dict[str, str],  # noqa: ARG002
        method: str,
        path: str,
        query: str = "",  # noqa: ARG002
    ) -> HttpResponseModel:
        return await self._endpoint.handle(
            method=method,
            path=path,
        )
