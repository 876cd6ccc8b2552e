from aiohttp import ClientError, ClientTimeout

from dynamic_html.helpers.config_models.edge import HttpOriginModel
from dynamic_html.helpers.http import aiohttp_session
from dynamic_html.helpers.logging import logger
from dynamic_html.models.http import HttpResponseModel
from dynamic_html.persistence.iorigin import IOrigin, OriginTimeout, OriginUnreachable

# Hop-by-hop headers are connection specific, they are never relayed
# See: https://www.rfc-editor.org/rfc/rfc9110#section-7.6.1
_HOP_BY_HOP_HEADERS = {
    "connection",
    "content-length",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
}


class HttpOrigin(IOrigin):
    """
    Origin reached over HTTPS, typically the API Gateway stage of the Lambda function.
    """

    _config: HttpOriginModel

    def __init__(self, config: HttpOriginModel):
        logger.info("Using HTTP origin %s", config.url)
        self._config = config

    async def fetch(
        self,
        headers: dict[str, str],
        method: str,
        path: str,
        query: str = "",
    ) -> HttpResponseModel:
        url = self._config.url + path
        if query:
            url += f"?{query}"

        session = await aiohttp_session()
        try:
            async with session.request(
                headers={
                    **headers,
                    # The edge stores the body as-is, keep it uncompressed
                    "Accept-Encoding": "identity",
                },
                method=method,
                timeout=ClientTimeout(total=self._config.timeout_sec),
                url=url,
            ) as res:
                body = await res.read()
                return HttpResponseModel(
                    body=body,
                    headers={
                        key: value
                        for key, value in res.headers.items()
                        if key.lower() not in _HOP_BY_HOP_HEADERS
                    },
                    status_code=res.status,
                )
        except TimeoutError as e:
            raise OriginTimeout(f"Origin {url} did not answer in time") from e
        except ClientError as e:
            raise OriginUnreachable(f"Origin {url} is unreachable") from e
