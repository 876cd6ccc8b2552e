import random
import string

import pytest

from dynamic_html.helpers.config_models.cache import MemoryModel as CacheMemoryModel
from dynamic_html.helpers.config_models.edge import EdgeModel
from dynamic_html.helpers.config_models.store import (
    DEFAULT_PARAMETER_NAME,
    MemoryModel as StoreMemoryModel,
)
from dynamic_html.helpers.edge_cache import EdgeCache
from dynamic_html.helpers.endpoint import HtmlEndpoint
from dynamic_html.models.http import HttpResponseModel
from dynamic_html.models.readiness import ReadinessEnum
from dynamic_html.persistence.iconfiguration import (
    ConfigurationUnavailable,
    IConfigurationStore,
)
from dynamic_html.persistence.iorigin import IOrigin
from dynamic_html.persistence.memory import MemoryCache
from dynamic_html.persistence.memory_configuration import MemoryConfigurationStore


class ConfigurationStoreMock(IConfigurationStore):
    """
    Configuration store counting reads.

    A `None` value simulates a missing entry, an exception is raised as-is.
    """

    calls: int
    value: str | Exception | None

    def __init__(self, value: str | Exception | None) -> None:
        self.calls = 0
        self.value = value

    async def readiness(self, name: str) -> ReadinessEnum:  # noqa: ARG002
        return ReadinessEnum.FAIL if self.value is None else ReadinessEnum.OK

    async def get(self, name: str) -> str:
        self.calls += 1
        if self.value is None:
            raise ConfigurationUnavailable(
                name=name,
                reason="parameter not found",
            )
        if isinstance(self.value, Exception):
            raise self.value
        return self.value


class OriginMock(IOrigin):
    """
    Origin recording forwarded requests and answering with a fixed response.
    """

    requests: list[tuple[str, str, str, dict[str, str]]]
    response: HttpResponseModel | Exception

    def __init__(self, response: HttpResponseModel | Exception) -> None:
        self.requests = []
        self.response = response

    async def fetch(
        self,
        headers: dict[str, str],
        method: str,
        path: str,
        query: str = "",
    ) -> HttpResponseModel:
        self.requests.append((method, path, query, headers))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


@pytest.fixture
def random_text() -> str:
    text = "".join(random.choice(string.printable) for _ in range(100))
    return text


@pytest.fixture
def store() -> MemoryConfigurationStore:
    return MemoryConfigurationStore(StoreMemoryModel())


@pytest.fixture
def endpoint(store: MemoryConfigurationStore) -> HtmlEndpoint:
    return HtmlEndpoint(
        parameter_name=DEFAULT_PARAMETER_NAME,
        store=store,
    )


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache(CacheMemoryModel())


@pytest.fixture
def html_response() -> HttpResponseModel:
    return HttpResponseModel(
        body=b"<!DOCTYPE html><p>cached</p>",
        headers={"Content-Type": "text/html"},
    )


def edge_cache_factory(
    cache: MemoryCache,
    origin: IOrigin,
    **config,
) -> EdgeCache:
    return EdgeCache(
        cache=cache,
        config=EdgeModel(**config),
        origin=origin,
    )
