from abc import ABC, abstractmethod

from dynamic_html.helpers.monitoring import start_as_current_span
from dynamic_html.models.http import HttpResponseModel


class OriginUnreachable(Exception):
    pass


class OriginTimeout(Exception):
    pass


class IOrigin(ABC):
    """
    Upstream the edge forwards cache misses to.
    """

    @abstractmethod
    @start_as_current_span("origin_fetch")
    async def fetch(
        self,
        headers: dict[str, str],
        method: str,
        path: str,
        query: str = "",
    ) -> HttpResponseModel:
        """
        Forward a request to the origin.

        Raises `OriginUnreachable` if the connection fails, `OriginTimeout` if the origin does not answer in time.
        """
        pass
