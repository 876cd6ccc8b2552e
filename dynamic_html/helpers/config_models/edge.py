from enum import Enum
from functools import cached_property
from ipaddress import ip_network

from pydantic import BaseModel, Field, field_validator, model_validator

from dynamic_html.persistence.iorigin import IOrigin


class ViewerProtocolPolicyEnum(str, Enum):
    ALLOW_ALL = "allow-all"
    """Forward both HTTP and HTTPS requests."""
    HTTPS_ONLY = "https-only"
    """Reject plain HTTP requests with a 403."""
    REDIRECT_TO_HTTPS = "redirect-to-https"
    """Redirect plain HTTP requests to HTTPS with a 301."""


class OriginModeEnum(str, Enum):
    HTTP = "http"
    """Forward to a remote API over HTTPS."""
    LOCAL = "local"
    """Call the API endpoint in-process."""


class HttpOriginModel(BaseModel, frozen=True):
    timeout_sec: int = Field(default=30, ge=1)
    url: str

    @field_validator("url")
    @classmethod
    def _validate_url(cls, url: str) -> str:
        if not url.startswith("https://"):
            raise ValueError("Origin must be reached over HTTPS")
        return url.rstrip("/")

    @cached_property
    def instance(self) -> IOrigin:
        from dynamic_html.persistence.http_origin import (
            HttpOrigin,
        )

        return HttpOrigin(self)


class LocalOriginModel(BaseModel, frozen=True):
    @cached_property
    def instance(self) -> IOrigin:
        from dynamic_html.helpers.endpoint import default_endpoint
        from dynamic_html.persistence.local_origin import (
            LocalOrigin,
        )

        return LocalOrigin(default_endpoint())


class OriginModel(BaseModel):
    http: HttpOriginModel | None = None
    local: LocalOriginModel | None = (
        LocalOriginModel()
    )  # Object is fully defined by default
    mode: OriginModeEnum = OriginModeEnum.LOCAL

    @model_validator(mode="after")
    def _validate_mode(self) -> "OriginModel":
        if self.mode == OriginModeEnum.HTTP and not self.http:
            raise ValueError("HTTP origin config required")
        if self.mode == OriginModeEnum.LOCAL and not self.local:
            raise ValueError("Local origin config required")
        return self

    @cached_property
    def instance(self) -> IOrigin:
        if self.mode == OriginModeEnum.HTTP:
            assert self.http
            return self.http.instance

        assert self.local
        return self.local.instance


class EdgeModel(BaseModel):
    cache_key_headers: list[str] = []
    """Request headers, in addition to method and path, that split the cache."""
    default_root_object: str = "html"
    """Object served when the root path is requested."""
    default_ttl_sec: int = Field(default=86400, ge=0)  # 1 day
    """Freshness applied when the origin sends no `Cache-Control` directive."""
    max_ttl_sec: int = Field(default=31536000, ge=0)  # 1 year
    min_ttl_sec: int = Field(default=0, ge=0)
    origin: OriginModel = OriginModel()  # Object is fully defined by default
    trusted_proxies: list[str] = []
    """Addresses or networks of the proxies allowed to set `X-Forwarded-Proto`."""
    viewer_protocol_policy: ViewerProtocolPolicyEnum = (
        ViewerProtocolPolicyEnum.REDIRECT_TO_HTTPS
    )

    @field_validator("trusted_proxies")
    @classmethod
    def _validate_trusted_proxies(cls, trusted_proxies: list[str]) -> list[str]:
        for proxy in trusted_proxies:
            ip_network(proxy, strict=False)  # Raises ValueError if invalid
        return trusted_proxies

    @model_validator(mode="after")
    def _validate_ttl(self) -> "EdgeModel":
        if self.min_ttl_sec > self.max_ttl_sec:
            raise ValueError("min_ttl_sec must be lower or equal to max_ttl_sec")
        return self
