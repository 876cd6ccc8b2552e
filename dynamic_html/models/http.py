from datetime import UTC, datetime
from http import HTTPStatus

from pydantic import BaseModel, ConfigDict, Field

from dynamic_html.models.error import ErrorInnerModel, ErrorModel


class HttpResponseModel(BaseModel):
    """
    Framework independent HTTP response.

    Shared by the API endpoint, the Lambda handler and the edge cache.
    """

    # Bodies are binary, base64 keeps the JSON payload valid for any content
    model_config = ConfigDict(
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    body: bytes = b""
    headers: dict[str, str] = {}
    status_code: int = HTTPStatus.OK

    def header(self, name: str) -> str | None:
        """
        Get a header value, case-insensitive.
        """
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return None

    @classmethod
    def error(
        cls,
        message: str,
        status_code: HTTPStatus,
        details: list[str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> "HttpResponseModel":
        """
        Build a JSON error response in the standard `ErrorModel` format.
        """
        model = ErrorModel(
            error=ErrorInnerModel(
                details=details or [],
                message=message,
            )
        )
        return cls(
            body=model.model_dump_json().encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                **(headers or {}),
            },
            status_code=status_code,
        )


class CachedResponseModel(BaseModel):
    """
    Response stored by the edge cache.
    """

    response: HttpResponseModel
    stored_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    ttl_sec: int

    def age_sec(self) -> int:
        """
        Seconds elapsed since the response was stored.
        """
        return max(0, int((datetime.now(UTC) - self.stored_at).total_seconds()))
