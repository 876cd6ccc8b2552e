from pydantic import BaseModel


class ApiModel(BaseModel):
    cache_control: str | None = None
    """
    `Cache-Control` header added to rendered pages.

    Unset by default, the edge then applies its own default TTL. Set it to `no-store` to make every configuration change visible on the next request.
    """
    title: str = "Dynamic HTML"
