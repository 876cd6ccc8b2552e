from pydantic import BaseModel, Field

HTML_CONTENT_TYPE = "text/html"


class RenderedDocumentModel(BaseModel, frozen=True):
    """
    HTML document produced by the renderer.

    Document is ephemeral, it is produced fresh for each request and never stored by the API.
    """

    content: str
    content_type: str = Field(default=HTML_CONTENT_TYPE)

    @property
    def body(self) -> bytes:
        return self.content.encode("utf-8")
