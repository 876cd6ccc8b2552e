from jinja2 import Environment, FileSystemLoader

from dynamic_html.helpers.monitoring import start_as_current_span
from dynamic_html.helpers.resources import resources_dir
from dynamic_html.models.document import RenderedDocumentModel

# Jinja configuration
_jinja = Environment(
    auto_reload=False,  # Disable auto-reload for performance
    autoescape=True,  # Configuration values are operator input, never trust them as markup
    loader=FileSystemLoader(resources_dir("public_website")),
)
_template = _jinja.get_template("index.html.jinja")


@start_as_current_span("render")
def render(
    value: str,
    title: str = "Dynamic HTML",
) -> RenderedDocumentModel:
    """
    Render the HTML page embedding a configuration value.

    The value is HTML-escaped, any string is accepted, including an empty one. The function is pure, the same input always produces the same document.
    """
    return RenderedDocumentModel(
        content=_template.render(
            title=title,
            value=value,
        ),
    )
