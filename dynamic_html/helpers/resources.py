from pathlib import Path

from dynamic_html.helpers.cache import lru_cache


@lru_cache()  # Cache results in memory as resources are not expected to change
def resources_dir(folder: str) -> str:
    """
    Get the absolute path to a folder of the packaged resources.
    """
    return str((Path(__file__).parent.parent / "resources" / folder).resolve())
