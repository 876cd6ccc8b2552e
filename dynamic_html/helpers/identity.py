from azure.identity.aio import DefaultAzureCredential

from dynamic_html.helpers.cache import lru_acache
from dynamic_html.helpers.http import azure_transport


@lru_acache()
async def credential() -> DefaultAzureCredential:
    """
    Azure credential used by the App Configuration store.
    """
    return DefaultAzureCredential(
        # Performance
        transport=await azure_transport(),
    )
