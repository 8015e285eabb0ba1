"""Remote content-management API client."""

from src.content_api.client import ContentApiClient, ContentApiError

__all__ = [
    "ContentApiClient",
    "ContentApiError",
]
