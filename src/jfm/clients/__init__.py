"""API clients for Jellyfin servers."""

from jfm.clients.base import BaseClient
from jfm.clients.jellyfin import JellyfinClient

__all__ = [
    "BaseClient",
    "JellyfinClient",
]
