"""Adapters for the external services (Plex, Telegram, plain HTTP downloads)."""

from plexcaster.infrastructure.integrations.http_pool import HttpClientPool
from plexcaster.infrastructure.integrations.plex_client import PlexClient
from plexcaster.infrastructure.integrations.telegram_transport import TelegramTransport

__all__ = [
    "HttpClientPool",
    "PlexClient",
    "TelegramTransport",
]
