"""Shared HTTP client pool for file downloads.

Hey future me - this is the client for ARBITRARY download URLs (file hosters, Telegram's
file endpoint). The Plex client has its own AsyncClient because it carries a base_url.
Archives can be hundreds of MB, so the read timeout is generous and redirects are
followed (most hosters bounce through a CDN).

Usage:
    client = await HttpClientPool.get_client()
    async with client.stream("GET", url) as response:
        ...

HttpClientPool.close() is called from the bot's post_shutdown hook (see lifecycle.py).
"""

import asyncio
import logging
from typing import ClassVar

import httpx

logger = logging.getLogger(__name__)


class HttpClientPool:
    """Singleton HTTP client pool for connection reuse.

    - Lazy initialization (created on first use)
    - Safe initialization via asyncio.Lock
    - Proper cleanup at shutdown
    """

    _client: ClassVar[httpx.AsyncClient | None] = None
    _lock: ClassVar[asyncio.Lock | None] = None

    DEFAULT_CONNECT_TIMEOUT: ClassVar[float] = 15.0
    # Per-chunk read timeout, not total transfer time
    DEFAULT_READ_TIMEOUT: ClassVar[float] = 120.0
    DEFAULT_MAX_CONNECTIONS: ClassVar[int] = 10

    @classmethod
    async def _ensure_lock(cls) -> asyncio.Lock:
        """Create the lock inside the running event loop."""
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        return cls._lock

    @classmethod
    async def get_client(cls) -> httpx.AsyncClient:
        """Get the shared HTTP client instance.

        Returns:
            Shared httpx.AsyncClient instance
        """
        lock = await cls._ensure_lock()

        async with lock:
            if cls._client is None:
                cls._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(
                        cls.DEFAULT_READ_TIMEOUT, connect=cls.DEFAULT_CONNECT_TIMEOUT
                    ),
                    limits=httpx.Limits(max_connections=cls.DEFAULT_MAX_CONNECTIONS),
                    follow_redirects=True,
                )
                logger.info(
                    "HTTP client pool initialized (connect=%.1fs, read=%.1fs, max_conn=%d)",
                    cls.DEFAULT_CONNECT_TIMEOUT,
                    cls.DEFAULT_READ_TIMEOUT,
                    cls.DEFAULT_MAX_CONNECTIONS,
                )

            return cls._client

    @classmethod
    async def close(cls) -> None:
        """Close the shared HTTP client and release all connections."""
        lock = await cls._ensure_lock()

        async with lock:
            if cls._client is not None:
                await cls._client.aclose()
                cls._client = None
                logger.info("HTTP client pool closed")

    @classmethod
    def is_initialized(cls) -> bool:
        """Check if the client pool has been initialized."""
        return cls._client is not None
