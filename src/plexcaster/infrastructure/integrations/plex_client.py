"""Plex Media Server HTTP client (the catalog)."""

import logging
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from plexcaster.config.settings import PlexSettings
from plexcaster.domain.entities import Album, Artist, CatalogEntity
from plexcaster.domain.exceptions import CatalogError, CatalogErrorKind
from plexcaster.domain.ports import ICatalogClient
from plexcaster.infrastructure.integrations.plex_schemas import (
    PlexResponse,
    parse_items,
)

logger = logging.getLogger(__name__)


class PlexClient(ICatalogClient):
    """HTTP client for the Plex music section.

    Constructed ONCE at startup with its settings and injected everywhere that needs
    catalog access. No retries, no backoff: a failing call raises CatalogError and the
    pipeline stage / handler that made it decides what happens.
    """

    TOKEN_PARAM = "X-Plex-Token"

    # Hey future me, the token goes into EVERY request as a query param (that's how Plex
    # wants it for JSON clients) - it is NOT baked into the AsyncClient, so the client
    # holds no credential state besides the settings object.
    def __init__(self, settings: PlexSettings) -> None:
        """
        Initialize Plex client.

        Args:
            settings: Plex connection settings
        """
        self.settings = settings
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.url,
                headers={"Accept": "application/json"},
                timeout=self.settings.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> PlexResponse:
        """
        GET a Plex endpoint and validate the MediaContainer envelope.

        Raises:
            CatalogError: Transport error, non-2xx status or unusable JSON
        """
        query = {**(params or {}), self.TOKEN_PARAM: self.settings.token}
        client = await self._get_client()

        try:
            response = await client.get(path, params=query)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            kind = (
                CatalogErrorKind.NOT_FOUND if status == 404 else CatalogErrorKind.UPSTREAM
            )
            raise CatalogError(
                f"Plex returned {status} for {path}", kind=kind, http_status=status
            ) from e
        except httpx.HTTPError as e:
            raise CatalogError(f"Plex request failed: {path}: {e}") from e

        try:
            return PlexResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise CatalogError(
                f"Unexpected Plex response for {path}",
                kind=CatalogErrorKind.INVALID_RESPONSE,
            ) from e

    def _entities(self, path: str, raw_items: list[dict[str, Any]]) -> list[CatalogEntity]:
        try:
            return parse_items(raw_items)
        except PydanticValidationError as e:
            raise CatalogError(
                f"Unexpected Plex metadata for {path}",
                kind=CatalogErrorKind.INVALID_RESPONSE,
            ) from e

    async def search(self, query: str) -> list[Artist]:
        """
        Search artists in the music section.

        Args:
            query: Free text

        Returns:
            Artists of the "artist" hub, empty list if Plex found none
        """
        path = "/hubs/search"
        data = await self._get(
            path, params={"query": query, "sectionId": self.settings.section_id}
        )

        hub = next((h for h in data.media_container.hubs if h.type == "artist"), None)
        if hub is None:
            return []
        return [e for e in self._entities(path, hub.metadata) if isinstance(e, Artist)]

    async def fetch_by_id(self, entity_id: str) -> CatalogEntity:
        """
        Fetch one artist/album/track by ratingKey.

        Raises:
            CatalogError: NOT_FOUND if Plex doesn't know the id
        """
        path = f"/library/metadata/{entity_id}"
        data = await self._get(path)
        entities = self._entities(path, data.media_container.metadata)
        if not entities:
            raise CatalogError(
                f"Catalog entity {entity_id} not found", kind=CatalogErrorKind.NOT_FOUND
            )
        return entities[0]

    async def fetch_children(self, entity_id: str) -> list[CatalogEntity]:
        """Albums of an artist or tracks of an album, in Plex order."""
        path = f"/library/metadata/{entity_id}/children"
        data = await self._get(path)
        return self._entities(path, data.media_container.metadata)

    async def recently_added(self, limit: int = 1) -> list[Album]:
        """Most recently added albums (newest first)."""
        path = "/library/recentlyAdded"
        data = await self._get(path, params={"limit": limit})
        albums = [
            e
            for e in self._entities(path, data.media_container.metadata)
            if isinstance(e, Album)
        ]
        return albums[:limit]

    async def find_artist(self, title: str) -> Artist | None:
        """Artist with exactly this title in the music section, if any."""
        path = f"/library/sections/{self.settings.section_id}/all"
        data = await self._get(path, params={"title": title})
        return next(
            (
                e
                for e in self._entities(path, data.media_container.metadata)
                if isinstance(e, Artist)
            ),
            None,
        )

    # Yo, refresh is fire-and-forget: Plex answers 200 immediately and scans in the
    # background. We only wait for the HTTP round trip, never for the scan itself.
    async def refresh(self) -> None:
        """Trigger a rescan of the music section."""
        path = f"/library/sections/{self.settings.section_id}/refresh"
        query = {self.TOKEN_PARAM: self.settings.token}
        client = await self._get_client()
        try:
            response = await client.get(path, params=query)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise CatalogError(f"Plex refresh failed: {e}") from e
        logger.info("Requested Plex refresh of section %s", self.settings.section_id)

    def image_url(self, thumb: str | None) -> str | None:
        """Authenticated absolute URL for a thumb path like /library/metadata/1/thumb/123."""
        if not thumb:
            return None
        return f"{self.settings.url}{thumb}?{self.TOKEN_PARAM}={self.settings.token}"

    def web_url(self, entity_id: str) -> str | None:
        """Plex web page of an entity (None when no web_url is configured)."""
        if not self.settings.web_url:
            return None
        return f"{self.settings.web_url}/details?key=/library/metadata/{entity_id}"
