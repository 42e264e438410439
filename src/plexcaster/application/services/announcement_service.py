"""Announcement Service - turns catalog entities into channel posts.

Used by /post, /last and /discography, and by the last stage of the ingestion pipeline
(announce whatever Plex picked up most recently).
"""

import logging

from plexcaster.application.services.caption_composer import CaptionComposer
from plexcaster.application.services.publisher import Publisher, PublishReport
from plexcaster.domain.entities import Album, Artist, Track
from plexcaster.domain.exceptions import CatalogError, CatalogErrorKind
from plexcaster.domain.ports import ICatalogClient

logger = logging.getLogger(__name__)


class AnnouncementService:
    """Composes and publishes album/discography posts to the broadcast channel."""

    def __init__(
        self,
        catalog: ICatalogClient,
        publisher: Publisher,
        composer: CaptionComposer,
        channel_id: int | str,
    ) -> None:
        """
        Initialize announcement service.

        Args:
            catalog: Catalog client (Plex)
            publisher: Sends the posts
            composer: Builds captions
            channel_id: Default destination ("@channel" or numeric id)
        """
        self._catalog = catalog
        self._publisher = publisher
        self._composer = composer
        self.channel_id = channel_id

    async def post_album(
        self, album_id: str, with_tracks: bool = True, chat_id: int | str | None = None
    ) -> PublishReport:
        """Publish cover + caption (+ tracks) of one album."""
        entity = await self._catalog.fetch_by_id(album_id)
        if not isinstance(entity, Album):
            raise CatalogError(
                f"Catalog entity {album_id} is not an album", kind=CatalogErrorKind.NOT_FOUND
            )
        return await self._announce(entity, with_tracks, chat_id)

    async def post_latest(self, limit: int = 1, chat_id: int | str | None = None) -> list[Album]:
        """
        Publish covers of the most recently added albums (no tracks).

        Plex lists newest first; posts go out oldest first so the channel reads
        chronologically.

        Returns:
            The albums that were announced, in posting order
        """
        albums = list(reversed(await self._catalog.recently_added(limit)))
        for album in albums:
            await self._announce(album, with_tracks=False, chat_id=chat_id)
        logger.info("Announced %d recently added album(s)", len(albums))
        return albums

    async def post_newest(self, chat_id: int | str | None = None) -> Album:
        """Publish the single newest album with its tracks (end of ingestion)."""
        albums = await self._catalog.recently_added(1)
        if not albums:
            raise CatalogError(
                "Catalog reports no recently added albums", kind=CatalogErrorKind.NOT_FOUND
            )
        await self._announce(albums[0], with_tracks=True, chat_id=chat_id)
        return albums[0]

    async def post_discography(
        self, artist_id: str, chat_id: int | str | None = None
    ) -> PublishReport:
        """Publish the artist image with the classified album listing."""
        entity = await self._catalog.fetch_by_id(artist_id)
        if not isinstance(entity, Artist):
            raise CatalogError(
                f"Catalog entity {artist_id} is not an artist", kind=CatalogErrorKind.NOT_FOUND
            )

        albums = [c for c in await self._catalog.fetch_children(artist_id) if isinstance(c, Album)]
        caption = self._composer.compose_discography(albums, artist=entity)
        return await self._publisher.publish(
            chat_id or self.channel_id, self._catalog.image_url(entity.thumb), caption
        )

    async def _announce(
        self, album: Album, with_tracks: bool, chat_id: int | str | None
    ) -> PublishReport:
        artist = await self._resolve_artist(album)
        caption = self._composer.compose_album_post(album, artist)

        tracks: list[Track] = []
        if with_tracks:
            tracks = [
                c for c in await self._catalog.fetch_children(album.id) if isinstance(c, Track)
            ]

        return await self._publisher.publish(
            chat_id or self.channel_id,
            self._catalog.image_url(album.thumb),
            caption,
            tracks,
        )

    # Hey future me - the album's own metadata has no country, so we look the artist up by
    # title. A failed lookup only costs the "Country:" line, the post still goes out.
    async def _resolve_artist(self, album: Album) -> Artist | None:
        if not album.artist_title:
            return None
        try:
            return await self._catalog.find_artist(album.artist_title)
        except CatalogError as e:
            logger.warning("Artist lookup for %r failed: %s", album.artist_title, e.message)
            return None
