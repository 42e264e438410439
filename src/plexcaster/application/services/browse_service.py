# Hey future me - this is the inline-keyboard browse flow (/s <query>).
# There is NO per-user session: every button press carries a CallbackToken and the state is
# recomputed from the catalog each time. Old buttons keep working as long as Plex still has
# the entity; once it's gone the fetch raises CatalogError(NOT_FOUND) and the handler says so.
"""
BrowseStateMachine: search -> artist -> album -> delivery mode.

```
IDLE --search(query)--> SEARCH_RESULTS --artistById--> ARTIST_VIEW
                                                           |
                                         albumById         v
                                   ALBUM_VIEW <-------------
                                        |
                 downloadArchive / downloadSong
                                        v
                           DOWNLOAD_MODE_SELECTED
```

Every transition returns a BrowseView (state + HTML text + keyboard rows). The router turns
that into a Telegram message; the two download actions also SEND stuff themselves (a zip
document or media groups) before returning their confirmation view.
"""

import html
import logging
import os
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TypeVar

from plexcaster.application.services.acquisition_service import AcquisitionService
from plexcaster.application.services.caption_composer import CaptionComposer
from plexcaster.application.services.publisher import Publisher
from plexcaster.domain.entities import Album, Artist, Track
from plexcaster.domain.exceptions import (
    AcquisitionError,
    AcquisitionErrorKind,
    CatalogError,
    CatalogErrorKind,
)
from plexcaster.domain.ports import ICatalogClient, IChatTransport, InlineButton
from plexcaster.domain.value_objects.callback_token import (
    CallbackAction,
    CallbackToken,
    encode_token,
)

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", Artist, Album, Track)


# ═══════════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════════════════════


class BrowseState(str, Enum):
    IDLE = "idle"
    SEARCH_RESULTS = "search_results"
    ARTIST_VIEW = "artist_view"
    ALBUM_VIEW = "album_view"
    DOWNLOAD_MODE_SELECTED = "download_mode_selected"


@dataclass(frozen=True)
class BrowseView:
    """What the user sees after one step."""

    state: BrowseState
    text: str
    buttons: list[list[InlineButton]] = field(default_factory=list)


def album_directory(tracks: list[Track]) -> Path | None:
    """Common parent directory of the tracks' files (None if no track has a file)."""
    parents = [str(t.file.parent) for t in tracks if t.file is not None]
    if not parents:
        return None
    return Path(os.path.commonpath(parents))


# ═══════════════════════════════════════════════════════════════════════════════
# STATE MACHINE
# ═══════════════════════════════════════════════════════════════════════════════


class BrowseStateMachine:
    """Token driven browse/selection flow over the catalog."""

    def __init__(
        self,
        catalog: ICatalogClient,
        transport: IChatTransport,
        publisher: Publisher,
        acquisition: AcquisitionService,
        composer: CaptionComposer,
    ) -> None:
        self._catalog = catalog
        self._transport = transport
        self._publisher = publisher
        self._acquisition = acquisition
        self._composer = composer

    async def search(self, query: str) -> BrowseView:
        """IDLE -> SEARCH_RESULTS: one button per matching artist."""
        query = query.strip()
        if not query:
            return BrowseView(BrowseState.IDLE, "Usage: /s &lt;artist name&gt;")

        artists = await self._catalog.search(query)
        logger.info("Browse search %r: %d artist(s)", query, len(artists))
        if not artists:
            return BrowseView(BrowseState.SEARCH_RESULTS, "Nothing found.")

        buttons = [
            [InlineButton(artist.title, encode_token(CallbackAction.ARTIST_BY_ID, artist.id))]
            for artist in artists
        ]
        return BrowseView(BrowseState.SEARCH_RESULTS, "Artists found:", buttons)

    async def handle_token(self, chat_id: int | str, data: str) -> BrowseView:
        """
        Dispatch one button press.

        Raises:
            ValidationError: Malformed token
            CatalogError: Entity vanished from the catalog (stale button) or Plex failed
            AcquisitionError / PublishError: Delivery failed
        """
        token = CallbackToken.decode(data)
        logger.debug("Browse token %s", token)

        match token.action:
            case CallbackAction.ARTIST_BY_ID:
                return await self.show_artist(token.primary_id)
            case CallbackAction.ALBUM_BY_ID:
                return await self.show_album(token.primary_id)
            case CallbackAction.DOWNLOAD_ARCHIVE:
                return await self.send_archive(chat_id, token.primary_id)
            case CallbackAction.DOWNLOAD_SONG:
                return await self.send_songs(chat_id, token.primary_id)

    async def show_artist(self, artist_id: str) -> BrowseView:
        artist = await self._fetch(artist_id, Artist)
        albums = [c for c in await self._catalog.fetch_children(artist_id) if isinstance(c, Album)]

        buttons = [
            [
                InlineButton(
                    f"{album.title} ({album.year})" if album.year else album.title,
                    encode_token(CallbackAction.ALBUM_BY_ID, album.id),
                )
            ]
            for album in albums
        ]
        text = self._composer.compose_artist_card(artist)
        if not albums:
            text += "\n\nNo albums in the library."
        return BrowseView(BrowseState.ARTIST_VIEW, text, buttons)

    async def show_album(self, album_id: str) -> BrowseView:
        album = await self._fetch(album_id, Album)
        tracks = await self._tracks(album_id)

        buttons = [
            [
                InlineButton("Archive", encode_token(CallbackAction.DOWNLOAD_ARCHIVE, album.id)),
                InlineButton("Songs", encode_token(CallbackAction.DOWNLOAD_SONG, album.id)),
            ]
        ]
        return BrowseView(
            BrowseState.ALBUM_VIEW, self._composer.compose_tracklist(album, tracks), buttons
        )

    async def send_archive(self, chat_id: int | str, album_id: str) -> BrowseView:
        """Zip the album folder, send it as a document, always delete the zip."""
        album = await self._fetch(album_id, Album)
        directory = album_directory(await self._tracks(album_id))
        if directory is None:
            raise AcquisitionError(
                f"Album {album.title!r} has no files on disk",
                kind=AcquisitionErrorKind.FILESYSTEM,
            )

        archive = await self._acquisition.package_directory(directory)
        try:
            await self._transport.send_document(chat_id, archive)
        finally:
            shutil.rmtree(archive.parent, ignore_errors=True)

        return BrowseView(
            BrowseState.DOWNLOAD_MODE_SELECTED,
            f"Sent archive of {html.escape(album.title)}.",
        )

    async def send_songs(self, chat_id: int | str, album_id: str) -> BrowseView:
        album = await self._fetch(album_id, Album)
        report = await self._publisher.send_tracks(chat_id, await self._tracks(album_id))
        return BrowseView(
            BrowseState.DOWNLOAD_MODE_SELECTED,
            f"Sent {report.tracks_sent} track(s) of {html.escape(album.title)}.",
        )

    async def _fetch(self, entity_id: str, expected: type[EntityT]) -> EntityT:
        entity = await self._catalog.fetch_by_id(entity_id)
        if not isinstance(entity, expected):
            raise CatalogError(
                f"Catalog entity {entity_id} is not a {expected.__name__.lower()}",
                kind=CatalogErrorKind.NOT_FOUND,
            )
        return entity

    async def _tracks(self, album_id: str) -> list[Track]:
        return [c for c in await self._catalog.fetch_children(album_id) if isinstance(c, Track)]
