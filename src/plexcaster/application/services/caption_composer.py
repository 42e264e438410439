"""Caption Composer - all user-visible post text in one place.

Everything returned here is Telegram HTML (parse_mode=HTML). Catalog strings are escaped
with html.escape before they go into a template, so a band called "<Nothing>" doesn't
break the message.

Hey future me - links are OPTIONAL. The composer gets a url_builder (PlexClient.web_url)
when a Plex web URL is configured; without one every title is plain text. Tests use the
plain variant so expected strings stay readable.
"""

import html
import logging
from collections.abc import Callable, Iterable

from plexcaster.domain.entities import Album, Artist, Track
from plexcaster.domain.value_objects.album_types import (
    SECTION_ORDER,
    AlbumType,
    strip_type_marker,
)

logger = logging.getLogger(__name__)

# Telegram Bot API limits (characters)
CAPTION_LIMIT = 1024
MESSAGE_LIMIT = 4096

GENRE_SEPARATOR = " / "

UrlBuilder = Callable[[str], str | None]


def format_duration(ms: int) -> str:
    """Milliseconds as zero padded "mm:ss", seconds floored.

    Example:
        >>> format_duration(125000)
        "02:05"
        >>> format_duration(59999)
        "00:59"
    """
    total_seconds = max(ms, 0) // 1000
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


def split_text(text: str, limit: int = MESSAGE_LIMIT) -> list[str]:
    """Split text into chunks of at most `limit` characters on line boundaries.

    A single line longer than the limit is cut hard (no tag awareness, our templates
    never produce such lines).
    """
    chunks: list[str] = []
    current = ""
    for line in text.split("\n"):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]

        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            chunks.append(current)
            current = line
        else:
            current = candidate

    if current.strip():
        chunks.append(current)
    return chunks


def fit_caption(caption: str) -> tuple[str | None, list[str]]:
    """Decide how a caption travels with its photo.

    Returns:
        (photo_caption, follow_up_messages). Short captions stay on the photo; long ones
        move to follow-up text messages and the photo goes out bare.
    """
    if len(caption) <= CAPTION_LIMIT:
        return caption, []
    return None, split_text(caption)


class CaptionComposer:
    """Builds captions, discography listings and track lists."""

    def __init__(self, url_builder: UrlBuilder | None = None) -> None:
        self._url_builder = url_builder

    def _link(self, text: str, entity_id: str | None) -> str:
        escaped = html.escape(text)
        if self._url_builder is None or entity_id is None:
            return escaped
        url = self._url_builder(entity_id)
        if not url:
            return escaped
        return f'<a href="{html.escape(url, quote=True)}">{escaped}</a>'

    @staticmethod
    def _genres(genres: Iterable[str]) -> str | None:
        names = [html.escape(g) for g in genres if g]
        return GENRE_SEPARATOR.join(names) if names else None

    # -------------------------------------------------------------------------
    # Discography
    # -------------------------------------------------------------------------

    def compose_discography(self, albums: list[Album], artist: Artist | None = None) -> str:
        """
        Classified album listing.

        One section per non-empty AlbumType in display order, albums numbered from 1
        inside each section and kept in catalog order:

            <b>Singles</b>
            1. X (2001)

        Args:
            albums: Albums in catalog order
            artist: Optional artist for a heading line

        Returns:
            HTML text (empty string when there are no albums and no artist)
        """
        buckets: dict[AlbumType, list[Album]] = {t: [] for t in SECTION_ORDER}
        for album in albums:
            buckets[album.album_type].append(album)

        blocks: list[str] = []
        if artist is not None:
            blocks.append(f"<b>{self._link(artist.title, artist.id)}</b>")

        for album_type in SECTION_ORDER:
            entries = buckets[album_type]
            if not entries:
                continue
            lines = [f"<b>{album_type.section_title}</b>"]
            for n, album in enumerate(entries, start=1):
                title = self._link(strip_type_marker(album.title, album_type), album.id)
                year = f" ({album.year})" if album.year is not None else ""
                lines.append(f"{n}. {title}{year}")
            blocks.append("\n".join(lines))

        return "\n\n".join(blocks)

    # -------------------------------------------------------------------------
    # Announcements
    # -------------------------------------------------------------------------

    def compose_album_post(self, album: Album, artist: Artist | None = None) -> str:
        """Channel caption: "<Artist> - <Album> (<year>)", then genres and country."""
        artist_title = artist.title if artist else (album.artist_title or "Unknown Artist")
        artist_id = artist.id if artist else album.artist_id

        headline = f"{self._link(artist_title, artist_id)} - {self._link(album.title, album.id)}"
        if album.year is not None:
            headline += f" ({album.year})"

        details: list[str] = []
        genres = self._genres(album.genres or (artist.genres if artist else ()))
        if genres:
            details.append(f"Genre(s): {genres}")
        if artist is not None and artist.country:
            details.append(f"Country: {html.escape(artist.country)}")

        if not details:
            return headline
        return headline + "\n\n" + "\n".join(details)

    def compose_artist_card(self, artist: Artist) -> str:
        lines = [f"<b>{self._link(artist.title, artist.id)}</b>"]
        genres = self._genres(artist.genres)
        if genres:
            lines.append(f"Genre(s): {genres}")
        if artist.country:
            lines.append(f"Country: {html.escape(artist.country)}")
        return "\n".join(lines)

    def compose_tracklist(self, album: Album, tracks: list[Track]) -> str:
        """Numbered track list "<index>. <title> [mm:ss]" under the album headline."""
        headline = f"<b>{self._link(album.title, album.id)}</b>"
        if album.year is not None:
            headline += f" ({album.year})"

        lines = [
            f"{track.index}. {html.escape(track.title)} [{format_duration(track.duration_ms)}]"
            for track in sorted(tracks, key=lambda t: t.index)
        ]
        if not lines:
            return headline
        return headline + "\n\n" + "\n".join(lines)

