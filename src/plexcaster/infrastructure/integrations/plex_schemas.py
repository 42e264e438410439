"""Pydantic schemas for Plex Media Server JSON responses.

Hey future me - Plex returns ONE shape ("Metadata" items) for artists, albums and tracks,
and which fields exist depends on the "type" field. We validate at the boundary with a
discriminated union on "type" and convert to domain entities right here, so nothing
downstream ever does `if "parentTitle" in item` probing.

Only the fields we actually use are declared; everything else is ignored.
"""

import logging
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from plexcaster.domain.entities import Album, Artist, CatalogEntity, Track

logger = logging.getLogger(__name__)


class PlexTag(BaseModel):
    """Genre/Country entries: {"tag": "Black Metal"}."""

    model_config = ConfigDict(extra="ignore")

    tag: str


class PlexPart(BaseModel):
    model_config = ConfigDict(extra="ignore")

    file: str | None = None


class PlexMedia(BaseModel):
    model_config = ConfigDict(extra="ignore")

    parts: list[PlexPart] = Field(default_factory=list, alias="Part")


class _PlexItem(BaseModel):
    model_config = ConfigDict(
        extra="ignore", populate_by_name=True, coerce_numbers_to_str=True
    )

    rating_key: str = Field(alias="ratingKey")
    title: str
    thumb: str | None = None
    genres: list[PlexTag] = Field(default_factory=list, alias="Genre")

    def _genre_names(self) -> tuple[str, ...]:
        return tuple(g.tag for g in self.genres)


class PlexArtist(_PlexItem):
    type: Literal["artist"]
    countries: list[PlexTag] = Field(default_factory=list, alias="Country")

    def to_domain(self) -> Artist:
        return Artist(
            id=self.rating_key,
            title=self.title,
            genres=self._genre_names(),
            country=self.countries[0].tag if self.countries else None,
            thumb=self.thumb,
        )


class PlexAlbum(_PlexItem):
    type: Literal["album"]
    parent_rating_key: str | None = Field(default=None, alias="parentRatingKey")
    parent_title: str | None = Field(default=None, alias="parentTitle")
    year: int | None = None

    def to_domain(self) -> Album:
        return Album(
            id=self.rating_key,
            title=self.title,
            artist_id=self.parent_rating_key,
            artist_title=self.parent_title,
            year=self.year,
            genres=self._genre_names(),
            thumb=self.thumb,
        )


class PlexTrack(_PlexItem):
    type: Literal["track"]
    index: int | None = None
    duration: int | None = None
    parent_rating_key: str | None = Field(default=None, alias="parentRatingKey")
    # Track artist when it differs from the album artist (features, splits)
    original_title: str | None = Field(default=None, alias="originalTitle")
    grandparent_title: str | None = Field(default=None, alias="grandparentTitle")
    media: list[PlexMedia] = Field(default_factory=list, alias="Media")

    def to_domain(self, position: int = 0) -> Track:
        file_path = None
        for media in self.media:
            for part in media.parts:
                if part.file:
                    file_path = Path(part.file)
                    break
            if file_path is not None:
                break

        return Track(
            id=self.rating_key,
            # Plex omits index for untagged files - fall back to list position
            index=self.index if self.index is not None else position,
            title=self.title,
            duration_ms=self.duration or 0,
            file=file_path,
            performer=self.original_title or self.grandparent_title,
            album_id=self.parent_rating_key,
        )


PlexItem = Annotated[PlexArtist | PlexAlbum | PlexTrack, Field(discriminator="type")]

_ITEM_ADAPTER: TypeAdapter[PlexArtist | PlexAlbum | PlexTrack] = TypeAdapter(PlexItem)

KNOWN_TYPES = frozenset({"artist", "album", "track"})


class PlexHub(BaseModel):
    """One hub of a /hubs/search response (artists, albums, tracks, playlists, ...)."""

    model_config = ConfigDict(extra="ignore")

    type: str
    metadata: list[dict[str, Any]] = Field(default_factory=list, alias="Metadata")


class PlexMediaContainer(BaseModel):
    """The "MediaContainer" envelope of every Plex response."""

    model_config = ConfigDict(extra="ignore")

    size: int = 0
    metadata: list[dict[str, Any]] = Field(default_factory=list, alias="Metadata")
    hubs: list[PlexHub] = Field(default_factory=list, alias="Hub")


class PlexResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    media_container: PlexMediaContainer = Field(alias="MediaContainer")


def parse_items(raw_items: list[dict[str, Any]]) -> list[CatalogEntity]:
    """Validate raw Metadata items and convert them to domain entities.

    Items of types we don't model (collections, playlists, photos) are skipped.

    Raises:
        pydantic.ValidationError: If an artist/album/track item is malformed
    """
    entities: list[CatalogEntity] = []
    for position, raw in enumerate(raw_items, start=1):
        item_type = raw.get("type")
        if item_type not in KNOWN_TYPES:
            logger.debug("Skipping Plex item of type %r", item_type)
            continue

        item = _ITEM_ADAPTER.validate_python(raw)
        if isinstance(item, PlexTrack):
            entities.append(item.to_domain(position))
        else:
            entities.append(item.to_domain())
    return entities
