"""Embedded audio tag reading via mutagen."""

import logging
from pathlib import Path
from typing import Any

from mutagen import File as MutagenFile  # type: ignore[attr-defined]
from mutagen import MutagenError

from plexcaster.domain.entities import AudioTags
from plexcaster.domain.ports import ITagReader

logger = logging.getLogger(__name__)

# Hey future me - one table for all three tag families. ID3 frames (MP3), Vorbis comments
# (FLAC/OGG/Opus) and MP4 atoms (M4A) all end up as the same handful of fields. Order
# matters only for "year": TDRC (ID3v2.4) wins over TYER (v2.3) because it's listed first.
TAG_MAPPINGS: dict[str, str] = {
    # ID3 (MP3)
    "TIT2": "title",
    "TPE1": "performer",
    "TPE2": "album_artist",
    "TALB": "album",
    "TDRC": "year",
    "TYER": "year",
    # Vorbis (FLAC, OGG)
    "title": "title",
    "artist": "performer",
    "albumartist": "album_artist",
    "album artist": "album_artist",
    "album": "album",
    "date": "year",
    # MP4 (M4A)
    "©nam": "title",
    "©ART": "performer",
    "aART": "album_artist",
    "©alb": "album",
    "©day": "year",
}


def _first_value(value: Any) -> Any:
    if isinstance(value, list):
        value = value[0] if value else None
    if hasattr(value, "text"):
        text = value.text
        value = text[0] if isinstance(text, list) and text else text
    return value


def _parse_year(value: Any) -> int | None:
    # "1994", "1994-05-01" and ID3TimeStamp all start with the year
    try:
        return int(str(value)[:4])
    except (ValueError, TypeError):
        return None


class MutagenTagReader(ITagReader):
    """ITagReader backed by mutagen's format autodetection."""

    def read(self, path: Path) -> AudioTags:
        try:
            audio = MutagenFile(path)
        except (MutagenError, OSError) as e:
            logger.warning("Cannot read tags from %s: %s", path.name, e)
            return AudioTags()

        if audio is None or not audio.tags:
            logger.debug("No tags in %s", path.name)
            return AudioTags()

        fields: dict[str, Any] = {}
        for tag_key, field_name in TAG_MAPPINGS.items():
            if field_name in fields or tag_key not in audio.tags:
                continue

            value = _first_value(audio.tags[tag_key])
            if field_name == "year":
                value = _parse_year(value)
            elif value is not None:
                value = str(value).strip() or None

            if value is not None:
                fields[field_name] = value

        return AudioTags(**fields)
