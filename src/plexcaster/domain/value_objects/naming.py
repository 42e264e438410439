"""Naming rules for the on-disk music library.

Hey future me - the library layout is fixed and Plex relies on it:

    <musicRoot>/<Artist>/<Album>/<track files>

Archives from the web already contain an "<Year> - <Album>" folder, so for archives we only
pick the ARTIST folder. For loose audio files we build the album folder ourselves from
tags: "<Year> - <Album>". Everything coming from user input or file tags goes through
sanitize_path_component() first - a filename like "../../etc" must never leave the music root.

Usage:
    from plexcaster.domain.value_objects.naming import derive_artist_name, format_album_folder

    derive_artist_name("Emperor - In the Nightside Eclipse.rar")  # "Emperor"
    format_album_folder("In the Nightside Eclipse", 1994)          # "1994 - In the Nightside Eclipse"
"""

import re
from pathlib import PurePosixPath
from urllib.parse import unquote, urlparse

# Separators between artist and album in submitted filenames, in priority order.
# The spaced dash comes first so "Dimmu Borgir - Enthrone" doesn't get cut at a bare "-".
ARTIST_SEPARATORS: tuple[str, ...] = (" - ", "–", "—", "_", "(", "[", "-")

# Characters illegal in filenames across operating systems
# Windows: < > : " / \ | ? *  plus control characters
ILLEGAL_CHARS_PATTERN = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_path_component(name: str, fallback: str = "Unknown") -> str:
    """Make a single path component safe for the filesystem.

    Args:
        name: Raw name from a filename, URL or tag.
        fallback: Returned when nothing usable is left.

    Returns:
        Name without path separators/illegal characters, trimmed of spaces and dots.

    Example:
        >>> sanitize_path_component("AC/DC")
        "ACDC"
        >>> sanitize_path_component("..")
        "Unknown"
    """
    result = ILLEGAL_CHARS_PATTERN.sub("", name)
    # Trim whitespace and dots from ends (Windows requirement, also kills "." / "..")
    result = result.strip(" .")
    return result or fallback


def derive_artist_name(file_name: str) -> str:
    """Guess the artist from an uploaded archive's filename.

    Strips the extension, then splits on the first separator from ARTIST_SEPARATORS that
    occurs in the name and takes the prefix. If no separator yields a prefix, the whole
    stem is the artist.

    Args:
        file_name: Filename as sent by the Telegram client.

    Returns:
        Sanitized artist folder name.

    Example:
        >>> derive_artist_name("Emperor - Anthems.zip")
        "Emperor"
        >>> derive_artist_name("Burzum_Filosofem.rar")
        "Burzum"
        >>> derive_artist_name("Darkthrone.7z")
        "Darkthrone"
    """
    stem = PurePosixPath(file_name).stem

    for separator in ARTIST_SEPARATORS:
        if separator in stem:
            prefix = stem.split(separator, 1)[0].strip()
            if prefix:
                return sanitize_path_component(prefix)

    return sanitize_path_component(stem.strip())


def format_album_folder(album: str, year: int | str | None) -> str:
    """Album folder name for loose, tagged audio files.

    Example:
        >>> format_album_folder("Transilvanian Hunger", 1994)
        "1994 - Transilvanian Hunger"
    """
    if year in (None, ""):
        return sanitize_path_component(album)
    return sanitize_path_component(f"{year} - {album}")


def filename_from_url(url: str) -> str | None:
    """Final path segment of a download URL, percent-decoded.

    Query strings and fragments are ignored. Returns None when the URL ends with a slash
    or has no path at all - the caller can't store such a download.
    """
    path = urlparse(url).path
    segment = unquote(path.rsplit("/", 1)[-1]) if path else ""
    if not segment:
        return None
    cleaned = sanitize_path_component(segment, fallback="")
    return cleaned or None
