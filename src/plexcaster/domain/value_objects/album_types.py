"""Album type classification from release titles.

Hey future me - this is a TITLE HEURISTIC, not the Lidarr/MusicBrainz dual type system!
Plex doesn't expose a reliable release type for our library (most of it comes from
scene archives with no MusicBrainz ids), so the only signal we have is the album title.
Bands tag their releases like "Frostbitten (EP)", "Live in Oslo", "Demo 1994", etc.

Rules (case-sensitive substring match, FIRST MATCH WINS):

    EP -> Single -> Demo -> Live -> Instrumental -> Remixes -> Reissue -> Full-Length

So "Live (EP)" is an EP, "Demo Live" is a Demo. Order matters, don't sort the table!
Matching is case-sensitive: "ep" is inside lots of words ("Deep", "Sleep"), the uppercase
"EP" much less so. It still misfires on titles like "EPITAPH" - known limitation. If Plex
ever gives us a structured release type, prefer that over this.

Usage:
    from plexcaster.domain.value_objects.album_types import AlbumType, classify_album_type

    classify_album_type("Frostbitten (EP)")  # AlbumType.EP
"""

import re
from enum import Enum


class AlbumType(str, Enum):
    """Mutually exclusive album bucket. Every album gets exactly one."""

    FULL_LENGTH = "full_length"
    EP = "ep"
    SINGLE = "single"
    DEMO = "demo"
    LIVE = "live"
    INSTRUMENTAL = "instrumental"
    REMIXES = "remixes"
    REISSUE = "reissue"

    @property
    def section_title(self) -> str:
        """Heading used for this bucket in discography posts."""
        return SECTION_TITLES[self]

    def __str__(self) -> str:
        return self.value


# Priority order - evaluated top to bottom, first keyword found in the title wins.
CLASSIFICATION_RULES: tuple[tuple[AlbumType, str], ...] = (
    (AlbumType.EP, "EP"),
    (AlbumType.SINGLE, "Single"),
    (AlbumType.DEMO, "Demo"),
    (AlbumType.LIVE, "Live"),
    (AlbumType.INSTRUMENTAL, "Instrumental"),
    (AlbumType.REMIXES, "Remix"),
    (AlbumType.REISSUE, "Reissue"),
)

# Display order of sections in a discography post (differs from match priority!)
SECTION_ORDER: tuple[AlbumType, ...] = (
    AlbumType.FULL_LENGTH,
    AlbumType.EP,
    AlbumType.SINGLE,
    AlbumType.DEMO,
    AlbumType.LIVE,
    AlbumType.INSTRUMENTAL,
    AlbumType.REMIXES,
    AlbumType.REISSUE,
)

SECTION_TITLES: dict[AlbumType, str] = {
    AlbumType.FULL_LENGTH: "Full-Length",
    AlbumType.EP: "EPs",
    AlbumType.SINGLE: "Singles",
    AlbumType.DEMO: "Demos",
    AlbumType.LIVE: "Live",
    AlbumType.INSTRUMENTAL: "Instrumentals",
    AlbumType.REMIXES: "Remixes",
    AlbumType.REISSUE: "Reissues",
}


def classify_album_type(title: str) -> AlbumType:
    """Classify an album by its title.

    Args:
        title: Album title as stored in the catalog.

    Returns:
        The first matching AlbumType, FULL_LENGTH if nothing matches.

    Example:
        >>> classify_album_type("Live (EP)")
        <AlbumType.EP: 'ep'>
        >>> classify_album_type("Nemesis Divina")
        <AlbumType.FULL_LENGTH: 'full_length'>
    """
    for album_type, keyword in CLASSIFICATION_RULES:
        if keyword in title:
            return album_type
    return AlbumType.FULL_LENGTH


def strip_type_marker(title: str, album_type: AlbumType) -> str:
    """Remove the bracketed marker that caused the classification.

    In a "Singles" section, "Kill (Single)" is just noise - render it as "Kill".
    Only (...) / [...] groups containing the keyword are removed; a keyword that is part
    of the actual title ("Live Undead") stays untouched.

    Args:
        title: Album title.
        album_type: The type the title was classified as.

    Returns:
        Title without the marker, or the original title if nothing would be left.
    """
    keyword = next((kw for t, kw in CLASSIFICATION_RULES if t is album_type), None)
    if keyword is None:
        return title

    pattern = re.compile(
        r"\s*[\(\[][^\)\]]*" + re.escape(keyword) + r"[^\)\]]*[\)\]]"
    )
    stripped = pattern.sub("", title).strip()
    return stripped or title
