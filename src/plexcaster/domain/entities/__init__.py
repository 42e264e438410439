"""Domain entities.

Hey future me - Artist/Album/Track are SNAPSHOTS of what Plex returned for one request.
They're frozen: nobody caches or mutates them, every command fetches fresh.
The album type is NOT a field - it's recomputed from the title every time (see album_types).

AcquisitionJob is the only mutable thing here: one job per ingestion command, owned by the
handler that created it, thrown away when the pipeline finishes.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from plexcaster.domain.value_objects.album_types import AlbumType, classify_album_type


@dataclass(frozen=True)
class Artist:
    """Artist snapshot from the catalog."""

    id: str
    title: str
    genres: tuple[str, ...] = ()
    country: str | None = None
    thumb: str | None = None


@dataclass(frozen=True)
class Album:
    """Album snapshot from the catalog."""

    id: str
    title: str
    artist_id: str | None = None
    artist_title: str | None = None
    year: int | None = None
    genres: tuple[str, ...] = ()
    thumb: str | None = None

    @property
    def album_type(self) -> AlbumType:
        """Bucket derived from the title (never stored)."""
        return classify_album_type(self.title)


@dataclass(frozen=True)
class Track:
    """Track snapshot from the catalog."""

    id: str
    index: int
    title: str
    duration_ms: int = 0
    file: Path | None = None
    performer: str | None = None
    album_id: str | None = None


# Discriminated union produced by the catalog client - match on the type, never probe fields.
CatalogEntity = Artist | Album | Track


@dataclass(frozen=True)
class AudioTags:
    """Subset of embedded audio tags we need for placing loose files."""

    title: str | None = None
    album: str | None = None
    year: int | None = None
    performer: str | None = None
    album_artist: str | None = None

    @property
    def has_album_info(self) -> bool:
        """True when the file can go straight into <artist>/<year> - <album>/."""
        return bool(self.album) and self.year is not None


@dataclass(frozen=True)
class PlacedFile:
    """Where an inbound audio attachment ended up."""

    path: Path
    tags: AudioTags
    in_library: bool  # False = parked in the holding directory


# =============================================================================
# Ingestion job
# =============================================================================


class JobState(str, Enum):
    """Lifecycle of one ingestion job."""

    PENDING = "pending"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    NORMALIZING = "normalizing"
    CATALOG_REFRESHING = "catalog_refreshing"
    PUBLISHED = "published"
    # Unsupported extension: file left as is, nothing else happens
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if the job is finished."""
        return self in {JobState.PUBLISHED, JobState.SKIPPED, JobState.FAILED}


class PipelineStage(str, Enum):
    """Ordered ingestion stages."""

    ACQUISITION = "acquisition"
    EXTRACTION = "extraction"
    NORMALIZATION = "normalization"
    REFRESH = "refresh"
    PUBLISH = "publish"


class StageOutcome(str, Enum):
    """Result of running one stage."""

    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class StageResult:
    """Explicit per-stage result so failures are observable instead of swallowed."""

    stage: PipelineStage
    outcome: StageOutcome
    error: Exception | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is StageOutcome.OK


@dataclass
class AcquisitionJob:
    """One file's way from source to published post."""

    source: str  # URL or Telegram file_id
    artist: str | None = None
    file_name: str | None = None
    chat_id: int | str | None = None
    destination: Path | None = None  # artist folder the archive unpacks into
    archive_path: Path | None = None  # downloaded file
    state: JobState = JobState.PENDING
    results: list[StageResult] = field(default_factory=list)

    @property
    def is_url(self) -> bool:
        return self.source.startswith(("http://", "https://"))

    @property
    def failed(self) -> bool:
        return self.state is JobState.FAILED

    def record(self, result: StageResult) -> None:
        """Append a stage result."""
        self.results.append(result)


__all__ = [
    "AcquisitionJob",
    "Album",
    "Artist",
    "AudioTags",
    "CatalogEntity",
    "JobState",
    "PipelineStage",
    "PlacedFile",
    "StageOutcome",
    "StageResult",
    "Track",
]
