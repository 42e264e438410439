"""Ports (interfaces) for the external collaborators.

Following Hexagonal Architecture (Ports & Adapters), these live in the domain layer and
the adapters in plexcaster.infrastructure implement them:

- ICatalogClient  -> PlexClient (HTTP, token per request)
- IChatTransport  -> TelegramTransport (python-telegram-bot Bot)
- ITagReader      -> MutagenTagReader

Application services only ever see these interfaces, which is what makes them testable
with AsyncMock fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from plexcaster.domain.entities import Album, Artist, AudioTags, CatalogEntity


@dataclass(frozen=True)
class MediaItem:
    """One entry of a grouped media message (an audio file on disk)."""

    path: Path
    title: str | None = None
    performer: str | None = None
    duration_s: int | None = None


@dataclass(frozen=True)
class InlineButton:
    """Transport-neutral inline keyboard button."""

    label: str
    callback_data: str


class ICatalogClient(ABC):
    """Read/write facade over the media catalog."""

    @abstractmethod
    async def search(self, query: str) -> list[Artist]:
        """Artists matching a free-text query (empty list if none)."""
        pass

    @abstractmethod
    async def fetch_by_id(self, entity_id: str) -> CatalogEntity:
        """Fetch one entity; raises CatalogError when it doesn't exist."""
        pass

    @abstractmethod
    async def fetch_children(self, entity_id: str) -> list[CatalogEntity]:
        """Ordered children (albums of an artist, tracks of an album)."""
        pass

    @abstractmethod
    async def refresh(self) -> None:
        """Ask the catalog to rescan the library. Fire-and-forget."""
        pass

    @abstractmethod
    async def recently_added(self, limit: int = 1) -> list[Album]:
        """Most recently added albums, newest first."""
        pass

    @abstractmethod
    async def find_artist(self, title: str) -> Artist | None:
        """Exact title lookup (used to enrich posts with the artist's country)."""
        pass

    @abstractmethod
    def image_url(self, thumb: str | None) -> str | None:
        """Absolute, authenticated URL for an entity thumb."""
        pass

    @abstractmethod
    def web_url(self, entity_id: str) -> str | None:
        """Link to the entity's page in the catalog web app."""
        pass


class IChatTransport(ABC):
    """Outbound chat operations used by publisher, browse and acquisition."""

    @abstractmethod
    async def send_text(
        self,
        chat_id: int | str,
        text: str,
        buttons: list[list[InlineButton]] | None = None,
    ) -> None:
        pass

    @abstractmethod
    async def send_photo(
        self, chat_id: int | str, photo: str, caption: str | None = None
    ) -> None:
        pass

    @abstractmethod
    async def send_document(
        self, chat_id: int | str, document: Path, caption: str | None = None
    ) -> None:
        pass

    @abstractmethod
    async def send_audio(self, chat_id: int | str, item: MediaItem) -> None:
        """Single track. Media groups need at least two items."""
        pass

    @abstractmethod
    async def send_media_group(self, chat_id: int | str, items: list[MediaItem]) -> None:
        pass

    @abstractmethod
    async def resolve_file_link(self, file_id: str) -> str:
        """Temporary download URL for an inbound attachment."""
        pass


class ITagReader(ABC):
    """Reads embedded audio tags."""

    @abstractmethod
    def read(self, path: Path) -> AudioTags:
        """Never raises for unreadable files - returns empty tags instead."""
        pass


__all__ = [
    "ICatalogClient",
    "IChatTransport",
    "ITagReader",
    "InlineButton",
    "MediaItem",
]
