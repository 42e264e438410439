"""Acquisition Service - get a file from the outside world onto the music disk.

Hey future me - three ways in:

1. Direct link: someone types "<Artist>__<https://host/album.zip>" in the chat. The artist
   part is trusted (after sanitizing), the filename is the URL's last path segment.
2. Attachment: a document sent to the bot. Telegram gives us a temporary download URL per
   file_id (via the transport), the artist is guessed from the filename.
3. Audio group: several audio files sent as one album/media group. Each file is downloaded
   to a staging dir, its tags decide where it goes:
       tags complete -> <musicRoot>/<AlbumArtist>/<Year> - <Album>/<file>
       otherwise     -> <holdingRoot>/<Performer>/<file>  (someone sorts these by hand)

All downloads stream through ONE httpx client (HttpClientPool) unless a client is injected
(tests do that with pytest-httpx). A failed download never leaves a half-written file behind.

WARNING: Telegram file URLs contain the bot token - never log the resolved link!
"""

import asyncio
import logging
import shutil
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

import httpx

from plexcaster.config.settings import StorageSettings
from plexcaster.domain.entities import PlacedFile
from plexcaster.domain.exceptions import AcquisitionError, AcquisitionErrorKind
from plexcaster.domain.ports import IChatTransport, ITagReader
from plexcaster.domain.value_objects.naming import (
    derive_artist_name,
    filename_from_url,
    format_album_folder,
    sanitize_path_component,
)
from plexcaster.infrastructure.integrations.http_pool import HttpClientPool

logger = logging.getLogger(__name__)

DIRECT_LINK_SEPARATOR = "__"
STAGING_DIR_NAME = ".staging"
UNKNOWN_ARTIST = "Unknown Artist"


@dataclass(frozen=True)
class DirectLink:
    """Parsed "<artist>__<url>" chat message."""

    artist: str
    url: str


@dataclass(frozen=True)
class InboundAttachment:
    """A chat attachment that still has to be downloaded."""

    file_id: str
    file_name: str


def parse_direct_link(text: str) -> DirectLink | None:
    """Recognize "<artist>__<url>" messages.

    Returns None for anything else (plain chat, missing artist, non-http URL).

    Example:
        >>> parse_direct_link("Emperor__https://files.example/anthems.zip")
        DirectLink(artist="Emperor", url="https://files.example/anthems.zip")
    """
    artist, separator, url = text.strip().partition(DIRECT_LINK_SEPARATOR)
    if not separator:
        return None

    artist = artist.strip()
    url = url.strip()
    if not artist or not url.startswith(("http://", "https://")) or any(c.isspace() for c in url):
        return None

    return DirectLink(artist=sanitize_path_component(artist), url=url)


class AcquisitionService:
    """Downloads URLs and chat attachments into the library layout."""

    def __init__(
        self,
        storage: StorageSettings,
        transport: IChatTransport,
        tag_reader: ITagReader,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize acquisition service.

        Args:
            storage: Music root and holding root
            transport: Resolves attachment file ids to download links
            tag_reader: Reads tags of grouped audio files
            http_client: Optional client override (defaults to the shared pool)
        """
        self.storage = storage
        self._transport = transport
        self._tag_reader = tag_reader
        self._http_client = http_client

    @property
    def music_root(self) -> Path:
        return self.storage.music_path

    @property
    def holding_root(self) -> Path:
        return self.storage.holding_path

    def artist_dir(self, artist: str) -> Path:
        """<musicRoot>/<artist> for an (unsanitized) artist name."""
        return self.music_root / sanitize_path_component(artist)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return await HttpClientPool.get_client()

    # =========================================================================
    # Direct link / single attachment
    # =========================================================================

    async def acquire_url(self, artist: str, url: str) -> Path:
        """
        Download a URL into <musicRoot>/<artist>/.

        Returns:
            Path of the downloaded file

        Raises:
            AcquisitionError: NETWORK (transfer failed, no filename in URL) or
                FILESYSTEM (directory/file could not be written)
        """
        file_name = filename_from_url(url)
        if file_name is None:
            raise AcquisitionError(
                f"Cannot derive filename from URL {url!r}",
                kind=AcquisitionErrorKind.NETWORK,
            )

        target = self.artist_dir(artist) / file_name
        logger.info("Downloading %s for artist %s", file_name, artist)
        await self._stream_to_file(url, target)
        return target

    async def acquire_attachment(self, file_id: str, file_name: str) -> tuple[str, Path]:
        """
        Download a chat document into the folder of the artist its name suggests.

        Returns:
            (artist, path) tuple
        """
        artist = derive_artist_name(file_name)
        link = await self._transport.resolve_file_link(file_id)

        safe_name = sanitize_path_component(PurePosixPath(file_name).name, fallback=file_id)
        target = self.artist_dir(artist) / safe_name
        logger.info("Downloading attachment %s for artist %s", safe_name, artist)
        await self._stream_to_file(link, target)
        return artist, target

    # =========================================================================
    # Grouped audio
    # =========================================================================

    async def acquire_audio_group(self, files: list[InboundAttachment]) -> list[PlacedFile]:
        """
        Download a batch of audio attachments and sort them by their tags.

        Files already placed stay where they are if a later file fails.

        Returns:
            One PlacedFile per input file, in input order
        """
        staging = self.holding_root / STAGING_DIR_NAME / uuid.uuid4().hex
        placed: list[PlacedFile] = []

        try:
            for index, attachment in enumerate(files):
                link = await self._transport.resolve_file_link(attachment.file_id)
                name = sanitize_path_component(
                    PurePosixPath(attachment.file_name).name, fallback=attachment.file_id
                )
                # One subdirectory per file, attachments may share a name
                staged = staging / str(index) / name
                await self._stream_to_file(link, staged)

                tags = await asyncio.to_thread(self._tag_reader.read, staged)
                if tags.has_album_info:
                    artist = tags.album_artist or tags.performer or UNKNOWN_ARTIST
                    destination_dir = (
                        self.artist_dir(artist)
                        / format_album_folder(tags.album or "", tags.year)
                    )
                    in_library = True
                else:
                    destination_dir = self.holding_root / sanitize_path_component(
                        tags.performer or UNKNOWN_ARTIST
                    )
                    in_library = False

                final_path = await self._move(staged, destination_dir / name)
                placed.append(PlacedFile(path=final_path, tags=tags, in_library=in_library))
                logger.info(
                    "Placed %s in %s",
                    name,
                    "library" if in_library else "holding directory",
                )
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        return placed

    async def _move(self, source: Path, target: Path) -> Path:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.move, source, target)
        except OSError as e:
            raise AcquisitionError(
                f"Cannot move {source.name} to {target.parent}: {e}",
                kind=AcquisitionErrorKind.FILESYSTEM,
                path=target,
            ) from e
        return target

    # =========================================================================
    # Packaging (browse "download archive")
    # =========================================================================

    async def package_directory(self, directory: Path) -> Path:
        """
        Zip a directory into a fresh temp dir.

        The archive is named after the directory ("1994 - Album.zip"). The caller owns
        the returned file and must delete its parent directory when done.
        """
        if not directory.is_dir():
            raise AcquisitionError(
                f"Not a directory: {directory}",
                kind=AcquisitionErrorKind.FILESYSTEM,
                path=directory,
            )

        work_dir = Path(tempfile.mkdtemp(prefix="plexcaster-"))
        base_name = work_dir / sanitize_path_component(directory.name, fallback="album")
        try:
            archive = await asyncio.to_thread(
                shutil.make_archive,
                str(base_name),
                "zip",
                root_dir=directory.parent,
                base_dir=directory.name,
            )
        except OSError as e:
            shutil.rmtree(work_dir, ignore_errors=True)
            raise AcquisitionError(
                f"Cannot package {directory}: {e}",
                kind=AcquisitionErrorKind.FILESYSTEM,
                path=directory,
            ) from e

        logger.info("Packaged %s into %s", directory.name, Path(archive).name)
        return Path(archive)

    # =========================================================================
    # Streaming
    # =========================================================================

    async def _stream_to_file(self, url: str, target: Path) -> None:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise AcquisitionError(
                f"Cannot create {target.parent}: {e}",
                kind=AcquisitionErrorKind.FILESYSTEM,
                path=target,
            ) from e

        client = await self._get_client()
        try:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                with target.open("wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
        except httpx.HTTPStatusError as e:
            target.unlink(missing_ok=True)
            raise AcquisitionError(
                f"Download of {target.name} failed with HTTP {e.response.status_code}",
                kind=AcquisitionErrorKind.NETWORK,
                path=target,
            ) from e
        except httpx.HTTPError as e:
            target.unlink(missing_ok=True)
            raise AcquisitionError(
                f"Download of {target.name} failed: {type(e).__name__}",
                kind=AcquisitionErrorKind.NETWORK,
                path=target,
            ) from e
        except OSError as e:
            target.unlink(missing_ok=True)
            raise AcquisitionError(
                f"Cannot write {target}: {e}",
                kind=AcquisitionErrorKind.FILESYSTEM,
                path=target,
            ) from e

        logger.debug("Wrote %s (%d bytes)", target, target.stat().st_size)
