"""Tests for the Acquisition Service (downloads and file placement)."""

import shutil
import zipfile
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest
from pytest_httpx import HTTPXMock

from plexcaster.application.services.acquisition_service import (
    STAGING_DIR_NAME,
    AcquisitionService,
    DirectLink,
    InboundAttachment,
    parse_direct_link,
)
from plexcaster.config.settings import StorageSettings
from plexcaster.domain.entities import AudioTags
from plexcaster.domain.exceptions import AcquisitionError, AcquisitionErrorKind
from plexcaster.domain.ports import IChatTransport, ITagReader

TG_LINK = "https://api.telegram.org/file/bot123:SECRET/documents/file_1"


class FakeTagReader(ITagReader):
    """Tag reader answering from a filename -> tags table."""

    def __init__(self, tags: dict[str, AudioTags]) -> None:
        self.tags = tags

    def read(self, path: Path) -> AudioTags:
        return self.tags.get(path.name, AudioTags())


@pytest.fixture
def storage(tmp_path: Path) -> StorageSettings:
    return StorageSettings(
        _env_file=None, music_path=tmp_path / "music", holding_path=tmp_path / "inbox"
    )


@pytest.fixture
def transport() -> AsyncMock:
    transport = AsyncMock(spec=IChatTransport)
    transport.resolve_file_link.side_effect = lambda file_id: f"{TG_LINK}/{file_id}"
    return transport


@pytest.fixture
async def http_client():
    client = httpx.AsyncClient()
    yield client
    await client.aclose()


def _service(
    storage: StorageSettings,
    transport: AsyncMock,
    http_client: httpx.AsyncClient,
    tags: dict[str, AudioTags] | None = None,
) -> AcquisitionService:
    return AcquisitionService(storage, transport, FakeTagReader(tags or {}), http_client)


class TestParseDirectLink:
    """Test "<artist>__<url>" parsing."""

    def test_valid(self) -> None:
        assert parse_direct_link("Emperor__https://files.example/anthems.zip") == DirectLink(
            artist="Emperor", url="https://files.example/anthems.zip"
        )

    def test_whitespace_trimmed(self) -> None:
        link = parse_direct_link("  Dark Funeral __ http://x.example/a.rar ")
        assert link == DirectLink(artist="Dark Funeral", url="http://x.example/a.rar")

    def test_artist_sanitized(self) -> None:
        link = parse_direct_link("AC/DC__https://x.example/a.zip")
        assert link is not None
        assert link.artist == "ACDC"

    @pytest.mark.parametrize(
        "text",
        [
            "just chatting",
            "__https://x.example/a.zip",
            "Emperor__ftp://x.example/a.zip",
            "Emperor__not a url",
            "Emperor__https://x.example/a b.zip",
        ],
    )
    def test_not_a_link(self, text: str) -> None:
        assert parse_direct_link(text) is None


class TestAcquireUrl:
    """Test acquire_url()."""

    async def test_downloads_into_artist_folder(
        self,
        storage: StorageSettings,
        transport: AsyncMock,
        http_client: httpx.AsyncClient,
        httpx_mock: HTTPXMock,
    ) -> None:
        httpx_mock.add_response(url="https://files.example/Anthems.zip", content=b"PK\x03\x04")
        service = _service(storage, transport, http_client)

        path = await service.acquire_url("Emperor", "https://files.example/Anthems.zip")

        assert path == storage.music_path / "Emperor" / "Anthems.zip"
        assert path.read_bytes() == b"PK\x03\x04"

    async def test_http_error_leaves_no_file(
        self,
        storage: StorageSettings,
        transport: AsyncMock,
        http_client: httpx.AsyncClient,
        httpx_mock: HTTPXMock,
    ) -> None:
        httpx_mock.add_response(status_code=500)
        service = _service(storage, transport, http_client)

        with pytest.raises(AcquisitionError) as exc_info:
            await service.acquire_url("Emperor", "https://files.example/Anthems.zip")

        assert exc_info.value.kind is AcquisitionErrorKind.NETWORK
        assert "500" in exc_info.value.message
        assert not (storage.music_path / "Emperor" / "Anthems.zip").exists()

    async def test_transport_error(
        self,
        storage: StorageSettings,
        transport: AsyncMock,
        http_client: httpx.AsyncClient,
        httpx_mock: HTTPXMock,
    ) -> None:
        httpx_mock.add_exception(httpx.ReadTimeout("slow hoster"))
        service = _service(storage, transport, http_client)

        with pytest.raises(AcquisitionError) as exc_info:
            await service.acquire_url("Emperor", "https://files.example/Anthems.zip")

        assert exc_info.value.kind is AcquisitionErrorKind.NETWORK
        assert not (storage.music_path / "Emperor" / "Anthems.zip").exists()

    async def test_url_without_filename(
        self, storage: StorageSettings, transport: AsyncMock, http_client: httpx.AsyncClient
    ) -> None:
        service = _service(storage, transport, http_client)

        with pytest.raises(AcquisitionError, match="Cannot derive filename"):
            await service.acquire_url("Emperor", "https://files.example/")


class TestAcquireAttachment:
    """Test acquire_attachment()."""

    async def test_artist_from_file_name(
        self,
        storage: StorageSettings,
        transport: AsyncMock,
        http_client: httpx.AsyncClient,
        httpx_mock: HTTPXMock,
    ) -> None:
        httpx_mock.add_response(url=f"{TG_LINK}/abc", content=b"Rar!")
        service = _service(storage, transport, http_client)

        artist, path = await service.acquire_attachment("abc", "Burzum_Filosofem.rar")

        assert artist == "Burzum"
        assert path == storage.music_path / "Burzum" / "Burzum_Filosofem.rar"
        assert path.read_bytes() == b"Rar!"
        transport.resolve_file_link.assert_awaited_once_with("abc")

    async def test_unresolvable_file(
        self, storage: StorageSettings, transport: AsyncMock, http_client: httpx.AsyncClient
    ) -> None:
        transport.resolve_file_link.side_effect = AcquisitionError(
            "too big", kind=AcquisitionErrorKind.NETWORK
        )
        service = _service(storage, transport, http_client)

        with pytest.raises(AcquisitionError, match="too big"):
            await service.acquire_attachment("abc", "Emperor - Anthems.zip")


class TestAcquireAudioGroup:
    """Test tag based placement of grouped audio."""

    async def test_tagged_to_library_untagged_to_inbox(
        self,
        storage: StorageSettings,
        transport: AsyncMock,
        http_client: httpx.AsyncClient,
        httpx_mock: HTTPXMock,
    ) -> None:
        httpx_mock.add_response(url=f"{TG_LINK}/f1", content=b"one")
        httpx_mock.add_response(url=f"{TG_LINK}/f2", content=b"two")
        tags = {
            "01.mp3": AudioTags(
                title="Jesus' Tod",
                album="Filosofem",
                year=1996,
                performer="Burzum",
                album_artist="Burzum",
            ),
            "rip.mp3": AudioTags(title="Unknown", performer="Mystery Band"),
        }
        service = _service(storage, transport, http_client, tags)

        placed = await service.acquire_audio_group(
            [InboundAttachment("f1", "01.mp3"), InboundAttachment("f2", "rip.mp3")]
        )

        assert [p.in_library for p in placed] == [True, False]
        assert placed[0].path == storage.music_path / "Burzum" / "1996 - Filosofem" / "01.mp3"
        assert placed[1].path == storage.holding_path / "Mystery Band" / "rip.mp3"
        assert placed[0].path.read_bytes() == b"one"
        assert placed[1].path.read_bytes() == b"two"

    async def test_album_artist_preferred_and_unknown_fallback(
        self,
        storage: StorageSettings,
        transport: AsyncMock,
        http_client: httpx.AsyncClient,
        httpx_mock: HTTPXMock,
    ) -> None:
        httpx_mock.add_response(url=f"{TG_LINK}/f1", content=b"one")
        httpx_mock.add_response(url=f"{TG_LINK}/f2", content=b"two")
        tags = {
            "a.flac": AudioTags(album="Split", year=2001, performer="Guest", album_artist="Host"),
        }
        service = _service(storage, transport, http_client, tags)

        placed = await service.acquire_audio_group(
            [InboundAttachment("f1", "a.flac"), InboundAttachment("f2", "b.flac")]
        )

        assert placed[0].path.parent == storage.music_path / "Host" / "2001 - Split"
        assert placed[1].path.parent == storage.holding_path / "Unknown Artist"

    async def test_same_file_name_twice(
        self,
        storage: StorageSettings,
        transport: AsyncMock,
        http_client: httpx.AsyncClient,
        httpx_mock: HTTPXMock,
    ) -> None:
        """Two attachments called track.mp3 are both kept."""
        httpx_mock.add_response(url=f"{TG_LINK}/f1", content=b"one")
        httpx_mock.add_response(url=f"{TG_LINK}/f2", content=b"two")
        by_content = {
            b"one": AudioTags(album="Filosofem", year=1996, album_artist="Burzum"),
            b"two": AudioTags(album="Hvis lyset tar oss", year=1994, album_artist="Burzum"),
        }

        class ContentTagReader(ITagReader):
            def read(self, path: Path) -> AudioTags:
                return by_content[path.read_bytes()]

        service = AcquisitionService(storage, transport, ContentTagReader(), http_client)

        placed = await service.acquire_audio_group(
            [InboundAttachment("f1", "track.mp3"), InboundAttachment("f2", "track.mp3")]
        )

        burzum = storage.music_path / "Burzum"
        assert placed[0].path == burzum / "1996 - Filosofem" / "track.mp3"
        assert placed[1].path == burzum / "1994 - Hvis lyset tar oss" / "track.mp3"
        assert placed[0].path.read_bytes() == b"one"
        assert placed[1].path.read_bytes() == b"two"

    async def test_staging_removed_on_failure(
        self,
        storage: StorageSettings,
        transport: AsyncMock,
        http_client: httpx.AsyncClient,
        httpx_mock: HTTPXMock,
    ) -> None:
        httpx_mock.add_response(url=f"{TG_LINK}/f1", content=b"one")
        httpx_mock.add_response(url=f"{TG_LINK}/f2", status_code=404)
        service = _service(storage, transport, http_client)

        with pytest.raises(AcquisitionError):
            await service.acquire_audio_group(
                [InboundAttachment("f1", "a.mp3"), InboundAttachment("f2", "b.mp3")]
            )

        # First file was already placed, staging is gone
        assert (storage.holding_path / "Unknown Artist" / "a.mp3").exists()
        assert list((storage.holding_path / STAGING_DIR_NAME).iterdir()) == []


class TestPackageDirectory:
    """Test package_directory()."""

    async def test_zip_named_after_directory(
        self, storage: StorageSettings, transport: AsyncMock, tmp_path: Path
    ) -> None:
        album_dir = tmp_path / "music" / "Darkthrone" / "1994 - Transilvanian Hunger"
        album_dir.mkdir(parents=True)
        (album_dir / "01.flac").write_bytes(b"fLaC")
        service = AcquisitionService(storage, transport, FakeTagReader({}))

        archive = await service.package_directory(album_dir)
        try:
            assert archive.name == "1994 - Transilvanian Hunger.zip"
            with zipfile.ZipFile(archive) as zf:
                assert "1994 - Transilvanian Hunger/01.flac" in zf.namelist()
        finally:
            shutil.rmtree(archive.parent)

    async def test_missing_directory(
        self, storage: StorageSettings, transport: AsyncMock, tmp_path: Path
    ) -> None:
        service = AcquisitionService(storage, transport, FakeTagReader({}))

        with pytest.raises(AcquisitionError) as exc_info:
            await service.package_directory(tmp_path / "nope")

        assert exc_info.value.kind is AcquisitionErrorKind.FILESYSTEM


class TestArtistDir:
    """Test artist_dir()."""

    def test_sanitized(self, storage: StorageSettings, transport: AsyncMock) -> None:
        service = AcquisitionService(storage, transport, FakeTagReader({}))
        assert service.artist_dir("AC/DC") == storage.music_path / "ACDC"
