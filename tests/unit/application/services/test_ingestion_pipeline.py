"""Tests for the ingestion pipeline (stage ordering, skips and failure reporting)."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from plexcaster.application.services.acquisition_service import InboundAttachment
from plexcaster.application.services.ingestion_pipeline import (
    UNPACKED_MESSAGE,
    CollectingErrorSink,
    IngestionPipeline,
    LoggingErrorSink,
)
from plexcaster.domain.entities import (
    AcquisitionJob,
    Album,
    AudioTags,
    JobState,
    PipelineStage,
    PlacedFile,
    StageOutcome,
    StageResult,
)
from plexcaster.domain.exceptions import (
    AcquisitionError,
    AcquisitionErrorKind,
    CatalogError,
    ExtractionError,
    ExtractionErrorKind,
    PublishError,
    ValidationError,
)
from plexcaster.infrastructure.archive.extractor import (
    ArchiveExtractor,
    ExtractionResult,
    ExtractionStrategy,
)

URL = "https://files.example/Anthems.zip"


@pytest.fixture
def archive(tmp_path: Path) -> Path:
    path = tmp_path / "music" / "Emperor" / "Anthems.zip"
    path.parent.mkdir(parents=True)
    path.write_bytes(b"PK")
    return path


@pytest.fixture
def acquisition(archive: Path) -> AsyncMock:
    acquisition = AsyncMock()
    acquisition.acquire_url.return_value = archive
    acquisition.acquire_attachment.return_value = ("Emperor", archive)
    return acquisition


@pytest.fixture
def extractor(archive: Path) -> AsyncMock:
    extractor = AsyncMock(spec=ArchiveExtractor)
    extractor.extract.return_value = ExtractionResult(
        ExtractionStrategy.SEVEN_ZIP, archive.parent
    )
    return extractor


@pytest.fixture
def normalizer() -> MagicMock:
    normalizer = MagicMock()
    normalizer.normalize.return_value = []
    return normalizer


@pytest.fixture
def catalog() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def announcements() -> AsyncMock:
    announcements = AsyncMock()
    announcements.post_newest.return_value = Album(id="1", title="Anthems")
    return announcements


@pytest.fixture
def transport() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def sink() -> CollectingErrorSink:
    return CollectingErrorSink()


def _pipeline(
    acquisition, extractor, normalizer, catalog, announcements, transport, sink
) -> IngestionPipeline:
    return IngestionPipeline(
        acquisition=acquisition,
        extractor=extractor,
        normalizer=normalizer,
        catalog=catalog,
        announcements=announcements,
        transport=transport,
        settle_seconds=0,
        error_sink=sink,
    )


@pytest.fixture
def pipeline(
    acquisition, extractor, normalizer, catalog, announcements, transport, sink
) -> IngestionPipeline:
    return _pipeline(acquisition, extractor, normalizer, catalog, announcements, transport, sink)


class TestHappyPath:
    """Test a job running through all stages."""

    async def test_url_job_published(
        self,
        pipeline: IngestionPipeline,
        acquisition: AsyncMock,
        extractor: AsyncMock,
        normalizer: MagicMock,
        catalog: AsyncMock,
        announcements: AsyncMock,
        transport: AsyncMock,
        sink: CollectingErrorSink,
        archive: Path,
    ) -> None:
        job = AcquisitionJob(source=URL, artist="Emperor", chat_id=99)

        result = await pipeline.run(job)

        assert result is job
        assert job.state is JobState.PUBLISHED
        assert [r.stage for r in job.results] == list(PipelineStage)
        assert all(r.ok for r in job.results)
        assert job.archive_path == archive
        assert job.destination == archive.parent
        assert job.file_name == "Anthems.zip"

        acquisition.acquire_url.assert_awaited_once_with("Emperor", URL)
        extractor.extract.assert_awaited_once_with(archive, archive.parent)
        normalizer.normalize.assert_called_once_with(archive.parent, archive)
        transport.send_text.assert_awaited_once_with(99, UNPACKED_MESSAGE)
        catalog.refresh.assert_awaited_once()
        announcements.post_newest.assert_awaited_once()
        assert sink.reports == []

    async def test_attachment_job_sets_artist(
        self, pipeline: IngestionPipeline, acquisition: AsyncMock
    ) -> None:
        job = AcquisitionJob(source="file-id-1", file_name="Emperor - Anthems.zip")

        await pipeline.run(job)

        acquisition.acquire_attachment.assert_awaited_once_with(
            "file-id-1", "Emperor - Anthems.zip"
        )
        assert job.artist == "Emperor"
        assert job.state is JobState.PUBLISHED

    async def test_no_ack_without_chat(
        self, pipeline: IngestionPipeline, transport: AsyncMock
    ) -> None:
        await pipeline.run(AcquisitionJob(source=URL, artist="Emperor"))
        transport.send_text.assert_not_awaited()

    async def test_failed_ack_does_not_stop_job(
        self, pipeline: IngestionPipeline, transport: AsyncMock, sink: CollectingErrorSink
    ) -> None:
        transport.send_text.side_effect = PublishError("blocked by user")

        job = await pipeline.run(AcquisitionJob(source=URL, artist="Emperor", chat_id=1))

        assert job.state is JobState.PUBLISHED
        assert sink.reports == []


class TestPassthrough:
    """Test files that are not archives."""

    async def test_pdf_is_skipped(
        self,
        acquisition: AsyncMock,
        normalizer: MagicMock,
        catalog: AsyncMock,
        announcements: AsyncMock,
        transport: AsyncMock,
        sink: CollectingErrorSink,
        tmp_path: Path,
    ) -> None:
        booklet = tmp_path / "music" / "Emperor" / "booklet.pdf"
        booklet.parent.mkdir(parents=True, exist_ok=True)
        booklet.write_bytes(b"%PDF")
        acquisition.acquire_url.return_value = booklet
        pipeline = _pipeline(
            acquisition, ArchiveExtractor(), normalizer, catalog, announcements, transport, sink
        )

        job = await pipeline.run(
            AcquisitionJob(source="https://x.example/booklet.pdf", artist="Emperor", chat_id=1)
        )

        assert job.state is JobState.SKIPPED
        assert job.results[-1].outcome is StageOutcome.SKIPPED
        assert booklet.exists()
        normalizer.normalize.assert_not_called()
        catalog.refresh.assert_not_awaited()
        transport.send_text.assert_not_awaited()
        assert sink.reports == []


class TestFailures:
    """Test that every failure is reported once and stops the job."""

    async def test_acquisition_failure(
        self,
        pipeline: IngestionPipeline,
        acquisition: AsyncMock,
        extractor: AsyncMock,
        sink: CollectingErrorSink,
    ) -> None:
        acquisition.acquire_url.side_effect = AcquisitionError(
            "HTTP 404", kind=AcquisitionErrorKind.NETWORK
        )

        job = await pipeline.run(AcquisitionJob(source=URL, artist="Emperor"))

        assert job.state is JobState.FAILED
        assert sink.stages == [PipelineStage.ACQUISITION]
        assert isinstance(job.results[-1].error, AcquisitionError)
        extractor.extract.assert_not_awaited()

    async def test_url_without_artist(
        self, pipeline: IngestionPipeline, acquisition: AsyncMock, sink: CollectingErrorSink
    ) -> None:
        job = await pipeline.run(AcquisitionJob(source=URL))

        assert job.failed
        assert sink.stages == [PipelineStage.ACQUISITION]
        acquisition.acquire_url.assert_not_awaited()

    async def test_extraction_failure_reaches_sink_only(
        self,
        pipeline: IngestionPipeline,
        extractor: AsyncMock,
        normalizer: MagicMock,
        transport: AsyncMock,
        sink: CollectingErrorSink,
    ) -> None:
        extractor.extract.side_effect = ExtractionError(
            "7z exited with 2", kind=ExtractionErrorKind.CODEC_FAILURE
        )

        job = await pipeline.run(AcquisitionJob(source=URL, artist="Emperor", chat_id=1))

        assert job.state is JobState.FAILED
        assert sink.stages == [PipelineStage.EXTRACTION]
        normalizer.normalize.assert_not_called()
        transport.send_text.assert_not_awaited()

    async def test_normalization_os_error(
        self, pipeline: IngestionPipeline, normalizer: MagicMock, sink: CollectingErrorSink
    ) -> None:
        normalizer.normalize.side_effect = PermissionError("read-only mount")

        job = await pipeline.run(AcquisitionJob(source=URL, artist="Emperor"))

        assert job.failed
        assert sink.stages == [PipelineStage.NORMALIZATION]

    async def test_refresh_failure_after_ack(
        self,
        pipeline: IngestionPipeline,
        catalog: AsyncMock,
        announcements: AsyncMock,
        transport: AsyncMock,
        sink: CollectingErrorSink,
    ) -> None:
        catalog.refresh.side_effect = CatalogError("connection refused")

        job = await pipeline.run(AcquisitionJob(source=URL, artist="Emperor", chat_id=1))

        assert job.failed
        assert sink.stages == [PipelineStage.REFRESH]
        # The user was already told it worked
        transport.send_text.assert_awaited_once_with(1, UNPACKED_MESSAGE)
        announcements.post_newest.assert_not_awaited()

    async def test_publish_failure(
        self, pipeline: IngestionPipeline, announcements: AsyncMock, sink: CollectingErrorSink
    ) -> None:
        announcements.post_newest.side_effect = PublishError("chat not found")

        job = await pipeline.run(AcquisitionJob(source=URL, artist="Emperor"))

        assert job.failed
        assert sink.stages == [PipelineStage.PUBLISH]

    async def test_unexpected_exception_propagates(
        self, pipeline: IngestionPipeline, catalog: AsyncMock
    ) -> None:
        catalog.refresh.side_effect = RuntimeError("bug")

        with pytest.raises(RuntimeError):
            await pipeline.run(AcquisitionJob(source=URL, artist="Emperor"))

    async def test_extraction_without_acquired_file(
        self, pipeline: IngestionPipeline, extractor: AsyncMock
    ) -> None:
        with pytest.raises(ValidationError, match="acquired file"):
            await pipeline._extract(AcquisitionJob(source=URL, artist="Emperor"))

        extractor.extract.assert_not_awaited()

    async def test_normalization_without_destination(
        self, pipeline: IngestionPipeline, normalizer: MagicMock
    ) -> None:
        with pytest.raises(ValidationError, match="destination"):
            await pipeline._normalize(AcquisitionJob(source=URL, artist="Emperor"))

        normalizer.normalize.assert_not_called()


class TestSettle:
    """Test the wait before asking the catalog what's new."""

    async def test_sleeps_before_publish(
        self,
        acquisition,
        extractor,
        normalizer,
        catalog,
        announcements,
        transport,
        sink,
        mocker,
    ) -> None:
        sleep = mocker.patch(
            "plexcaster.application.services.ingestion_pipeline.asyncio.sleep",
            new_callable=AsyncMock,
        )
        pipeline = _pipeline(
            acquisition, extractor, normalizer, catalog, announcements, transport, sink
        )
        pipeline.settle_seconds = 5.0

        await pipeline.run(AcquisitionJob(source=URL, artist="Emperor"))

        sleep.assert_awaited_once_with(5.0)


class TestAudioGroup:
    """Test ingest_audio_group()."""

    async def test_refresh_when_library_touched(
        self,
        pipeline: IngestionPipeline,
        acquisition: AsyncMock,
        catalog: AsyncMock,
        tmp_path: Path,
    ) -> None:
        placed = [PlacedFile(path=tmp_path / "a.mp3", tags=AudioTags(), in_library=True)]
        acquisition.acquire_audio_group.return_value = placed

        result = await pipeline.ingest_audio_group([InboundAttachment("f1", "a.mp3")])

        assert result == placed
        catalog.refresh.assert_awaited_once()

    async def test_no_refresh_for_inbox_only(
        self,
        pipeline: IngestionPipeline,
        acquisition: AsyncMock,
        catalog: AsyncMock,
        tmp_path: Path,
    ) -> None:
        acquisition.acquire_audio_group.return_value = [
            PlacedFile(path=tmp_path / "a.mp3", tags=AudioTags(), in_library=False)
        ]

        await pipeline.ingest_audio_group([InboundAttachment("f1", "a.mp3")])

        catalog.refresh.assert_not_awaited()

    async def test_refresh_failure_goes_to_sink(
        self,
        pipeline: IngestionPipeline,
        acquisition: AsyncMock,
        catalog: AsyncMock,
        sink: CollectingErrorSink,
        tmp_path: Path,
    ) -> None:
        acquisition.acquire_audio_group.return_value = [
            PlacedFile(path=tmp_path / "a.mp3", tags=AudioTags(), in_library=True)
        ]
        catalog.refresh.side_effect = CatalogError("down")

        placed = await pipeline.ingest_audio_group([InboundAttachment("f1", "a.mp3")])

        assert len(placed) == 1
        assert sink.reports[0][0] is None
        assert sink.stages == [PipelineStage.REFRESH]


class TestLoggingErrorSink:
    """Test the default sink."""

    def test_logs_error(self, caplog: pytest.LogCaptureFixture) -> None:
        error = CatalogError("plex down")
        result = StageResult(
            PipelineStage.REFRESH, StageOutcome.FAILED, error=error, detail=error.message
        )

        LoggingErrorSink().report(AcquisitionJob(source=URL, file_name="Anthems.zip"), result)

        assert "Stage refresh failed for Anthems.zip: plex down" in caplog.text
