"""Ingestion Pipeline - one AcquisitionJob through five ordered stages.

Hey future me - the flow is strictly linear:

    ACQUISITION -> EXTRACTION -> NORMALIZATION -> REFRESH -> PUBLISH
    (downloading)  (extracting)  (normalizing)   (refresh)   (wait, announce newest)

Every stage returns a StageResult. A FAILED result goes to the ErrorSink exactly once, the
job becomes FAILED and nothing after it runs. A SKIPPED extraction (file type we don't
unpack, e.g. a PDF booklet) ends the job as SKIPPED: the file stays where it landed, no
chmod, no Plex refresh.

Who tells the user what:
- Acquisition failure: the HANDLER replies (it looks at job.results).
- After normalization we optimistically say "downloaded and unpacked" BEFORE Plex has even
  been asked to rescan. If refresh or publish fail afterwards, only the sink knows.
- Extraction failure: sink only, the user hears nothing.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from plexcaster.application.services.acquisition_service import (
    AcquisitionService,
    InboundAttachment,
)
from plexcaster.application.services.announcement_service import AnnouncementService
from plexcaster.domain.entities import (
    AcquisitionJob,
    JobState,
    PipelineStage,
    PlacedFile,
    StageOutcome,
    StageResult,
)
from plexcaster.domain.exceptions import (
    CatalogError,
    DomainException,
    PublishError,
    ValidationError,
)
from plexcaster.domain.ports import ICatalogClient, IChatTransport
from plexcaster.infrastructure.archive.extractor import ArchiveExtractor
from plexcaster.infrastructure.archive.normalizer import FilesystemNormalizer

logger = logging.getLogger(__name__)

UNPACKED_MESSAGE = "Downloaded and unpacked."


# =============================================================================
# Error sinks
# =============================================================================


class ErrorSink(ABC):
    """Single destination for stage failures."""

    @abstractmethod
    def report(self, job: AcquisitionJob | None, result: StageResult) -> None:
        pass


class LoggingErrorSink(ErrorSink):
    """Default sink: one ERROR log line with the exception chain."""

    def report(self, job: AcquisitionJob | None, result: StageResult) -> None:
        source = (job.file_name or job.source) if job else "-"
        logger.error(
            "Stage %s failed for %s: %s",
            result.stage.value,
            source,
            result.detail or result.error,
            exc_info=result.error,
        )


@dataclass
class CollectingErrorSink(ErrorSink):
    """Keeps reported failures in memory."""

    reports: list[tuple[AcquisitionJob | None, StageResult]] = field(default_factory=list)

    def report(self, job: AcquisitionJob | None, result: StageResult) -> None:
        self.reports.append((job, result))

    @property
    def stages(self) -> list[PipelineStage]:
        return [result.stage for _, result in self.reports]


# =============================================================================
# Pipeline
# =============================================================================

StageHandler = Callable[[AcquisitionJob], Awaitable[StageResult]]


class IngestionPipeline:
    """Runs acquisition jobs stage by stage."""

    def __init__(
        self,
        acquisition: AcquisitionService,
        extractor: ArchiveExtractor,
        normalizer: FilesystemNormalizer,
        catalog: ICatalogClient,
        announcements: AnnouncementService,
        transport: IChatTransport,
        settle_seconds: float = 5.0,
        error_sink: ErrorSink | None = None,
    ) -> None:
        self._acquisition = acquisition
        self._extractor = extractor
        self._normalizer = normalizer
        self._catalog = catalog
        self._announcements = announcements
        self._transport = transport
        self.settle_seconds = settle_seconds
        self.error_sink = error_sink or LoggingErrorSink()

        self._stages: list[tuple[PipelineStage, JobState, StageHandler]] = [
            (PipelineStage.ACQUISITION, JobState.DOWNLOADING, self._acquire),
            (PipelineStage.EXTRACTION, JobState.EXTRACTING, self._extract),
            (PipelineStage.NORMALIZATION, JobState.NORMALIZING, self._normalize),
            (PipelineStage.REFRESH, JobState.CATALOG_REFRESHING, self._refresh),
            (PipelineStage.PUBLISH, JobState.CATALOG_REFRESHING, self._publish),
        ]

    async def run(self, job: AcquisitionJob) -> AcquisitionJob:
        """
        Run all stages over a job.

        Domain failures never escape: they end up as a FAILED StageResult in the sink.
        Anything else (a real bug) propagates to the caller.

        Returns:
            The same job, in a terminal state
        """
        logger.info("Ingestion started for %s", job.file_name or job.source)

        for stage, state, handler in self._stages:
            job.state = state
            try:
                result = await handler(job)
            except DomainException as e:
                result = StageResult(stage, StageOutcome.FAILED, error=e, detail=e.message)

            job.record(result)

            if result.outcome is StageOutcome.FAILED:
                job.state = JobState.FAILED
                self.error_sink.report(job, result)
                return job

            if result.outcome is StageOutcome.SKIPPED:
                job.state = JobState.SKIPPED
                logger.info(
                    "Ingestion of %s stopped at %s: %s",
                    job.file_name,
                    stage.value,
                    result.detail,
                )
                return job

        job.state = JobState.PUBLISHED
        logger.info("Ingestion finished for %s", job.file_name)
        return job

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    async def _acquire(self, job: AcquisitionJob) -> StageResult:
        if job.is_url:
            if not job.artist:
                raise ValidationError("URL jobs need an artist")
            path = await self._acquisition.acquire_url(job.artist, job.source)
        else:
            artist, path = await self._acquisition.acquire_attachment(
                job.source, job.file_name or job.source
            )
            job.artist = artist

        job.archive_path = path
        job.file_name = path.name
        job.destination = path.parent
        return StageResult(PipelineStage.ACQUISITION, StageOutcome.OK, detail=str(path))

    async def _extract(self, job: AcquisitionJob) -> StageResult:
        if job.archive_path is None or job.destination is None:
            raise ValidationError("Extraction needs an acquired file")
        result = await self._extractor.extract(job.archive_path, job.destination)
        if result is None:
            return StageResult(
                PipelineStage.EXTRACTION, StageOutcome.SKIPPED, detail="not an archive"
            )
        return StageResult(
            PipelineStage.EXTRACTION,
            StageOutcome.OK,
            detail=f"{result.strategy.value}, {len(result.members)} member(s)",
        )

    async def _normalize(self, job: AcquisitionJob) -> StageResult:
        if job.destination is None:
            raise ValidationError("Normalization needs a destination directory")
        try:
            touched = await asyncio.to_thread(
                self._normalizer.normalize, job.destination, job.archive_path
            )
        except OSError as e:
            return StageResult(
                PipelineStage.NORMALIZATION, StageOutcome.FAILED, error=e, detail=str(e)
            )

        if job.chat_id is not None:
            try:
                await self._transport.send_text(job.chat_id, UNPACKED_MESSAGE)
            except PublishError as e:
                logger.warning("Could not acknowledge %s: %s", job.file_name, e.message)

        return StageResult(
            PipelineStage.NORMALIZATION, StageOutcome.OK, detail=f"{len(touched)} dir(s)"
        )

    async def _refresh(self, job: AcquisitionJob) -> StageResult:
        await self._catalog.refresh()
        return StageResult(PipelineStage.REFRESH, StageOutcome.OK)

    async def _publish(self, job: AcquisitionJob) -> StageResult:
        # Plex scans in the background, give it a moment before asking what's new
        if self.settle_seconds > 0:
            await asyncio.sleep(self.settle_seconds)
        album = await self._announcements.post_newest()
        return StageResult(PipelineStage.PUBLISH, StageOutcome.OK, detail=album.title)

    # -------------------------------------------------------------------------
    # Grouped audio
    # -------------------------------------------------------------------------

    async def ingest_audio_group(self, files: list[InboundAttachment]) -> list[PlacedFile]:
        """
        Place a batch of audio attachments and rescan if anything reached the library.

        Raises:
            AcquisitionError: Download/move failed (the handler replies)
        """
        placed = await self._acquisition.acquire_audio_group(files)

        if any(p.in_library for p in placed):
            try:
                await self._catalog.refresh()
            except CatalogError as e:
                self.error_sink.report(
                    None,
                    StageResult(
                        PipelineStage.REFRESH, StageOutcome.FAILED, error=e, detail=e.message
                    ),
                )
        return placed
