"""Application lifecycle: wiring of services plus startup and shutdown hooks.

python-telegram-bot calls post_init once the Bot is initialized and post_shutdown after
polling stopped. Every long-lived object (Plex client, shared download pool) is created
here exactly once and closed in on_shutdown.
"""

import logging
from dataclasses import dataclass

from telegram import Bot
from telegram.ext import Application

from plexcaster.application.services.acquisition_service import AcquisitionService
from plexcaster.application.services.announcement_service import AnnouncementService
from plexcaster.application.services.browse_service import BrowseStateMachine
from plexcaster.application.services.caption_composer import CaptionComposer
from plexcaster.application.services.ingestion_pipeline import IngestionPipeline
from plexcaster.application.services.publisher import Publisher
from plexcaster.config import Settings
from plexcaster.infrastructure.archive import ArchiveExtractor, FilesystemNormalizer
from plexcaster.infrastructure.audio import MutagenTagReader
from plexcaster.infrastructure.integrations import (
    HttpClientPool,
    PlexClient,
    TelegramTransport,
)

logger = logging.getLogger(__name__)

SERVICES_KEY = "services"


@dataclass
class BotServices:
    """Everything the command router needs, built once per process."""

    settings: Settings
    catalog: PlexClient
    transport: TelegramTransport
    composer: CaptionComposer
    publisher: Publisher
    acquisition: AcquisitionService
    announcements: AnnouncementService
    browse: BrowseStateMachine
    pipeline: IngestionPipeline


def build_services(settings: Settings, bot: Bot) -> BotServices:
    """Wire adapters and application services together."""
    catalog = PlexClient(settings.plex)
    transport = TelegramTransport(bot)
    composer = CaptionComposer(url_builder=catalog.web_url)
    publisher = Publisher(transport)
    acquisition = AcquisitionService(settings.storage, transport, MutagenTagReader())
    announcements = AnnouncementService(
        catalog, publisher, composer, channel_id=settings.telegram.channel_id
    )
    browse = BrowseStateMachine(catalog, transport, publisher, acquisition, composer)
    pipeline = IngestionPipeline(
        acquisition=acquisition,
        extractor=ArchiveExtractor(settings.storage.seven_zip_binary),
        normalizer=FilesystemNormalizer(),
        catalog=catalog,
        announcements=announcements,
        transport=transport,
        settle_seconds=settings.plex.refresh_settle_seconds,
    )

    return BotServices(
        settings=settings,
        catalog=catalog,
        transport=transport,
        composer=composer,
        publisher=publisher,
        acquisition=acquisition,
        announcements=announcements,
        browse=browse,
        pipeline=pipeline,
    )


async def on_startup(application: Application) -> None:
    """post_init hook: make sure the library roots exist."""
    services: BotServices = application.bot_data[SERVICES_KEY]
    storage = services.settings.storage

    # Hey future me - a missing/read-only music mount is NOT fatal here: browse and /post
    # only talk to Plex. Ingestion will fail loudly per job with AcquisitionError(FILESYSTEM).
    for path in (storage.music_path, storage.holding_path):
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Cannot create library directory %s: %s", path, e)

    me = await application.bot.get_me()
    logger.info(
        "Bot @%s started (channel=%s, plex=%s, section=%s)",
        me.username,
        services.settings.telegram.channel_id,
        services.settings.plex.url,
        services.settings.plex.section_id,
    )


async def on_shutdown(application: Application) -> None:
    """post_shutdown hook: close HTTP clients."""
    services: BotServices | None = application.bot_data.get(SERVICES_KEY)
    if services is not None:
        await services.catalog.close()
    await HttpClientPool.close()
    logger.info("Shutdown complete")
