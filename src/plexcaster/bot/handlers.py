"""
Telegram command router.

Maps chat input to application services:

    /last [n]           announce the n newest albums (covers only)
    /post <id>          announce one album with its tracks
    /discography <id>   post an artist's classified album listing
    /s <query>          start the browse flow (inline keyboards)
    <artist>__<url>     download + unpack an archive from the web
    document            download + unpack an uploaded archive
    audio (group)       place loose tracks by their tags

Handlers stay thin: parse the update, call ONE service, turn DomainException into a short
reply. Anything else bubbles up to on_error.
"""

import asyncio
import html
import logging

from telegram import Message, Update
from telegram.constants import ParseMode
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from plexcaster.application.services.acquisition_service import (
    InboundAttachment,
    parse_direct_link,
)
from plexcaster.application.services.browse_service import BrowseState, BrowseView
from plexcaster.config import Settings, TelegramSettings
from plexcaster.domain.entities import AcquisitionJob, JobState, PipelineStage
from plexcaster.domain.exceptions import (
    CatalogError,
    CatalogErrorKind,
    DomainException,
    ValidationError,
)
from plexcaster.infrastructure.integrations.telegram_transport import build_keyboard
from plexcaster.infrastructure.lifecycle import (
    SERVICES_KEY,
    BotServices,
    build_services,
    on_shutdown,
    on_startup,
)
from plexcaster.infrastructure.observability import set_correlation_id

logger = logging.getLogger(__name__)

# /last never posts more than this many covers in one go
MAX_LAST = 20

USAGE = (
    "<b>Commands</b>\n"
    "/last [n] - announce the n newest albums\n"
    "/post &lt;id&gt; - announce an album with its tracks\n"
    "/discography &lt;id&gt; - post an artist's discography\n"
    "/s &lt;query&gt; - search the library\n\n"
    "<b>Uploads</b>\n"
    "<code>Artist__https://host/album.zip</code> - fetch and unpack an archive\n"
    "Send an archive as a file - the artist is taken from the file name\n"
    "Send audio files - they are sorted by their tags"
)


def _error_text(error: DomainException) -> str:
    if isinstance(error, ValidationError):
        return "This button is no longer valid."
    if isinstance(error, CatalogError) and error.kind is CatalogErrorKind.NOT_FOUND:
        return "Not found in the library."
    return f"Error: {html.escape(error.message)}"


class CommandRouter:
    """Telegram handlers for commands, uploads and inline buttons."""

    def __init__(self, services: BotServices, telegram: TelegramSettings) -> None:
        self.services = services
        self.telegram = telegram
        # media_group_id -> audio messages collected so far
        self._pending_groups: dict[str, list[Message]] = {}

    # =========================================================================
    # AUTH
    # =========================================================================

    def _is_authorized(self, user_id: int | None) -> bool:
        if not self.telegram.admin_ids:
            return True
        return user_id is not None and user_id in self.telegram.admin_ids

    async def _check_auth(self, update: Update) -> bool:
        """New correlation id per update, then the allow-list check."""
        set_correlation_id()
        user = update.effective_user
        if self._is_authorized(user.id if user else None):
            return True

        logger.warning("Rejected update from user %s", user.id if user else None)
        if update.effective_message is not None:
            await update.effective_message.reply_text("You are not authorized to use this bot.")
        return False

    @staticmethod
    def _argument(context: ContextTypes.DEFAULT_TYPE) -> str:
        return " ".join(context.args or []).strip()

    # =========================================================================
    # COMMANDS
    # =========================================================================

    async def cmd_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not await self._check_auth(update):
            return
        await update.effective_message.reply_text(USAGE, parse_mode=ParseMode.HTML)

    async def cmd_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self.cmd_start(update, context)

    async def cmd_last(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /last [n]."""
        if not await self._check_auth(update):
            return
        message = update.effective_message

        argument = self._argument(context)
        try:
            limit = int(argument) if argument else 1
        except ValueError:
            await message.reply_text("Usage: /last [n]")
            return
        limit = max(1, min(limit, MAX_LAST))

        try:
            albums = await self.services.announcements.post_latest(limit)
        except DomainException as e:
            logger.error("/last %d failed: %s", limit, e.message)
            await message.reply_text(_error_text(e), parse_mode=ParseMode.HTML)
            return
        await message.reply_text(f"Posted {len(albums)} album(s).")

    async def cmd_post(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /post <albumId>."""
        if not await self._check_auth(update):
            return
        message = update.effective_message

        album_id = self._argument(context)
        if not album_id:
            await message.reply_text("Usage: /post <id>")
            return

        try:
            report = await self.services.announcements.post_album(album_id, with_tracks=True)
        except DomainException as e:
            logger.error("/post %s failed: %s", album_id, e.message)
            await message.reply_text(_error_text(e), parse_mode=ParseMode.HTML)
            return
        await message.reply_text(f"Posted with {report.tracks_sent} track(s).")

    async def cmd_discography(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /discography <artistId>."""
        if not await self._check_auth(update):
            return
        message = update.effective_message

        artist_id = self._argument(context)
        if not artist_id:
            await message.reply_text("Usage: /discography <id>")
            return

        try:
            await self.services.announcements.post_discography(artist_id)
        except DomainException as e:
            logger.error("/discography %s failed: %s", artist_id, e.message)
            await message.reply_text(_error_text(e), parse_mode=ParseMode.HTML)
            return
        await message.reply_text("Posted.")

    async def cmd_search(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /s <query>."""
        if not await self._check_auth(update):
            return
        message = update.effective_message

        try:
            view = await self.services.browse.search(self._argument(context))
        except DomainException as e:
            logger.error("Search failed: %s", e.message)
            await message.reply_text(_error_text(e), parse_mode=ParseMode.HTML)
            return
        await self._reply_view(message, view)

    # =========================================================================
    # INGESTION
    # =========================================================================

    async def handle_text(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Free text: only "<artist>__<url>" means something."""
        if not await self._check_auth(update):
            return
        message = update.effective_message

        link = parse_direct_link(message.text or "")
        if link is None:
            logger.debug("Ignoring free text without direct link")
            return

        job = AcquisitionJob(source=link.url, artist=link.artist, chat_id=message.chat_id)
        await message.reply_text(
            f"Downloading for {html.escape(link.artist)}...", parse_mode=ParseMode.HTML
        )
        await self._run_job(message, job)

    async def handle_document(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Uploaded file: download it, unpack when it's an archive."""
        if not await self._check_auth(update):
            return
        message = update.effective_message
        document = message.document

        job = AcquisitionJob(
            source=document.file_id,
            file_name=document.file_name or document.file_unique_id,
            chat_id=message.chat_id,
        )
        await self._run_job(message, job)

    async def _run_job(self, message: Message, job: AcquisitionJob) -> None:
        job = await self.services.pipeline.run(job)

        if job.state is JobState.SKIPPED:
            await message.reply_text(
                f"Saved {html.escape(job.file_name or '')}, nothing to unpack.",
                parse_mode=ParseMode.HTML,
            )
            return

        if job.state is JobState.FAILED:
            failed = job.results[-1]
            # Only download problems are reported back, later failures stay in the logs
            if failed.stage is PipelineStage.ACQUISITION and isinstance(
                failed.error, DomainException
            ):
                await message.reply_text(_error_text(failed.error), parse_mode=ParseMode.HTML)

    async def handle_audio(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Audio messages: single files right away, albums after the group is complete."""
        if not await self._check_auth(update):
            return
        message = update.effective_message

        group_id = message.media_group_id
        if group_id is None:
            await self._place_audio([message], message)
            return

        # Telegram delivers each file of an album as its own update. The first one opens
        # a collection window, the rest only append.
        pending = self._pending_groups.get(group_id)
        if pending is not None:
            pending.append(message)
            return

        self._pending_groups[group_id] = [message]
        context.application.create_task(self._flush_group(group_id), update=update)

    async def _flush_group(self, group_id: str) -> None:
        await asyncio.sleep(self.telegram.media_group_wait)
        messages = self._pending_groups.pop(group_id, [])
        if messages:
            logger.info("Media group %s complete with %d file(s)", group_id, len(messages))
            await self._place_audio(messages, messages[0])

    async def _place_audio(self, messages: list[Message], reply_to: Message) -> None:
        files = [
            InboundAttachment(
                file_id=m.audio.file_id,
                file_name=m.audio.file_name or f"{m.audio.file_unique_id}.mp3",
            )
            for m in messages
            if m.audio is not None
        ]
        if not files:
            return

        try:
            placed = await self.services.pipeline.ingest_audio_group(files)
        except DomainException as e:
            logger.error("Audio group failed: %s", e.message)
            await reply_to.reply_text(_error_text(e), parse_mode=ParseMode.HTML)
            return

        in_library = sum(1 for p in placed if p.in_library)
        held = len(placed) - in_library
        text = f"{in_library} file(s) added to the library."
        if held:
            text += f" {held} file(s) without album/year tags are waiting in the inbox."
        await reply_to.reply_text(text)

    # =========================================================================
    # BROWSE (inline buttons)
    # =========================================================================

    async def handle_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle inline keyboard button presses."""
        query = update.callback_query
        await query.answer()

        set_correlation_id()
        if not self._is_authorized(query.from_user.id):
            logger.warning("Rejected callback from user %s", query.from_user.id)
            return

        chat_id = update.effective_chat.id
        try:
            view = await self.services.browse.handle_token(chat_id, query.data or "")
        except DomainException as e:
            logger.warning("Browse action %r failed: %s", query.data, e.message)
            await context.bot.send_message(chat_id, _error_text(e), parse_mode=ParseMode.HTML)
            return

        if view.state is BrowseState.DOWNLOAD_MODE_SELECTED:
            # Keep the album keyboard, the user may want the other format too
            await context.bot.send_message(chat_id, view.text, parse_mode=ParseMode.HTML)
            return

        await query.edit_message_text(
            view.text,
            parse_mode=ParseMode.HTML,
            reply_markup=build_keyboard(view.buttons),
        )

    async def _reply_view(self, message: Message, view: BrowseView) -> None:
        await message.reply_text(
            view.text,
            parse_mode=ParseMode.HTML,
            reply_markup=build_keyboard(view.buttons),
        )

    # =========================================================================
    # ERRORS
    # =========================================================================

    async def on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Last resort for exceptions no handler caught."""
        logger.error("Unhandled exception while processing update", exc_info=context.error)

    def register(self, application: Application) -> None:
        """Attach all handlers to the application."""
        application.add_handler(CommandHandler("start", self.cmd_start))
        application.add_handler(CommandHandler("help", self.cmd_help))
        application.add_handler(CommandHandler("last", self.cmd_last))
        application.add_handler(CommandHandler("post", self.cmd_post))
        application.add_handler(CommandHandler("discography", self.cmd_discography))
        application.add_handler(CommandHandler("s", self.cmd_search))

        application.add_handler(CallbackQueryHandler(self.handle_callback))

        application.add_handler(MessageHandler(filters.AUDIO, self.handle_audio))
        application.add_handler(MessageHandler(filters.Document.ALL, self.handle_document))
        # Free text (direct links) - must be last
        application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, self.handle_text))

        application.add_error_handler(self.on_error)


def create_application(settings: Settings) -> Application:
    """
    Create and configure the Telegram bot application.

    Args:
        settings: Validated application settings

    Returns:
        Configured Application ready for run_polling()
    """
    application = (
        Application.builder()
        .token(settings.telegram.bot_token)
        .concurrent_updates(True)
        .post_init(on_startup)
        .post_shutdown(on_shutdown)
        .build()
    )

    services = build_services(settings, application.bot)
    application.bot_data[SERVICES_KEY] = services
    CommandRouter(services, settings.telegram).register(application)

    logger.info("Telegram bot configured")
    return application
