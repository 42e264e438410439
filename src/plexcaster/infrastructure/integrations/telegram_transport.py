"""Chat transport adapter on top of python-telegram-bot's Bot."""

import logging
from pathlib import Path

from telegram import (
    Bot,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    InputMediaAudio,
    LinkPreviewOptions,
)
from telegram.constants import ParseMode
from telegram.error import TelegramError

from plexcaster.domain.exceptions import (
    AcquisitionError,
    AcquisitionErrorKind,
    PublishError,
)
from plexcaster.domain.ports import IChatTransport, InlineButton, MediaItem

logger = logging.getLogger(__name__)

# Bot API limits for sendMediaGroup
MEDIA_GROUP_MIN = 2
MEDIA_GROUP_LIMIT = 10


def build_keyboard(buttons: list[list[InlineButton]] | None) -> InlineKeyboardMarkup | None:
    """Convert transport-neutral button rows to a Telegram inline keyboard."""
    if not buttons:
        return None
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton(b.label, callback_data=b.callback_data) for b in row]
            for row in buttons
        ]
    )


class TelegramTransport(IChatTransport):
    """IChatTransport implementation for the Telegram Bot API.

    Every outbound call maps TelegramError to PublishError, so the publisher and the
    handlers only have to know about our own exception hierarchy. All text is HTML.
    """

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send_text(
        self,
        chat_id: int | str,
        text: str,
        buttons: list[list[InlineButton]] | None = None,
    ) -> None:
        try:
            await self._bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=ParseMode.HTML,
                reply_markup=build_keyboard(buttons),
                link_preview_options=LinkPreviewOptions(is_disabled=True),
            )
        except TelegramError as e:
            raise PublishError(f"send_message to {chat_id} failed: {e}") from e

    async def send_photo(
        self, chat_id: int | str, photo: str, caption: str | None = None
    ) -> None:
        try:
            await self._bot.send_photo(
                chat_id=chat_id,
                photo=photo,
                caption=caption,
                parse_mode=ParseMode.HTML,
            )
        except TelegramError as e:
            raise PublishError(f"send_photo to {chat_id} failed: {e}") from e

    async def send_document(
        self, chat_id: int | str, document: Path, caption: str | None = None
    ) -> None:
        try:
            await self._bot.send_document(
                chat_id=chat_id,
                document=document,
                filename=document.name,
                caption=caption,
                parse_mode=ParseMode.HTML,
            )
        except TelegramError as e:
            raise PublishError(f"send_document to {chat_id} failed: {e}") from e

    async def send_audio(self, chat_id: int | str, item: MediaItem) -> None:
        try:
            await self._bot.send_audio(
                chat_id=chat_id,
                audio=item.path,
                filename=item.path.name,
                title=item.title,
                performer=item.performer,
                duration=item.duration_s,
            )
        except TelegramError as e:
            raise PublishError(f"send_audio to {chat_id} failed: {e}") from e

    async def send_media_group(self, chat_id: int | str, items: list[MediaItem]) -> None:
        if len(items) < MEDIA_GROUP_MIN:
            raise PublishError(
                f"Media group needs at least {MEDIA_GROUP_MIN} items, got {len(items)}"
            )
        if len(items) > MEDIA_GROUP_LIMIT:
            raise PublishError(
                f"Media group of {len(items)} items exceeds Telegram limit of {MEDIA_GROUP_LIMIT}"
            )

        media = [
            InputMediaAudio(
                media=item.path,
                filename=item.path.name,
                title=item.title,
                performer=item.performer,
                duration=item.duration_s,
            )
            for item in items
        ]
        try:
            await self._bot.send_media_group(chat_id=chat_id, media=media)
        except TelegramError as e:
            raise PublishError(f"send_media_group to {chat_id} failed: {e}") from e

    async def resolve_file_link(self, file_id: str) -> str:
        try:
            tg_file = await self._bot.get_file(file_id)
        except TelegramError as e:
            raise AcquisitionError(
                f"Could not resolve Telegram file {file_id}: {e}",
                kind=AcquisitionErrorKind.NETWORK,
            ) from e

        if not tg_file.file_path:
            raise AcquisitionError(
                f"Telegram returned no download path for {file_id}",
                kind=AcquisitionErrorKind.NETWORK,
            )
        # PTB >= 20 already returns the absolute https://api.telegram.org/file/... URL
        return tg_file.file_path
