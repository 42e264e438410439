"""Publisher - cover first, then tracks in media groups of at most 10.

Hey future me - ordering is the whole point here. Telegram shows media groups in the order
they ARRIVE, so batches are sent strictly one after another (never gather()). If batch 2
fails we stop: batch 1 is already in the channel and there's no way to take it back, and
sending batch 3 would leave a hole in the middle of the album.
"""

import logging
from dataclasses import dataclass, field

from plexcaster.application.services.caption_composer import (
    MESSAGE_LIMIT,
    fit_caption,
    split_text,
)
from plexcaster.domain.entities import Track
from plexcaster.domain.exceptions import PublishError
from plexcaster.domain.ports import IChatTransport, MediaItem

logger = logging.getLogger(__name__)

BATCH_SIZE = 10


def partition(items: list, size: int = BATCH_SIZE) -> list[list]:
    """Order-preserving fixed-size chunks (last one may be shorter)."""
    if size < 1:
        raise ValueError("Batch size must be positive")
    return [items[i : i + size] for i in range(0, len(items), size)]


@dataclass
class PublishReport:
    """What actually went out."""

    cover_sent: bool = False
    text_messages: int = 0
    batch_sizes: list[int] = field(default_factory=list)
    skipped_tracks: list[str] = field(default_factory=list)

    @property
    def tracks_sent(self) -> int:
        return sum(self.batch_sizes)


class Publisher:
    """Sends announcements and audio batches through the chat transport."""

    def __init__(self, transport: IChatTransport, batch_size: int = BATCH_SIZE) -> None:
        self._transport = transport
        self.batch_size = batch_size

    async def publish(
        self,
        chat_id: int | str,
        cover: str | None,
        caption: str,
        tracks: list[Track] | None = None,
    ) -> PublishReport:
        """
        Publish one post: cover with caption, then the tracks.

        Args:
            chat_id: Destination chat or channel
            cover: Cover image URL; without one the caption goes out as text
            caption: HTML caption (moved to follow-up messages if too long for a photo)
            tracks: Tracks to attach, in order

        Returns:
            PublishReport

        Raises:
            PublishError: On the first failed send, nothing after it is attempted
        """
        report = PublishReport()

        if cover:
            photo_caption, overflow = fit_caption(caption)
            await self._transport.send_photo(chat_id, cover, photo_caption)
            report.cover_sent = True
            for chunk in overflow:
                await self._transport.send_text(chat_id, chunk)
                report.text_messages += 1
        else:
            report.text_messages += await self.send_text(chat_id, caption)

        if tracks:
            await self._send_batches(chat_id, tracks, report)

        logger.info(
            "Published to %s: cover=%s, %d track(s) in %d batch(es)",
            chat_id,
            report.cover_sent,
            report.tracks_sent,
            len(report.batch_sizes),
        )
        return report

    async def send_tracks(self, chat_id: int | str, tracks: list[Track]) -> PublishReport:
        """Tracks only, no cover (browse "download songs")."""
        report = PublishReport()
        await self._send_batches(chat_id, tracks, report)
        return report

    async def send_text(self, chat_id: int | str, text: str) -> int:
        """Send text, split on line boundaries when over the message limit.

        Returns:
            Number of messages sent
        """
        chunks = split_text(text) if len(text) > MESSAGE_LIMIT else [text]
        for chunk in chunks:
            await self._transport.send_text(chat_id, chunk)
        return len(chunks)

    async def _send_batches(
        self, chat_id: int | str, tracks: list[Track], report: PublishReport
    ) -> None:
        sendable: list[Track] = []
        for track in tracks:
            if track.file is None or not track.file.is_file():
                logger.warning("Skipping track %r: no file on disk (%s)", track.title, track.file)
                report.skipped_tracks.append(track.title)
                continue
            sendable.append(track)

        for number, batch in enumerate(partition(sendable, self.batch_size), start=1):
            items = [
                MediaItem(
                    path=track.file,  # type: ignore[arg-type]
                    title=track.title,
                    performer=track.performer,
                    duration_s=track.duration_ms // 1000 if track.duration_ms else None,
                )
                for track in batch
            ]
            try:
                # sendMediaGroup needs 2-10 items, a lone track goes out on its own
                if len(items) == 1:
                    await self._transport.send_audio(chat_id, items[0])
                else:
                    await self._transport.send_media_group(chat_id, items)
            except PublishError as e:
                e.sent_batches = len(report.batch_sizes)
                logger.error(
                    "Media batch %d to %s failed after %d sent batch(es): %s",
                    number,
                    chat_id,
                    e.sent_batches,
                    e.message,
                )
                raise
            report.batch_sizes.append(len(batch))
