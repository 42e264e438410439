"""Callback tokens carried by inline keyboard buttons.

Wire format: "<action>|<primaryId>|<secondaryId?>", e.g. "albumById|12345".

Hey future me - these are STATELESS. There's no session store behind them: the token alone
decides what happens when the button is pressed, even weeks later. Telegram caps
callback_data at 64 bytes, which is why actions are short camelCase names and ids are Plex
ratingKeys (a handful of digits).
"""

from dataclasses import dataclass
from enum import Enum

from plexcaster.domain.exceptions import ValidationError

SEPARATOR = "|"
MAX_CALLBACK_DATA_BYTES = 64


class CallbackAction(str, Enum):
    """Browse flow actions."""

    ARTIST_BY_ID = "artistById"
    ALBUM_BY_ID = "albumById"
    DOWNLOAD_ARCHIVE = "downloadArchive"
    DOWNLOAD_SONG = "downloadSong"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CallbackToken:
    """Decoded callback payload."""

    action: CallbackAction
    primary_id: str
    secondary_id: str | None = None

    def encode(self) -> str:
        """Serialize to the wire format.

        Raises:
            ValidationError: If an id contains the separator or the result is too long
        """
        parts = [self.action.value, self.primary_id]
        if self.secondary_id is not None:
            parts.append(self.secondary_id)

        if not self.primary_id or any(SEPARATOR in part for part in parts[1:]):
            raise ValidationError(f"Invalid callback token ids: {parts[1:]!r}")

        data = SEPARATOR.join(parts)
        if len(data.encode("utf-8")) > MAX_CALLBACK_DATA_BYTES:
            raise ValidationError(
                f"Callback token exceeds {MAX_CALLBACK_DATA_BYTES} bytes: {data!r}"
            )
        return data

    @classmethod
    def decode(cls, data: str) -> "CallbackToken":
        """Parse the wire format.

        Args:
            data: Raw callback_data from Telegram

        Returns:
            Decoded token; secondary_id is None when absent or empty

        Raises:
            ValidationError: Unknown action, missing primary id or too many parts
        """
        parts = (data or "").split(SEPARATOR)
        if len(parts) < 2 or len(parts) > 3:
            raise ValidationError(f"Malformed callback token: {data!r}")

        try:
            action = CallbackAction(parts[0])
        except ValueError as e:
            raise ValidationError(f"Unknown callback action: {parts[0]!r}") from e

        primary_id = parts[1]
        if not primary_id:
            raise ValidationError(f"Callback token without id: {data!r}")

        secondary_id = parts[2] if len(parts) == 3 and parts[2] else None
        return cls(action=action, primary_id=primary_id, secondary_id=secondary_id)


def encode_token(
    action: CallbackAction, primary_id: str, secondary_id: str | None = None
) -> str:
    """Shortcut for CallbackToken(...).encode()."""
    return CallbackToken(action, str(primary_id), secondary_id).encode()
