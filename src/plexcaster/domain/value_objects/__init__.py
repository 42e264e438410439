"""Value objects for the plexcaster domain."""

from plexcaster.domain.value_objects.album_types import AlbumType, classify_album_type
from plexcaster.domain.value_objects.callback_token import (
    CallbackAction,
    CallbackToken,
    encode_token,
)

__all__ = [
    "AlbumType",
    "CallbackAction",
    "CallbackToken",
    "classify_album_type",
    "encode_token",
]
