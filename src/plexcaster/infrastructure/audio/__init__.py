"""Audio file inspection."""

from plexcaster.infrastructure.audio.tag_reader import MutagenTagReader

__all__ = ["MutagenTagReader"]
