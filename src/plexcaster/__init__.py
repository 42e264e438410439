"""plexcaster - Telegram bot that feeds a Plex music library and announces new releases."""

__version__ = "0.4.0"
