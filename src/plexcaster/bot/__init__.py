"""Telegram bot surface (handlers and application factory)."""

from plexcaster.bot.handlers import CommandRouter, create_application

__all__ = ["CommandRouter", "create_application"]
