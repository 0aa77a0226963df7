"""Axen Telegram bot: strategy alerts, price charts and vault links."""
