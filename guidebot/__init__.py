"""guidebot: Telegram bot that collects guide suggestions for admins."""

__version__ = "1.0.0"
