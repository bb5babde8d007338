"""
User-visible status messages.

A notifier is fire-and-forget: delivery failures are logged and never
interrupt a sync cycle.
"""
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class Notifier:
    """Base notifier. Subclasses implement send()."""

    async def send(self, message: str) -> None:
        raise NotImplementedError

    async def notify(self, message: str) -> None:
        try:
            await self.send(message)
        except Exception as exc:
            logger.warning("Could not deliver notification %r: %s", message, exc)


class LogNotifier(Notifier):
    """Used when no Telegram chat is configured; messages only reach the log."""

    async def send(self, message: str) -> None:
        logger.info("[notify] %s", message)


class TelegramNotifier(Notifier):
    """Sends messages to the owner's Telegram chat."""

    def __init__(self, bot, chat_id: Optional[int]):
        """
        Args:
            bot: telegram.Bot instance (or AsyncMock in tests).
            chat_id: Owner chat ID. Messages are only logged when None.
        """
        self.bot = bot
        self.chat_id = chat_id

    async def send(self, message: str) -> None:
        if self.chat_id is None:
            logger.info("[notify] %s", message)
            return
        await self.bot.send_message(chat_id=self.chat_id, text=message)
