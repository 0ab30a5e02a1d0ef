"""Telegram bot implementation for guidebot.

Long-polls the Bot API, turns each command message into an
InboundMessage, dispatches it through the CommandRouter and sends the
reply back to the originating chat. Updates are handled one at a time;
a failure in one update is logged and never stops the loop.

Key classes:
    GuideBot: Owns the Telegram client, the router and the poll loop.
"""

import asyncio
from typing import Any, Dict, Optional

import structlog

from .commands import BotContext, CommandRouter
from .config import Config
from .exceptions import GuideBotError, TelegramAPIError
from .messages import MessageCatalog
from .roles import RoleStore
from .telegram import TelegramClient, parse_update

logger = structlog.get_logger("guidebot.bot")

INITIAL_RETRY_DELAY = 5
MAX_RETRY_DELAY = 300


class GuideBot:
    """Guide suggestion bot.

    Args:
        config: Loaded and validated Config.
        catalog: Reply templates.
        roles: Role store (admins and authorized users).
        client: Optional TelegramClient; built from config if omitted.
    """

    def __init__(
        self,
        config: Config,
        catalog: MessageCatalog,
        roles: RoleStore,
        client: Optional[TelegramClient] = None,
    ):
        self.config = config
        self.client = client or TelegramClient(
            token=config.telegram_token, api_url=config.telegram_api_url
        )
        self.running = False
        self._closed = False
        self.offset = 0
        self.username: Optional[str] = None

        self._bot_context = BotContext(
            catalog=catalog,
            roles=roles,
            admin_code=config.admin_code,
            send_message=self.client.send_message,
            forward_message=self.client.forward_message,
            seed_admin_ids=config.admin_ids,
        )
        self.router = CommandRouter(self._bot_context)

    async def start(self):
        """Open the HTTP session and identify the bot account."""
        await self.client.start()
        self.running = True
        try:
            me = await self.client.get_me()
            self.username = me.get("username")
        except TelegramAPIError as e:
            logger.warning("get_me_failed", error=str(e))
        logger.info("bot_started", username=self.username)

    async def stop(self):
        if self._closed:
            return
        self._closed = True
        self.running = False
        await self.client.close()
        logger.info("bot_stopped")

    async def handle_update(self, update: Dict[str, Any]) -> None:
        """Process one raw update: dispatch and reply.

        Send failures and handler errors are logged, not raised.
        """
        try:
            message = parse_update(update)
            if message is None:
                return

            logger.info(
                "command_received",
                command=message.command,
                sender=message.sender_username,
                chat_id=message.chat_id,
            )
            reply = await self.router.dispatch(message)
            if not reply:
                return

            try:
                await self.client.send_message(message.chat_id, reply)
            except TelegramAPIError as e:
                logger.error("send_error", chat_id=message.chat_id, error=str(e))

        except Exception as e:
            logger.error(
                "update_handling_error",
                update_id=update.get("update_id"),
                error=str(e),
            )

    async def poll_updates(self):
        """Consume updates sequentially until stopped or a permanent API error."""
        retry_delay = INITIAL_RETRY_DELAY

        while self.running:
            try:
                updates = await self.client.get_updates(
                    self.offset, timeout=self.config.poll_timeout
                )
                retry_delay = INITIAL_RETRY_DELAY
            except asyncio.CancelledError:
                break
            except Exception as e:
                if isinstance(e, GuideBotError) and not e.is_retryable:
                    logger.critical("poll_aborted", error=str(e), category=e.category.value)
                    self.running = False
                    break
                logger.error("poll_error", error=str(e), retry_delay=retry_delay)
                await asyncio.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, MAX_RETRY_DELAY)
                continue

            for update in updates:
                update_id = update.get("update_id")
                if isinstance(update_id, int):
                    # Offset moves past every update, handled or not
                    self.offset = max(self.offset, update_id + 1)
                await self.handle_update(update)

    async def run(self):
        """Main run loop: start, poll updates, stop on exit."""
        await self.start()

        try:
            await self.poll_updates()
        finally:
            await self.stop()
