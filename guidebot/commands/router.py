"""Command router: inbound command -> handler -> reply text."""

from __future__ import annotations

import structlog

from .base import BotContext, Command, HandlerRegistry, InboundMessage
from .guide import GuideCommandHandler

logger = structlog.get_logger("guidebot.commands")

DEFAULT_UNKNOWN_COMMAND = "Unknown command. Use /help to see available commands."


class CommandRouter:
    """Stateless dispatcher over the registered command handlers.

    Args:
        ctx: Shared BotContext; the router registers the guide handlers
            against it.
    """

    def __init__(self, ctx: BotContext):
        self.ctx = ctx
        self.registry = HandlerRegistry()
        self.registry.register(GuideCommandHandler(ctx))

    async def dispatch(self, message: InboundMessage) -> str:
        """Run the handler for ``message.command`` and return its reply."""
        command = Command.parse(message.command)
        logger.debug(
            "command_routing",
            command=command.value,
            sender=message.sender_username,
            has_args=bool(message.args),
        )

        handler = self.registry.get(command)
        if handler is None:
            logger.info("unknown_command", command=message.command, sender=message.sender_username)
            return self._unknown_command_text()
        return await handler(message)

    def _unknown_command_text(self) -> str:
        if "unknownCommand" in self.ctx.catalog:
            return self.ctx.catalog.get("unknownCommand")
        return DEFAULT_UNKNOWN_COMMAND
