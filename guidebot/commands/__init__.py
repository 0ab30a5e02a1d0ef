"""Command handling for guidebot.

Provides the Command enum, the handler framework (BotContext,
BaseCommandHandler, HandlerRegistry) and the CommandRouter that turns
an InboundMessage into a reply.
"""

from .base import (
    BaseCommandHandler,
    BotContext,
    Command,
    HandlerRegistry,
    InboundMessage,
    ReplyTarget,
)
from .guide import GuideCommandHandler
from .router import CommandRouter

__all__ = [
    "BaseCommandHandler",
    "BotContext",
    "Command",
    "CommandRouter",
    "GuideCommandHandler",
    "HandlerRegistry",
    "InboundMessage",
    "ReplyTarget",
]
