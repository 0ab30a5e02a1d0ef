"""Base classes for the command handler framework.

Commands form a closed set (the Command enum). Handler groups extend
BaseCommandHandler and map Command members to async callables; a
HandlerRegistry collects them for the router.

Key classes:
    Command: Supported bot commands plus UNKNOWN.
    ReplyTarget: The message an inbound command replied to.
    InboundMessage: Transport-neutral view of one command message.
    BotContext: Dependency container shared by all handlers.
    BaseCommandHandler: ABC that handler groups must implement.
    HandlerRegistry: Maps Command members to handler callables.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, List, Optional

import structlog

if TYPE_CHECKING:
    from ..messages import MessageCatalog
    from ..roles import RoleStore

logger = structlog.get_logger("guidebot.commands")

Handler = Callable[["InboundMessage"], Awaitable[str]]


class Command(str, Enum):
    """Bot commands, valued by their Telegram command name."""
    REGISTER_ADMIN = "register_admin"
    AUTHORIZE_USER = "authorize_user"
    DEAUTHORIZE_USER = "deauthorize_user"
    ADD_TO_GUIDE = "add_to_guide"
    HELP = "help"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, name: Optional[str]) -> "Command":
        """Map a command name to a member.

        Accepts a leading "/" and a "@botname" suffix, ignores case,
        and returns UNKNOWN for anything unsupported (including the
        literal name "unknown").
        """
        if not name:
            return cls.UNKNOWN
        name = name.lstrip("/").split("@", 1)[0].lower()
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class ReplyTarget:
    """The message a command was sent in reply to."""
    chat_id: int
    message_id: int
    sender_username: Optional[str] = None


@dataclass(frozen=True)
class InboundMessage:
    """One command message, as extracted by the transport adapter.

    Attributes:
        command: Command name as typed, without the leading "/".
        args: Everything after the command, stripped.
        sender_username: Telegram username without "@", if the user has one.
        sender_id: Telegram user id of the sender.
        chat_id: Chat the command was sent in; replies go here.
        message_id: Id of the command message itself.
        chat_title: Group title or username of the chat, for context notes.
        reply_to: Replied-to message, if any.
    """
    command: str
    args: str = ""
    sender_username: Optional[str] = None
    sender_id: Optional[int] = None
    chat_id: int = 0
    message_id: int = 0
    chat_title: Optional[str] = None
    reply_to: Optional[ReplyTarget] = None


@dataclass
class BotContext:
    """Dependency container for command handlers.

    ``send_message`` and ``forward_message`` raise on delivery failure;
    handlers that fan out decide per recipient what to do about it.
    """

    catalog: "MessageCatalog"
    roles: "RoleStore"
    admin_code: str
    send_message: Callable[[int, str], Awaitable[None]]
    forward_message: Callable[[int, int, int], Awaitable[None]]
    seed_admin_ids: List[int] = field(default_factory=list)


class BaseCommandHandler(ABC):
    """Abstract base class for command handler groups.

    Args:
        ctx: Shared BotContext dependency container.
    """

    def __init__(self, ctx: BotContext):
        self.ctx = ctx

    @abstractmethod
    def get_commands(self) -> Dict[Command, Handler]:
        """Return {Command: async_handler} mapping.

        Handler signature: async (message: InboundMessage) -> str
        """
        ...


class HandlerRegistry:
    """Maps Command members to handler callables."""

    def __init__(self):
        self._handlers: Dict[Command, Handler] = {}

    def register(self, handler: BaseCommandHandler) -> None:
        """Register all commands from a BaseCommandHandler subclass."""
        for command, method in handler.get_commands().items():
            if command in self._handlers:
                logger.warning(
                    "command_handler_conflict",
                    command=command.value,
                    handler=type(handler).__name__,
                )
            self._handlers[command] = method

    def get(self, command: Command) -> Optional[Handler]:
        """Look up a handler for a command."""
        return self._handlers.get(command)

    @property
    def commands(self) -> frozenset:
        """All registered commands."""
        return frozenset(self._handlers.keys())
