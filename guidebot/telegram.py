"""Telegram Bot API transport for guidebot.

A thin aiohttp client for the handful of Bot API methods the bot uses,
and the parser that turns a raw ``getUpdates`` entry into an
InboundMessage for the command router.

Key classes:
    TelegramClient: getMe / getUpdates / sendMessage / forwardMessage.

Key functions:
    parse_update: Extract a command message from an update dict.
"""

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp
import structlog

from .commands.base import InboundMessage, ReplyTarget
from .exceptions import ErrorCategory, TelegramAPIError
from .security import sanitize_input

logger = structlog.get_logger("guidebot.telegram")

# Telegram rejects longer texts in sendMessage
MAX_MESSAGE_LENGTH = 4096

# Bad or revoked bot token
PERMANENT_ERROR_CODES = frozenset({401, 404})


class TelegramClient:
    """Async client for the Telegram Bot API.

    Args:
        token: Bot token from BotFather.
        api_url: API base URL, without trailing slash.
        session: Optional externally managed ClientSession (tests).
    """

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.telegram.org",
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._base = f"{api_url}/bot{token}"
        self.session = session
        self._owns_session = session is None

    async def start(self):
        if self.session is None:
            self.session = aiohttp.ClientSession()

    async def close(self):
        if self.session and self._owns_session:
            await self.session.close()
        self.session = None

    async def _request(
        self, method: str, payload: Dict[str, Any], timeout: float = 30
    ) -> Any:
        """POST a Bot API method and return its ``result``.

        Raises:
            TelegramAPIError: On transport errors, non-JSON bodies, or
                ``ok: false`` responses.
        """
        if self.session is None:
            await self.start()
        url = f"{self._base}/{method}"
        try:
            async with self.session.post(
                url, json=payload, timeout=aiohttp.ClientTimeout(total=timeout)
            ) as resp:
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise TelegramAPIError(
                f"Telegram API {method} request failed: {e}", method=method
            ) from e

        if not isinstance(data, dict) or not data.get("ok"):
            description = "unknown Telegram error"
            error_code = None
            if isinstance(data, dict):
                description = data.get("description", description)
                error_code = data.get("error_code")
            raise TelegramAPIError(
                f"Telegram API {method} failed: {description}",
                method=method,
                error_code=error_code,
                category=(
                    ErrorCategory.PERMANENT
                    if error_code in PERMANENT_ERROR_CODES
                    else ErrorCategory.TRANSIENT
                ),
            )
        return data.get("result")

    async def get_me(self) -> Dict[str, Any]:
        result = await self._request("getMe", {})
        return result if isinstance(result, dict) else {}

    async def get_updates(self, offset: int, timeout: int = 60) -> List[Dict[str, Any]]:
        """Long-poll for new message updates starting at ``offset``."""
        result = await self._request(
            "getUpdates",
            {"offset": offset, "timeout": timeout, "allowed_updates": ["message"]},
            timeout=timeout + 10,
        )
        if not isinstance(result, list):
            raise TelegramAPIError(
                "Invalid getUpdates response: result is not a list", method="getUpdates"
            )
        return result

    async def send_message(self, chat_id: int, text: str) -> None:
        """Send plain text to a chat, truncated to Telegram's limit."""
        if len(text) > MAX_MESSAGE_LENGTH:
            text = text[:MAX_MESSAGE_LENGTH]
        await self._request("sendMessage", {"chat_id": chat_id, "text": text})

    async def forward_message(
        self, chat_id: int, from_chat_id: int, message_id: int
    ) -> None:
        """Forward ``message_id`` from ``from_chat_id`` to ``chat_id``."""
        await self._request(
            "forwardMessage",
            {"chat_id": chat_id, "from_chat_id": from_chat_id, "message_id": message_id},
        )


def _split_command(message: Dict[str, Any]) -> Optional[tuple]:
    """Return (command, args) if the message starts with a bot command."""
    text = message.get("text") or ""
    if not text.startswith("/"):
        return None

    for entity in message.get("entities") or []:
        if entity.get("type") == "bot_command" and entity.get("offset") == 0:
            length = entity.get("length", 0)
            command = text[1:length].split("@", 1)[0]
            return command, text[length:].strip()

    parts = text[1:].split(maxsplit=1)
    if not parts:
        return None
    command = parts[0].split("@", 1)[0]
    return command, parts[1].strip() if len(parts) > 1 else ""


def parse_update(update: Dict[str, Any]) -> Optional[InboundMessage]:
    """Build an InboundMessage from a getUpdates entry.

    Returns None for updates that are not command messages.
    """
    message = update.get("message")
    if not isinstance(message, dict):
        return None

    split = _split_command(message)
    if split is None:
        return None
    command, args = split

    sender = message.get("from") or {}
    chat = message.get("chat") or {}

    reply_to = None
    replied = message.get("reply_to_message")
    if isinstance(replied, dict):
        replied_chat = replied.get("chat") or chat
        reply_to = ReplyTarget(
            chat_id=replied_chat.get("id", 0),
            message_id=replied.get("message_id", 0),
            sender_username=(replied.get("from") or {}).get("username"),
        )

    chat_title = chat.get("title")
    if not chat_title and chat.get("username"):
        chat_title = "@" + chat["username"]

    return InboundMessage(
        command=command,
        args=sanitize_input(args),
        sender_username=sender.get("username"),
        sender_id=sender.get("id"),
        chat_id=chat.get("id", 0),
        message_id=message.get("message_id", 0),
        chat_title=chat_title,
        reply_to=reply_to,
    )
