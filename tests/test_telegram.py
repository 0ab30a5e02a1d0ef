"""Tests for the Telegram transport: update parsing and API client."""

import aiohttp
import pytest

from guidebot.commands import ReplyTarget
from guidebot.exceptions import TelegramAPIError
from guidebot.telegram import MAX_MESSAGE_LENGTH, TelegramClient, parse_update

TOKEN = "123456789:AAAbbbCCCdddEEEfffGGGhhhIIIjjjKKKlll"


def _update(text, entities=True, **message_fields):
    message = {
        "message_id": 10,
        "from": {"id": 42, "username": "alice"},
        "chat": {"id": -100, "type": "group", "title": "Madrid tips"},
        "text": text,
    }
    if entities and text.startswith("/"):
        length = len(text.split()[0])
        message["entities"] = [{"type": "bot_command", "offset": 0, "length": length}]
    message.update(message_fields)
    return {"update_id": 1, "message": message}


# --- parse_update ---

def test_parse_command_with_args():
    """Command name and arguments are split out."""
    msg = parse_update(_update("/authorize_user @bob"))
    assert msg.command == "authorize_user"
    assert msg.args == "@bob"
    assert msg.sender_username == "alice"
    assert msg.sender_id == 42
    assert msg.chat_id == -100
    assert msg.message_id == 10
    assert msg.chat_title == "Madrid tips"
    assert msg.reply_to is None


def test_parse_strips_bot_mention():
    """A /cmd@bot mention is stripped."""
    msg = parse_update(_update("/help@GuideBot"))
    assert msg.command == "help"
    assert msg.args == ""


def test_parse_without_entities_falls_back_to_text():
    """Commands parse from text when entities are absent."""
    msg = parse_update(_update("/register_admin  secret ", entities=False))
    assert msg.command == "register_admin"
    assert msg.args == "secret"


def test_parse_reply_target():
    """reply_to_message becomes the reply target."""
    replied = {
        "message_id": 7,
        "from": {"id": 5, "username": "carol"},
        "chat": {"id": -100},
        "text": "Try the churros at San Ginés",
    }
    msg = parse_update(_update("/add_to_guide", reply_to_message=replied))
    assert msg.reply_to == ReplyTarget(chat_id=-100, message_id=7, sender_username="carol")


def test_parse_private_chat_title_is_username():
    """Private chats are labelled with the @username."""
    msg = parse_update(_update(
        "/help", chat={"id": 42, "type": "private", "username": "alice"},
    ))
    assert msg.chat_title == "@alice"


def test_parse_sender_without_username():
    """A sender without a username parses with None."""
    msg = parse_update(_update("/help", **{"from": {"id": 42}}))
    assert msg.sender_username is None


def test_parse_ignores_plain_text():
    """Plain text is not a command."""
    assert parse_update(_update("hello there")) is None


def test_parse_ignores_non_message_updates():
    """Updates without a message are skipped."""
    assert parse_update({"update_id": 3, "edited_message": {"text": "/help"}}) is None


def test_parse_sanitizes_args():
    """Arguments are sanitized."""
    msg = parse_update(_update("/authorize_user @bob\x00\u202e"))
    assert msg.args == "@bob"


# --- TelegramClient ---

class _FakeResponse:
    def __init__(self, payload):
        self._payload = payload

    async def json(self, content_type=None):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _FakePost:
    def __init__(self, response):
        self._response = response

    async def __aenter__(self):
        return self._response

    async def __aexit__(self, *exc):
        return False


class _FakeSession:
    """Records posts and answers with queued payloads."""

    def __init__(self, *payloads, error=None):
        self.payloads = list(payloads)
        self.error = error
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append((url, json))
        if self.error is not None:
            raise self.error
        return _FakePost(_FakeResponse(self.payloads.pop(0)))

    async def close(self):
        pass


def _client(session):
    return TelegramClient(TOKEN, "https://api.example.test", session=session)


@pytest.mark.asyncio
async def test_get_updates_returns_result_list():
    """getUpdates returns the result list and sends the offset."""
    session = _FakeSession({"ok": True, "result": [{"update_id": 5}]})
    updates = await _client(session).get_updates(offset=5, timeout=30)
    assert updates == [{"update_id": 5}]
    url, payload = session.calls[0]
    assert url == f"https://api.example.test/bot{TOKEN}/getUpdates"
    assert payload["offset"] == 5
    assert payload["timeout"] == 30


@pytest.mark.asyncio
async def test_get_updates_rejects_non_list_result():
    """A non-list getUpdates result is an error."""
    session = _FakeSession({"ok": True, "result": {}})
    with pytest.raises(TelegramAPIError, match="not a list"):
        await _client(session).get_updates(offset=0)


@pytest.mark.asyncio
async def test_api_error_response_raises():
    """ok:false raises a retryable TelegramAPIError."""
    session = _FakeSession({"ok": False, "error_code": 403, "description": "Forbidden"})
    with pytest.raises(TelegramAPIError) as exc_info:
        await _client(session).send_message(1, "hi")
    assert exc_info.value.method == "sendMessage"
    assert exc_info.value.error_code == 403
    assert exc_info.value.is_retryable is True


@pytest.mark.asyncio
async def test_unauthorized_token_is_not_retryable():
    """A 401 from the API is a permanent error."""
    session = _FakeSession({"ok": False, "error_code": 401, "description": "Unauthorized"})
    with pytest.raises(TelegramAPIError) as exc_info:
        await _client(session).get_updates(offset=0)
    assert exc_info.value.is_retryable is False


@pytest.mark.asyncio
async def test_transport_error_raises_api_error():
    """Connection errors become TelegramAPIError."""
    session = _FakeSession(error=aiohttp.ClientConnectionError("refused"))
    with pytest.raises(TelegramAPIError, match="request failed"):
        await _client(session).get_me()


@pytest.mark.asyncio
async def test_invalid_json_raises_api_error():
    """A non-JSON body becomes TelegramAPIError."""
    session = _FakeSession(ValueError("not json"))
    with pytest.raises(TelegramAPIError):
        await _client(session).get_me()


@pytest.mark.asyncio
async def test_send_message_truncates_long_text():
    """Long texts are cut to Telegram's limit."""
    session = _FakeSession({"ok": True, "result": {}})
    await _client(session).send_message(1, "x" * (MAX_MESSAGE_LENGTH + 50))
    _, payload = session.calls[0]
    assert len(payload["text"]) == MAX_MESSAGE_LENGTH


@pytest.mark.asyncio
async def test_forward_message_payload():
    """forwardMessage sends the source chat and message id."""
    session = _FakeSession({"ok": True, "result": {}})
    await _client(session).forward_message(555, -100, 7)
    url, payload = session.calls[0]
    assert url.endswith("/forwardMessage")
    assert payload == {"chat_id": 555, "from_chat_id": -100, "message_id": 7}


@pytest.mark.asyncio
async def test_close_leaves_external_session_open():
    """close() does not close a session it does not own."""
    session = _FakeSession()
    client = _client(session)
    await client.close()
    assert client.session is None
