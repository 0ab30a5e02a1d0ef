"""Guide command handler for guidebot.

Handles: register_admin, authorize_user, deauthorize_user,
add_to_guide, help.

Every handler checks the sender's role before validating its
arguments, so a non-admin never learns a command's usage.
"""

from __future__ import annotations

import hmac
from typing import List

import structlog

from ..security import normalize_username
from .base import BaseCommandHandler, Command, InboundMessage

logger = structlog.get_logger("guidebot.commands")

DEFAULT_HELP_TEXT = """Available commands:

/register_admin - Register as an admin using the admin code
/authorize_user - Grant a user permission to submit guide entries (admin only)
/deauthorize_user - Remove a user's permission to submit entries (admin only)
/add_to_guide - Submit a message to be added to the guide (reply to a message)

For authorized users: Reply to any message with /add_to_guide to submit it for the guide.
For admins: Use @username format when authorizing or deauthorizing users."""


class GuideCommandHandler(BaseCommandHandler):
    """Handles role management and guide submission commands."""

    def get_commands(self):
        return {
            Command.REGISTER_ADMIN: self.handle_register_admin,
            Command.AUTHORIZE_USER: self.handle_authorize_user,
            Command.DEAUTHORIZE_USER: self.handle_deauthorize_user,
            Command.ADD_TO_GUIDE: self.handle_add_to_guide,
            Command.HELP: self.handle_help,
        }

    async def handle_register_admin(self, message: InboundMessage) -> str:
        """Register the sender as an admin if they know the code.

        Telegram usage::

            /register_admin <code>

        The sender's chat id is stored only when the command comes from
        a private chat, since that is where forwards will be delivered.
        """
        catalog = self.ctx.catalog
        code = message.args.strip()
        if not code:
            return catalog.get("registerAdminUsage")

        if not hmac.compare_digest(code.encode(), self.ctx.admin_code.encode()):
            logger.warning("admin_code_rejected", sender=message.sender_username)
            return catalog.get("invalidAdminCode")

        if not message.sender_username:
            # Roles are keyed by username; nothing to register
            logger.warning("admin_register_no_username", sender_id=message.sender_id)
            return catalog.get("unauthorizedCommand")

        chat_id = message.chat_id if message.chat_id == message.sender_id else None
        self.ctx.roles.add_admin(message.sender_username, chat_id=chat_id)
        return catalog.get("adminRegistered")

    async def handle_authorize_user(self, message: InboundMessage) -> str:
        """Allow a user to submit guide suggestions (admin only).

        Telegram usage::

            /authorize_user @username
        """
        catalog = self.ctx.catalog
        if not self.ctx.roles.is_admin(message.sender_username):
            return catalog.get("unauthorizedCommand")

        username = normalize_username(message.args)
        if not username:
            return catalog.get("authorizeUserUsage")

        self.ctx.roles.authorize(username)
        return catalog.get("userAuthorized", username)

    async def handle_deauthorize_user(self, message: InboundMessage) -> str:
        """Revoke a user's suggestion permission (admin only).

        Telegram usage::

            /deauthorize_user @username
        """
        catalog = self.ctx.catalog
        if not self.ctx.roles.is_admin(message.sender_username):
            return catalog.get("unauthorizedCommand")

        username = normalize_username(message.args)
        if not username:
            return catalog.get("deauthorizeUserUsage")

        self.ctx.roles.deauthorize(username)
        return catalog.get("userDeauthorized", username)

    async def handle_add_to_guide(self, message: InboundMessage) -> str:
        """Forward the replied-to message to every admin.

        Telegram usage (as a reply to the message to submit)::

            /add_to_guide

        Delivery is best-effort per admin: a failed send is logged and
        the remaining admins are still tried. The submitter is thanked
        regardless.
        """
        catalog = self.ctx.catalog
        if not self.ctx.roles.is_authorized(message.sender_username):
            return catalog.get("unauthorizedCommand")

        target = message.reply_to
        if target is None:
            return catalog.get("replyRequired")

        chat_label = message.chat_title or str(message.chat_id)
        note = catalog.get("suggestionContext", message.sender_username, chat_label)
        for username in self.ctx.roles.admins_without_chat_id():
            logger.warning("admin_without_chat_id", admin=username)
        recipients = self._recipients()
        if not recipients:
            logger.warning("suggestion_no_recipients", sender=message.sender_username)

        delivered = 0
        for chat_id in recipients:
            try:
                await self.ctx.send_message(chat_id, note)
                await self.ctx.forward_message(chat_id, target.chat_id, target.message_id)
                delivered += 1
            except Exception as e:
                logger.warning(
                    "suggestion_forward_failed",
                    recipient=chat_id,
                    sender=message.sender_username,
                    error=str(e),
                )

        logger.info(
            "suggestion_forwarded",
            sender=message.sender_username,
            delivered=delivered,
            recipients=len(recipients),
        )
        return catalog.get("thankYou", message.sender_username)

    async def handle_help(self, message: InboundMessage) -> str:
        if "help" in self.ctx.catalog:
            return self.ctx.catalog.get("help")
        return DEFAULT_HELP_TEXT

    def _recipients(self) -> List[int]:
        """Admin chat ids in store order, then seed ids not already listed."""
        recipients = list(self.ctx.roles.admin_chat_ids())
        for chat_id in self.ctx.seed_admin_ids:
            if chat_id not in recipients:
                recipients.append(chat_id)
        return recipients
