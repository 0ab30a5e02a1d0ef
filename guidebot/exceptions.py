"""Custom exception hierarchy for guidebot.

Every error raised by the bot derives from GuideBotError so callers can
catch broadly at the update loop while still handling startup failures
(configuration, message catalog) precisely.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """Classification of errors for escalation decisions."""
    TRANSIENT = "transient"          # Network hiccups, Telegram 5xx
    PERMANENT = "permanent"          # Bad input, malformed files
    INFRASTRUCTURE = "infrastructure"  # Missing env, unreadable resources


class GuideBotError(Exception):
    """Base exception for all guidebot errors.

    Attributes:
        message: Human-readable error description.
        category: Error classification.
        module: Originating module name (e.g. "roles").
        context: Arbitrary key-value pairs for structured logging.
    """

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.category = category
        self.module = module
        self.context = context
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether this error is worth retrying."""
        return self.category == ErrorCategory.TRANSIENT

    def __str__(self) -> str:
        parts = [self.message or self.__class__.__name__]
        if self.module:
            parts.append(f"[module={self.module}]")
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"({ctx})")
        return " ".join(parts)

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return (
            f"{cls}({self.message!r}, category={self.category.value!r}, "
            f"module={self.module!r})"
        )


# ---------------------------------------------------------------------------
# Startup exceptions
# ---------------------------------------------------------------------------

class ConfigurationError(GuideBotError):
    """Invalid or missing configuration.

    Defaults to INFRASTRUCTURE because config issues are environmental
    and won't resolve by retrying.
    """

    def __init__(
        self,
        message: str = "",
        *,
        setting_name: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.setting_name = setting_name
        super().__init__(
            message, category=category, module=module or "config", **context
        )


class MessageCatalogError(GuideBotError):
    """The message bundle is missing or malformed.

    Attributes:
        path: Path of the bundle that failed to load.
    """

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.path = path
        super().__init__(
            message, category=category, module=module or "messages", **context
        )


# ---------------------------------------------------------------------------
# Runtime exceptions
# ---------------------------------------------------------------------------

class RoleStoreError(GuideBotError):
    """Error reading or writing the persisted role snapshot.

    Attributes:
        operation: "load" or "save".
    """

    def __init__(
        self,
        message: str = "",
        *,
        operation: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.operation = operation
        super().__init__(
            message, category=category, module=module or "roles", **context
        )


class TelegramAPIError(GuideBotError):
    """A Telegram Bot API call failed or returned ``ok: false``.

    Attributes:
        method: Bot API method name (e.g. "sendMessage").
        error_code: Telegram error code, when the API supplied one.
    """

    def __init__(
        self,
        message: str = "",
        *,
        method: Optional[str] = None,
        error_code: Optional[int] = None,
        category: ErrorCategory = ErrorCategory.TRANSIENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.method = method
        self.error_code = error_code
        super().__init__(
            message, category=category, module=module or "telegram", **context
        )
