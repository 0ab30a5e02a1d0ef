"""Message catalog for guidebot replies.

Reply texts live in a JSON object of ``key -> template`` loaded once at
startup. Templates use printf-style placeholders (``%s``, ``%d``).
"""

import json
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping

import structlog

from .exceptions import MessageCatalogError

logger = structlog.get_logger("guidebot.bot")

MISSING_MESSAGE = "Message not found"


class MessageCatalog:
    """Immutable ``key -> template`` mapping.

    Args:
        messages: Templates keyed by message key. Copied; later changes
            to the passed dict do not affect the catalog.
    """

    def __init__(self, messages: Dict[str, str]):
        self._messages: Mapping[str, str] = MappingProxyType(dict(messages))

    @classmethod
    def load(cls, path: Path) -> "MessageCatalog":
        """Load a catalog from a JSON file.

        Raises:
            MessageCatalogError: If the file is missing or unreadable,
                is not valid JSON, is not an object, or contains
                non-string templates.
        """
        path = Path(path)
        logger.info("message_catalog_loading", path=str(path.resolve()))
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise MessageCatalogError(
                f"Message file does not exist: {path}", path=str(path)
            )
        except OSError as e:
            raise MessageCatalogError(
                f"Error reading message file: {e}", path=str(path)
            ) from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MessageCatalogError(
                f"Error parsing message file: {e}", path=str(path)
            ) from e

        if not isinstance(data, dict):
            raise MessageCatalogError(
                "Message file must contain a JSON object",
                path=str(path),
                found=type(data).__name__,
            )
        bad_keys = [k for k, v in data.items() if not isinstance(v, str)]
        if bad_keys:
            raise MessageCatalogError(
                "Message templates must be strings",
                path=str(path),
                keys=",".join(sorted(bad_keys)),
            )

        logger.info("message_catalog_loaded", count=len(data))
        return cls(data)

    def get(self, key: str, *args: Any) -> str:
        """Return the template for ``key``, formatted with ``args`` if given.

        Unknown keys return ``MISSING_MESSAGE`` and log a warning.
        """
        template = self._messages.get(key)
        if template is None:
            logger.warning("message_key_missing", key=key)
            return MISSING_MESSAGE
        if args:
            return template % args
        return template

    def __contains__(self, key: object) -> bool:
        return key in self._messages
