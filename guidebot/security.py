"""Input hygiene for guidebot commands.

Command arguments come straight from chat users; they are cleaned of
control and bidi-override characters before they reach the role store
or a reply, and usernames are reduced to Telegram's bare form.
"""

import unicodedata
from typing import Optional

MAX_ARGS_LENGTH = 1024

_BIDI_CHARS = frozenset("\u202a\u202b\u202c\u202d\u202e\u2066\u2067\u2068\u2069")


def sanitize_input(text: str, max_length: int = MAX_ARGS_LENGTH) -> str:
    """Strip control characters and bidi overrides; enforce a length limit."""
    text = "".join(
        ch for ch in text
        if ch in ("\n", "\r", "\t") or not unicodedata.category(ch).startswith("C")
    )
    text = "".join(ch for ch in text if ch not in _BIDI_CHARS)
    if len(text) > max_length:
        text = text[:max_length]
    return text


def normalize_username(args: Optional[str]) -> str:
    """Extract a username from command arguments.

    Takes the first whitespace-separated token and removes a single
    leading "@". Case is preserved; usernames compare exactly.
    Returns "" when there is nothing usable.

    >>> normalize_username(" @bob ")
    'bob'
    """
    if not args:
        return ""
    tokens = args.split()
    if not tokens:
        return ""
    token = tokens[0]
    if token.startswith("@"):
        token = token[1:]
    return token
