"""Logging configuration for guidebot.

structlog on top of stdlib logging, with one rotating file per
subsystem plus a combined file, and a processor that keeps the bot
token out of every log line.

Logger hierarchy (stdlib dotted names, structlog wraps them):
    root                  → console
      └─ guidebot         → guidebot.log (combined)
           ├─ guidebot.bot       → bot.log
           ├─ guidebot.commands  → commands.log
           ├─ guidebot.roles     → roles.log
           └─ guidebot.telegram  → telegram.log
"""

import logging
import logging.handlers
import re
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

SUBSYSTEMS = ("bot", "commands", "roles", "telegram")

LOGGER_PREFIX = "guidebot"

# ---------------------------------------------------------------------------
# Secret sanitization
# ---------------------------------------------------------------------------

_SECRET_PATTERNS = [
    # Telegram bot tokens: <bot id>:<35 char secret>, also inside /bot<token>/ URLs
    re.compile(r"\d{6,12}:[A-Za-z0-9_-]{30,}"),
]

_REDACTED = "***REDACTED***"


def _scrub_value(value: str) -> str:
    """Scrub bot tokens from a single string value."""
    for pattern in _SECRET_PATTERNS:
        value = pattern.sub(_REDACTED, value)
    return value


def sanitize_secrets(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """structlog processor that scrubs bot tokens from event values.

    aiohttp errors embed the full request URL, which carries the
    token, so every string (and strings nested one level in lists,
    tuples and dicts) is rewritten.
    """
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = _scrub_value(value)
        elif isinstance(value, (list, tuple)):
            event_dict[key] = type(value)(
                _scrub_value(v) if isinstance(v, str) else v
                for v in value
            )
        elif isinstance(value, dict):
            event_dict[key] = {
                k: _scrub_value(v) if isinstance(v, str) else v
                for k, v in value.items()
            }
    return event_dict


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

_FILE_FORMATTER = structlog.stdlib.ProcessorFormatter(
    processors=[
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(colors=False),
    ],
)


def _attach(
    name: str, level: int, log_file: Optional[Path],
    max_bytes: int, backup_count: int, file_level: Optional[int] = None,
) -> None:
    """Reset a guidebot logger and give it its own rotating file."""
    target = logging.getLogger(name)
    target.setLevel(level)
    target.handlers.clear()
    target.propagate = True
    if log_file is None:
        return
    handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8",
    )
    handler.setLevel(level if file_level is None else file_level)
    handler.setFormatter(_FILE_FORMATTER)
    target.addHandler(handler)


def setup_logging(config: Optional[Any] = None) -> None:
    """Configure structured logging with subsystem file handlers.

    Called twice by the entry point: first without a config (defaults,
    loggers not cached) so that config loading itself can log, then
    with the loaded Config.

    Args:
        config: Optional Config instance supplying log_dir and the
            logging_* settings.
    """
    if config is None:
        log_dir = Path(__file__).parent.parent / "logs"
        level_name, overrides = "INFO", {}
        max_bytes, backup_count = 10 * 1024 * 1024, 5
    else:
        log_dir = config.log_dir
        level_name, overrides = config.logging_level, config.logging_subsystem_levels
        max_bytes = config.logging_max_file_size_mb * 1024 * 1024
        backup_count = config.logging_backup_count

    level = getattr(logging, level_name.upper(), logging.INFO)

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        print(
            f"WARNING: Cannot create log directory {log_dir}: {exc}. "
            "Logging to console only.",
            file=sys.stderr,
        )
        log_dir = None

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # handlers filter
    root_logger.handlers.clear()
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    root_logger.addHandler(console)

    _attach(
        LOGGER_PREFIX, logging.DEBUG,
        log_dir / f"{LOGGER_PREFIX}.log" if log_dir else None,
        max_bytes, backup_count, file_level=level,
    )

    for subsystem in SUBSYSTEMS:
        override = str(overrides.get(subsystem, "")).upper()
        _attach(
            f"{LOGGER_PREFIX}.{subsystem}",
            getattr(logging, override, level) if override else level,
            log_dir / f"{subsystem}.log" if log_dir else None,
            max_bytes, backup_count,
        )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            sanitize_secrets,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=config is not None,
    )
