"""Configuration management for guidebot.

Loads environment variables (.env) and optional YAML settings
(settings.yaml) from the config directory into a Config object.
Secrets (bot token, admin registration code) come from the
environment only; everything else may be set in settings.yaml.

Key classes:
    Config: Central configuration manager.

Key functions:
    get_config: Singleton accessor used by the entry point.
"""

import os
from pathlib import Path
from typing import List, Optional

import structlog
import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = structlog.get_logger("guidebot.bot")

DEFAULT_TELEGRAM_API_URL = "https://api.telegram.org"
DEFAULT_POLL_TIMEOUT = 60
BUNDLED_MESSAGES_FILE = Path(__file__).parent / "data" / "messages.json"


def _valid_poll_timeout(value) -> bool:
    # bool is an int subclass; YAML "true" is not a timeout
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


class Config:
    """Central configuration manager for guidebot.

    Args:
        config_dir: Path to the config directory. Defaults to
            ``<repo_root>/config/``.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        if config_dir is None:
            config_dir = Path(__file__).parent.parent / "config"
        self.config_dir = config_dir

        env_file = config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        self.settings = self._load_yaml("settings.yaml")

    def _load_yaml(self, filename: str) -> dict:
        """Load a YAML configuration file."""
        filepath = self.config_dir / filename
        if filepath.exists():
            with open(filepath, "r") as f:
                return yaml.safe_load(f) or {}
        return {}

    def validate(self):
        """Validate critical settings at startup.

        Raises:
            ConfigurationError: If the bot token or the admin
                registration code is missing. Either one is fatal.
        """
        if not self.telegram_token:
            raise ConfigurationError(
                "TELEGRAM_BOT_TOKEN environment variable is not set",
                setting_name="TELEGRAM_BOT_TOKEN",
            )
        if not self.admin_code:
            raise ConfigurationError(
                "ADMIN_REGISTRATION_CODE environment variable is not set",
                setting_name="ADMIN_REGISTRATION_CODE",
            )

        timeout = self.settings.get("poll_timeout")
        if timeout is not None and not _valid_poll_timeout(timeout):
            logger.error(
                "config_invalid_value",
                key="poll_timeout",
                value=timeout,
                valid=">= 0",
            )

    @property
    def telegram_token(self) -> str:
        """Get the Telegram bot token."""
        return os.environ.get("TELEGRAM_BOT_TOKEN", "")

    @property
    def admin_code(self) -> str:
        """Get the secret code users send with /register_admin."""
        return os.environ.get("ADMIN_REGISTRATION_CODE", "")

    @property
    def admin_ids(self) -> List[int]:
        """Get pre-seeded admin chat ids from ADMIN_IDS (comma-separated).

        Entries that are not integers are skipped with a warning.
        """
        raw = os.environ.get("ADMIN_IDS", "")
        if not raw:
            return []
        ids = []
        for part in raw.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                ids.append(int(part))
            except ValueError:
                logger.warning("admin_id_invalid", entry=part)
        return ids

    @property
    def data_dir(self) -> Path:
        """Get the data directory. Env var DATA_DIR takes precedence."""
        configured = os.environ.get("DATA_DIR") or self.settings.get("data_dir")
        if configured:
            return Path(configured).expanduser()
        return Path(__file__).parent.parent / "data"

    @property
    def admin_file(self) -> Path:
        """Get the path of the persisted admin/authorized-user snapshot."""
        return self.data_dir / "admins.json"

    @property
    def messages_file(self) -> Path:
        """Get the message bundle path (default: the bundled catalog)."""
        configured = self.settings.get("messages_file")
        if configured:
            return Path(configured).expanduser()
        return BUNDLED_MESSAGES_FILE

    @property
    def telegram_api_url(self) -> str:
        """Get Telegram Bot API base URL. Env var TELEGRAM_API_URL takes precedence."""
        url = os.environ.get("TELEGRAM_API_URL") or self.settings.get(
            "telegram_api_url", DEFAULT_TELEGRAM_API_URL
        )
        return url.rstrip("/")

    @property
    def poll_timeout(self) -> int:
        """Long-polling timeout in seconds for getUpdates (default 60)."""
        timeout = self.settings.get("poll_timeout")
        if timeout is None or not _valid_poll_timeout(timeout):
            return DEFAULT_POLL_TIMEOUT
        return timeout

    @property
    def log_dir(self) -> Path:
        """Get log directory path."""
        configured = self.settings.get("log_dir")
        if configured:
            return Path(configured).expanduser()
        return Path(__file__).parent.parent / "logs"

    @property
    def logging_level(self) -> str:
        """Global log level (default INFO). Controls console and combined file."""
        log_config = self.settings.get("logging", {})
        return log_config.get("level", "INFO")

    @property
    def logging_subsystem_levels(self) -> dict:
        """Per-subsystem log level overrides. E.g. {"roles": "DEBUG"}."""
        log_config = self.settings.get("logging", {})
        return log_config.get("subsystem_levels", {})

    @property
    def logging_max_file_size_mb(self) -> int:
        """Max size per log file in MB before rotation (default 10)."""
        log_config = self.settings.get("logging", {})
        return log_config.get("max_file_size_mb", 10)

    @property
    def logging_backup_count(self) -> int:
        """Number of rotated log files to keep (default 5)."""
        log_config = self.settings.get("logging", {})
        return log_config.get("backup_count", 5)


_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config
