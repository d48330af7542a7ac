"""Configuration management for commandwire.

Loads YAML settings (settings.yaml) and environment variables (.env)
into a typed Config object. Property getters provide safe access with
sensible defaults for the command service, the Signal transport and
logging.

Key classes:
    Config: Central configuration manager.

Key functions:
    get_config: Singleton accessor for the global Config instance.
"""

import os
from pathlib import Path
from typing import List, Optional, Tuple

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .help import HelpMode
from .logging_config import get_logger

logger = get_logger("config")

DEFAULT_COMMAND_CHARS = ("/",)


class Config:
    """Central configuration manager for commandwire.

    Loads settings.yaml and .env from the config directory. Provides
    typed property accessors for every configurable subsystem. Read-only
    after __init__.

    Args:
        config_dir: Path to the config directory. Defaults to
            ``<repo_root>/config/``.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        if config_dir is None:
            config_dir = Path(__file__).parent.parent / "config"
        self.config_dir = Path(config_dir)

        # Load environment variables
        env_file = self.config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        self.settings = self._load_yaml("settings.yaml")

    def _load_yaml(self, filename: str) -> dict:
        """Load a YAML configuration file."""
        filepath = self.config_dir / filename
        if filepath.exists():
            with open(filepath, "r") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ConfigurationError(
                    f"{filename} must contain a mapping",
                    setting_name=filename,
                )
            return data
        return {}

    def validate(self):
        """Validate settings at startup.

        Raises ConfigurationError for values the service cannot start
        with; logs warnings for questionable but usable ones.
        """
        chars = self.command_chars
        if not chars:
            logger.warning(
                "no_command_chars",
                msg="Every message will be treated as a command candidate",
            )

        for n in self.allowed_numbers:
            if not isinstance(n, str):
                logger.error("invalid_allowed_entry", entry="..." + str(n)[-4:])

        modules = self.command_modules
        if not modules:
            logger.warning("no_command_modules", msg="Only built-in commands will be available")

        logger.info(
            "config_validated",
            command_chars=list(chars),
            help_mode=self.help_mode.value,
            command_modules=len(modules),
        )

    @property
    def command_chars(self) -> Tuple[str, ...]:
        """Characters that mark a message as a command.

        Env var COMMANDWIRE_COMMAND_CHARS (a string of characters) takes
        precedence. In settings.yaml either a list or a string works.
        """
        raw = os.environ.get("COMMANDWIRE_COMMAND_CHARS")
        if raw is None:
            raw = self.settings.get("command_chars", DEFAULT_COMMAND_CHARS)
        if raw is None:
            return ()
        if isinstance(raw, str):
            return tuple(raw)
        if not isinstance(raw, (list, tuple)):
            raise ConfigurationError(
                "command_chars must be a list or a string",
                setting_name="command_chars",
            )
        chars = tuple(str(c) for c in raw)
        for c in chars:
            if len(c) != 1:
                raise ConfigurationError(
                    f"command_chars entries must be single characters, got {c!r}",
                    setting_name="command_chars",
                )
        return chars

    @property
    def help_mode(self) -> HelpMode:
        """Help command mode: disabled, public or private (default public)."""
        raw = self.settings.get("help_mode", HelpMode.PUBLIC.value)
        if raw is False:
            return HelpMode.DISABLED
        try:
            return HelpMode(str(raw).lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown help_mode {raw!r}, expected disabled, public or private",
                setting_name="help_mode",
            ) from None

    @property
    def allowed_numbers(self) -> List[str]:
        """Senders allowed to run any command. Empty means no restriction."""
        numbers = self.settings.get("allowed_numbers", [])
        if not isinstance(numbers, list):
            logger.error("allowed_numbers_invalid_type", type=type(numbers).__name__)
            return []
        return numbers

    @property
    def command_modules(self) -> List[str]:
        """Dotted module names whose register(service) adds commands."""
        modules = self.settings.get("command_modules", [])
        if not isinstance(modules, list):
            raise ConfigurationError(
                "command_modules must be a list", setting_name="command_modules"
            )
        return [str(m) for m in modules]

    @property
    def signal_api_url(self) -> str:
        """Get Signal API URL. Env var SIGNAL_API_URL takes precedence."""
        return os.environ.get("SIGNAL_API_URL") or self.settings.get(
            "signal_api_url", "http://127.0.0.1:8080"
        )

    @property
    def signal_account(self) -> Optional[str]:
        """Signal account to run as. Env var SIGNAL_ACCOUNT takes precedence.

        When unset, the first account registered with the API is used.
        """
        return os.environ.get("SIGNAL_ACCOUNT") or self.settings.get("signal_account")

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
        """Per-subsystem log level overrides. E.g. {"signal": "DEBUG"}."""
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


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config
