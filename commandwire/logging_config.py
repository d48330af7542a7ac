"""Logging setup for commandwire.

Every module logs through ``get_logger(subsystem)``. Subsystems are
children of the ``commandwire`` stdlib logger, so each event reaches its
own rotating file, the combined file and the console:

    root                         -> console
      └─ commandwire             -> commandwire.log (combined)
           ├─ commandwire.service     -> service.log      routing, dispatch, help
           ├─ commandwire.permissions -> permissions.log  denied senders
           ├─ commandwire.signal      -> signal.log       Signal transport
           ├─ commandwire.loader      -> loader.log       command modules
           └─ commandwire.config      -> config.log       settings validation

Signal identities (E.164 numbers and account UUIDs) are masked down to
their last four characters before any event is rendered.
"""

import logging
import logging.handlers
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

import structlog

from .exceptions import ConfigurationError

LOGGER_PREFIX = "commandwire"

SUBSYSTEMS = ("service", "permissions", "signal", "loader", "config")

DEFAULT_LOG_DIR = Path(__file__).parent.parent / "logs"


def get_logger(subsystem: str):
    """structlog logger for one subsystem, e.g. ``get_logger("signal")``."""
    if subsystem not in SUBSYSTEMS:
        raise ValueError(f"Unknown logging subsystem {subsystem!r}")
    return structlog.get_logger(f"{LOGGER_PREFIX}.{subsystem}")


# ---------------------------------------------------------------------------
# Identity masking
# ---------------------------------------------------------------------------

_PHONE_PATTERN = re.compile(r"\+\d{7,15}")
_UUID_PATTERN = re.compile(
    r"\b[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b",
    re.IGNORECASE,
)


def _last_four(match: "re.Match") -> str:
    return "..." + match.group(0)[-4:]


def _mask(value: Any) -> Any:
    if isinstance(value, str):
        return _UUID_PATTERN.sub(_last_four, _PHONE_PATTERN.sub(_last_four, value))
    if isinstance(value, (list, tuple)):
        return type(value)(_mask(v) for v in value)
    if isinstance(value, dict):
        return {k: _mask(v) for k, v in value.items()}
    return value


def mask_identities(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """structlog processor masking phone numbers and Signal UUIDs.

    Produces the same "...1234" form as permissions.mask_identity, so
    values masked at the call site pass through unchanged.
    """
    return {key: _mask(value) for key, value in event_dict.items()}


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def _parse_level(name: Any, default: int) -> int:
    if not name:
        return default
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else default


@dataclass(frozen=True)
class LogSettings:
    """Resolved logging settings.

    Attributes:
        log_dir: Directory for the rotating log files.
        level: Level for the console, the combined file and any
            subsystem without an override.
        subsystem_levels: Per-subsystem overrides.
    """

    log_dir: Path = DEFAULT_LOG_DIR
    level: int = logging.INFO
    subsystem_levels: Mapping[str, int] = field(default_factory=dict)
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5

    @classmethod
    def from_config(cls, config) -> "LogSettings":
        level = _parse_level(config.logging_level, logging.INFO)
        overrides = {}
        for subsystem, name in config.logging_subsystem_levels.items():
            if subsystem not in SUBSYSTEMS:
                raise ConfigurationError(
                    f"Unknown logging subsystem {subsystem!r}, expected one of "
                    + ", ".join(SUBSYSTEMS),
                    setting_name="logging.subsystem_levels",
                )
            overrides[subsystem] = _parse_level(name, level)
        return cls(
            log_dir=config.log_dir,
            level=level,
            subsystem_levels=overrides,
            max_bytes=config.logging_max_file_size_mb * 1024 * 1024,
            backup_count=config.logging_backup_count,
        )

    def level_for(self, subsystem: str) -> int:
        return self.subsystem_levels.get(subsystem, self.level)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

def _reset_logger(name: str, level: int) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = True
    return logger


def _file_handler(
    path: Path, level: int, settings: LogSettings, formatter: logging.Formatter
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=settings.max_bytes,
        backupCount=settings.backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(config=None) -> None:
    """Route stdlib and structlog output to the console and log files.

    Called twice by main: first without a config so that startup errors
    are logged, then with the loaded Config. Only the second call caches
    loggers on first use.
    """
    settings = LogSettings.from_config(config) if config is not None else LogSettings()

    try:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        file_logging = True
    except OSError as exc:
        # Logging must never stop the bot; fall back to the console
        print(
            f"WARNING: Cannot create log directory {settings.log_dir}: {exc}. "
            "Logging to the console only.",
            file=sys.stderr,
        )
        file_logging = False

    file_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
    )

    root = _reset_logger("", logging.DEBUG)
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(settings.level)
    console.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    root.addHandler(console)

    combined = _reset_logger(LOGGER_PREFIX, logging.DEBUG)
    if file_logging:
        combined.addHandler(_file_handler(
            settings.log_dir / f"{LOGGER_PREFIX}.log",
            settings.level, settings, file_formatter,
        ))

    for subsystem in SUBSYSTEMS:
        level = settings.level_for(subsystem)
        logger = _reset_logger(f"{LOGGER_PREFIX}.{subsystem}", level)
        if file_logging:
            logger.addHandler(_file_handler(
                settings.log_dir / f"{subsystem}.log", level, settings, file_formatter,
            ))

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
            mask_identities,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=config is not None,
    )
