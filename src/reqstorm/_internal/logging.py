"""Structured logging setup for reqstorm."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime


class _JsonFormatter(logging.Formatter):
    """Structured JSON log formatter.

    Emits one-line JSON objects with keys: timestamp, level, logger, message.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            A single-line JSON string.
        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the root reqstorm logger.

    Installs a single stderr handler on the ``reqstorm`` logger namespace.
    Calling it again replaces the handler installed by the previous call,
    so the runner and the CLI can both call it safely.

    Args:
        level: Logging level (e.g., ``logging.DEBUG``). Defaults to INFO.
        json_format: If True, emit structured JSON logs. If False, emit
            human-readable logs.

    Returns:
        The configured ``reqstorm`` root logger.
    """
    logger = logging.getLogger("reqstorm")
    logger.setLevel(level)

    for old in list(logger.handlers):
        logger.removeHandler(old)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Keep records out of the root logger to avoid duplicate output
    logger.propagate = False

    return logger


def parse_log_level(value: str) -> int:
    """Translate a level name such as ``"debug"`` or ``"WARNING"`` to an int.

    Args:
        value: Level name, case-insensitive. Numeric strings are accepted.

    Returns:
        The numeric logging level.

    Raises:
        ConfigError: If the name is not a known logging level.
    """
    from reqstorm._internal.errors import ConfigError

    name = value.strip().upper()
    if name.isdigit():
        return int(name)
    level = logging.getLevelNamesMapping().get(name)
    if level is None:
        msg = f"Unknown log level: {value!r}"
        raise ConfigError(msg)
    return level


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``reqstorm`` namespace.

    Args:
        name: Logger name, appended to the ``reqstorm.`` prefix.
            Example: ``get_logger("engine.worker")`` returns
            ``logging.getLogger("reqstorm.engine.worker")``.

    Returns:
        The child logger.
    """
    return logging.getLogger(f"reqstorm.{name}")
