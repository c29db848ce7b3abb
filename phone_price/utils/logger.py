"""Logging setup for the phone price service."""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path
from typing import Any, Final

LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER_NAME: Final[str] = "phone_price"

MASK: Final[str] = "***"


class SensitiveDataFilter(logging.Filter):
    """Mask credential values in log messages.

    The sheet client runs with a service account key and the fallback
    resolver with an OpenAI key. Values following a credential-like name
    (``api_key=...``, ``"private_key": "..."``, ``Bearer ...``) and PEM key
    blocks are replaced with ``***``; the rest of the message is kept.
    """

    SECRET_NAMES: Final[tuple[str, ...]] = (
        "api_key",
        "apikey",
        "private_key",
        "private_key_id",
        "client_email",
        "credentials_json",
        "token",
        "password",
        "secret",
        "authorization",
    )

    _assignment = re.compile(
        r"(?P<name>[\"']?(?:" + "|".join(SECRET_NAMES) + r")[\"']?\s*[:=]\s*)"
        r"(?P<value>(?:bearer\s+)?(?:\"[^\"]*\"|'[^']*'|[^\s,}]+))",
        re.IGNORECASE,
    )
    _bearer = re.compile(r"(?P<name>bearer\s+)(?P<value>[A-Za-z0-9._~+/=-]+)", re.IGNORECASE)
    _pem_block = re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----", re.DOTALL)

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = self.mask(message)
        if masked != message:
            record.msg = masked
            record.args = ()
        return True

    @classmethod
    def mask(cls, message: str) -> str:
        message = cls._pem_block.sub(MASK, message)
        message = cls._assignment.sub(lambda m: m.group("name") + MASK, message)
        return cls._bearer.sub(lambda m: m.group("name") + MASK, message)


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def _attach_handler(
    logger: logging.Logger,
    handler: logging.Handler,
    level: int,
    sensitive_filter: logging.Filter,
) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(sensitive_filter)
    logger.addHandler(handler)


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: int | str = logging.INFO,
    log_file: Path | str | None = None,
    enable_console: bool = True,
) -> logging.Logger:
    """Configure the application logger.

    Module loggers obtained with ``get_logger(__name__)`` live below the
    ``phone_price`` namespace and inherit these handlers. Calling this again
    replaces the handlers instead of stacking them.

    Args:
        name: Logger name (the application namespace by default).
        level: Logging level as an int or a name such as ``"DEBUG"``.
        log_file: Optional path of a log file to write in addition to stdout.
        enable_console: If True, logs are written to stdout.

    Returns:
        Configured logger instance.

    Example:
        >>> logger = setup_logger(level="DEBUG")
        >>> logger.info("Sheet loaded")
    """
    level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    sensitive_filter = SensitiveDataFilter()
    if enable_console:
        _attach_handler(logger, logging.StreamHandler(sys.stdout), level, sensitive_filter)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        _attach_handler(
            logger, logging.FileHandler(log_path, encoding="utf-8"), level, sensitive_filter
        )

    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a module logger (typically ``get_logger(__name__)``)."""
    return logging.getLogger(name)


def set_log_level(logger: logging.Logger, level: int | str) -> None:
    """Change the level of a logger and of every handler attached to it."""
    level = _resolve_level(level)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


def log_exception(
    logger: logging.Logger,
    message: str,
    exc: Exception,
    extra: dict[str, Any] | None = None,
) -> None:
    """Log an exception with its traceback.

    Example:
        >>> try:
        ...     repository.load_records()
        ... except SheetSourceError as e:
        ...     log_exception(logger, "Sheet load failed", e,
        ...                   extra={"spreadsheet_id": spreadsheet_id})
    """
    logger.error(f"{message}: {type(exc).__name__}: {exc}", extra=extra or {}, exc_info=exc)
