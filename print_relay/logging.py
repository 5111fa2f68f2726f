"""Logging setup for the agent process."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

LOG_FILE_MAX_BYTES = 1_000_000
LOG_FILE_BACKUPS = 3

_NETWORK_LOGGERS = ("aiohttp.access", "aiohttp.client", "aiohttp.websocket")


class SecretFilter(logging.Filter):
    """Masks credential values in rendered log messages."""

    def __init__(self, secrets: Iterable[str]) -> None:
        super().__init__()
        self._secrets = [secret for secret in secrets if secret]

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        masked = message
        for secret in self._secrets:
            masked = masked.replace(secret, "********")
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def configure_logging(
    level: str = "INFO",
    *,
    log_path: Optional[Path] = None,
    log_network: bool = False,
    secrets: Iterable[str] = (),
) -> None:
    """Replace the root handlers with console and, optionally, file output.

    Parameters
    ----------
    level:
        Log level name, e.g. "INFO".
    log_path:
        Size-capped log file; rotated after ``LOG_FILE_MAX_BYTES``.
    log_network:
        When false, aiohttp's access, client and websocket loggers only emit
        warnings.
    secrets:
        Values (the relay token) that must never appear in log output.
    """

    logging.captureWarnings(True)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    secret_filter = SecretFilter(secrets)
    for handler in root.handlers:
        handler.addFilter(secret_filter)

    network_level = logging.NOTSET if log_network else logging.WARNING
    for name in _NETWORK_LOGGERS:
        logging.getLogger(name).setLevel(network_level)
