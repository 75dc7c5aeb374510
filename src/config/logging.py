"""Logging configuration for the query service.

Logs are internal diagnostics only: provider failures and handler errors are recorded here and are
never echoed back to the user.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable

_REDACTED = "<redacted>"


class SecretRedactingFilter(logging.Filter):
    """Replace known credential values in log records with a placeholder."""

    def __init__(self, secrets: Iterable[str | None]) -> None:
        super().__init__()
        self._secrets = tuple(s for s in secrets if s)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True

        message = record.getMessage()
        redacted = message
        for secret in self._secrets:
            redacted = redacted.replace(secret, _REDACTED)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: str | None = None, *, secrets: Iterable[str | None] = ()) -> None:
    """Configure process-wide logging.

    `secrets` are credential values (API keys, bot token) that must never appear in output.
    """

    log_level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    redacting = SecretRedactingFilter(secrets)
    for handler in logging.getLogger().handlers:
        handler.addFilter(redacting)

    # aiogram logs every update at INFO.
    logging.getLogger("aiogram.event").setLevel(logging.WARNING)
