# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Logging configuration with secret redaction.

The bot token is part of every Bot API URL, and ``httpx`` logs request
URLs at INFO level, so the token is registered here and masked wherever
it appears.

Usage:
    # In the entry point
    from tgrelay.logging import configure_logging
    configure_logging(level=logging.INFO)

    # In library modules
    import logging
    logger = logging.getLogger(__name__)
"""

import logging
import re
from typing import ClassVar


class SecretFilter(logging.Filter):
    """Logging filter that redacts registered secrets from log output.

    Any registered secret appearing in a log message or its arguments is
    replaced with ``[REDACTED]``.  Non-string arguments (such as the
    ``httpx.URL`` objects httpx passes) are stringified first when they
    contain a secret.

    Example:
        SecretFilter.register_secret("123456:ABC-token")
        handler.addFilter(SecretFilter())
        logger.info("GET https://api.telegram.org/bot123456:ABC-token/")
        # Output: "GET https://api.telegram.org/bot[REDACTED]/"
    """

    _secrets: ClassVar[set[str]] = set()
    _pattern: ClassVar[re.Pattern[str] | None] = None

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact registered secrets from the record.

        Args:
            record: The log record to filter.

        Returns:
            Always True (record is never suppressed, only modified).
        """
        pattern = self._pattern
        if pattern is not None:
            record.msg = pattern.sub("[REDACTED]", str(record.msg))
            if isinstance(record.args, tuple):
                record.args = tuple(
                    self._redact_arg(pattern, arg) for arg in record.args
                )
        return True

    @staticmethod
    def _redact_arg(pattern: re.Pattern[str], arg: object) -> object:
        if isinstance(arg, (int, float)) or arg is None:
            return arg
        text = str(arg)
        if pattern.search(text) is None:
            return arg
        return pattern.sub("[REDACTED]", text)

    @classmethod
    def register_secret(cls, secret: str) -> None:
        """Register a secret to be redacted from all log output.

        Args:
            secret: The secret string to redact. Empty strings are ignored.
        """
        if secret:
            cls._secrets.add(secret)
            cls._rebuild_pattern()

    @classmethod
    def clear_secrets(cls) -> None:
        """Clear all registered secrets. Primarily for testing."""
        cls._secrets.clear()
        cls._pattern = None

    @classmethod
    def _rebuild_pattern(cls) -> None:
        """Rebuild the compiled regex pattern from registered secrets."""
        if cls._secrets:
            # Longest first so overlapping secrets are fully masked
            ordered = sorted(cls._secrets, key=len, reverse=True)
            cls._pattern = re.compile("|".join(re.escape(s) for s in ordered))
        else:
            cls._pattern = None


def configure_logging(
    level: int = logging.INFO,
    format_string: str | None = None,
    add_secret_filter: bool = True,
) -> None:
    """Configure the root logger.

    Args:
        level: The logging level (e.g., logging.INFO, logging.DEBUG).
        format_string: Custom format string. If None, uses default format.
        add_secret_filter: Whether to add the SecretFilter to redact secrets.
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format_string))

    if add_secret_filter:
        handler.addFilter(SecretFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)

    root_logger.addHandler(handler)
