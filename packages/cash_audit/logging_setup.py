"""Centralized logging configuration for the ``cash_audit`` package.

- ``configure_logging(...)`` attaches a single ``StreamHandler`` to the
  package root logger (``"cash_audit"``). Entrypoints (the CLI) call it once
  at startup.
- ``get_logger(name)`` returns a named logger and makes sure the package root
  carries a ``NullHandler`` until something configures it.

Library modules never attach handlers of their own. The OpenAI SDK logger is
routed through the same handler so client retries and warnings show up next to
the classifier's own events; it stays at ``WARNING`` unless debugging.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "cash_audit"
_SDK_LOGGER_NAME = "openai"
_CONFIGURED = False


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        # Numeric strings or level names (INFO/DEBUG/etc.).
        level = level.strip().upper()
        if level.isdigit():
            return int(level)
        numeric = getattr(logging, level, None)
        if isinstance(numeric, int):
            return numeric
    env_val = os.getenv("CASH_AUDIT_LOG_LEVEL")
    if env_val:
        return _parse_level(env_val)
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Configure the package root logger exactly once.

    Parameters
    ----------
    level:
        Logging level as ``int`` or level name. When ``None``, the
        ``CASH_AUDIT_LOG_LEVEL`` environment variable is used if set,
        otherwise ``logging.INFO``.
    fmt:
        Optional format string. Defaults to
        ``"%(asctime)s %(name)s %(levelname)s %(message)s"``.
    stream:
        Output stream for the handler (defaults to ``sys.stderr``).
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(
        logging.Formatter(fmt or "%(asctime)s %(name)s %(levelname)s %(message)s")
    )

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    sdk_logger = logging.getLogger(_SDK_LOGGER_NAME)
    sdk_logger.setLevel(resolved if resolved <= logging.DEBUG else max(resolved, logging.WARNING))
    sdk_logger.addHandler(handler)
    sdk_logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name with a library-safe default handler."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
