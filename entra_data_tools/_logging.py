"""Logging helpers shared by the tool groups."""

from __future__ import annotations

import logging
import sys

ROOT_LOGGER_NAME = "entra_data_tools"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under the package root logger."""

    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(level: str | int = logging.INFO) -> logging.Logger:
    """Install a single stderr handler on the package root logger.

    Stdout is reserved for the MCP stdio transport, so log records must never
    be written there.
    """

    root = logging.getLogger(ROOT_LOGGER_NAME)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    root.setLevel(level)

    if not any(getattr(handler, "_entra_tools", False) for handler in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._entra_tools = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    return root


def preview(text: str, limit: int = 100) -> str:
    """Shorten query text for log lines."""

    normalized = " ".join(text.split())
    if len(normalized) > limit:
        return f"{normalized[: limit - 3]}..."
    return normalized


__all__ = ["configure_logging", "get_logger", "preview"]
