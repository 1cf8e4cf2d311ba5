"""Lightweight logging helper shared by the service layer."""

from __future__ import annotations

import logging
from typing import Any

_LOGGER = logging.getLogger("backoffice")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _coerce(parts: tuple[object, ...]) -> str:
    rendered = " ".join(str(part) for part in parts if part is not None)
    return rendered.strip()


def log(*parts: object, level: str = "info", **metadata: Any) -> None:
    """
    Emit a log message on the ``backoffice`` logger.

    Keyword metadata (``service``, ``user_id``, ``automation_id`` ...) is
    appended to the message so call sites can attach context without
    building strings themselves.
    """

    message = _coerce(parts)
    if metadata:
        message = f"{message} | {metadata}"

    if not _LOGGER.handlers:
        logging.basicConfig(level=logging.INFO)

    _LOGGER.log(_LEVELS.get(level, logging.INFO), message)


__all__ = ["log"]
