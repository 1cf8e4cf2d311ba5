"""Helper utilities for OpenAI service integration."""

from __future__ import annotations

from typing import Any

from backoffice.logger import log as base_log


def log(*parts: Any, level: str = "info") -> None:
    """Forward OpenAI service logs through the shared logging sink."""
    base_log(*parts, level=level, service="openai")
