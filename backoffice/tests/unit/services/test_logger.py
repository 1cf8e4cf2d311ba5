"""Tests for the shared logging shim."""

from __future__ import annotations

import logging

from backoffice import logger


def test_log_appends_metadata(caplog) -> None:
    caplog.set_level(logging.INFO)

    logger.log("hello", "world", foo="bar")

    assert any("hello world" in message for message in caplog.messages)
    assert any("foo" in message for message in caplog.messages)


def test_log_honours_level(caplog) -> None:
    caplog.set_level(logging.WARNING)

    logger.log("quiet", level="debug")
    logger.log("loud", None, level="error")

    assert caplog.messages == ["loud"]
