"""Tests for the buffered log handler."""

from __future__ import annotations

import logging

from lifx_bridge.logs import BufferedLogHandler


def _logger(handler: BufferedLogHandler) -> logging.Logger:
    logger = logging.getLogger("lifx_bridge.tests.logs")
    logger.handlers = [handler]
    logger.propagate = False
    logger.setLevel(logging.DEBUG)
    return logger


def test_lines_are_formatted_with_level() -> None:
    """Buffered lines carry the level name prefix."""

    handler = BufferedLogHandler()
    _logger(handler).info("Polling %s", "LIFX")

    assert handler.get_logs() == ["[INFO] Polling LIFX"]


def test_buffer_keeps_most_recent_lines() -> None:
    """Old lines are dropped once capacity is reached."""

    handler = BufferedLogHandler(capacity=3)
    logger = _logger(handler)
    for index in range(5):
        logger.warning("line %d", index)

    assert handler.get_logs() == [
        "[WARNING] line 2",
        "[WARNING] line 3",
        "[WARNING] line 4",
    ]

    handler.clear()
    assert handler.get_logs() == []
