from __future__ import annotations

import logging

from rich.logging import RichHandler

from imgchain.logging import setup_logging


def test_setup_logging_is_idempotent():
    setup_logging("INFO")
    logger = setup_logging("debug")
    assert sum(isinstance(h, RichHandler) for h in logger.handlers) == 1
    assert logger.level == logging.DEBUG
    assert logger.propagate is False


def test_request_loggers_are_quieted_unless_debugging():
    setup_logging("INFO")
    assert logging.getLogger("httpx").level == logging.WARNING
    setup_logging("DEBUG")
    assert logging.getLogger("httpx").level == logging.DEBUG
    setup_logging("INFO")


def test_unknown_level_falls_back_to_info():
    assert setup_logging("chatty").level == logging.INFO
