from __future__ import annotations

import logging
from typing import Iterable

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "imgchain"

# Third-party loggers that log every request at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "multipart")


def get_console(stderr: bool = False) -> Console:
    return Console(stderr=stderr)


def _level(name: str) -> int:
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(level: str = "INFO", *, quiet: Iterable[str] = NOISY_LOGGERS) -> logging.Logger:
    """Route the `imgchain.*` loggers through one Rich handler.

    Safe to call repeatedly; later calls only change levels. Loggers in
    `quiet` are held at WARNING unless `level` is DEBUG.
    """
    lvl = _level(level)
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(lvl)

    handler = next((h for h in logger.handlers if isinstance(h, RichHandler)), None)
    if handler is None:
        handler = RichHandler(console=get_console(stderr=True), rich_tracebacks=True, show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
        logger.addHandler(handler)
    handler.setLevel(lvl)
    logger.propagate = False

    for name in quiet:
        logging.getLogger(name).setLevel(logging.DEBUG if lvl <= logging.DEBUG else logging.WARNING)
    return logger
