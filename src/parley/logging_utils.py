"""Runtime logging helpers."""

from __future__ import annotations

import contextlib
import os
import sys
from collections.abc import Generator
from contextvars import ContextVar
from logging import Handler
from typing import Literal

import loguru
from loguru import logger
from rich import get_console
from rich.logging import RichHandler

LogProfile = Literal["default", "pretty"]

_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | {extra[turn]} | {message}"
_CONFIGURED: tuple[LogProfile, str] | None = None
_turn_context: ContextVar[str] = ContextVar("turn")


def current_turn() -> str:
    """Get the id of the turn running in this context."""
    return _turn_context.get("-")


@contextlib.contextmanager
def bind_turn(turn_id: str) -> Generator[str, None, None]:
    reset_token = _turn_context.set(turn_id)
    try:
        yield turn_id
    finally:
        _turn_context.reset(reset_token)


def _build_pretty_handler() -> Handler:
    return RichHandler(
        console=get_console(),
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def _inject_context(record: loguru.Record) -> None:
    record["extra"]["turn"] = current_turn()


def configure_logging(*, profile: LogProfile = "default", level: str | None = None) -> None:
    """Configure process-level logging once per profile and level."""

    global _CONFIGURED
    resolved_level = (level or os.getenv("PARLEY_LOG_LEVEL", "INFO")).upper()
    if _CONFIGURED == (profile, resolved_level):
        return

    logger.remove()
    if profile == "pretty":
        logger.add(
            _build_pretty_handler(),
            level=resolved_level,
            format="{extra[turn]} | {message}",
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stderr,
            level=resolved_level,
            format=_FORMAT,
            backtrace=False,
            diagnose=False,
        )
    logger.configure(patcher=_inject_context)
    _CONFIGURED = (profile, resolved_level)
