"""Rich console logging for the message router."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import ClassVar

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

DEFAULT_FORMAT = "[bold blue]%(name)s[/bold blue] - %(message)s"


@dataclass(frozen=True)
class LoggerConfig:
    """Options forwarded to ``RichHandler``."""

    show_time: bool = True
    show_path: bool = False
    rich_tracebacks: bool = True


class RouterLogger:
    """Logger factory sharing one RichHandler per configuration.

    Every router component logs through the same console, so handlers are
    cached and reused instead of being created per logger.
    """

    _THEME = Theme(
        {
            "logging.level.debug": "cyan",
            "logging.level.info": "green",
            "logging.level.warning": "yellow",
            "logging.level.error": "red bold",
            "logging.level.critical": "red on white bold",
            "logging.keyword": "bold blue",
            "logging.string": "magenta",
        }
    )

    _handlers: ClassVar[dict[tuple, RichHandler]] = {}
    _console: ClassVar[Console | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    @classmethod
    def get_logger(
        cls,
        name: str,
        level: int | None = None,
        config: LoggerConfig | None = None,
        format_string: str = DEFAULT_FORMAT,
    ) -> logging.Logger:
        """Return a logger writing to the shared rich console.

        Args:
            name: Logger name, usually ``__name__`` or the package name
            level: Log level, defaults to the LOG_LEVEL environment variable or INFO
            config: Handler options
            format_string: Formatter pattern, may contain rich markup

        Environment Variables:
            LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL
            RICH_NO_COLOR: Set to disable colored output
        """
        if level is None:
            level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
        config = config or LoggerConfig()

        logger = logging.getLogger(name)
        logger.setLevel(level)
        if not logger.handlers:
            logger.addHandler(cls._get_handler(config, level, format_string))
        return logger

    @classmethod
    def _get_handler(cls, config: LoggerConfig, level: int, format_string: str) -> RichHandler:
        key = (config, level, format_string)
        with cls._lock:
            handler = cls._handlers.get(key)
            if handler is None:
                if cls._console is None:
                    cls._console = Console(theme=cls._THEME, no_color=os.getenv("RICH_NO_COLOR") is not None)
                handler = RichHandler(
                    console=cls._console,
                    show_time=config.show_time,
                    show_path=config.show_path,
                    rich_tracebacks=config.rich_tracebacks,
                    tracebacks_show_locals=level <= logging.DEBUG,
                    markup=True,
                )
                handler.setFormatter(logging.Formatter(fmt=format_string, datefmt="[%X]"))
                cls._handlers[key] = handler
            return handler

    @classmethod
    def clear_cache(cls) -> None:
        with cls._lock:
            cls._handlers.clear()
            cls._console = None

    @classmethod
    def cached_handler_count(cls) -> int:
        with cls._lock:
            return len(cls._handlers)
