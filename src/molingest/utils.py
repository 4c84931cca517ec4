"""
Utility functions and classes for molingest.

This module provides common utilities for:
- Timing the bond and secondary structure passes
- Logging configuration for host applications
"""

from __future__ import annotations

import functools
import logging
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


# =============================================================================
# Timing Utilities
# =============================================================================


class Timer:
    """Context manager for timing code blocks with optional logging.

    Examples
    --------
    >>> with Timer("bond assignment"):
    ...     detector.assign_bonds(atoms)

    >>> with Timer("silent operation", log=False) as t:
    ...     do_work()
    >>> print(f"Elapsed: {t.elapsed:.2f}s")
    """

    def __init__(
        self,
        name: str = "Timer",
        log: bool = True,
        log_level: int = logging.DEBUG,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the timer.

        Parameters
        ----------
        name : str
            Name to display in log messages.
        log : bool
            Whether to log timing information.
        log_level : int
            Logging level to use.
        logger : logging.Logger, optional
            Logger to use. If None, uses module logger.
        """
        self.name = name
        self.log = log
        self.log_level = log_level
        self._logger = logger or globals()["logger"]
        self._start_time: float | None = None
        self._end_time: float | None = None
        self._elapsed: float = 0.0

    @property
    def elapsed(self) -> float:
        """Return elapsed time in seconds."""
        if self._start_time is None:
            return self._elapsed
        if self._end_time is None:
            return time.perf_counter() - self._start_time
        return self._elapsed

    def start(self) -> Timer:
        """Start the timer."""
        self._start_time = time.perf_counter()
        self._end_time = None
        return self

    def stop(self) -> float:
        """Stop the timer and return elapsed time."""
        if self._start_time is None:
            raise RuntimeError("Timer was not started")
        self._end_time = time.perf_counter()
        self._elapsed = self._end_time - self._start_time
        return self._elapsed

    def __enter__(self) -> Timer:
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        self.stop()
        if self.log:
            self._logger.log(
                self.log_level,
                "[Timer] %s: %.3fs",
                self.name,
                self._elapsed,
            )

    def __repr__(self) -> str:
        return f"Timer(name={self.name!r}, elapsed={self.elapsed:.3f}s)"


def timed(
    name: str | None = None,
    log_level: int = logging.DEBUG,
    logger: logging.Logger | None = None,
) -> Callable[[F], F]:
    """Decorator for timing function execution.

    Parameters
    ----------
    name : str, optional
        Name to use in log messages. Defaults to function name.
    log_level : int
        Logging level to use.
    logger : logging.Logger, optional
        Logger to use. If None, uses module logger.
    """
    def decorator(func: F) -> F:
        func_name = name or func.__qualname__
        log = logger or globals()["logger"]

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                elapsed = time.perf_counter() - start
                log.log(
                    log_level,
                    "[Timed] %s: %.3fs",
                    func_name,
                    elapsed,
                )

        return wrapper  # type: ignore[return-value]

    return decorator


# =============================================================================
# Logging
# =============================================================================


def setup_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
    log_file: str | Path | None = None,
    name: str | None = "molingest",
    propagate: bool = True,
) -> logging.Logger:
    """Configure logging with console and optional file output.

    The core never calls this itself; host applications may use it to see
    skipped-record and timing messages.

    Parameters
    ----------
    level : int or str
        Logging level.
    format_string : str, optional
        Custom format string. If None, uses a default format.
    log_file : str or Path, optional
        Path to log file for file output.
    name : str, optional
        Logger name. Defaults to the package logger.
    propagate : bool
        Whether to propagate messages to parent loggers.

    Returns
    -------
    logging.Logger
        Configured logger instance.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    if format_string is None:
        format_string = (
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    log = logging.getLogger(name)
    log.setLevel(level)
    log.propagate = propagate

    # Remove existing handlers to avoid duplicates
    log.handlers.clear()

    formatter = logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    log.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        log.addHandler(file_handler)

    return log


__all__ = [
    "Timer",
    "timed",
    "setup_logging",
]
