"""
Centralized user-facing output for tack.

All output is prefixed with the time elapsed since the program was launched,
in MM:SS.cc format, to make it easy to see where a build spends its time.

Example output:
    00:00.01 config: tack.ini
    00:00.02 Building app (debug)...
    00:00.35       compiled 3 object(s)
    00:00.41       linked build/app/debug/bin/app

Usage:
    from tack.output import log, log_detail, log_command

    log("Building app (debug)...")
    log_detail("compiled 3 object(s)")
    log_command(["tcc", "-c", "main.c"])
"""

import sys
import time
from types import TracebackType
from typing import Optional, Sequence, TextIO

# Global state for the timer
_start_time: Optional[float] = None
_output_stream: Optional[TextIO] = None
_verbose: bool = False


def init_timer(output_stream: Optional[TextIO] = None) -> None:
    """
    Initialize the program timer.

    Args:
        output_stream: Optional output stream (defaults to sys.stdout at write time)
    """
    global _start_time, _output_stream
    _start_time = time.time()
    if output_stream is not None:
        _output_stream = output_stream


def set_verbose(verbose: bool) -> None:
    """
    Set verbose mode.

    Args:
        verbose: If True, verbose_only messages are printed too.
    """
    global _verbose
    _verbose = verbose


def get_elapsed() -> float:
    """Elapsed seconds since init_timer() (initializing on first use)."""
    if _start_time is None:
        init_timer()
    return time.time() - _start_time  # type: ignore


def format_timestamp() -> str:
    """Format the current elapsed time as MM:SS.cc."""
    elapsed = get_elapsed()
    minutes = int(elapsed // 60)
    seconds = elapsed % 60
    return f"{minutes:02d}:{seconds:05.2f}"


def _print(message: str) -> None:
    stream = _output_stream if _output_stream is not None else sys.stdout
    stream.write(f"{format_timestamp()} {message}\n")
    stream.flush()


def log(message: str, verbose_only: bool = False) -> None:
    """
    Log a message with timestamp.

    Args:
        message: Message to log
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(message)


def log_detail(message: str, indent: int = 6, verbose_only: bool = False) -> None:
    """Log an indented detail line."""
    if verbose_only and not _verbose:
        return
    _print(f"{' ' * indent}{message}")


def format_argv(argv: Sequence[str]) -> str:
    """Render an argument vector as a human-readable command line.

    Arguments containing whitespace or a double quote are wrapped in double
    quotes with embedded quotes escaped. This is only for display: commands
    are always executed from the vector itself.
    """
    parts = []
    for arg in argv:
        arg = str(arg)
        if arg and not any(c.isspace() or c == '"' for c in arg):
            parts.append(arg)
        else:
            parts.append('"' + arg.replace('"', '\\"') + '"')
    return " ".join(parts)


def log_command(argv: Sequence[str]) -> None:
    """Echo a command line; callers decide whether verbose output is wanted."""
    _print(format_argv(argv))


def log_error(message: str) -> None:
    _print(f"ERROR: {message}")


def log_warning(message: str) -> None:
    _print(f"WARNING: {message}")


class TimedLogger:
    """
    Context manager for logging an operation with its elapsed time.

    Usage:
        with TimedLogger("Compiling core") as timer:
            ...
            timer.detail("compiled 10 files")
    """

    def __init__(self, operation: str, verbose_only: bool = False):
        self.operation = operation
        self.verbose_only = verbose_only
        self.start_time = 0.0

    def __enter__(self) -> "TimedLogger":
        self.start_time = time.time()
        log(f"{self.operation}...", self.verbose_only)
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        del exc_val, exc_tb  # Unused
        elapsed = time.time() - self.start_time
        if exc_type is None:
            log_detail(f"Done ({elapsed:.2f}s)", verbose_only=self.verbose_only)
        return None

    def detail(self, message: str) -> None:
        log_detail(message, verbose_only=self.verbose_only)
