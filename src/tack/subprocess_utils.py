"""Process execution for compiler, linker and generator invocations.

Every external program is started from an argument vector; no shell is ever
involved, so paths containing spaces or quotes need no escaping. Quoting only
happens when a command line is echoed for humans (see tack.output.format_argv).

Platform-specific flags are applied automatically:
- CREATE_NO_WINDOW on Windows (prevents console window flashing)
- stdin=DEVNULL (children never steal keystrokes from the terminal)
"""

import logging
import subprocess
import sys
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

import psutil

from .errors import SpawnError
from .output import format_argv, log_command

logger = logging.getLogger(__name__)


def get_subprocess_creation_flags() -> int:
    """Get platform-specific subprocess creation flags.

    Returns:
        - Windows: subprocess.CREATE_NO_WINDOW (prevents console window)
        - Other platforms: 0 (no special flags)
    """
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


def _apply_platform_defaults(kwargs: dict[str, Any]) -> dict[str, Any]:
    default_flags = get_subprocess_creation_flags()

    if "creationflags" in kwargs:
        kwargs["creationflags"] = kwargs["creationflags"] | default_flags
    elif default_flags:
        kwargs["creationflags"] = default_flags

    if "stdin" not in kwargs:
        kwargs["stdin"] = subprocess.DEVNULL
    return kwargs


def safe_popen(cmd: Sequence[str], **kwargs: Any) -> subprocess.Popen:
    """Execute subprocess.Popen with platform-specific flags.

    Note:
        - If 'creationflags' is explicitly provided in kwargs,
          it will be OR'd with platform defaults to preserve custom flags.
        - If 'stdin' is explicitly provided in kwargs, it will be used as-is.
          Otherwise, stdin is automatically redirected to subprocess.DEVNULL.
    """
    return subprocess.Popen(list(cmd), **_apply_platform_defaults(kwargs))


def spawn(argv: Sequence[str], cwd: Optional[Path] = None) -> subprocess.Popen:
    """Start a program without waiting for it.

    The caller owns the returned handle and must wait() on it.

    Raises:
        SpawnError: The program could not be started (not found, not executable).
    """
    if not argv:
        raise SpawnError(argv, "empty command")
    logger.debug(f"spawn: {format_argv(argv)}")
    try:
        return safe_popen([str(a) for a in argv], cwd=cwd)
    except OSError as e:
        raise SpawnError(argv, e.strerror or str(e)) from e


def wait(proc: subprocess.Popen) -> int:
    """Block until a spawned process exits and return its exit code.

    A process killed by a signal reports 128 + signal number, so it is
    always non-zero.
    """
    returncode = proc.wait()
    if returncode < 0:
        returncode = 128 - returncode
    logger.debug(f"pid {proc.pid} exited with {returncode}")
    return returncode


def run_argv(argv: Sequence[str], cwd: Optional[Path] = None, verbose: bool = False) -> int:
    """Spawn a program, wait for it, and return its exit code.

    Raises:
        SpawnError: The program could not be started.
    """
    if verbose:
        log_command(argv)
    return wait(spawn(argv, cwd=cwd))


def terminate_processes(procs: Iterable[subprocess.Popen], timeout: float = 3.0) -> int:
    """Terminate still-running processes together with their children.

    Children are signalled before their parents so that compiler drivers do
    not respawn work. Anything that survives `timeout` seconds is killed.
    Every handle is reaped before returning.

    Returns:
        Number of processes (including descendants) that were signalled.
    """
    handles = [p for p in procs if p.poll() is None]
    victims: list[psutil.Process] = []
    for handle in handles:
        try:
            root = psutil.Process(handle.pid)
            victims.extend(root.children(recursive=True))
            victims.append(root)
        except psutil.NoSuchProcess:
            continue

    for victim in victims:
        try:
            victim.terminate()
        except psutil.NoSuchProcess:
            pass

    _, alive = psutil.wait_procs(victims, timeout=timeout)
    for victim in alive:
        logger.warning(f"Process {victim.pid} ignored terminate, killing")
        try:
            victim.kill()
        except psutil.NoSuchProcess:
            pass

    for handle in handles:
        handle.wait()

    if victims:
        logger.info(f"Terminated {len(victims)} process(es)")
    return len(victims)
