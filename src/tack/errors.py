"""Exception hierarchy for tack.

Configuration problems, unknown targets and build failures are kept apart so
the CLI can map them to distinct exit codes.
"""

from typing import Optional, Sequence


class TackError(Exception):
    """Base class for all tack errors."""

    pass


class ConfigError(TackError):
    """Raised when a configuration layer cannot be loaded."""

    pass


class TackfileError(ConfigError):
    """Raised when the tackfile config provider fails to compile or run."""

    pass


class TargetNotFoundError(TackError):
    """Raised when a target selector matches no enabled target."""

    def __init__(self, selector: str):
        super().__init__(f"unknown or disabled target: {selector}")
        self.selector = selector


class BuildError(TackError):
    """Raised when a target cannot be built."""

    pass


class SpawnError(BuildError):
    """Raised when an external program cannot be started at all.

    Distinct from a program that starts and exits non-zero.
    """

    def __init__(self, argv: Sequence[str], reason: str):
        program = argv[0] if argv else "<empty>"
        super().__init__(f"failed to spawn {program}: {reason}")
        self.argv = list(argv)
        self.reason = reason


class JobFailedError(BuildError):
    """Raised when a compile job exits with a non-zero status."""

    def __init__(self, argv: Sequence[str], returncode: int, source: Optional[str] = None):
        what = source if source else (argv[0] if argv else "<empty>")
        super().__init__(f"{what}: command failed with exit code {returncode}")
        self.argv = list(argv)
        self.returncode = returncode
        self.source = source
