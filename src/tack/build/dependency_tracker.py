"""Incremental rebuild decisions for object files.

An object is rebuilt when any of the following holds:
    1. the build is forced
    2. the object does not exist
    3. the source is missing or newer than the object
    4. no dependency file exists yet
    5. a dependency listed in the dependency file is missing or newer

Missing information always resolves toward rebuilding.

Dependency files are the make-style rules written by the compiler's -MD -MF
options:

    build/app/debug/obj/src_main_c.o: src/main.c include/util.h \\
      include/my\\ header.h
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class Depfile:
    """Parsed dependency file.

    Attributes:
        targets: Tokens before the first unescaped colon
        dependencies: Tokens after it, in file order
    """

    targets: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)


def parse_depfile(text: str) -> Depfile:
    """Parse make-rule dependency text.

    Grammar:
        - tokens are separated by whitespace
        - backslash + newline is a line continuation and does not end a token
        - backslash + any other character adds that character to the token
        - the first unescaped ':' ends the target part
    """
    result = Depfile()
    token: List[str] = []
    seen_colon = False

    def flush() -> None:
        if token:
            (result.dependencies if seen_colon else result.targets).append("".join(token))
            token.clear()

    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        i += 1

        if c == "\\":
            if i >= n:
                break
            nxt = text[i]
            i += 1
            if nxt == "\r":
                if i < n and text[i] == "\n":
                    i += 1
                continue
            if nxt == "\n":
                continue
            token.append(nxt)
            continue

        if c == ":" and not seen_colon:
            flush()
            seen_colon = True
            continue

        if c.isspace():
            flush()
            continue

        token.append(c)

    flush()
    return result


def _mtime_ns(path: Path) -> Optional[int]:
    try:
        return os.stat(path).st_mtime_ns
    except OSError:
        return None


class DependencyTracker:
    """Decides whether objects must be recompiled.

    Args:
        base_dir: Directory that relative paths in dependency files are
            relative to (the compiler's working directory)
        force: Treat every object as stale
    """

    def __init__(self, base_dir: Optional[Path] = None, force: bool = False):
        self.base_dir = base_dir
        self.force = force

    def _resolve(self, token: str) -> Path:
        path = Path(token)
        if self.base_dir is not None and not path.is_absolute():
            return self.base_dir / path
        return path

    def check(self, object_path: Path, source_path: Path, depfile_path: Path) -> Tuple[bool, str]:
        """Return (needs_rebuild, reason)."""
        if self.force:
            return True, "forced"

        obj_t = _mtime_ns(object_path)
        if obj_t is None:
            return True, "no object"

        src_t = _mtime_ns(source_path)
        if src_t is None:
            return True, f"source missing: {source_path}"
        if src_t > obj_t:
            return True, "source changed"

        try:
            text = depfile_path.read_text(encoding="utf-8", errors="surrogateescape")
        except OSError:
            return True, "no dependency file"

        for dep in parse_depfile(text).dependencies:
            dep_t = _mtime_ns(self._resolve(dep))
            if dep_t is None:
                return True, f"dependency missing: {dep}"
            if dep_t > obj_t:
                return True, f"dependency changed: {dep}"

        return False, "up to date"

    def needs_rebuild(self, object_path: Path, source_path: Path, depfile_path: Path) -> bool:
        stale, reason = self.check(object_path, source_path, depfile_path)
        logger.debug(f"{object_path.name}: {reason}")
        return stale


def needs_rebuild(
    object_path: Path,
    source_path: Path,
    depfile_path: Path,
    force: bool = False,
    base_dir: Optional[Path] = None,
) -> bool:
    """Module-level convenience wrapper around DependencyTracker."""
    return DependencyTracker(base_dir=base_dir, force=force).needs_rebuild(object_path, source_path, depfile_path)
