"""
Source file discovery for tack projects.

Project conventions:
    src/            primary application sources
    src/app/        preferred application root when present
    src/core/       shared core, compiled once per profile and linked into targets
    include/        public headers
    tools/<name>/   one tool target per immediate subdirectory
    tests/          test programs (recursive *_test.c files)
    build/          regenerable output, never scanned
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Tuple

from ..config.target_defs import Target

logger = logging.getLogger(__name__)

BUILD_DIR_NAME = "build"
SRC_DIR = "src"
APP_DIR = "src/app"
CORE_DIR = "src/core"
INCLUDE_DIR = "include"
TOOLS_DIR = "tools"
TESTS_DIR = "tests"

SOURCE_SUFFIX = ".c"
TEST_SUFFIX = "_test.c"


def scan_sources(root: Path, suffix: str, exclude_dirs: Iterable[str] = ()) -> List[Path]:
    """Recursively collect files under root whose name ends with suffix.

    Directories named in exclude_dirs are pruned, as is the build output
    directory. A missing root yields an empty list. Results are sorted so
    that builds and tests see a stable order on every platform.

    Args:
        root: Directory to scan
        suffix: Filename suffix to match (e.g. ".c", "_test.c")
        exclude_dirs: Directory names to skip at any depth

    Returns:
        Sorted list of matching file paths
    """
    if not root.is_dir():
        return []

    excluded = set(exclude_dirs)
    excluded.add(BUILD_DIR_NAME)

    found: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in excluded]
        for filename in filenames:
            if filename.endswith(suffix):
                found.append(Path(dirpath) / filename)

    found.sort()
    logger.debug(f"scan {root} ({suffix}): {len(found)} file(s)")
    return found


@dataclass(frozen=True)
class SourceScanner:
    """Applies the project directory conventions on top of scan_sources().

    Attributes:
        project_dir: Project root containing src/, tools/, tests/ ...
    """

    project_dir: Path

    @property
    def build_dir(self) -> Path:
        return self.project_dir / BUILD_DIR_NAME

    @property
    def src_dir(self) -> Path:
        return self.project_dir / SRC_DIR

    @property
    def app_dir(self) -> Path:
        return self.project_dir / APP_DIR

    @property
    def core_dir(self) -> Path:
        return self.project_dir / CORE_DIR

    @property
    def include_dir(self) -> Path:
        return self.project_dir / INCLUDE_DIR

    @property
    def tools_dir(self) -> Path:
        return self.project_dir / TOOLS_DIR

    @property
    def tests_dir(self) -> Path:
        return self.project_dir / TESTS_DIR

    def has_core(self) -> bool:
        return self.core_dir.is_dir()

    def resolve(self, path: str) -> Path:
        """Resolve a config-supplied path against the project root."""
        return self.project_dir / path

    def target_sources(self, target: Target) -> List[Path]:
        """Sources for one target.

        When the target compiles the whole src/ tree and src/core/ exists,
        every directory named core is skipped so shared code is never
        compiled twice. An app rooted at src/app/ still picks up a legacy
        src/main.c.
        """
        root = self.resolve(target.src_dir)
        exclude: Tuple[str, ...] = ()
        if _same_dir(root, self.src_dir) and self.has_core():
            exclude = (self.core_dir.name,)
        sources = scan_sources(root, SOURCE_SUFFIX, exclude_dirs=exclude)

        legacy_main = self.src_dir / "main.c"
        if _same_dir(root, self.app_dir) and legacy_main.is_file() and legacy_main not in sources:
            sources.append(legacy_main)
        return sources

    def core_sources(self) -> List[Path]:
        return scan_sources(self.core_dir, SOURCE_SUFFIX)

    def test_sources(self) -> List[Path]:
        return scan_sources(self.tests_dir, TEST_SUFFIX)

    def tool_dirs(self) -> List[Path]:
        """Immediate subdirectories of tools/, sorted by name."""
        if not self.tools_dir.is_dir():
            return []
        return sorted(p for p in self.tools_dir.iterdir() if p.is_dir())


def _same_dir(a: Path, b: Path) -> bool:
    return os.path.normpath(os.path.abspath(a)) == os.path.normpath(os.path.abspath(b))
