"""Build Context - parameters and output layout for one build.

This module defines:
- BuildParams: Parameters from the CLI, shared by every target of an invocation
- BuildLayout: Where objects, depfiles and binaries of one unit live

Output layout:
    build/<id>/<profile>/obj/   object files
    build/<id>/<profile>/dep/   compiler-emitted depfiles
    build/<id>/<profile>/bin/   linked executables

The shared core uses the id "_core"; test programs use "tests".
"""

import os
from dataclasses import dataclass
from pathlib import Path

from .build_profiles import BuildProfile

CORE_LAYOUT_ID = "_core"
TESTS_LAYOUT_ID = "tests"

_OBJECT_NAME_CHARS = str.maketrans({"/": "_", "\\": "_", ".": "_", ":": "_"})


@dataclass(frozen=True)
class BuildParams:
    """Basic build parameters from the CLI.

    Attributes:
        profile: Build profile enum value
        force: Rebuild every object and relink regardless of timestamps
        jobs: Maximum number of concurrent compiler processes
        verbose: Print every command line
        strict: Keep tcc's unsupported-attribute warnings enabled
        no_core: Never build or link src/core, whatever the overrides say
    """

    profile: BuildProfile = BuildProfile.DEBUG
    force: bool = False
    jobs: int = 1
    verbose: bool = False
    strict: bool = False
    no_core: bool = False

    @property
    def profile_name(self) -> str:
        return self.profile.value


def object_stem(source: Path, project_dir: Path) -> str:
    """Flatten a source path into a file name stem.

    src/util/str.c -> src_util_str_c
    """
    try:
        rel = os.path.relpath(source, project_dir)
    except ValueError:
        # different drive on Windows
        rel = str(source)
    if rel.startswith(".."):
        rel = str(source)
    return rel.translate(_OBJECT_NAME_CHARS)


@dataclass(frozen=True)
class BuildLayout:
    """Output directories for one unit (target, core or tests) and profile."""

    project_dir: Path
    build_dir: Path
    unit_id: str
    profile: BuildProfile

    @property
    def root(self) -> Path:
        return self.build_dir / self.unit_id / self.profile.value

    @property
    def obj_dir(self) -> Path:
        return self.root / "obj"

    @property
    def dep_dir(self) -> Path:
        return self.root / "dep"

    @property
    def bin_dir(self) -> Path:
        return self.root / "bin"

    def object_path(self, source: Path) -> Path:
        return self.obj_dir / f"{object_stem(source, self.project_dir)}.o"

    def depfile_path(self, source: Path) -> Path:
        return self.dep_dir / f"{object_stem(source, self.project_dir)}.d"

    def ensure(self) -> None:
        for directory in (self.obj_dir, self.dep_dir, self.bin_dir):
            directory.mkdir(parents=True, exist_ok=True)
