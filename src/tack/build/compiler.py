"""
Compiler and linker command construction.

Commands are built as argument vectors and handed to the process layer
unchanged; nothing here is ever joined into a shell string.

Compile command layout:
    <cc> -c <warnings> <profile> -I<dir>... -D<def>... <cflags> -MD -MF <dep> -o <obj> <src>

Link command layout:
    <cc> <warnings> <profile> -I<dir>... -D<def>... <ldflags> -o <exe> <objs>... <libs>
"""

import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence

from .build_profiles import BuildProfile, get_profile_flags, get_warning_flags

DEFAULT_COMPILER = "tcc"
COMPILER_ENV_VAR = "TACK_CC"


@dataclass(frozen=True)
class Compiler:
    """A C compiler driver used for both compiling and linking.

    Attributes:
        command: Program plus fixed leading arguments (e.g. ("ccache", "gcc"))
    """

    command: tuple[str, ...]

    @property
    def program(self) -> str:
        """The compiler itself: the last word that is not an option."""
        for word in reversed(self.command):
            if not word.startswith("-"):
                return word
        return self.command[0]

    @property
    def is_tcc(self) -> bool:
        name = Path(self.program).name.lower()
        if name.endswith(".exe"):
            name = name[:-4]
        return name == "tcc" or name.endswith("-tcc")

    def base_flags(self, profile: BuildProfile, strict: bool) -> List[str]:
        return get_warning_flags(self.is_tcc, strict) + get_profile_flags(profile, self.is_tcc)

    def compile_command(
        self,
        source: Path,
        obj: Path,
        depfile: Optional[Path],
        profile: BuildProfile,
        includes: Iterable[Path] = (),
        defines: Iterable[str] = (),
        cflags: Iterable[str] = (),
        strict: bool = False,
    ) -> List[str]:
        argv = list(self.command)
        argv.append("-c")
        argv.extend(self.base_flags(profile, strict))
        argv.extend(include_args(includes))
        argv.extend(define_args(defines))
        argv.extend(cflags)
        if depfile is not None:
            argv.extend(["-MD", "-MF", str(depfile)])
        argv.extend(["-o", str(obj), str(source)])
        return argv

    def link_command(
        self,
        output: Path,
        objects: Sequence[Path],
        profile: BuildProfile,
        includes: Iterable[Path] = (),
        defines: Iterable[str] = (),
        ldflags: Iterable[str] = (),
        libs: Iterable[str] = (),
        strict: bool = False,
    ) -> List[str]:
        argv = list(self.command)
        argv.extend(self.base_flags(profile, strict))
        argv.extend(include_args(includes))
        argv.extend(define_args(defines))
        argv.extend(ldflags)
        argv.extend(["-o", str(output)])
        argv.extend(str(o) for o in objects)
        argv.extend(libs)
        return argv

    def executable_command(
        self,
        source: Path,
        output: Path,
        profile: BuildProfile,
        includes: Iterable[Path] = (),
        strict: bool = False,
    ) -> List[str]:
        """Compile and link a single-file program in one step."""
        argv = list(self.command)
        argv.extend(self.base_flags(profile, strict))
        argv.extend(include_args(includes))
        argv.extend(["-o", str(output), str(source)])
        return argv


def include_args(includes: Iterable[Path]) -> List[str]:
    args: List[str] = []
    for inc in includes:
        args.extend(["-I", str(inc)])
    return args


def define_args(defines: Iterable[str]) -> List[str]:
    return [f"-D{d}" for d in defines]


def resolve_compiler(env: Optional[Mapping[str, str]] = None) -> Compiler:
    """Resolve the compiler once per invocation.

    TACK_CC may hold a single program or a command prefix such as
    "ccache gcc"; it is split with shell word rules but never run through
    a shell.
    """
    env = os.environ if env is None else env
    value = env.get(COMPILER_ENV_VAR, "").strip()
    if not value:
        return Compiler((DEFAULT_COMPILER,))
    parts = shlex.split(value, posix=os.name != "nt")
    return Compiler(tuple(parts) if parts else (DEFAULT_COMPILER,))


def executable_name(base: str) -> str:
    """Platform executable file name for a binary base name."""
    return f"{base}.exe" if os.name == "nt" else base
