"""Build Profile Configuration.

Profiles select optimization/debug flags and produce separate output trees
(build/<id>/debug vs. build/<id>/release).

Design:
    Each profile declares its flags once. Some flags only exist on tcc
    (e.g. -bt20 for backtraces); those are listed separately and only
    added when the compiler is tcc.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List


class BuildProfile(Enum):
    """Build profile enum for type-safe profile selection."""

    DEBUG = "debug"
    RELEASE = "release"

    def __str__(self) -> str:
        """Return the string value for directory names and display."""
        return self.value

    @classmethod
    def parse(cls, value: str) -> "BuildProfile":
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"unknown profile {value!r} (expected debug or release)") from None


@dataclass(frozen=True)
class ProfileFlags:
    """Flags contributed by a build profile.

    Attributes:
        name: Profile identifier (matches BuildProfile enum value)
        description: Human-readable profile description
        compile_flags: Flags for every compile and link command
        tcc_flags: Extra flags only understood by tcc
    """

    name: str
    description: str
    compile_flags: tuple[str, ...]
    tcc_flags: tuple[str, ...] = ()


PROFILES: dict[BuildProfile, ProfileFlags] = {
    BuildProfile.DEBUG: ProfileFlags(
        name="debug",
        description="Debug info, no optimization (default)",
        compile_flags=("-g", "-DDEBUG=1"),
        tcc_flags=("-bt20",),
    ),
    BuildProfile.RELEASE: ProfileFlags(
        name="release",
        description="Optimized build",
        compile_flags=("-O2", "-DNDEBUG=1"),
    ),
}

# Always applied; -Werror makes every warning fatal.
WARNING_FLAGS: tuple[str, ...] = (
    "-Wall",
    "-Werror",
    "-Wwrite-strings",
    "-Wimplicit-function-declaration",
)

# tcc warns about GCC attributes in system headers unless told not to.
TCC_RELAXED_WARNINGS: tuple[str, ...] = ("-Wno-unsupported",)
TCC_STRICT_WARNINGS: tuple[str, ...] = ("-Wunsupported",)


def get_profile(profile: BuildProfile) -> ProfileFlags:
    """Get profile configuration by enum."""
    return PROFILES[profile]


def get_profile_flags(profile: BuildProfile, is_tcc: bool) -> List[str]:
    """Profile flags for a compiler family."""
    flags = get_profile(profile)
    result = list(flags.compile_flags)
    if is_tcc:
        result.extend(flags.tcc_flags)
    return result


def get_warning_flags(is_tcc: bool, strict: bool = False) -> List[str]:
    """Warning flags; strict re-enables tcc's unsupported-attribute warnings."""
    result = list(WARNING_FLAGS)
    if is_tcc:
        result.extend(TCC_STRICT_WARNINGS if strict else TCC_RELAXED_WARNINGS)
    return result
