"""Target and configuration record types.

Defines:
- Target: one buildable executable in the target graph
- TargetOverride: extra compile/link settings for one target name
- Upsert / Action: the two kinds of target definition a config layer supplies
"""

import re
from dataclasses import dataclass, field
from typing import Optional, Union

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_id(name: str) -> str:
    """Derive a filesystem-safe id from a target name ("tool:foo" -> "tool_foo")."""
    return _UNSAFE_ID_CHARS.sub("_", name)


@dataclass
class Target:
    """A buildable unit.

    Attributes:
        name: CLI-facing name, may contain ':' (e.g. "tool:foo")
        id: Filesystem-safe name used for build output paths
        src_dir: Directory scanned recursively for .c files (project-relative or absolute)
        bin_base: Output executable base name (no extension)
        enabled: Disabled targets stay in the graph but cannot be selected
    """

    name: str
    id: str
    src_dir: str
    bin_base: str
    enabled: bool = True

    @classmethod
    def create(cls, name: str, src_dir: str, bin_base: str) -> "Target":
        return cls(name=name, id=sanitize_id(name), src_dir=src_dir, bin_base=bin_base)


@dataclass(frozen=True)
class TargetOverride:
    """Per-target compile/link augmentation.

    A layer that defines an override replaces the whole record for that
    target; fields are never merged across layers.
    """

    name: str
    includes: tuple[str, ...] = ()
    defines: tuple[str, ...] = ()
    cflags: tuple[str, ...] = ()
    ldflags: tuple[str, ...] = ()
    libs: tuple[str, ...] = ()
    use_core: bool = False


@dataclass(frozen=True)
class Upsert:
    """Create the target if missing, then set the given fields and enabled."""

    name: str
    src_dir: Optional[str] = None
    bin_base: Optional[str] = None
    id: Optional[str] = None
    enabled: bool = True

    def __post_init__(self) -> None:
        if self.src_dir is None and self.bin_base is None and self.id is None:
            raise ValueError(f"Upsert for {self.name!r} needs at least one of src_dir, bin_base, id")


@dataclass(frozen=True)
class Action:
    """Change an existing target only; a no-op when the target does not exist.

    remove takes precedence over enabled.
    """

    name: str
    enabled: Optional[bool] = None
    remove: bool = False


TargetDef = Union[Upsert, Action]


@dataclass
class ProjectSettings:
    """Values from a [project] section; None means "not set by this layer"."""

    default_target: Optional[str] = None
    disable_auto_tools: Optional[bool] = None


@dataclass
class ConfigLayer:
    """One prioritized source of configuration.

    Attributes:
        name: Layer label for diagnostics ("defaults", "tackfile", "tack.ini")
        priority: Higher priorities are applied later and win
        path: Document the layer was loaded from, if any
        project: Project-wide settings
        target_defs: Target definitions in document order
        overrides: Overrides keyed by target name
    """

    name: str
    priority: int
    path: Optional[str] = None
    project: ProjectSettings = field(default_factory=ProjectSettings)
    target_defs: list[TargetDef] = field(default_factory=list)
    overrides: dict[str, TargetOverride] = field(default_factory=dict)
