"""
tack.ini parser.

Document format:

    # comment
    [project]
    default_target = app
    disable_auto_tools = no

    [target "tool:gen"]
    src = extras/gen
    bin = gen
    defines = GEN=1; VERBOSE
    core = yes

Recognized target keys: src, bin, id (identity), enabled, remove (actions),
core (bool) and the ';'-separated lists includes, defines, cflags, ldflags,
libs. Unknown sections and keys are ignored. Lines are trimmed before
parsing, so indentation never turns into a value continuation, and malformed
section headers are skipped.
"""

import configparser
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import ConfigError
from .target_defs import Action, ProjectSettings, TargetDef, TargetOverride, Upsert

logger = logging.getLogger(__name__)

_TRUE_WORDS = {"1", "yes", "true", "on"}
_FALSE_WORDS = {"0", "no", "false", "off"}
LIST_KEYS = ("includes", "defines", "cflags", "ldflags", "libs")


def parse_bool(value: Optional[str]) -> Optional[bool]:
    """Parse a boolean word; returns None for anything unrecognized."""
    if value is None:
        return None
    word = value.strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    return None


def split_list(value: Optional[str]) -> List[str]:
    """Split a ';'-separated list, trimming items and dropping empty ones."""
    if not value:
        return []
    return [item.strip() for item in value.split(";") if item.strip()]


@dataclass
class TargetSection:
    """Raw contents of one [target "NAME"] section."""

    name: str
    src_dir: Optional[str] = None
    bin_base: Optional[str] = None
    id: Optional[str] = None
    enabled: Optional[bool] = None
    remove: Optional[bool] = None
    core: Optional[bool] = None
    lists: Dict[str, List[str]] = field(default_factory=dict)

    def has_identity(self) -> bool:
        return self.src_dir is not None or self.bin_base is not None or self.id is not None

    def to_target_def(self) -> Optional[TargetDef]:
        """Translate to an Upsert or Action.

        Returns None for sections that only carry override settings.
        """
        if self.remove:
            return Action(self.name, remove=True)
        if not self.has_identity():
            if self.enabled is None:
                return None
            return Action(self.name, enabled=self.enabled)
        return Upsert(
            self.name,
            src_dir=self.src_dir,
            bin_base=self.bin_base,
            id=self.id,
            enabled=True if self.enabled is None else self.enabled,
        )

    def to_override(self) -> Optional[TargetOverride]:
        """Build the override record, or None if the section sets no override key."""
        if not any(self.lists.get(k) for k in LIST_KEYS) and self.core is None:
            return None
        return TargetOverride(
            name=self.name,
            includes=tuple(self.lists.get("includes", ())),
            defines=tuple(self.lists.get("defines", ())),
            cflags=tuple(self.lists.get("cflags", ())),
            ldflags=tuple(self.lists.get("ldflags", ())),
            libs=tuple(self.lists.get("libs", ())),
            use_core=bool(self.core),
        )


@dataclass
class ConfigDocument:
    """Parsed declarative configuration document."""

    project: ProjectSettings = field(default_factory=ProjectSettings)
    targets: Dict[str, TargetSection] = field(default_factory=dict)

    def target_defs(self) -> List[TargetDef]:
        defs = []
        for section in self.targets.values():
            target_def = section.to_target_def()
            if target_def is not None:
                defs.append(target_def)
        return defs

    def overrides(self) -> Dict[str, TargetOverride]:
        result = {}
        for section in self.targets.values():
            override = section.to_override()
            if override is not None:
                result[section.name] = override
        return result


def _parse_target_header(header: str) -> Optional[str]:
    """Extract NAME from 'target "NAME"' or 'target NAME'."""
    if header[:6].lower() != "target":
        return None
    rest = header[6:].strip()
    if rest.startswith('"'):
        end = rest.find('"', 1)
        if end < 0:
            return None
        name = rest[1:end]
    else:
        name = rest
    return name or None


def _normalize(text: str) -> str:
    """Trim lines and drop everything the line grammar ignores."""
    lines = []
    in_section = False
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line[0] in "#;":
            continue
        if line.startswith("["):
            end = line.find("]")
            if end <= 1:
                logger.debug(f"skipping malformed section header: {line}")
                continue
            lines.append(line[: end + 1])
            in_section = True
            continue
        key, sep, _ = line.partition("=")
        if not in_section or not sep or not key.strip():
            continue
        lines.append(line)
    return "\n".join(lines) + "\n"


def parse_config_text(text: str) -> ConfigDocument:
    """Parse declarative configuration text into a ConfigDocument."""
    parser = configparser.ConfigParser(
        delimiters=("=",),
        comment_prefixes=("#", ";"),
        inline_comment_prefixes=None,
        strict=False,
        interpolation=None,
        default_section="\x00defaults",
    )
    try:
        parser.read_string(_normalize(text))
    except configparser.Error as e:
        raise ConfigError(f"cannot parse configuration: {e}") from e

    doc = ConfigDocument()
    for header in parser.sections():
        values = parser[header]
        key = header.strip()

        if key.lower() == "project":
            if "default_target" in values:
                doc.project.default_target = values["default_target"]
            disable = parse_bool(values.get("disable_auto_tools"))
            if disable is not None:
                doc.project.disable_auto_tools = disable
            continue

        name = _parse_target_header(key)
        if name is None:
            logger.debug(f"ignoring unknown section [{header}]")
            continue

        section = doc.targets.get(name)
        if section is None:
            section = doc.targets[name] = TargetSection(name)
        _apply_target_keys(section, values)

    return doc


def _apply_target_keys(section: TargetSection, values: configparser.SectionProxy) -> None:
    for key, value in values.items():
        if key == "src":
            section.src_dir = value
        elif key == "bin":
            section.bin_base = value
        elif key == "id":
            section.id = value
        elif key in ("enabled", "remove", "core"):
            flag = parse_bool(value)
            if flag is None:
                logger.warning(f"[target \"{section.name}\"] {key}: not a boolean: {value!r}")
                continue
            setattr(section, key, flag)
        elif key in LIST_KEYS:
            section.lists[key] = split_list(value)
        else:
            logger.debug(f"[target \"{section.name}\"] ignoring unknown key {key}")


def load_config_file(path: Path) -> ConfigDocument:
    """Read and parse a configuration file.

    Raises:
        ConfigError: The file cannot be read or parsed.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    logger.debug(f"loaded configuration from {path}")
    return parse_config_text(text)


def dump_document(doc: ConfigDocument) -> str:
    """Render a document in the format parse_config_text() reads.

    Config-provider scripts (tackfile.py) use this to write their output.
    """
    out = ["[project]"]
    if doc.project.default_target is not None:
        out.append(f"default_target = {doc.project.default_target}")
    if doc.project.disable_auto_tools is not None:
        out.append(f"disable_auto_tools = {'yes' if doc.project.disable_auto_tools else 'no'}")
    out.append("")

    for section in doc.targets.values():
        out.append(f'[target "{section.name}"]')
        for key, value in (("src", section.src_dir), ("bin", section.bin_base), ("id", section.id)):
            if value is not None:
                out.append(f"{key} = {value}")
        for key in ("enabled", "remove", "core"):
            flag = getattr(section, key)
            if flag is not None:
                out.append(f"{key} = {'yes' if flag else 'no'}")
        for key in LIST_KEYS:
            items = section.lists.get(key)
            if items:
                out.append(f"{key} = {';'.join(items)}")
        out.append("")

    return "\n".join(out)
