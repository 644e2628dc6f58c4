"""
Target graph construction.

The graph is built in two passes:
    1. Discovery: the primary "app" target plus one "tool:<dir>" target per
       immediate subdirectory of tools/ (unless auto tools are disabled).
    2. Configuration: every layer's target definitions are applied in
       ascending priority. Upserts create or update, actions only touch
       targets that already exist.
"""

import logging
from typing import Dict, List, Optional

from ..config.layers import Config
from ..config.target_defs import Action, Target, TargetDef, Upsert, sanitize_id
from ..errors import ConfigError, TargetNotFoundError
from .source_scanner import APP_DIR, SRC_DIR, TOOLS_DIR, SourceScanner

logger = logging.getLogger(__name__)

APP_TARGET = "app"
TOOL_PREFIX = "tool:"


class TargetGraph:
    """Ordered set of targets keyed by name."""

    def __init__(self, targets: Optional[List[Target]] = None):
        self._targets: Dict[str, Target] = {}
        for target in targets or []:
            self._targets[target.name] = target

    @classmethod
    def build(cls, scanner: SourceScanner, config: Config, disable_auto_tools: bool = False) -> "TargetGraph":
        """Discover targets and apply the configured target definitions.

        Args:
            scanner: Project layout
            config: Loaded configuration layers
            disable_auto_tools: CLI request to skip tools/ discovery; the
                configuration can also disable it
        """
        graph = cls()
        graph.discover(scanner, disable_auto_tools or config.disable_auto_tools)
        for target_def in config.target_defs():
            graph.apply(target_def)
        return graph

    def discover(self, scanner: SourceScanner, disable_auto_tools: bool = False) -> None:
        app_src = APP_DIR if scanner.app_dir.is_dir() else SRC_DIR
        self.add(Target.create(APP_TARGET, app_src, APP_TARGET))

        if disable_auto_tools:
            logger.debug("tool discovery disabled")
            return
        for tool_dir in scanner.tool_dirs():
            self.add(Target.create(f"{TOOL_PREFIX}{tool_dir.name}", f"{TOOLS_DIR}/{tool_dir.name}", tool_dir.name))

    def add(self, target: Target) -> None:
        self._targets[target.name] = target

    def remove(self, name: str) -> None:
        self._targets.pop(name, None)

    def get(self, name: str) -> Optional[Target]:
        return self._targets.get(name)

    def apply(self, target_def: TargetDef) -> None:
        """Apply a single target definition."""
        target = self._targets.get(target_def.name)

        if isinstance(target_def, Action):
            if target is None:
                logger.debug(f"{target_def.name}: no such target, ignoring action")
                return
            if target_def.remove:
                self.remove(target_def.name)
            elif target_def.enabled is not None:
                target.enabled = target_def.enabled
            return

        if isinstance(target_def, Upsert):
            if target is None:
                target = Target.create(target_def.name, SRC_DIR, APP_TARGET)
                self.add(target)
            if target_def.src_dir is not None:
                target.src_dir = target_def.src_dir
            if target_def.bin_base is not None:
                target.bin_base = target_def.bin_base
            if target_def.id is not None:
                target.id = target_def.id
            target.enabled = target_def.enabled
            return

        raise TypeError(f"unsupported target definition: {target_def!r}")

    def all_targets(self) -> List[Target]:
        return list(self._targets.values())

    def enabled_targets(self) -> List[Target]:
        """Enabled targets in graph order.

        Raises:
            ConfigError: Two enabled targets share an output id
        """
        seen: Dict[str, str] = {}
        result = []
        for target in self._targets.values():
            if not target.enabled:
                continue
            other = seen.get(target.id)
            if other is not None:
                raise ConfigError(f"targets {other!r} and {target.name!r} share id {target.id!r}")
            seen[target.id] = target.name
            result.append(target)
        return result

    def find(self, selector: str) -> Target:
        """Look up an enabled target by name or id.

        Raises:
            TargetNotFoundError: No enabled target matches
        """
        target = self._targets.get(selector)
        if target is not None and target.enabled:
            return target
        for target in self._targets.values():
            if target.enabled and target.id == selector:
                return target
        raise TargetNotFoundError(selector)

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, name: object) -> bool:
        return name in self._targets


__all__ = ["TargetGraph", "APP_TARGET", "TOOL_PREFIX", "sanitize_id"]
