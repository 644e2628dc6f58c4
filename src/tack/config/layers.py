"""
Layered configuration.

Layers, lowest to highest priority:
    0  defaults   built into tack
    1  tackfile   generated by a config provider (tackfile.c / tackfile.py)
    2  tack.ini   or the file passed with --config

Target definitions are applied in ascending priority. For overrides and
project settings the highest layer that sets a value wins; an override is
always taken as a whole record.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional

from ..build.compiler import Compiler, resolve_compiler
from ..errors import ConfigError
from .ini_parser import ConfigDocument, load_config_file
from .tackfile import prepare_generated_config
from .target_defs import ConfigLayer, TargetDef, TargetOverride

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "tack.ini"
DEFAULT_TARGET = "app"

DEFAULTS_PRIORITY = 0
TACKFILE_PRIORITY = 1
INI_PRIORITY = 2


def builtin_defaults() -> ConfigLayer:
    """The defaults layer: the app sees src/ headers and links the core."""
    layer = ConfigLayer(name="defaults", priority=DEFAULTS_PRIORITY)
    layer.overrides["app"] = TargetOverride(name="app", includes=("src",), use_core=True)
    return layer


def layer_from_document(name: str, priority: int, doc: ConfigDocument, path: Optional[Path] = None) -> ConfigLayer:
    return ConfigLayer(
        name=name,
        priority=priority,
        path=str(path) if path is not None else None,
        project=doc.project,
        target_defs=doc.target_defs(),
        overrides=doc.overrides(),
    )


@dataclass
class Config:
    """Immutable-by-convention result of load_config().

    Passed explicitly to the graph builder and the orchestrator.
    """

    layers: List[ConfigLayer] = field(default_factory=lambda: [builtin_defaults()])

    def __post_init__(self) -> None:
        self.layers = sorted(self.layers, key=lambda layer: layer.priority)

    def find_override(self, name: str) -> Optional[TargetOverride]:
        for layer in reversed(self.layers):
            override = layer.overrides.get(name)
            if override is not None:
                return override
        return None

    def target_defs(self) -> Iterator[TargetDef]:
        """All target definitions, lowest priority layer first."""
        for layer in self.layers:
            yield from layer.target_defs

    @property
    def default_target(self) -> str:
        for layer in reversed(self.layers):
            if layer.project.default_target:
                return layer.project.default_target
        return DEFAULT_TARGET

    @property
    def disable_auto_tools(self) -> bool:
        for layer in reversed(self.layers):
            if layer.project.disable_auto_tools is not None:
                return layer.project.disable_auto_tools
        return False

    @property
    def sources(self) -> List[str]:
        """Paths of the documents that were loaded, lowest priority first."""
        return [layer.path for layer in self.layers if layer.path]

    @property
    def loaded_path(self) -> Optional[str]:
        """The highest-priority document that was loaded, if any."""
        sources = self.sources
        return sources[-1] if sources else None


def load_config(
    project_dir: Path,
    no_config: bool = False,
    config_path: Optional[Path] = None,
    compiler: Optional[Compiler] = None,
) -> Config:
    """Load every configuration layer for a project.

    Args:
        project_dir: Project root
        no_config: Skip tackfile and tack.ini; only built-in defaults apply
        config_path: Explicit declarative file replacing tack.ini
        compiler: Compiler used to build a tackfile.c generator

    Raises:
        ConfigError: A layer could not be loaded (TackfileError for providers)
    """
    layers = [builtin_defaults()]
    if no_config:
        logger.debug("configuration disabled, using built-in defaults")
        return Config(layers)

    generated = prepare_generated_config(project_dir, compiler or resolve_compiler())
    if generated is not None:
        layers.append(layer_from_document("tackfile", TACKFILE_PRIORITY, load_config_file(generated), generated))

    if config_path is not None:
        if not config_path.is_file():
            raise ConfigError(f"config file not found: {config_path}")
        ini_path: Optional[Path] = config_path
    else:
        ini_path = project_dir / CONFIG_FILE_NAME
        if not ini_path.is_file():
            ini_path = None

    if ini_path is not None:
        layers.append(layer_from_document(ini_path.name, INI_PRIORITY, load_config_file(ini_path), ini_path))

    return Config(layers)
