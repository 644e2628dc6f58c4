"""
Build orchestration for tack targets.

Per-target flow:
    resolve override -> build core (optional) -> scan -> compile -> decide link -> link (optional)

Compile and link failures never raise out of build(); they come back as a
BuildResult with success=False so the CLI can report them uniformly.
KeyboardInterrupt always propagates.
"""

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..config.layers import Config
from ..config.target_defs import Target, TargetOverride
from ..errors import BuildError
from ..output import TimedLogger, log, log_detail, log_error
from ..subprocess_utils import run_argv
from .build_context import CORE_LAYOUT_ID, BuildLayout, BuildParams
from .build_profiles import BuildProfile
from .compiler import Compiler, executable_name, resolve_compiler
from .dependency_tracker import DependencyTracker
from .job_scheduler import CompileJob, run_many
from .source_scanner import SourceScanner

logger = logging.getLogger(__name__)

LINK_MANIFEST_SUFFIX = ".link.json"


@dataclass
class BuildResult:
    """Result of building one target.

    Attributes:
        success: Whether the binary is up to date after the build
        target: Target name
        binary: Path of the executable (set even when nothing was linked)
        compiled: Number of objects compiled by this build, core included
        linked: Whether the linker ran
        build_time: Wall-clock seconds spent
        message: Human-readable summary or error
    """

    success: bool
    target: str
    binary: Optional[Path]
    compiled: int
    linked: bool
    build_time: float
    message: str


class BuildOrchestrator:
    """Builds targets of one project with one compiler.

    The object list of the shared core is cached per profile, so building
    several targets in one invocation compiles (and checks) the core once.
    """

    def __init__(
        self,
        project_dir: Path,
        config: Config,
        compiler: Optional[Compiler] = None,
        verbose: bool = False,
    ):
        self.project_dir = project_dir
        self.scanner = SourceScanner(project_dir)
        self.config = config
        self.compiler = compiler or resolve_compiler()
        self.verbose = verbose
        self._core_objects: Dict[BuildProfile, List[Path]] = {}

    def layout(self, unit_id: str, profile: BuildProfile) -> BuildLayout:
        return BuildLayout(self.project_dir, self.scanner.build_dir, unit_id, profile)

    def binary_path(self, target: Target, profile: BuildProfile) -> Path:
        return self.layout(target.id, profile).bin_dir / executable_name(target.bin_base)

    def common_includes(self, target: Target) -> List[Path]:
        includes = [
            self.scanner.include_dir,
            self.scanner.resolve(target.src_dir),
            self.scanner.src_dir,
        ]
        if self.scanner.has_core():
            includes.append(self.scanner.core_dir)
        return includes

    def target_includes(self, target: Target, override: Optional[TargetOverride]) -> List[Path]:
        includes = self.common_includes(target)
        if override is not None:
            includes.extend(self.scanner.resolve(inc) for inc in override.includes)
        return _unique(includes)

    def _compile(
        self,
        sources: Sequence[Path],
        layout: BuildLayout,
        includes: Sequence[Path],
        defines: Sequence[str],
        cflags: Sequence[str],
        params: BuildParams,
    ) -> Tuple[List[Path], int]:
        """Compile stale sources.

        Returns:
            (all object paths in source order, number of objects compiled)

        Raises:
            BuildError: A compiler could not be started or failed
        """
        layout.ensure()
        tracker = DependencyTracker(base_dir=self.project_dir, force=params.force)
        objects: List[Path] = []
        jobs: List[CompileJob] = []
        owners: Dict[Path, Path] = {}

        for source in sources:
            obj = layout.object_path(source)
            if obj in owners:
                raise BuildError(f"{owners[obj]} and {source} both compile to {obj.name}; rename one of them")
            owners[obj] = source
            dep = layout.depfile_path(source)
            objects.append(obj)
            if not tracker.needs_rebuild(obj, source, dep):
                continue
            argv = self.compiler.compile_command(
                source,
                obj,
                dep,
                params.profile,
                includes=includes,
                defines=defines,
                cflags=cflags,
                strict=params.strict,
            )
            jobs.append(CompileJob(argv=argv, source=source, output=obj))

        if jobs:
            run_many(jobs, max_parallel=params.jobs, cwd=self.project_dir, verbose=params.verbose or self.verbose)
        return objects, len(jobs)

    def build_core(self, params: BuildParams) -> Tuple[List[Path], int]:
        """Compile src/core once per profile; it is never linked on its own.

        Raises:
            BuildError: A core source failed to compile
        """
        cached = self._core_objects.get(params.profile)
        if cached is not None:
            return cached, 0

        sources = self.scanner.core_sources()
        if not sources:
            self._core_objects[params.profile] = []
            return [], 0

        includes = [self.scanner.include_dir, self.scanner.src_dir, self.scanner.core_dir]
        layout = self.layout(CORE_LAYOUT_ID, params.profile)
        with TimedLogger(f"Checking core ({params.profile_name})", verbose_only=True):
            objects, compiled = self._compile(sources, layout, includes, (), (), params)
        if compiled:
            log_detail(f"core: compiled {compiled} object(s)")
        self._core_objects[params.profile] = objects
        return objects, compiled

    def build(self, target: Target, params: BuildParams) -> BuildResult:
        """Build one target."""
        start_time = time.time()
        override = self.config.find_override(target.name)
        use_core = bool(override and override.use_core) and not params.no_core
        binary = self.binary_path(target, params.profile)
        compiled = 0

        log(f"Building {target.name} ({params.profile_name})...")

        try:
            core_objects: List[Path] = []
            if use_core:
                core_objects, compiled = self.build_core(params)

            sources = self.scanner.target_sources(target)
            if not sources:
                return self._result(False, target, None, compiled, False, start_time, f"no sources in {target.src_dir} for target {target.name}")

            layout = self.layout(target.id, params.profile)
            includes = self.target_includes(target, override)
            objects, target_compiled = self._compile(
                sources,
                layout,
                includes,
                override.defines if override else (),
                override.cflags if override else (),
                params,
            )
            compiled += target_compiled
            if target_compiled:
                log_detail(f"compiled {target_compiled} object(s)")

            all_objects = objects + core_objects
            if not self.needs_link(binary, all_objects, params.force):
                logger.debug(f"{binary} is up to date")
                return self._result(True, target, binary, compiled, False, start_time, f"{target.name} is up to date")

            self.link(binary, all_objects, includes, override, params)
            log_detail(f"linked {binary}")
            return self._result(True, target, binary, compiled, True, start_time, f"built {binary}")

        except BuildError as e:
            logger.debug(f"{target.name}: build failed", exc_info=True)
            return self._result(False, target, None, compiled, False, start_time, str(e))

    def needs_link(self, binary: Path, objects: Sequence[Path], force: bool = False) -> bool:
        """Relink when forced, when the binary is missing or older than any
        object, or when the set of linked objects changed."""
        if force:
            return True
        try:
            binary_mtime = binary.stat().st_mtime_ns
        except OSError:
            return True
        for obj in objects:
            try:
                if obj.stat().st_mtime_ns > binary_mtime:
                    return True
            except OSError:
                return True
        return _read_manifest(binary) != [str(o) for o in objects]

    def link(
        self,
        binary: Path,
        objects: Sequence[Path],
        includes: Sequence[Path],
        override: Optional[TargetOverride],
        params: BuildParams,
    ) -> None:
        """Link objects into binary and record the object set.

        Raises:
            BuildError: The linker could not be started or failed
        """
        binary.parent.mkdir(parents=True, exist_ok=True)
        argv = self.compiler.link_command(
            binary,
            objects,
            params.profile,
            includes=includes,
            defines=override.defines if override else (),
            ldflags=override.ldflags if override else (),
            libs=override.libs if override else (),
            strict=params.strict,
        )
        rc = run_argv(argv, cwd=self.project_dir, verbose=params.verbose or self.verbose)
        if rc != 0:
            _manifest_path(binary).unlink(missing_ok=True)
            raise BuildError(f"link failed for {binary.name} (exit code {rc})")
        _manifest_path(binary).write_text(json.dumps([str(o) for o in objects], indent=2), encoding="utf-8")

    def run(self, target: Target, params: BuildParams, args: Sequence[str] = ()) -> int:
        """Build a target, then run its binary with args.

        Returns:
            1 if the build failed, otherwise the program's exit code

        Raises:
            SpawnError: The built binary could not be started
        """
        result = self.build(target, params)
        if not result.success or result.binary is None:
            log_error(result.message)
            return 1
        argv = [str(result.binary), *args]
        logger.debug(f"running {target.name}")
        return run_argv(argv, verbose=params.verbose or self.verbose)

    def _result(
        self,
        success: bool,
        target: Target,
        binary: Optional[Path],
        compiled: int,
        linked: bool,
        start_time: float,
        message: str,
    ) -> BuildResult:
        return BuildResult(
            success=success,
            target=target.name,
            binary=binary,
            compiled=compiled,
            linked=linked,
            build_time=time.time() - start_time,
            message=message,
        )


def _unique(paths: Sequence[Path]) -> List[Path]:
    seen = set()
    result = []
    for path in paths:
        key = str(path)
        if key not in seen:
            seen.add(key)
            result.append(path)
    return result


def _manifest_path(binary: Path) -> Path:
    return binary.with_name(binary.name + LINK_MANIFEST_SUFFIX)


def _read_manifest(binary: Path) -> Optional[List[str]]:
    try:
        data = json.loads(_manifest_path(binary).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return data if isinstance(data, list) else None


__all__ = ["BuildOrchestrator", "BuildResult"]
