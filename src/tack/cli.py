"""
Command-line interface for tack.

Usage:
    tack [--no-config] [--config PATH] [--no-auto-tools] [--debug] <command> ...

    tack build [debug|release] [--target NAME] [-v] [--rebuild] [-j N] [--strict] [--no-core]
    tack run   [debug|release] [--target NAME] [-v] [--rebuild] [-j N] [--strict] [--no-core] [-- ARGS...]
    tack test  [debug|release] [-v] [--rebuild] [--strict]
    tack list

Without a command the default target is built in debug.

Exit codes:
    0  success
    1  build, test or run failure (run returns the program's exit code)
    2  configuration error, unknown or disabled target, usage error
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from tack import __version__
from tack.build.build_context import BuildParams
from tack.build.build_profiles import BuildProfile
from tack.build.compiler import Compiler, resolve_compiler
from tack.build.orchestrator import BuildOrchestrator
from tack.build.source_scanner import SourceScanner
from tack.build.target_graph import TargetGraph
from tack.build.test_runner import TestRunner
from tack.config.layers import Config, load_config
from tack.errors import BuildError, ConfigError, TargetNotFoundError
from tack.output import init_timer, set_verbose

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

console = Console(highlight=False)


@dataclass
class GlobalArgs:
    """Options shared by every command."""

    project_dir: Path
    no_config: bool = False
    config: Optional[Path] = None
    no_auto_tools: bool = False
    debug: bool = False


@dataclass
class BuildArgs:
    """Arguments for the build and run commands."""

    profile: BuildProfile = BuildProfile.DEBUG
    target: Optional[str] = None
    verbose: bool = False
    rebuild: bool = False
    jobs: int = 1
    strict: bool = False
    no_core: bool = False
    program_args: List[str] = field(default_factory=list)

    def params(self) -> BuildParams:
        return BuildParams(
            profile=self.profile,
            force=self.rebuild,
            jobs=self.jobs,
            verbose=self.verbose,
            strict=self.strict,
            no_core=self.no_core,
        )


def _success(message: str) -> None:
    console.print(f"[bold green]✓ {message}[/bold green]")


def _failure(title: str, detail: str = "") -> None:
    console.print(f"[bold red]✗ {title}[/bold red]")
    if detail:
        console.print(detail, markup=False)


def _load(gargs: GlobalArgs, compiler: Compiler) -> Config:
    config = load_config(gargs.project_dir, no_config=gargs.no_config, config_path=gargs.config, compiler=compiler)
    for path in config.sources:
        logger.debug(f"config layer: {path}")
    return config


def _graph(gargs: GlobalArgs, config: Config) -> TargetGraph:
    return TargetGraph.build(SourceScanner(gargs.project_dir), config, disable_auto_tools=gargs.no_auto_tools)


def build_command(gargs: GlobalArgs, args: BuildArgs, compiler: Compiler) -> int:
    """Build one target.

    Examples:
        tack build                        # default target, debug
        tack build release                # default target, release
        tack build --target tool:gen -j 8
    """
    set_verbose(args.verbose)
    config = _load(gargs, compiler)
    graph = _graph(gargs, config)
    graph.enabled_targets()  # rejects duplicate ids
    target = graph.find(args.target or config.default_target)

    orchestrator = BuildOrchestrator(gargs.project_dir, config, compiler, verbose=args.verbose)
    result = orchestrator.build(target, args.params())
    if not result.success:
        _failure("Build failed", result.message)
        return EXIT_FAILURE

    if result.compiled == 0 and not result.linked:
        _success(f"{target.name}: up to date")
    else:
        _success(f"Built {target.name} ({result.compiled} compiled, {result.build_time:.2f}s)")
    if args.verbose:
        console.print(f"Binary: {result.binary}", markup=False)
    return EXIT_OK


def run_command(gargs: GlobalArgs, args: BuildArgs, compiler: Compiler) -> int:
    """Build one target and run it, forwarding everything after `--`."""
    set_verbose(args.verbose)
    config = _load(gargs, compiler)
    graph = _graph(gargs, config)
    graph.enabled_targets()  # rejects duplicate ids
    target = graph.find(args.target or config.default_target)

    orchestrator = BuildOrchestrator(gargs.project_dir, config, compiler, verbose=args.verbose)
    return orchestrator.run(target, args.params(), args.program_args)


def test_command(gargs: GlobalArgs, args: BuildArgs, compiler: Compiler) -> int:
    """Build and run tests/**/*_test.c."""
    set_verbose(args.verbose)
    # configuration errors still abort the run even though tests ignore targets
    _load(gargs, compiler)
    result = TestRunner(gargs.project_dir, compiler).run(args.params())
    if not result.success:
        _failure("Tests failed", result.message)
        return EXIT_FAILURE
    _success(result.message)
    return EXIT_OK


def list_command(gargs: GlobalArgs, compiler: Compiler) -> int:
    """Show every target known to the graph."""
    config = _load(gargs, compiler)
    graph = _graph(gargs, config)

    table = Table(title="Targets")
    table.add_column("Name", style="bold")
    table.add_column("Id")
    table.add_column("Source")
    table.add_column("Core")
    table.add_column("Enabled")
    for target in graph.all_targets():
        override = config.find_override(target.name)
        table.add_row(
            target.name,
            target.id,
            target.src_dir,
            "yes" if override and override.use_core else "no",
            "yes" if target.enabled else "[dim]no[/dim]",
        )
    console.print(table)
    console.print(f"default target: {config.default_target}", markup=False)
    console.print(f"config: {config.loaded_path or 'built-in defaults'}", markup=False)
    return EXIT_OK


def _add_build_options(parser: argparse.ArgumentParser, with_target: bool = True) -> None:
    parser.add_argument(
        "profile",
        nargs="?",
        choices=[p.value for p in BuildProfile],
        default=BuildProfile.DEBUG.value,
        help="Build profile (default: debug)",
    )
    if with_target:
        parser.add_argument(
            "--target",
            default=None,
            help="Target name or id (default: the configured default target)",
        )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Print every command line",
    )
    parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Recompile and relink regardless of timestamps",
    )
    if with_target:
        parser.add_argument(
            "-j",
            "--jobs",
            type=int,
            default=1,
            help="Maximum concurrent compiler processes (default: 1)",
        )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Enable -Wunsupported on tcc",
    )
    if with_target:
        parser.add_argument(
            "--no-core",
            action="store_true",
            help="Do not build or link src/core",
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tack",
        description="tack - a small build driver for C projects",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"tack {__version__}",
    )
    parser.add_argument(
        "--no-config",
        action="store_true",
        help="Ignore tackfile.c, tackfile.py and tack.ini",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Use PATH instead of tack.ini",
    )
    parser.add_argument(
        "--no-auto-tools",
        action="store_true",
        help="Do not create targets for tools/<name>/ directories",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    _add_build_options(subparsers.add_parser("build", help="Build a target"))
    _add_build_options(subparsers.add_parser("run", help="Build a target and run it (program arguments after --)"))
    _add_build_options(subparsers.add_parser("test", help="Build and run tests/**/*_test.c"), with_target=False)
    subparsers.add_parser("list", help="List targets")
    return parser


def _split_program_args(argv: List[str]) -> tuple[List[str], List[str]]:
    if "--" not in argv:
        return argv, []
    index = argv.index("--")
    return argv[:index], argv[index + 1 :]


def main(argv: Optional[List[str]] = None) -> int:
    """tack - build C projects by convention."""
    init_timer()
    raw = list(sys.argv[1:] if argv is None else argv)
    tack_args, program_args = _split_program_args(raw)

    parser = build_parser()
    parsed = parser.parse_args(tack_args)

    if parsed.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        )

    command = parsed.command or "build"
    if program_args and command != "run":
        parser.error("arguments after -- are only accepted by 'run'")
    if getattr(parsed, "jobs", 1) < 1:
        parser.error("-j/--jobs must be at least 1")

    gargs = GlobalArgs(
        project_dir=Path.cwd(),
        no_config=parsed.no_config,
        config=parsed.config,
        no_auto_tools=parsed.no_auto_tools,
        debug=parsed.debug,
    )
    bargs = BuildArgs(
        profile=BuildProfile.parse(getattr(parsed, "profile", BuildProfile.DEBUG.value)),
        target=getattr(parsed, "target", None),
        verbose=getattr(parsed, "verbose", False),
        rebuild=getattr(parsed, "rebuild", False),
        jobs=getattr(parsed, "jobs", 1),
        strict=getattr(parsed, "strict", False),
        no_core=getattr(parsed, "no_core", False),
        program_args=program_args,
    )

    try:
        compiler = resolve_compiler()
        if command == "build":
            return build_command(gargs, bargs, compiler)
        if command == "run":
            return run_command(gargs, bargs, compiler)
        if command == "test":
            return test_command(gargs, bargs, compiler)
        return list_command(gargs, compiler)

    except ConfigError as e:
        _failure("Configuration error", str(e))
        if not gargs.no_config:
            console.print("Use --no-config to build with the built-in defaults.", markup=False)
        return EXIT_USAGE

    except TargetNotFoundError as e:
        _failure(str(e))
        console.print("Run 'tack list' to see the available targets.", markup=False)
        return EXIT_USAGE

    except BuildError as e:
        _failure("Build failed", str(e))
        return EXIT_FAILURE

    except KeyboardInterrupt:
        console.print("[bold yellow]✗ Interrupted[/bold yellow]")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
