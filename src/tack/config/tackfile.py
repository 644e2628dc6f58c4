"""
Code-based configuration through config providers.

A config provider is a program that, invoked with an output path as its only
argument, writes a tack.ini-format document to that path. The driver only
ever consumes the document, so configuration computed by code becomes one
more data layer.

Providers:
    tackfile.c   A generator program is written to build/_tackfile/, compiled
                 with the project compiler (it #includes tackfile.c), and run.
    tackfile.py  Run with the current Python interpreter.

The generated document lives at build/_tackfile/tackfile.generated.ini and is
reused as long as it is at least as new as the provider source.

Macros understood in tackfile.c:

    #define TACKFILE_DEFAULT_TARGET "app"
    #define TACKFILE_DISABLE_AUTO_TOOLS 1

    #define TACKFILE_TARGETS my_targets
    static const TargetDef my_targets[] = {
      { "demo:hello", "demos/hello", "hello", "demo_hello", 1, 0 },
      { "tool:old", 0, 0, 0, 0, 0 },    /* disable */
      { 0, 0, 0, 0, 0, 0 }
    };

    #define TACKFILE_OVERRIDES my_overrides
    static const char *foo_defines[] = { "TOOL_FOO=1", 0 };
    static const TargetOverride my_overrides[] = {
      { "tool:foo", 0, foo_defines, 0, 0, 0, 1 },
      { 0, 0, 0, 0, 0, 0, 0 }
    };
"""

import logging
import os
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from .. import __version__
from ..build.compiler import Compiler, executable_name
from ..build.source_scanner import BUILD_DIR_NAME, INCLUDE_DIR
from ..errors import SpawnError, TackfileError
from ..output import format_argv, log_warning
from ..subprocess_utils import run_argv

logger = logging.getLogger(__name__)

TACKFILE_C = "tackfile.c"
TACKFILE_PY = "tackfile.py"
WORK_DIR = "_tackfile"
GENERATED_INI = "tackfile.generated.ini"

GENERATOR_SOURCE = r"""/* generated by tack @VERSION@; do not edit */
#include <stdio.h>
#include <stdlib.h>
#include <string.h>

typedef struct {
  const char *name;
  const char * const *includes;
  const char * const *defines;
  const char * const *cflags;
  const char * const *ldflags;
  const char * const *libs;
  int use_core;
} TargetOverride;

typedef struct {
  const char *name;
  const char *src_dir;
  const char *bin_base;
  const char *id;
  int enabled;
  int remove;
} TargetDef;

#include "tackfile.c"

static void put_list(FILE *f, const char *key, const char * const *items) {
  int i;
  if (!items || !items[0]) return;
  fprintf(f, "%s = ", key);
  for (i = 0; items[i]; i++) {
    if (i) fputc(';', f);
    fputs(items[i], f);
  }
  fputc('\n', f);
}

int main(int argc, char **argv) {
  FILE *f;
  if (argc < 2) return 2;
  f = fopen(argv[1], "wb");
  if (!f) return 1;

  fputs("# generated from tackfile.c\n\n[project]\n", f);
#ifdef TACKFILE_DEFAULT_TARGET
  fprintf(f, "default_target = %s\n", TACKFILE_DEFAULT_TARGET);
#endif
#if defined(TACKFILE_DISABLE_AUTO_TOOLS)
  fprintf(f, "disable_auto_tools = %s\n", (TACKFILE_DISABLE_AUTO_TOOLS) ? "yes" : "no");
#endif
  fputc('\n', f);

#ifdef TACKFILE_TARGETS
  {
    const TargetDef *td;
    for (td = TACKFILE_TARGETS; td->name; td++) {
      int has_identity = td->src_dir || td->bin_base || td->id;
      fprintf(f, "[target \"%s\"]\n", td->name);
      if (td->src_dir) fprintf(f, "src = %s\n", td->src_dir);
      if (td->bin_base) fprintf(f, "bin = %s\n", td->bin_base);
      if (td->id) fprintf(f, "id = %s\n", td->id);
      if (td->remove) fputs("remove = yes\n", f);
      else if (!has_identity || !td->enabled) fputs(td->enabled ? "enabled = yes\n" : "enabled = no\n", f);
      fputc('\n', f);
    }
  }
#endif

#ifdef TACKFILE_OVERRIDES
  {
    const TargetOverride *ov;
    for (ov = TACKFILE_OVERRIDES; ov->name; ov++) {
      fprintf(f, "[target \"%s\"]\n", ov->name);
      fputs(ov->use_core ? "core = yes\n" : "core = no\n", f);
      put_list(f, "includes", ov->includes);
      put_list(f, "defines", ov->defines);
      put_list(f, "cflags", ov->cflags);
      put_list(f, "ldflags", ov->ldflags);
      put_list(f, "libs", ov->libs);
      fputc('\n', f);
    }
  }
#endif

  return fclose(f) == 0 ? 0 : 1;
}
"""


class ConfigProvider(ABC):
    """A program that writes a declarative config document when run.

    Attributes:
        source: The file whose presence enables the provider and whose
            modification time invalidates the cached output
    """

    def __init__(self, project_dir: Path, source: Path):
        self.project_dir = project_dir
        self.source = source

    @abstractmethod
    def generate(self, output: Path, work_dir: Path) -> None:
        """Produce the document at output.

        Raises:
            TackfileError: The provider could not be built or run.
        """

    def _run(self, argv: List[str], what: str) -> None:
        try:
            rc = run_argv(argv, cwd=self.project_dir)
        except SpawnError as e:
            raise TackfileError(f"{self.source.name}: {what} failed: {e}") from e
        if rc != 0:
            raise TackfileError(f"{self.source.name}: {what} failed (exit code {rc}): {format_argv(argv)}")


class CompiledTackfileProvider(ConfigProvider):
    """Builds and runs a generator that includes tackfile.c."""

    def __init__(self, project_dir: Path, compiler: Compiler):
        super().__init__(project_dir, project_dir / TACKFILE_C)
        self.compiler = compiler

    def generator_command(self, gen_source: Path, gen_exe: Path) -> List[str]:
        return list(self.compiler.command) + [
            "-I",
            str(self.project_dir),
            "-I",
            str(self.project_dir / INCLUDE_DIR),
            "-o",
            str(gen_exe),
            str(gen_source),
        ]

    def generate(self, output: Path, work_dir: Path) -> None:
        gen_source = work_dir / "tackfile_gen.c"
        gen_exe = work_dir / executable_name("tackfile_gen")
        try:
            gen_source.write_text(GENERATOR_SOURCE.replace("@VERSION@", __version__), encoding="utf-8")
        except OSError as e:
            raise TackfileError(f"{TACKFILE_C}: cannot write generator source: {e}") from e

        self._run(self.generator_command(gen_source, gen_exe), "compile")
        self._run([str(gen_exe), str(output)], "generator")


class ScriptTackfileProvider(ConfigProvider):
    """Runs tackfile.py with the current interpreter."""

    def __init__(self, project_dir: Path, python: Optional[str] = None):
        super().__init__(project_dir, project_dir / TACKFILE_PY)
        self.python = python or sys.executable

    def generate(self, output: Path, work_dir: Path) -> None:
        self._run([self.python, str(self.source), str(output)], "script")


def find_provider(project_dir: Path, compiler: Compiler) -> Optional[ConfigProvider]:
    """Pick the config provider present in the project, if any."""
    c_source = project_dir / TACKFILE_C
    py_source = project_dir / TACKFILE_PY
    if c_source.is_file():
        if py_source.is_file():
            log_warning(f"both {TACKFILE_C} and {TACKFILE_PY} exist; using {TACKFILE_C}")
        return CompiledTackfileProvider(project_dir, compiler)
    if py_source.is_file():
        return ScriptTackfileProvider(project_dir)
    return None


def generated_config_path(project_dir: Path) -> Path:
    return project_dir / BUILD_DIR_NAME / WORK_DIR / GENERATED_INI


def prepare_generated_config(project_dir: Path, compiler: Compiler) -> Optional[Path]:
    """Make sure the generated document is current and return its path.

    Returns:
        Path to the generated document, or None when the project has no
        config provider.

    Raises:
        TackfileError: Generation failed; callers must not fall back to
            defaults.
    """
    provider = find_provider(project_dir, compiler)
    if provider is None:
        return None

    output = generated_config_path(project_dir)
    work_dir = output.parent
    work_dir.mkdir(parents=True, exist_ok=True)

    source_mtime = os.stat(provider.source).st_mtime_ns
    if output.is_file() and os.stat(output).st_mtime_ns >= source_mtime:
        logger.debug(f"{output} is up to date with {provider.source.name}")
        return output

    logger.info(f"Generating configuration from {provider.source.name}")
    # a failed run must leave no document behind
    partial = output.with_suffix(".tmp")
    _discard(output)
    _discard(partial)
    try:
        provider.generate(partial, work_dir)
    except TackfileError:
        _discard(partial)
        raise

    if not partial.is_file():
        raise TackfileError(f"{provider.source.name}: provider did not write {output}")
    os.replace(partial, output)
    return output


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
