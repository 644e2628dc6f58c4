"""Pytest configuration and fixtures for tack tests.

Besides the stdio restoration hooks, this provides a fake C compiler (see
fake_cc.py) so builds can run end to end without a C toolchain, plus helpers
for laying out projects and manipulating timestamps.
"""

import json
import os
import sys
import time
import warnings
from pathlib import Path

import pytest

from tack import output
from tack.build.compiler import Compiler

# Suppress ResourceWarnings from file cleanup in Python 3.13
if sys.version_info >= (3, 13):
    warnings.filterwarnings("ignore", category=ResourceWarning)

FAKE_CC = Path(__file__).parent / "fake_cc.py"


@pytest.fixture(autouse=True)
def _restore_stdio():  # noqa: PT004
    """Ensure stdout/stderr are always restored after each test."""
    yield

    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__


@pytest.fixture(autouse=True)
def _reset_output():  # noqa: PT004
    """Output settings are module globals; keep tests independent."""
    yield
    output.set_verbose(False)
    output._output_stream = None


@pytest.hookimpl(hookwrapper=True, trylast=True)
def pytest_runtest_teardown(item):  # noqa: ARG001
    """Ensure streams are restored during teardown phase."""
    yield

    if hasattr(sys.stdout, "closed") and sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if hasattr(sys.stderr, "closed") and sys.stderr.closed:
        sys.stderr = sys.__stderr__


class CompilerLog:
    """Reads the JSON-lines log written by fake_cc.py."""

    def __init__(self, path: Path):
        self.path = path

    def entries(self):
        if not self.path.exists():
            return []
        return [json.loads(line) for line in self.path.read_text(encoding="utf-8").splitlines() if line]

    def count(self, mode: str) -> int:
        return sum(1 for e in self.entries() if e["mode"] == mode)

    def compiled_sources(self):
        return [Path(e["argv"][-1]).name for e in self.entries() if e["mode"] == "compile"]

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


@pytest.fixture
def cc_log(tmp_path, monkeypatch):
    """Record every fake compiler invocation."""
    log = CompilerLog(tmp_path / "cc_log.jsonl")
    monkeypatch.setenv("FAKE_CC_LOG", str(log.path))
    return log


@pytest.fixture
def fake_compiler(cc_log):  # noqa: ARG001
    """Compiler whose command runs fake_cc.py with the current interpreter."""
    return Compiler((sys.executable, str(FAKE_CC)))


@pytest.fixture
def tack_cc_env(monkeypatch, cc_log):  # noqa: ARG001
    """Point TACK_CC at the fake compiler for CLI-level tests."""
    monkeypatch.setenv("TACK_CC", f'"{sys.executable}" "{FAKE_CC}"')


def write_files(root: Path, files: dict) -> Path:
    """Create files (relative path -> content) under root."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


def backdate(root: Path, seconds: float = 10.0) -> None:
    """Move every file under root into the past.

    Lets a later write or touch() be strictly newer regardless of the
    filesystem's timestamp resolution.
    """
    past = time.time() - seconds
    for dirpath, _, filenames in os.walk(root):
        for name in filenames:
            os.utime(os.path.join(dirpath, name), (past, past))


def touch(path: Path) -> None:
    now = time.time()
    os.utime(path, (now, now))


@pytest.fixture
def project(tmp_path):
    """A minimal project: two sources under src/ and an empty tools/ dir."""
    root = tmp_path / "proj"
    write_files(
        root,
        {
            "src/main.c": '#include "util.h"\nint main(void) { return util(); }\n',
            "src/util.c": '#include "util.h"\nint util(void) { return 0; }\n',
            "src/util.h": "int util(void);\n",
        },
    )
    (root / "tools").mkdir()
    return root
