"""Tests for build profiles and compiler command construction."""

from pathlib import Path
from unittest.mock import patch

import pytest

from tack.build.build_profiles import BuildProfile, get_profile_flags, get_warning_flags
from tack.build.compiler import Compiler, executable_name, resolve_compiler


class TestBuildProfile:
    """Test profile parsing and flags."""

    def test_parse(self):
        assert BuildProfile.parse("debug") is BuildProfile.DEBUG
        assert BuildProfile.parse("RELEASE") is BuildProfile.RELEASE
        assert str(BuildProfile.RELEASE) == "release"

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="unknown profile"):
            BuildProfile.parse("fast")

    def test_debug_flags(self):
        assert get_profile_flags(BuildProfile.DEBUG, is_tcc=False) == ["-g", "-DDEBUG=1"]
        assert get_profile_flags(BuildProfile.DEBUG, is_tcc=True) == ["-g", "-DDEBUG=1", "-bt20"]

    def test_release_flags(self):
        assert get_profile_flags(BuildProfile.RELEASE, is_tcc=True) == ["-O2", "-DNDEBUG=1"]

    def test_warning_flags(self):
        base = ["-Wall", "-Werror", "-Wwrite-strings", "-Wimplicit-function-declaration"]
        assert get_warning_flags(is_tcc=False) == base
        assert get_warning_flags(is_tcc=False, strict=True) == base
        assert get_warning_flags(is_tcc=True) == base + ["-Wno-unsupported"]
        assert get_warning_flags(is_tcc=True, strict=True) == base + ["-Wunsupported"]


class TestCompiler:
    """Test argv construction."""

    def test_is_tcc(self):
        assert Compiler(("tcc",)).is_tcc
        assert Compiler(("/usr/local/bin/tcc",)).is_tcc
        assert Compiler(("ccache", "tcc")).is_tcc
        assert Compiler(("x86_64-linux-musl-tcc",)).is_tcc
        assert not Compiler(("gcc",)).is_tcc
        assert not Compiler(("clang",)).is_tcc

    def test_compile_command_layout(self):
        cc = Compiler(("gcc",))
        argv = cc.compile_command(
            Path("src/main.c"),
            Path("obj/src_main_c.o"),
            Path("dep/src_main_c.d"),
            BuildProfile.DEBUG,
            includes=[Path("include"), Path("src")],
            defines=["FOO=1", "BAR"],
            cflags=["-std=c99"],
        )
        assert argv == [
            "gcc",
            "-c",
            "-Wall",
            "-Werror",
            "-Wwrite-strings",
            "-Wimplicit-function-declaration",
            "-g",
            "-DDEBUG=1",
            "-I",
            "include",
            "-I",
            "src",
            "-DFOO=1",
            "-DBAR",
            "-std=c99",
            "-MD",
            "-MF",
            str(Path("dep/src_main_c.d")),
            "-o",
            str(Path("obj/src_main_c.o")),
            str(Path("src/main.c")),
        ]

    def test_compile_command_tcc_flags(self):
        argv = Compiler(("tcc",)).compile_command(Path("a.c"), Path("a.o"), None, BuildProfile.DEBUG)
        assert "-bt20" in argv
        assert "-Wno-unsupported" in argv
        assert "-MD" not in argv

    def test_paths_with_spaces_stay_single_arguments(self):
        src = Path("my project/src/main.c")
        argv = Compiler(("gcc",)).compile_command(src, Path("out dir/main.o"), None, BuildProfile.RELEASE)
        assert argv[-1] == str(src)
        assert argv[-2] == str(Path("out dir/main.o"))

    def test_link_command_layout(self):
        cc = Compiler(("ccache", "gcc"))
        argv = cc.link_command(
            Path("bin/app"),
            [Path("a.o"), Path("b.o")],
            BuildProfile.RELEASE,
            includes=[Path("include")],
            defines=["X"],
            ldflags=["-static"],
            libs=["-lm"],
        )
        assert argv[:2] == ["ccache", "gcc"]
        assert argv.index("-static") < argv.index("-o")
        assert argv[argv.index("-o") :] == ["-o", str(Path("bin/app")), "a.o", "b.o", "-lm"]
        assert "-O2" in argv
        assert "-DX" in argv
        assert "-c" not in argv

    def test_executable_command(self):
        argv = Compiler(("gcc",)).executable_command(
            Path("tests/a_test.c"), Path("bin/a_test"), BuildProfile.DEBUG, includes=[Path("tests")]
        )
        assert argv[-3:] == ["-o", str(Path("bin/a_test")), str(Path("tests/a_test.c"))]
        assert ["-I", "tests"] == argv[argv.index("-I") : argv.index("-I") + 2]


class TestResolveCompiler:
    """Test TACK_CC handling."""

    def test_default_is_tcc(self):
        assert resolve_compiler({}).command == ("tcc",)

    def test_blank_value_is_default(self):
        assert resolve_compiler({"TACK_CC": "   "}).command == ("tcc",)

    def test_single_program(self):
        assert resolve_compiler({"TACK_CC": "gcc"}).command == ("gcc",)

    def test_command_prefix_is_split(self):
        assert resolve_compiler({"TACK_CC": "ccache gcc"}).command == ("ccache", "gcc")

    def test_quoted_path(self):
        with patch("os.name", "posix"):
            compiler = resolve_compiler({"TACK_CC": '"/opt/my cc/bin/gcc" -m32'})
        assert compiler.command == ("/opt/my cc/bin/gcc", "-m32")

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("TACK_CC", "clang")
        assert resolve_compiler().command == ("clang",)


def test_executable_name():
    with patch("os.name", "nt"):
        assert executable_name("app") == "app.exe"
    with patch("os.name", "posix"):
        assert executable_name("app") == "app"
