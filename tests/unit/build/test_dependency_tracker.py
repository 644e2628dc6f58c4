"""Tests for dependency-file parsing and rebuild decisions."""

import os
import time

import pytest

from tack.build.dependency_tracker import DependencyTracker, needs_rebuild, parse_depfile


class TestParseDepfile:
    """Test make-rule parsing."""

    def test_simple_rule(self):
        dep = parse_depfile("obj/main.o: src/main.c include/util.h\n")
        assert dep.targets == ["obj/main.o"]
        assert dep.dependencies == ["src/main.c", "include/util.h"]

    def test_line_continuations(self):
        text = "main.o: main.c \\\n  a.h \\\n  b.h\n"
        assert parse_depfile(text).dependencies == ["main.c", "a.h", "b.h"]

    def test_crlf_continuation(self):
        text = "main.o: main.c \\\r\n  a.h\r\n"
        assert parse_depfile(text).dependencies == ["main.c", "a.h"]

    def test_escaped_space_stays_in_token(self):
        dep = parse_depfile("main.o: my\\ dir/main.c other.h\n")
        assert dep.dependencies == ["my dir/main.c", "other.h"]

    def test_colon_ends_token_without_whitespace(self):
        dep = parse_depfile("main.o:main.c")
        assert dep.targets == ["main.o"]
        assert dep.dependencies == ["main.c"]

    def test_only_first_colon_separates(self):
        dep = parse_depfile("main.o: a.h weird:name.h")
        assert dep.dependencies == ["a.h", "weird:name.h"]

    def test_escaped_colon_is_not_separator(self):
        dep = parse_depfile("a\\:b.o: x.h")
        assert dep.targets == ["a:b.o"]
        assert dep.dependencies == ["x.h"]

    def test_trailing_backslash_ends_parsing(self):
        dep = parse_depfile("main.o: a.h b.h\\")
        assert dep.dependencies == ["a.h", "b.h"]

    def test_empty_text(self):
        dep = parse_depfile("")
        assert dep.targets == []
        assert dep.dependencies == []

    def test_no_colon_means_no_dependencies(self):
        dep = parse_depfile("just tokens here")
        assert dep.targets == ["just", "tokens", "here"]
        assert dep.dependencies == []


def _set_mtime(path, when):
    os.utime(path, (when, when))


class TestNeedsRebuild:
    """Test the ordered staleness rules."""

    @pytest.fixture
    def files(self, tmp_path):
        now = time.time()
        src = tmp_path / "main.c"
        hdr = tmp_path / "util.h"
        obj = tmp_path / "main.o"
        dep = tmp_path / "main.d"
        src.write_text("int main(void){return 0;}")
        hdr.write_text("int util(void);")
        obj.write_text("obj")
        dep.write_text(f"{obj}: {src} \\\n  {hdr}\n")
        _set_mtime(src, now - 30)
        _set_mtime(hdr, now - 30)
        _set_mtime(obj, now - 10)
        return {"src": src, "hdr": hdr, "obj": obj, "dep": dep, "now": now}

    def check(self, f, **kwargs):
        return DependencyTracker(**kwargs).check(f["obj"], f["src"], f["dep"])

    def test_up_to_date(self, files):
        assert self.check(files) == (False, "up to date")
        assert not needs_rebuild(files["obj"], files["src"], files["dep"])

    def test_force(self, files):
        assert self.check(files, force=True) == (True, "forced")
        assert needs_rebuild(files["obj"], files["src"], files["dep"], force=True)

    def test_missing_object(self, files):
        files["obj"].unlink()
        assert self.check(files) == (True, "no object")

    def test_missing_source(self, files):
        files["src"].unlink()
        stale, reason = self.check(files)
        assert stale
        assert reason.startswith("source missing")

    def test_source_newer(self, files):
        _set_mtime(files["src"], files["now"])
        assert self.check(files) == (True, "source changed")

    def test_missing_depfile(self, files):
        files["dep"].unlink()
        assert self.check(files) == (True, "no dependency file")

    def test_header_newer(self, files):
        _set_mtime(files["hdr"], files["now"])
        stale, reason = self.check(files)
        assert stale
        assert reason == f"dependency changed: {files['hdr']}"

    def test_header_missing(self, files):
        files["hdr"].unlink()
        stale, reason = self.check(files)
        assert stale
        assert reason.startswith("dependency missing")

    def test_equal_mtime_is_up_to_date(self, files):
        _set_mtime(files["hdr"], files["now"] - 10)
        assert self.check(files) == (False, "up to date")

    def test_relative_dependencies_use_base_dir(self, files, tmp_path):
        files["dep"].write_text(f"{files['obj'].name}: main.c util.h\n")
        assert self.check(files, base_dir=tmp_path) == (False, "up to date")
        _set_mtime(files["hdr"], files["now"])
        assert self.check(files, base_dir=tmp_path)[0]
