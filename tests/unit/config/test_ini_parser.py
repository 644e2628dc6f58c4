"""Tests for the declarative tack.ini format."""

import pytest

from tack.config.ini_parser import (
    ConfigDocument,
    dump_document,
    load_config_file,
    parse_bool,
    parse_config_text,
    split_list,
)
from tack.config.target_defs import Action, Upsert
from tack.errors import ConfigError

SAMPLE = """
# project-wide settings
[project]
default_target = tool:gen
disable_auto_tools = yes

[target "tool:gen"]
src = extras/gen
bin = gen
defines = GEN=1; VERBOSE ;;
core = yes

; a disable action
[target "tool:old"]
enabled = no

[target "tool:gone"]
remove = yes

[target "app"]
includes = third_party/include
libs = -lm
"""


class TestValueParsing:
    @pytest.mark.parametrize("word", ["1", "yes", "TRUE", "On"])
    def test_true_words(self, word):
        assert parse_bool(word) is True

    @pytest.mark.parametrize("word", ["0", "no", "false", "OFF"])
    def test_false_words(self, word):
        assert parse_bool(word) is False

    def test_unrecognized_is_none(self):
        assert parse_bool("maybe") is None
        assert parse_bool(None) is None

    def test_split_list(self):
        assert split_list(" a ; b;;c ") == ["a", "b", "c"]
        assert split_list("") == []
        assert split_list(None) == []


class TestParseConfigText:
    """Test document parsing."""

    def test_project_section(self):
        doc = parse_config_text(SAMPLE)
        assert doc.project.default_target == "tool:gen"
        assert doc.project.disable_auto_tools is True

    def test_target_defs(self):
        defs = {d.name: d for d in parse_config_text(SAMPLE).target_defs()}
        assert defs["tool:gen"] == Upsert("tool:gen", src_dir="extras/gen", bin_base="gen", enabled=True)
        assert defs["tool:old"] == Action("tool:old", enabled=False)
        assert defs["tool:gone"] == Action("tool:gone", remove=True)
        # override-only sections do not touch the graph
        assert "app" not in defs

    def test_overrides(self):
        overrides = parse_config_text(SAMPLE).overrides()
        gen = overrides["tool:gen"]
        assert gen.defines == ("GEN=1", "VERBOSE")
        assert gen.use_core is True
        app = overrides["app"]
        assert app.includes == ("third_party/include",)
        assert app.libs == ("-lm",)
        assert app.use_core is False
        assert "tool:old" not in overrides

    def test_unquoted_target_header(self):
        doc = parse_config_text("[target demo]\nsrc = demos\n")
        assert doc.target_defs() == [Upsert("demo", src_dir="demos")]

    def test_indented_lines_are_trimmed(self):
        doc = parse_config_text('  [target "x"]\n    src = a\n    bin = b\n')
        assert doc.target_defs() == [Upsert("x", src_dir="a", bin_base="b")]

    def test_malformed_lines_are_skipped(self):
        text = "\n".join(
            [
                "orphan = before any section",
                "[]",
                "[broken",
                '[target "ok"]',
                "no equals sign here",
                "= value without key",
                "src = fine",
            ]
        )
        doc = parse_config_text(text)
        assert doc.target_defs() == [Upsert("ok", src_dir="fine")]

    def test_text_after_header_is_ignored(self):
        doc = parse_config_text('[target "x"] trailing\nsrc = a\n')
        assert doc.target_defs() == [Upsert("x", src_dir="a")]

    def test_repeated_sections_merge(self):
        doc = parse_config_text('[target "x"]\nsrc = a\n[target "x"]\nbin = b\n')
        assert doc.target_defs() == [Upsert("x", src_dir="a", bin_base="b")]

    def test_value_may_contain_equals(self):
        doc = parse_config_text('[target "x"]\ndefines = A=1;B=2\n')
        assert doc.overrides()["x"].defines == ("A=1", "B=2")

    def test_enabled_with_identity_is_upsert(self):
        doc = parse_config_text('[target "x"]\nsrc = a\nenabled = no\n')
        assert doc.target_defs() == [Upsert("x", src_dir="a", enabled=False)]

    def test_remove_wins_over_identity(self):
        doc = parse_config_text('[target "x"]\nsrc = a\nremove = yes\n')
        assert doc.target_defs() == [Action("x", remove=True)]

    def test_bad_boolean_is_ignored(self, caplog):
        doc = parse_config_text('[target "x"]\nenabled = perhaps\n')
        assert doc.target_defs() == []
        assert "not a boolean" in caplog.text

    def test_unknown_sections_and_keys_ignored(self):
        doc = parse_config_text('[other]\nfoo = bar\n[target "x"]\nsrc = a\ncolor = blue\n')
        assert doc.target_defs() == [Upsert("x", src_dir="a")]

    def test_project_section_name_is_case_insensitive(self):
        doc = parse_config_text("[Project]\ndefault_target = demo\n")
        assert doc.project.default_target == "demo"

    def test_empty_document(self):
        doc = parse_config_text("")
        assert doc.project.default_target is None
        assert doc.target_defs() == []


class TestFiles:
    def test_load_config_file(self, tmp_path):
        path = tmp_path / "tack.ini"
        path.write_text(SAMPLE, encoding="utf-8")
        assert load_config_file(path).project.default_target == "tool:gen"

    def test_unreadable_file_is_config_error(self, tmp_path):
        with pytest.raises(ConfigError, match="cannot read"):
            load_config_file(tmp_path / "missing.ini")

    def test_dump_is_parseable(self):
        doc = parse_config_text(SAMPLE)
        again = parse_config_text(dump_document(doc))
        assert again.project == doc.project
        assert again.target_defs() == doc.target_defs()
        assert again.overrides() == doc.overrides()

    def test_dump_empty(self):
        assert parse_config_text(dump_document(ConfigDocument())).target_defs() == []
