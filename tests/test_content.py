"""Tests for content normalization and line-number annotations."""

from membank.storage.content import (
    add_line_numbers,
    has_line_numbers,
    line_number_prefix,
    normalize_for_comparison,
    normalize_line_endings,
    parse_front_matter,
    strip_line_numbers,
)


class TestNormalize:
    def test_crlf_and_cr(self):
        assert normalize_line_endings("a\r\nb\rc\n") == "a\nb\nc\n"

    def test_empty(self):
        assert normalize_line_endings("") == ""
        assert normalize_for_comparison("") == ""

    def test_trims_single_trailing_newline(self):
        assert normalize_for_comparison("a\nb\n") == "a\nb"

    def test_keeps_intentional_blank_lines(self):
        assert normalize_for_comparison("a\n\n\n") == "a\n\n"

    def test_keep_trailing_newline(self):
        assert normalize_for_comparison("a\r\n", trim_trailing_newline=False) == "a\n"

    def test_inner_whitespace_significant(self):
        assert normalize_for_comparison("a  b") != normalize_for_comparison("a b")


class TestLineNumbers:
    def test_add(self):
        assert add_line_numbers("a\nb") == "1|a\n2|b"

    def test_add_pads_to_total(self):
        assert add_line_numbers("x\ny", start=9, total=120) == "  9|x\n 10|y"

    def test_strip(self):
        assert strip_line_numbers(" 9|x\n10|y") == "x\ny"

    def test_strip_only_first_prefix(self):
        assert strip_line_numbers("1|a|b") == "a|b"

    def test_detects_annotated(self):
        assert has_line_numbers("1|a\n2|b\n3|c")
        assert has_line_numbers(" 9|a\n10|b\n")

    def test_single_line_not_detected(self):
        assert not has_line_numbers("1|a")

    def test_non_consecutive_not_detected(self):
        assert not has_line_numbers("1|a\n3|b")

    def test_markdown_table_not_detected(self):
        assert not has_line_numbers("| a | b |\n|---|---|\n| 1 | 2 |")

    def test_prefix(self):
        assert line_number_prefix("  12|text") == 12
        assert line_number_prefix("text") is None


class TestFrontMatter:
    def test_parses_mapping(self):
        content = "---\ntitle: Notes\ntags: [a, b]\n---\n# Body\n"
        assert parse_front_matter(content) == {"title": "Notes", "tags": ["a", "b"]}

    def test_crlf(self):
        assert parse_front_matter("---\r\nk: v\r\n---\r\nbody") == {"k": "v"}

    def test_absent(self):
        assert parse_front_matter("# Just markdown\n") == {}

    def test_malformed(self):
        assert parse_front_matter("---\nkey: [unclosed\n---\n") == {}

    def test_non_mapping(self):
        assert parse_front_matter("---\n- a\n- b\n---\n") == {}

    def test_body_rules_not_front_matter(self):
        content = "---\ntitle: A\n---\nintro\n---\nlater: section\n"
        assert parse_front_matter(content) == {"title": "A"}

    def test_rule_not_at_start_ignored(self):
        assert parse_front_matter("intro\n---\nk: v\n---\n") == {}
