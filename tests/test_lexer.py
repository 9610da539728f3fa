"""
Tests for the delimiter scanner.
"""

import pytest

from smarty.faults import ConfigurationError
from smarty.lexer import (
    Token,
    TokenKind,
    build_pattern,
    markers_for,
    prepare_text,
    scan,
)


def values(text, delimiter="%"):
    return [token.value for token in scan(text, delimiter)]


class TestBuildPattern:
    def test_longer_markers_win(self):
        pattern = build_pattern("%")
        assert pattern.findall("<%= a %><%- b -%><%_ c _%><%# d %>") == [
            "<%=", "%>", "<%-", "-%>", "<%_", "_%>", "<%#", "%>",
        ]

    def test_literal_markers(self):
        assert build_pattern("%").findall("<%% x %%>") == ["<%%", "%%>"]

    def test_pattern_is_memoised(self):
        assert build_pattern("?") is build_pattern("?")

    def test_custom_delimiter_is_escaped(self):
        pattern = build_pattern("?")
        assert pattern.findall("<?= a ?> <% b %>") == ["<?=", "?>"]

    @pytest.mark.parametrize("delimiter", ["", "%%", None])
    def test_invalid_delimiter(self, delimiter):
        with pytest.raises(ConfigurationError):
            build_pattern(delimiter)

    def test_markers_for(self):
        markers = markers_for("$")
        assert markers.escaped == "<$="
        assert markers.trim_close == "-$>"
        assert len(markers.ordered()) == 10


class TestScan:
    def test_text_and_markers(self):
        tokens = list(scan("a<%= b %>c"))
        assert tokens == [
            Token(TokenKind.TEXT, "a", 1),
            Token(TokenKind.MARKER, "<%=", 1),
            Token(TokenKind.TEXT, " b ", 1),
            Token(TokenKind.MARKER, "%>", 1),
            Token(TokenKind.TEXT, "c", 1),
        ]

    def test_plain_text_is_single_token(self):
        assert values("100 % sure > maybe") == ["100 % sure > maybe"]

    def test_empty_template(self):
        assert list(scan("")) == []

    def test_line_numbers(self):
        tokens = list(scan("one\ntwo\n<% three %>\n<%= four %>"))
        markers = [t for t in tokens if t.kind is TokenKind.MARKER]
        assert [t.line for t in markers] == [3, 3, 4, 4]

    def test_is_lazy(self):
        tokens = scan("<% a %>")
        assert next(tokens).value == "<%"

    def test_invalid_delimiter_fails_eagerly(self):
        with pytest.raises(ConfigurationError):
            scan("x", "ab")

    def test_custom_delimiter(self):
        assert values("<$= x $>", "$") == ["<$=", " x ", "$>"]


class TestPrepareText:
    def test_untouched_by_default(self):
        text = "  a  \n\n  b  "
        assert prepare_text(text) == text

    def test_rm_whitespace(self):
        assert prepare_text("  a  \n  b", rm_whitespace=True) == "a\nb"

    def test_rm_whitespace_drops_blank_lines(self):
        assert prepare_text("  a  \r\n\r\n  b", rm_whitespace=True) == "a\nb"

    def test_slurp_markers(self):
        assert prepare_text("x \t<%_ y _%> \tz") == "x<%_ y _%>z"

    def test_slurp_keeps_newlines(self):
        assert prepare_text("x\n  <%_ y _%>  \nz") == "x\n<%_ y _%>\nz"
