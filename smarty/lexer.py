"""
Delimiter scanner.

Splits template text into alternating literal-text and marker tokens using
the fixed marker grammar::

    <%%  %%>  <%=  <%-  <%_  <%#  <%  %>  -%>  _%>

where ``%`` is replaced by the configured delimiter character. Matching is
leftmost; at any position the longer markers are tried before ``<%`` and
``%>`` so they are never shadowed.
"""

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Iterator, Tuple

from .faults import ConfigurationError


class TokenKind(str, Enum):
    TEXT = "text"
    MARKER = "marker"


@dataclass(frozen=True, slots=True)
class Token:
    """A literal text span or a marker, with the line it starts on."""
    kind: TokenKind
    value: str
    line: int


@dataclass(frozen=True)
class Markers:
    """The concrete marker strings for one delimiter character."""
    literal_open: str
    literal_close: str
    escaped: str
    raw: str
    slurp_open: str
    comment: str
    code: str
    close: str
    trim_close: str
    slurp_close: str

    def ordered(self) -> Tuple[str, ...]:
        return (
            self.literal_open,
            self.literal_close,
            self.escaped,
            self.raw,
            self.slurp_open,
            self.comment,
            self.code,
            self.close,
            self.trim_close,
            self.slurp_close,
        )


def _check_delimiter(delimiter: str) -> None:
    if not isinstance(delimiter, str) or len(delimiter) != 1:
        raise ConfigurationError(
            f"delimiter must be a single character, got {delimiter!r}",
            option="delimiter",
        )


@lru_cache(maxsize=32)
def markers_for(delimiter: str = "%") -> Markers:
    _check_delimiter(delimiter)
    d = delimiter
    return Markers(
        literal_open=f"<{d}{d}",
        literal_close=f"{d}{d}>",
        escaped=f"<{d}=",
        raw=f"<{d}-",
        slurp_open=f"<{d}_",
        comment=f"<{d}#",
        code=f"<{d}",
        close=f"{d}>",
        trim_close=f"-{d}>",
        slurp_close=f"_{d}>",
    )


@lru_cache(maxsize=32)
def build_pattern(delimiter: str = "%") -> "re.Pattern[str]":
    """Compile the marker alternation for ``delimiter``."""
    markers = markers_for(delimiter)
    return re.compile("(" + "|".join(re.escape(m) for m in markers.ordered()) + ")")


def prepare_text(text: str, delimiter: str = "%", rm_whitespace: bool = False) -> str:
    """
    Apply whitespace preprocessing before scanning.

    With ``rm_whitespace`` runs of line breaks collapse into a single ``\\n``
    (so blank lines disappear) and every line is stripped of leading and
    trailing whitespace. Spaces and tabs before ``<%_`` and after ``_%>`` are
    always slurped.
    """
    markers = markers_for(delimiter)
    if rm_whitespace:
        text = re.sub(r"[\r\n]+", "\n", text)
        text = re.sub(r"^\s+|\s+$", "", text, flags=re.MULTILINE)
    text = re.sub(r"[ \t]*" + re.escape(markers.slurp_open), markers.slurp_open, text)
    text = re.sub(re.escape(markers.slurp_close) + r"[ \t]*", markers.slurp_close, text)
    return text


def scan(text: str, delimiter: str = "%") -> Iterator[Token]:
    """
    Tokenize ``text`` lazily.

    Raises:
        ConfigurationError: If ``delimiter`` is not a single character
    """
    pattern = build_pattern(delimiter)
    return _iter_tokens(pattern, text)


def _iter_tokens(pattern: "re.Pattern[str]", text: str) -> Iterator[Token]:
    line = 1
    pos = 0
    for match in pattern.finditer(text):
        start = match.start()
        if start > pos:
            chunk = text[pos:start]
            yield Token(TokenKind.TEXT, chunk, line)
            line += chunk.count("\n")
        yield Token(TokenKind.MARKER, match.group(0), line)
        pos = match.end()
    if pos < len(text):
        yield Token(TokenKind.TEXT, text[pos:], line)
