"""
Directive classifier.

Folds the scanner's token stream into segments: literal text plus one
segment per directive, tagged with its semantic kind.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional

from .faults import TemplateSyntaxError
from .lexer import Token, TokenKind, markers_for


class DirectiveKind(str, Enum):
    ESCAPED = "escaped"    # <%= expr %>
    RAW = "raw"            # <%- expr %>
    CODE = "code"          # <% statements %> / <%_ statements %>
    COMMENT = "comment"    # <%# ... %>
    LITERAL = "literal"    # <%% ... %>
    INCLUDE = "include"    # <% include path %>


@dataclass(frozen=True, slots=True)
class Segment:
    """
    A classified piece of the template.

    ``kind`` is None for literal text that is emitted as-is.
    """
    kind: Optional[DirectiveKind]
    text: str
    line: int


# Legacy preprocessor include: <% include path/to/file %>
INCLUDE_DIRECTIVE = re.compile(r"^\s*include\s+(\S+)\s*$")

_LEADING_NEWLINE = re.compile(r"^(?:\r\n|\r|\n)")


def classify(
    tokens: Iterable[Token],
    delimiter: str = "%",
    filename: Optional[str] = None,
) -> Iterator[Segment]:
    """
    Classify a token stream into segments.

    Comments are dropped. ``-%>`` and ``_%>`` remove exactly one newline from
    the literal text that follows them.

    Raises:
        TemplateSyntaxError: If an opening marker is not followed by a
            closing marker (unterminated or nested directives)
    """
    markers = markers_for(delimiter)
    openers = {
        markers.code: DirectiveKind.CODE,
        markers.slurp_open: DirectiveKind.CODE,
        markers.escaped: DirectiveKind.ESCAPED,
        markers.raw: DirectiveKind.RAW,
        markers.comment: DirectiveKind.COMMENT,
    }
    closers = {markers.close, markers.trim_close, markers.slurp_close}

    stream = iter(tokens)
    truncate = False
    literal = False

    for token in stream:
        if token.kind is TokenKind.TEXT:
            text = token.value
            if truncate:
                text = _LEADING_NEWLINE.sub("", text, count=1)
                truncate = False
            if text:
                yield Segment(None, text, token.line)
            continue

        value = token.value

        if value == markers.literal_open:
            literal = True
            yield Segment(DirectiveKind.LITERAL, markers.code, token.line)
            continue

        if value == markers.literal_close:
            yield Segment(DirectiveKind.LITERAL, markers.close, token.line)
            continue

        if value in closers:
            # Closes a <%% literal, or a stray closer; both are literal text
            yield Segment(DirectiveKind.LITERAL, value, token.line)
            if literal:
                truncate = value != markers.close
                literal = False
            continue

        kind = openers[value]
        literal = False
        body = ""
        closer = next(stream, None)
        if closer is not None and closer.kind is TokenKind.TEXT:
            body = closer.value
            closer = next(stream, None)
        if closer is None or closer.value not in closers:
            raise TemplateSyntaxError(
                f'Could not find matching close tag for "{value}"',
                line=token.line,
                filename=filename,
                snippet=value + body,
            )
        truncate = closer.value != markers.close

        if kind is DirectiveKind.COMMENT:
            continue

        if kind in (DirectiveKind.CODE, DirectiveKind.RAW):
            include = INCLUDE_DIRECTIVE.match(body)
            if include:
                yield Segment(DirectiveKind.INCLUDE, include.group(1), token.line)
                continue

        yield Segment(kind, body, token.line)
