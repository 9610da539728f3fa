"""
Runtime helpers shared by generated renderers.

- escape_xml: HTML escaping for ``<%= %>`` output (MarkupSafe)
- to_text: raw ``<%- %>`` output conversion
- rethrow: rewrites render-time exceptions with template line context
"""

from typing import Any, NoReturn, Optional

from markupsafe import escape

from .faults import RenderError, SmartyFault

# Lines of template shown on each side of the failing line
CONTEXT_LINES = 3


def escape_xml(value: Any) -> str:
    """
    Escape a value for HTML/XML output.

    ``None`` renders as an empty string. Objects implementing ``__html__``
    (e.g. ``markupsafe.Markup``) are emitted as-is.
    """
    if value is None:
        return ""
    return str(escape(value))


def to_text(value: Any) -> str:
    """Convert a raw output value to text without escaping."""
    if value is None:
        return ""
    return str(value)


def format_context(lines: str, lineno: int, context: int = CONTEXT_LINES) -> str:
    """Render the template lines around ``lineno`` with a ``>>`` marker."""
    source_lines = lines.split("\n")
    start = max(lineno - context, 0)
    end = min(len(source_lines), lineno + context)
    width = len(str(end))
    excerpt = []
    for index in range(start, end):
        current = index + 1
        marker = " >> " if current == lineno else "    "
        excerpt.append(f"{marker}{current:>{width}}| {source_lines[index]}")
    return "\n".join(excerpt)


def rethrow(
    err: BaseException,
    lines: str,
    filename: Optional[str],
    lineno: int,
) -> NoReturn:
    """
    Re-raise ``err`` as a RenderError pointing at the template line.

    Faults raised by the engine itself (including errors already rewritten
    by a nested include) pass through unchanged.
    """
    if isinstance(err, SmartyFault):
        raise err

    message = (
        f"{filename or 'smarty'}:{lineno}\n"
        f"{format_context(lines, lineno)}\n\n"
        f"{type(err).__name__}: {err}"
    )
    raise RenderError(message, line=lineno, filename=filename, cause=err) from err
