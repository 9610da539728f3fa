"""
Code generator.

Folds classified segments into the Python source of a single render
function. Output accumulates into a list buffer in source order and is
joined at the end.

Code directives are spliced verbatim. Because Python blocks are delimited
by indentation, the generator tracks block depth itself:

- a statement ending with ``:`` opens a block
- ``elif``/``else``/``except``/``finally`` continue the current block
- ``end`` (or ``endfor``, ``endif``, ...) closes it

Example::

    <% for user in users: %>
      <li><%= user.name %></li>
    <% end %>
"""

import ast
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple, TYPE_CHECKING

from .classifier import DirectiveKind, Segment
from .faults import TemplateSyntaxError
from .options import Options

if TYPE_CHECKING:
    from .compiler import IncludeRecord


FUNCTION_NAME = "template"
INDENT_STEP = 4

BLOCK_CONTINUATIONS = ("elif", "else", "except", "finally")
END_STATEMENT = re.compile(r"^end(?:for|if|while|with|try|def)?$")

IncludeSource = Callable[[str, Options, Tuple[str, ...]], "IncludeRecord"]


def lookup_line(line_map: Sequence[Optional[int]], lineno: int) -> Optional[int]:
    """Map a 1-based generated line number back to its template line."""
    index = min(lineno, len(line_map)) - 1
    while index >= 0:
        if line_map[index] is not None:
            return line_map[index]
        index -= 1
    return None


class CodeBuilder:
    """
    Build source code conveniently.

    Every generated line remembers the template line it came from so that
    compile errors can be reported against the template, and whether it is
    a continuation line that must never be re-indented (it may sit inside
    a multi-line string literal).
    """

    def __init__(self, indent: int = 0):
        self.lines: List[str] = []
        self.line_map: List[Optional[int]] = []
        self.verbatim: List[bool] = []
        self.indent_level = indent

    def add_line(self, line: str, source_line: Optional[int] = None) -> None:
        """
        Add a line of source, indented to the current level.

        Continuation lines of a multi-line statement are kept verbatim.
        """
        first, *rest = line.split("\n")
        self.lines.append(" " * self.indent_level + first)
        self.line_map.append(source_line)
        self.verbatim.append(False)
        for extra in rest:
            self.lines.append(extra)
            self.line_map.append(source_line)
            self.verbatim.append(True)

    def extend(
        self,
        lines: Sequence[str],
        line_map: Sequence[Optional[int]],
        verbatim: Sequence[bool] = (),
    ) -> None:
        """Append pre-generated lines at the current indentation."""
        prefix = " " * self.indent_level
        flags = tuple(verbatim) or (False,) * len(lines)
        for line, source_line, keep in zip(lines, line_map, flags):
            self.lines.append(line if keep or not line else prefix + line)
            self.line_map.append(source_line)
            self.verbatim.append(keep)

    def indent(self) -> None:
        self.indent_level += INDENT_STEP

    def dedent(self) -> None:
        self.indent_level -= INDENT_STEP

    def line_for(self, lineno: int) -> Optional[int]:
        """Template line for a 1-based generated line number."""
        return lookup_line(self.line_map, lineno)

    def get_source(self) -> str:
        return "\n".join(self.lines) + "\n"


@dataclass(frozen=True)
class GeneratedCode:
    """Function body produced from a template, without the def wrapper."""
    lines: Tuple[str, ...]
    line_map: Tuple[Optional[int], ...]
    dependencies: Tuple[str, ...] = ()
    verbatim: Tuple[bool, ...] = ()

    @property
    def body(self) -> str:
        return "\n".join(self.lines)


@dataclass
class _Block:
    line: int
    empty: bool = True


@dataclass(frozen=True)
class _Statement:
    offset: int     # line offset within the directive
    text: str       # statement text, continuation lines included
    head: str       # stripped text without trailing comment


def split_statements(code: str) -> List[_Statement]:
    """
    Split directive code into logical statements.

    Physical lines are joined while brackets or a triple-quoted string are
    open, or a line ends with a backslash. String literals and comments are
    skipped when counting brackets.
    """
    statements: List[_Statement] = []
    pending: List[str] = []
    start = 0
    depth = 0
    quote: Optional[str] = None

    for offset, line in enumerate(code.split("\n")):
        if not pending:
            if not line.strip():
                continue
            start = offset
            line = line.lstrip()
        pending.append(line)
        depth, comment_at, quote = _scan_brackets(line, depth, quote)
        if depth > 0 or quote or line.rstrip().endswith("\\"):
            continue
        text = "\n".join(pending)
        last = pending[-1] if comment_at is None else pending[-1][:comment_at]
        head = "\n".join(pending[:-1] + [last]).strip()
        if head:
            statements.append(_Statement(start, text.rstrip(), head))
        pending = []

    if pending:
        text = "\n".join(pending)
        statements.append(_Statement(start, text.rstrip(), text.strip()))
    return statements


def _scan_brackets(
    line: str,
    depth: int,
    quote: Optional[str] = None,
) -> Tuple[int, Optional[int], Optional[str]]:
    """
    Scan one physical line.

    Returns the bracket depth after ``line``, where a comment starts, and
    the string delimiter still open at the end of the line (only triple
    quotes, or a single quote continued by a backslash, stay open).
    """
    index = 0
    while index < len(line):
        char = line[index]
        if quote:
            if char == "\\":
                index += 2
                continue
            if line.startswith(quote, index):
                index += len(quote)
                quote = None
                continue
        elif char in "'\"":
            triple = line[index:index + 3]
            quote = triple if triple in ('"""', "'''") else char
            index += len(quote)
            continue
        elif char == "#":
            return depth, index, None
        elif char in "([{":
            depth += 1
        elif char in ")]}":
            depth = max(depth - 1, 0)
        index += 1

    if quote is not None and len(quote) == 1 and not line.endswith("\\"):
        quote = None
    return depth, None, quote


def has_comment(expression: str) -> bool:
    """Whether ``expression`` contains a ``#`` comment outside strings."""
    depth = 0
    quote = None
    for line in expression.split("\n"):
        depth, comment_at, quote = _scan_brackets(line, depth, quote)
        if comment_at is not None:
            return True
    return False


# Nodes opening their own scope; names bound inside them stay local to it
_NESTED_SCOPES = (
    ast.Lambda, ast.ListComp, ast.SetComp, ast.DictComp, ast.GeneratorExp,
)


def assigned_names(body: str) -> Set[str]:
    """
    Names bound at the top level of a generated function body.

    Returns an empty set when ``body`` does not parse; the real compile
    reports the error against the template.
    """
    try:
        tree = ast.parse(body)
    except SyntaxError:
        return set()

    names: Set[str] = set()
    stack: List[ast.AST] = list(tree.body)
    while stack:
        node = stack.pop()
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            names.add(node.name)
            continue
        if isinstance(node, _NESTED_SCOPES):
            continue
        if isinstance(node, ast.Name) and isinstance(node.ctx, (ast.Store, ast.Del)):
            names.add(node.id)
        elif isinstance(node, (ast.Import, ast.ImportFrom)):
            for alias in node.names:
                names.add((alias.asname or alias.name).split(".")[0])
        elif isinstance(node, (ast.ExceptHandler, ast.MatchAs, ast.MatchStar)) and node.name:
            names.add(node.name)
        elif isinstance(node, ast.MatchMapping) and node.rest:
            names.add(node.rest)
        stack.extend(ast.iter_child_nodes(node))
    return names


class CodeGenerator:
    """
    Generate the body of a render function from classified segments.

    Args:
        options: Compilation options
        include_source: Callable resolving a legacy ``<% include path %>``
            directive to an IncludeRecord whose body is inlined. It receives
            the include path, the options and ``include_stack``.
        include_stack: Resolved filenames of the templates being generated,
            outermost first, used to reject include cycles
    """

    def __init__(
        self,
        options: Options,
        include_source: Optional[IncludeSource] = None,
        include_stack: Sequence[str] = (),
    ):
        self.options = options
        self.include_source = include_source
        self.include_stack = tuple(include_stack)
        self.dependencies: List[str] = []
        self._blocks: List[_Block] = []

    def generate(self, segments: Iterable[Segment]) -> GeneratedCode:
        builder = CodeBuilder()
        for segment in segments:
            self._emit(builder, segment)

        if self._blocks:
            opened = self._blocks[-1].line
            raise TemplateSyntaxError(
                "Block is never closed; add <% end %>",
                line=opened,
                filename=self.options.filename,
            )

        return GeneratedCode(
            lines=tuple(builder.lines),
            line_map=tuple(builder.line_map),
            dependencies=tuple(self.dependencies),
            verbatim=tuple(builder.verbatim),
        )

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def _add(self, builder: CodeBuilder, line: str, source_line: Optional[int]) -> None:
        if self._blocks:
            self._blocks[-1].empty = False
        builder.add_line(line, source_line)

    def _mark_line(self, builder: CodeBuilder, line: int) -> None:
        if self.options.compile_debug:
            self._add(builder, f"__line = {line}", line)

    def _emit(self, builder: CodeBuilder, segment: Segment) -> None:
        kind = segment.kind

        if kind is None or kind is DirectiveKind.LITERAL:
            self._add(builder, f"__append({segment.text!r})", segment.line)

        elif kind is DirectiveKind.ESCAPED:
            self._mark_line(builder, segment.line)
            expr = self._expression(segment)
            self._add(builder, f"__append(escape_fn({expr}))", segment.line)

        elif kind is DirectiveKind.RAW:
            self._mark_line(builder, segment.line)
            expr = self._expression(segment)
            self._add(builder, f"__append(__text({expr}))", segment.line)

        elif kind is DirectiveKind.CODE:
            self._emit_code(builder, segment)

        elif kind is DirectiveKind.INCLUDE:
            self._emit_include(builder, segment)

    def _expression(self, segment: Segment) -> str:
        expr = segment.text.strip().rstrip(";").rstrip()
        if not expr:
            raise TemplateSyntaxError(
                "Empty output directive",
                line=segment.line,
                filename=self.options.filename,
            )
        if has_comment(expr):
            expr += "\n"
        return expr

    def _emit_code(self, builder: CodeBuilder, segment: Segment) -> None:
        for statement in split_statements(segment.text):
            line = segment.line + statement.offset
            head = statement.head

            if END_STATEMENT.match(head):
                self._close_block(builder, line)
                continue

            keyword = re.match(r"\w+", head)
            if keyword and keyword.group(0) in BLOCK_CONTINUATIONS and head.endswith(":"):
                if not self._blocks:
                    raise TemplateSyntaxError(
                        f"'{keyword.group(0)}' outside of a block",
                        line=line,
                        filename=self.options.filename,
                    )
                self._close_block(builder, line)
                self._add(builder, statement.text, line)
                self._open_block(builder, line)
                continue

            self._mark_line(builder, line)
            self._add(builder, statement.text, line)
            if head.endswith(":"):
                self._open_block(builder, line)

    def _open_block(self, builder: CodeBuilder, line: int) -> None:
        builder.indent()
        self._blocks.append(_Block(line))
        self._mark_line(builder, line)

    def _close_block(self, builder: CodeBuilder, line: int) -> None:
        if not self._blocks:
            raise TemplateSyntaxError(
                "'end' without an open block",
                line=line,
                filename=self.options.filename,
            )
        block = self._blocks.pop()
        if block.empty:
            builder.add_line("pass", line)
        builder.dedent()

    def _emit_include(self, builder: CodeBuilder, segment: Segment) -> None:
        if self.include_source is None:
            raise TemplateSyntaxError(
                "include directive is not available here",
                line=segment.line,
                filename=self.options.filename,
            )
        record = self.include_source(segment.text, self.options, self.include_stack)
        self.dependencies.append(record.filename)
        self.dependencies.extend(record.dependencies)

        lines = record.source.split("\n") if record.source else []
        line_map = [segment.line] * len(lines)

        if not self.options.compile_debug:
            if lines:
                if self._blocks:
                    self._blocks[-1].empty = False
                builder.extend(lines, line_map, record.verbatim)
            return

        self._add(builder, "__include_stack.append((__line, __lines, __filename))", segment.line)
        self._add(
            builder,
            f"__line, __lines, __filename = 1, {record.template!r}, {record.filename!r}",
            segment.line,
        )
        self._add(builder, "try:", segment.line)
        builder.indent()
        if lines:
            builder.extend(lines, line_map, record.verbatim)
        else:
            builder.add_line("pass", segment.line)
        builder.dedent()
        self._add(builder, "except Exception as __err:", segment.line)
        builder.indent()
        builder.add_line("rethrow(__err, __lines, __filename, __line)", segment.line)
        builder.dedent()
        self._add(builder, "__line, __lines, __filename = __include_stack.pop()", segment.line)


def wrap_function(
    code: GeneratedCode,
    options: Options,
    template_text: str,
) -> Tuple[str, Tuple[Optional[int], ...]]:
    """
    Wrap a generated body into the complete render function source.

    The function signature is ``template(<locals_name>, escape_fn, include,
    rethrow)``. Returns the source and its generated-to-template line map.

    Without ``strict`` the names a template binds are declared ``global`` so
    that they resolve in the per-call namespace holding the data keys, and
    ``<% count = count + 1 %>`` reads the bound value before rebinding it.
    """
    builder = CodeBuilder()
    builder.add_line(f"def {FUNCTION_NAME}({options.locals_name}, escape_fn, include, rethrow):")
    builder.indent()
    if not options.strict:
        names = _global_names(code, options)
        if names:
            builder.add_line(f"global {', '.join(names)}")
    builder.add_line("__output = []")
    builder.add_line("__append = __output.append")

    if options.compile_debug:
        builder.add_line("__line = 1")
        builder.add_line(f"__lines = {template_text!r}")
        builder.add_line(f"__filename = {options.filename!r}")
        builder.add_line("__include_stack = []")
        builder.add_line("try:")
        builder.indent()
        if code.lines:
            builder.extend(code.lines, code.line_map, code.verbatim)
        else:
            builder.add_line("pass")
        builder.dedent()
        builder.add_line("except Exception as __err:")
        builder.indent()
        builder.add_line("rethrow(__err, __lines, __filename, __line)")
        builder.dedent()
    else:
        builder.extend(code.lines, code.line_map, code.verbatim)

    builder.add_line('return "".join(__output)')
    return builder.get_source(), tuple(builder.line_map)


def _global_names(code: GeneratedCode, options: Options) -> List[str]:
    reserved = {options.locals_name, "escape_fn", "include", "rethrow"}
    return sorted(
        name for name in assigned_names(code.body)
        if not name.startswith("__") and name not in reserved
    )
