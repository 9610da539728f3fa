"""
Compiler - scan, classify, generate, then load the source as a callable.

Two explicit steps:
- Template.generate_source(): template text -> Python source text
- load_source(): Python source text -> Renderer

Client mode stops after the first step and returns the source text.
"""

from __future__ import annotations

import builtins
import logging
import types
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, TYPE_CHECKING, Union

from .classifier import classify
from .codegen import FUNCTION_NAME, CodeGenerator, lookup_line, wrap_function
from .faults import CompileError, RenderError, SmartyFault
from .lexer import prepare_text, scan
from .options import Options
from .utils import rethrow, to_text

if TYPE_CHECKING:
    from .engine import SmartyEngine


logger = logging.getLogger("smarty.compiler")


@dataclass(frozen=True)
class IncludeRecord:
    """Generated source of an included template, for inlining."""
    source: str
    filename: str
    template: str
    dependencies: Tuple[str, ...] = ()
    verbatim: Tuple[bool, ...] = ()


class Renderer:
    """
    Compiled template.

    Calling a renderer with a data mapping returns the output text. Each call
    gets its own namespace, so renderers hold no per-render state and can be
    invoked repeatedly and concurrently.

    In non-strict mode the keys of the data mapping are visible as bare names;
    in strict mode only ``locals_name`` (default ``locals``) and ``this`` are.
    """

    def __init__(
        self,
        function: types.FunctionType,
        options: Options,
        *,
        source: str,
        dependencies: Sequence[str] = (),
        engine: Optional["SmartyEngine"] = None,
    ):
        self._function = function
        self.options = options
        self.source = source
        self.dependencies = tuple(dependencies)
        self._engine = engine

    @property
    def filename(self) -> Optional[str]:
        return self.options.filename

    def __repr__(self) -> str:
        return f"<Renderer filename={self.filename!r}>"

    def __call__(self, data: Optional[Mapping[str, Any]] = None) -> str:
        data = dict(data or {})
        namespace = self._namespace(data)
        function = types.FunctionType(
            self._function.__code__,
            namespace,
            self._function.__name__,
        )
        try:
            return function(data, self.options.escape, self._include_for(data), rethrow)
        except SmartyFault:
            raise
        except Exception as exc:
            raise RenderError(
                f"{type(exc).__name__}: {exc}",
                filename=self.filename,
                cause=exc,
            ) from exc

    def _namespace(self, data: Dict[str, Any]) -> Dict[str, Any]:
        namespace: Dict[str, Any] = {} if self.options.strict else dict(data)
        namespace.update({
            "__builtins__": builtins,
            "__text": to_text,
            "this": self.options.context,
        })
        return namespace

    def _include_for(self, data: Dict[str, Any]) -> Callable[..., str]:
        def include(path: str, include_data: Optional[Mapping[str, Any]] = None) -> str:
            merged = dict(data)
            if include_data:
                merged.update(include_data)
            return self.engine.include_file(path, self.options)(merged)

        return include

    @property
    def engine(self) -> "SmartyEngine":
        if self._engine is None:
            from .engine import get_default_engine
            return get_default_engine()
        return self._engine


def load_source(
    source: str,
    options: Optional[Options] = None,
    *,
    line_map: Sequence[Optional[int]] = (),
    dependencies: Sequence[str] = (),
    engine: Optional["SmartyEngine"] = None,
) -> Renderer:
    """
    Load generated render-function source as a Renderer.

    Raises:
        CompileError: If the source is not valid Python
    """
    options = options or Options()
    filename = options.filename or "<smarty>"
    try:
        code = compile(source, filename, "exec")
    except SyntaxError as exc:
        line = lookup_line(line_map, exc.lineno) if line_map and exc.lineno else exc.lineno
        snippet = exc.text.strip() if exc.text else None
        raise CompileError(
            f"{exc.msg} while compiling template",
            line=line,
            filename=options.filename,
            snippet=snippet,
        ) from exc

    namespace: Dict[str, Any] = {"__builtins__": builtins}
    exec(code, namespace)
    function = namespace.get(FUNCTION_NAME)
    if not isinstance(function, types.FunctionType):
        raise CompileError(
            f"source does not define a '{FUNCTION_NAME}' function",
            filename=options.filename,
        )
    return Renderer(
        function,
        options,
        source=source,
        dependencies=dependencies,
        engine=engine,
    )


class Template:
    """
    A single template being compiled.

    Args:
        text: Template source text
        options: Compilation options (mapping or Options)
        engine: Engine used to resolve and compile includes
            (defaults to the process-wide engine)
        include_stack: Resolved filenames of the templates including this
            one, outermost first
    """

    def __init__(
        self,
        text: str,
        options: Optional[Union[Mapping[str, Any], Options]] = None,
        engine: Optional["SmartyEngine"] = None,
        include_stack: Sequence[str] = (),
    ):
        self.options = Options.from_mapping(options)
        self.template_text = text
        self.engine = engine
        self.include_stack = tuple(include_stack)
        self.text = ""
        self.source = ""
        self.body = ""
        self.line_map: Tuple[Optional[int], ...] = ()
        self.verbatim: Tuple[bool, ...] = ()
        self.dependencies: list[str] = []

    def generate_source(self) -> str:
        """
        Generate the Python source of the render function.

        Raises:
            TemplateSyntaxError: On malformed directives
            ResolutionError: If a legacy include cannot be found
        """
        opts = self.options
        self.text = prepare_text(self.template_text, opts.delimiter, opts.rm_whitespace)

        tokens = scan(self.text, opts.delimiter)
        segments = classify(tokens, opts.delimiter, filename=opts.filename)
        generator = CodeGenerator(
            opts,
            include_source=self._include_source,
            include_stack=self.include_stack,
        )
        generated = generator.generate(segments)

        self.body = generated.body
        self.verbatim = generated.verbatim
        self.dependencies = list(generated.dependencies)
        self.source, self.line_map = wrap_function(generated, opts, self.text)

        if opts.debug:
            logger.debug("Generated source for %s:\n%s", opts.filename or "<string>", self.source)
        return self.source

    def compile(self) -> Union[Renderer, str]:
        """Compile to a Renderer, or to source text in client mode."""
        source = self.generate_source()
        if self.options.client:
            return source
        return load_source(
            source,
            self.options,
            line_map=self.line_map,
            dependencies=self.dependencies,
            engine=self.engine,
        )

    def _include_source(
        self,
        path: str,
        options: Options,
        include_stack: Tuple[str, ...],
    ) -> IncludeRecord:
        engine = self.engine
        if engine is None:
            from .engine import get_default_engine
            engine = get_default_engine()
        return engine.include_source(path, options, include_stack)
