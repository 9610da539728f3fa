"""
Template Engine - render façade.

Owns the file loader, the renderer cache and the include resolver, and
exposes the compile/render entry points. A process-wide default engine backs
the module-level functions in ``smarty``.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from .cache import InMemoryTemplateCache, TemplateCache
from .compiler import IncludeRecord, Renderer, Template
from .faults import ConfigurationError, TemplateSyntaxError
from .loader import FileLoader, FileSystemLoader, decode_template
from .options import DATA_OPTION_KEYS, FILE_OPTION_KEYS, Options, pick_options
from .resolver import IncludeResolver, resolve_include as _resolve_include

logger = logging.getLogger("smarty.engine")

OptionsLike = Union[Mapping[str, Any], Options, None]
RenderCallback = Callable[[Optional[BaseException], Optional[str]], Any]


@dataclass(frozen=True)
class RenderResult:
    """
    Outcome of ``render_file``: either output text or the error.

    Example:
        result = engine.render_file("/views/index.html", {"user": user})
        if result.ok:
            send(result.output)
    """
    output: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> str:
        """Return the output, raising the captured error if there is one."""
        if self.error is not None:
            raise self.error
        return self.output or ""

    @classmethod
    def success(cls, output: str) -> "RenderResult":
        return cls(output=output)

    @classmethod
    def failure(cls, error: BaseException) -> "RenderResult":
        return cls(error=error)


class SmartyEngine:
    """
    Template engine.

    Args:
        file_loader: Template source loader (default: filesystem)
        cache: Renderer cache (default: unbounded in-memory)

    Example:
        engine = SmartyEngine()
        html = engine.render("<h1><%= title %></h1>", {"title": "Hi"})
        result = engine.render_file("/views/page.html", {"user": user})
    """

    def __init__(
        self,
        file_loader: Optional[FileLoader] = None,
        cache: Optional[TemplateCache] = None,
    ):
        self.file_loader = file_loader or FileSystemLoader()
        self.cache = cache if cache is not None else InMemoryTemplateCache()
        self.resolver = IncludeResolver(self.file_loader)

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def compile(self, template: str, options: OptionsLike = None) -> Union[Renderer, str]:
        """
        Compile template text.

        Returns:
            A Renderer, or the generated source text when ``client`` is set

        Raises:
            TemplateSyntaxError: On malformed directives
            CompileError: If the generated source is not valid Python
            ResolutionError: If a legacy include cannot be found
        """
        return Template(template, options, engine=self).compile()

    def read_template(self, filename: str) -> str:
        """Load and decode a template file through the file loader."""
        return decode_template(self.file_loader.load(filename))

    def handle_cache(self, options: Options, template: Optional[str] = None) -> Renderer:
        """
        Get a renderer for ``options.filename`` or ``template``.

        Consults the cache first when ``options.cache`` is set and stores the
        freshly compiled renderer afterwards. Without ``template`` the file
        named by ``options.filename`` is read.

        Raises:
            ConfigurationError: If caching is requested without a filename,
                or there is neither template text nor a filename
        """
        key = None
        if options.cache:
            if not options.filename:
                raise ConfigurationError("cache option requires a filename", option="cache")
            key = os.path.abspath(options.filename)
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Template cache hit: %s", key)
                return cached
            logger.debug("Template cache miss: %s", key)

        if template is None:
            if not options.filename:
                raise ConfigurationError("no template text or filename provided")
            template = self.read_template(options.filename)

        renderer = self.compile(template, options)
        if isinstance(renderer, str):
            raise ConfigurationError("client mode cannot be used when rendering", option="client")

        if key is not None:
            self.cache.set(key, renderer)
        return renderer

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(
        self,
        template: Optional[str] = None,
        data: Optional[Mapping[str, Any]] = None,
        options: OptionsLike = None,
    ) -> str:
        """
        Render template text (or ``options.filename``) with ``data``.

        When ``options`` is omitted, option keys such as ``delimiter`` or
        ``strict`` are lifted out of ``data``.
        """
        data = data or {}
        if options is None:
            options = pick_options(data, DATA_OPTION_KEYS)
        opts = Options.from_mapping(options)
        return self.handle_cache(opts, template)(data)

    def render_file(
        self,
        filename: str,
        data: Optional[Mapping[str, Any]] = None,
        options: OptionsLike = None,
        callback: Optional[RenderCallback] = None,
    ) -> RenderResult:
        """
        Render a template file.

        Never raises: the outcome is returned as a RenderResult and, when
        ``callback`` is given, delivered as ``callback(error, output)``.
        """
        data = data or {}
        try:
            if options is None:
                options = pick_options(data, FILE_OPTION_KEYS)
            opts = Options.from_mapping(options, filename=filename)
            result = RenderResult.success(self.handle_cache(opts)(data))
        except Exception as exc:
            logger.warning("Failed to render %s: %s", filename, exc)
            result = RenderResult.failure(exc)

        if callback is not None:
            callback(result.error, result.output)
        return result

    async def render_file_async(
        self,
        filename: str,
        data: Optional[Mapping[str, Any]] = None,
        options: OptionsLike = None,
    ) -> RenderResult:
        """Render a template file in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            functools.partial(self.render_file, filename, data, options),
        )

    # ------------------------------------------------------------------
    # Includes
    # ------------------------------------------------------------------

    def resolve_include(self, name: str, filename: str, is_dir: bool = False) -> str:
        return _resolve_include(name, filename, is_dir)

    def include_file(self, path: str, options: Options) -> Renderer:
        """Resolve ``path`` and get its renderer for a template-side include."""
        include_path = self.resolver.get_include_path(path, options)
        opts = options.replace(filename=include_path, client=False)
        return self.handle_cache(opts)

    def include_source(
        self,
        path: str,
        options: Options,
        include_stack: Sequence[str] = (),
    ) -> IncludeRecord:
        """
        Resolve ``path`` and generate its body for a legacy include.

        ``include_stack`` holds the templates whose legacy includes led here,
        outermost first; the template compiled with ``options`` is appended.

        Raises:
            TemplateSyntaxError: If ``path`` is already being inlined
        """
        include_path = self.resolver.get_include_path(path, options)
        chain = tuple(include_stack)
        if options.filename:
            chain += (os.path.abspath(options.filename),)
        if os.path.abspath(include_path) in chain:
            cycle = " -> ".join(chain + (os.path.abspath(include_path),))
            raise TemplateSyntaxError(
                f"Include cycle detected: {cycle}",
                filename=options.filename,
            )

        text = self.read_template(include_path)
        templ = Template(
            text,
            options.replace(filename=include_path),
            engine=self,
            include_stack=chain,
        )
        templ.generate_source()
        return IncludeRecord(
            templ.body,
            include_path,
            templ.text,
            dependencies=tuple(templ.dependencies),
            verbatim=templ.verbatim,
        )

    def clear_cache(self) -> None:
        """Drop every cached renderer."""
        self.cache.reset()


# ============================================================================
# Default engine
# ============================================================================

_default_engine: Optional[SmartyEngine] = None


def get_default_engine() -> SmartyEngine:
    """Get or create the process-wide engine."""
    global _default_engine
    if _default_engine is None:
        _default_engine = SmartyEngine()
    return _default_engine


def set_default_engine(engine: Optional[SmartyEngine]) -> None:
    """Replace the process-wide engine (None recreates it lazily)."""
    global _default_engine
    _default_engine = engine


def compile(template: str, options: OptionsLike = None) -> Union[Renderer, str]:
    """Compile template text with the default engine."""
    return get_default_engine().compile(template, options)


def render(
    template: Optional[str] = None,
    data: Optional[Mapping[str, Any]] = None,
    options: OptionsLike = None,
) -> str:
    """Render template text with the default engine."""
    return get_default_engine().render(template, data, options)


def render_file(
    filename: str,
    data: Optional[Mapping[str, Any]] = None,
    options: OptionsLike = None,
    callback: Optional[RenderCallback] = None,
) -> RenderResult:
    """Render a template file with the default engine."""
    return get_default_engine().render_file(filename, data, options, callback)


async def render_file_async(
    filename: str,
    data: Optional[Mapping[str, Any]] = None,
    options: OptionsLike = None,
) -> RenderResult:
    return await get_default_engine().render_file_async(filename, data, options)


def resolve_include(name: str, filename: str, is_dir: bool = False) -> str:
    return _resolve_include(name, filename, is_dir)


def clear_cache() -> None:
    """Reset the default engine's cache."""
    get_default_engine().clear_cache()
