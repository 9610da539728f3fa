"""
Smarty - embedded template compiler.

Templates mix literal text with delimiter-marked directives holding Python
code. A template is compiled once into a renderer callable, which produces
output text from a data context.

Directives:
- ``<%= expr %>``: escaped output
- ``<%- expr %>``: raw output
- ``<% code %>``: control flow (blocks close with ``<% end %>``)
- ``<%# comment %>``: dropped
- ``<%% ... %>``: literal ``<%``

Example:
    import smarty

    html = smarty.render(
        "<% for user in users: %><li><%= user %></li><% end %>",
        {"users": ["ada", "bob"]},
    )

    result = smarty.render_file("/views/index.html", {"title": "Home"})
    if result.ok:
        print(result.output)
"""

__version__ = "1.0.0"

from .cache import InMemoryTemplateCache, LRUTemplateCache, TemplateCache
from .compiler import IncludeRecord, Renderer, Template, load_source
from .engine import (
    RenderResult,
    SmartyEngine,
    clear_cache,
    compile,
    get_default_engine,
    render,
    render_file,
    render_file_async,
    resolve_include,
    set_default_engine,
)
from .faults import (
    CompileError,
    ConfigurationError,
    Fault,
    FaultDomain,
    RenderError,
    ResolutionError,
    Severity,
    SmartyFault,
    TemplateSyntaxError,
)
from .loader import DictLoader, FileLoader, FileSystemLoader, FunctionLoader
from .options import Options
from .utils import escape_xml

__all__ = [
    # Façade
    "compile",
    "render",
    "render_file",
    "render_file_async",
    "resolve_include",
    "clear_cache",
    "get_default_engine",
    "set_default_engine",
    "SmartyEngine",
    "RenderResult",
    # Compiler
    "Template",
    "Renderer",
    "IncludeRecord",
    "load_source",
    "Options",
    # Loaders & cache
    "FileLoader",
    "FileSystemLoader",
    "DictLoader",
    "FunctionLoader",
    "TemplateCache",
    "InMemoryTemplateCache",
    "LRUTemplateCache",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    "SmartyFault",
    "TemplateSyntaxError",
    "CompileError",
    "ResolutionError",
    "ConfigurationError",
    "RenderError",
    # Helpers
    "escape_xml",
]
