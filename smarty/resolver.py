"""
Include resolver.

Locates the file behind an include name. Lookup order for relative names:

1. Relative to the including template's directory (``options.filename``)
2. Each ``options.views`` root, in order

The first candidate that exists wins. Names with a leading ``/`` resolve
against ``options.root`` (default: filesystem root).
"""

import logging
import os
from typing import TYPE_CHECKING, List

from .faults import ResolutionError
from .options import Options

if TYPE_CHECKING:
    from .loader import FileLoader


logger = logging.getLogger("smarty.resolver")

DEFAULT_EXTENSION = ".html"


def resolve_include(name: str, filename: str, is_dir: bool = False) -> str:
    """
    Get the path of an included file from the parent path.

    Args:
        name: Include name as written in the template
        filename: Parent file path (or directory when ``is_dir``)
        is_dir: Whether ``filename`` is a directory

    Returns:
        Absolute path; ``.html`` is appended when ``name`` has no extension
    """
    base = filename if is_dir else os.path.dirname(filename)
    include_path = os.path.abspath(os.path.join(base, name))
    if not os.path.splitext(name)[1]:
        include_path += DEFAULT_EXTENSION
    return include_path


class IncludeResolver:
    """
    Resolve include names using the include-search policy.

    Existence checks go through the file loader so that non-filesystem
    loaders resolve the same way.
    """

    def __init__(self, loader: "FileLoader"):
        self.loader = loader

    def get_include_path(self, path: str, options: Options) -> str:
        """
        Resolve ``path`` for a template compiled with ``options``.

        Raises:
            ResolutionError: If no candidate exists
        """
        if path.startswith("/"):
            resolved = resolve_include(path.lstrip("/"), options.root or "/", True)
            logger.debug("Resolved absolute include %r -> %s", path, resolved)
            return resolved

        searched: List[str] = []

        if options.filename:
            candidate = resolve_include(path, options.filename)
            searched.append(candidate)
            if self.loader.exists(candidate):
                logger.debug("Resolved include %r next to %s", path, options.filename)
                return candidate

        for view in options.views:
            candidate = resolve_include(path, view, True)
            searched.append(candidate)
            if self.loader.exists(candidate):
                logger.debug("Resolved include %r in view root %s", path, view)
                return candidate

        raise ResolutionError(path, searched=searched)
