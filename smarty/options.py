"""
Compilation options.

Options are an immutable record built once per compile/render call by
merging an explicit option mapping with the defaults. Copies are made with
``Options.replace`` whenever a derived set is needed (e.g. for includes).

Both the snake_case names and the camelCase spellings
(``localsName``, ``compileDebug``, ``rmWhitespace``) are accepted.
"""

from __future__ import annotations

import keyword
import warnings
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Set, Tuple

from .faults import ConfigurationError
from .utils import escape_xml


DEFAULT_DELIMITER = "%"
DEFAULT_LOCALS_NAME = "locals"

# Option keys that may be passed inside the data mapping of render()
DATA_OPTION_KEYS: Tuple[str, ...] = (
    "delimiter", "scope", "context", "debug", "compileDebug", "compile_debug",
    "client", "rmWhitespace", "rm_whitespace", "strict", "filename",
)

# render_file() additionally honours ``cache`` from the data mapping
FILE_OPTION_KEYS: Tuple[str, ...] = DATA_OPTION_KEYS + ("cache",)

_ALIASES = {
    "localsName": "locals_name",
    "compileDebug": "compile_debug",
    "rmWhitespace": "rm_whitespace",
    "escapeFunction": "escape",
}

# Fields where an explicit None is meaningful
_NULLABLE = {"context", "filename", "root"}

_deprecation_warned: Set[str] = set()


def warn_deprecated_option(name: str, replacement: str) -> None:
    """Emit a DeprecationWarning for ``name`` once per process."""
    if name in _deprecation_warned:
        return
    _deprecation_warned.add(name)
    warnings.warn(
        f"The '{name}' option is deprecated and will be removed; use '{replacement}' instead",
        DeprecationWarning,
        stacklevel=4,
    )


def reset_deprecation_warnings() -> None:
    """Forget which deprecation notices were already issued."""
    _deprecation_warned.clear()


def pick_options(data: Mapping[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
    """Lift recognised option keys out of a render data mapping."""
    return {key: data[key] for key in keys if key in data}


@dataclass(frozen=True)
class Options:
    """
    Compilation and render options.

    Attributes:
        delimiter: Single character used in the markers (default ``%``)
        context: Value bound as ``this`` while rendering
        locals_name: Name under which the data context is exposed
        debug: Log generated source at DEBUG level
        compile_debug: Keep template line annotations for readable errors
        client: Return generated source text instead of a callable
        rm_whitespace: Strip leading/trailing whitespace of every line
        strict: Expose the data context only through ``locals_name``
        filename: Originating template path
        views: Ordered include search roots
        cache: Cache compiled renderers by filename
        root: Base directory for absolute-style includes
        escape: Escape function for ``<%= %>`` output
    """
    delimiter: str = DEFAULT_DELIMITER
    context: Any = None
    locals_name: str = DEFAULT_LOCALS_NAME
    debug: bool = False
    compile_debug: bool = True
    client: bool = False
    rm_whitespace: bool = False
    strict: bool = False
    filename: Optional[str] = None
    views: Tuple[str, ...] = ()
    cache: bool = False
    root: Optional[str] = None
    escape: Callable[[Any], str] = escape_xml

    def __post_init__(self) -> None:
        if not isinstance(self.delimiter, str) or len(self.delimiter) != 1:
            raise ConfigurationError(
                f"delimiter must be a single character, got {self.delimiter!r}",
                option="delimiter",
            )
        if (
            not isinstance(self.locals_name, str)
            or not self.locals_name.isidentifier()
            or keyword.iskeyword(self.locals_name)
        ):
            raise ConfigurationError(
                f"localsName must be a valid identifier, got {self.locals_name!r}",
                option="locals_name",
            )
        if not callable(self.escape):
            raise ConfigurationError("escape must be callable", option="escape")
        if isinstance(self.views, str):
            object.__setattr__(self, "views", (self.views,))
        else:
            object.__setattr__(self, "views", tuple(self.views))

    @classmethod
    def from_mapping(
        cls,
        mapping: Optional[Mapping[str, Any] | "Options"] = None,
        **overrides: Any,
    ) -> "Options":
        """
        Build Options from a (possibly camelCase) mapping.

        Unknown keys are ignored. ``scope`` is a deprecated alias of
        ``context``; an explicit ``context`` wins.
        """
        if isinstance(mapping, Options):
            return mapping.replace(**overrides) if overrides else mapping

        raw = dict(mapping or {})
        raw.update(overrides)

        values: Dict[str, Any] = {}
        scope = raw.pop("scope", None)
        if scope is not None:
            warn_deprecated_option("scope", "context")

        for key, value in raw.items():
            name = _ALIASES.get(key, key)
            if name not in _FIELD_NAMES:
                continue
            if value is None and name not in _NULLABLE:
                continue
            values[name] = value

        if scope is not None and values.get("context") is None:
            values["context"] = scope

        return cls(**values)

    def replace(self, **changes: Any) -> "Options":
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


_FIELD_NAMES = frozenset(f.name for f in fields(Options))
