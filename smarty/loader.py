"""
File loaders - pluggable template source access.

Supports:
- FileSystemLoader: reads the real filesystem (default)
- DictLoader: serves templates from an in-memory mapping
- FunctionLoader: wraps a plain ``load(path)`` callable

Loaders return raw bytes (or text); decoding and BOM stripping happen in
``decode_template``.
"""

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Union

from .faults import ResolutionError

BOM = "\ufeff"

Source = Union[bytes, str]


def decode_template(data: Source) -> str:
    """Decode loader output as UTF-8, dropping a leading byte-order mark."""
    if isinstance(data, bytes):
        return data.decode("utf-8-sig")
    return data[1:] if data.startswith(BOM) else data


class FileLoader(ABC):
    """Abstract template file loader."""

    @abstractmethod
    def load(self, path: str) -> Source:
        """
        Load template source.

        Raises:
            ResolutionError: If the file does not exist
        """
        ...

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Check whether ``path`` can be loaded."""
        ...

    def list_templates(self) -> List[str]:
        """List known template paths (optional)."""
        raise NotImplementedError


class FileSystemLoader(FileLoader):
    """
    Loader backed by the local filesystem.

    Args:
        search_root: When set, only files under this directory may be read
    """

    def __init__(self, search_root: Optional[str] = None):
        self.search_root = Path(search_root).resolve() if search_root else None

    def load(self, path: str) -> bytes:
        file_path = self._check(path)
        try:
            return file_path.read_bytes()
        except FileNotFoundError as exc:
            raise ResolutionError(path, reason=f"Template file not found: {path}") from exc

    def exists(self, path: str) -> bool:
        try:
            return self._check(path).is_file()
        except ResolutionError:
            return False

    def _check(self, path: str) -> Path:
        file_path = Path(path)
        if self.search_root is not None:
            resolved = file_path.resolve()
            if not resolved.is_relative_to(self.search_root):
                raise ResolutionError(
                    path,
                    reason=f"Template {path} is outside {self.search_root}",
                )
        return file_path

    def list_templates(self) -> List[str]:
        if self.search_root is None:
            return []
        templates = []
        for root, _dirs, files in os.walk(self.search_root):
            for filename in files:
                templates.append(os.path.join(root, filename))
        return sorted(templates)


class DictLoader(FileLoader):
    """
    Loader serving templates from a mapping of absolute path to source.

    Example:
        loader = DictLoader({"/views/index.html": "<%- include('header') %>"})
    """

    def __init__(self, templates: Optional[Mapping[str, Source]] = None):
        self.templates: Dict[str, Source] = {}
        for path, source in (templates or {}).items():
            self.add(path, source)

    def add(self, path: str, source: Source) -> None:
        self.templates[os.path.normpath(path)] = source

    def load(self, path: str) -> Source:
        try:
            return self.templates[os.path.normpath(path)]
        except KeyError:
            raise ResolutionError(path, reason=f"Template file not found: {path}") from None

    def exists(self, path: str) -> bool:
        return os.path.normpath(path) in self.templates

    def list_templates(self) -> List[str]:
        return sorted(self.templates)


class FunctionLoader(FileLoader):
    """
    Loader wrapping a plain callable, e.g. for template preprocessing.

    Args:
        load_func: ``load_func(path) -> bytes | str``
        exists_func: Existence check (defaults to ``os.path.isfile``)
    """

    def __init__(
        self,
        load_func: Callable[[str], Source],
        exists_func: Optional[Callable[[str], bool]] = None,
    ):
        self.load_func = load_func
        self.exists_func = exists_func or os.path.isfile

    def load(self, path: str) -> Source:
        try:
            return self.load_func(path)
        except FileNotFoundError as exc:
            raise ResolutionError(path, reason=f"Template file not found: {path}") from exc

    def exists(self, path: str) -> bool:
        return self.exists_func(path)
