"""
Template Cache - compiled renderer caching.

Supports:
- In-memory unbounded cache (default, process lifetime)
- In-memory LRU cache with a fixed capacity

Keys are always resolved template filenames, never template text.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Dict, Optional

from .compiler import Renderer

logger = logging.getLogger("smarty.cache")


class TemplateCache(ABC):
    """
    Abstract base for renderer caches.

    Any object providing ``get``/``set``/``reset`` can stand in for the
    default cache.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Renderer]:
        """Return the cached renderer for ``key``, or None."""
        ...

    @abstractmethod
    def set(self, key: str, renderer: Renderer) -> None:
        """Store ``renderer`` under ``key``; the last write wins."""
        ...

    @abstractmethod
    def reset(self) -> None:
        """Drop every cached renderer."""
        ...

    def invalidate(self, key: str) -> None:
        """Drop a single entry (optional)."""
        raise NotImplementedError


class InMemoryTemplateCache(TemplateCache):
    """
    Unbounded in-process cache.

    Grows for the lifetime of the process; guarded by a lock so concurrent
    renders from several threads are safe.
    """

    def __init__(self) -> None:
        self._cache: Dict[str, Renderer] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Renderer]:
        with self._lock:
            renderer = self._cache.get(key)
            if renderer is None:
                self.misses += 1
            else:
                self.hits += 1
            return renderer

    def set(self, key: str, renderer: Renderer) -> None:
        with self._lock:
            self._cache[key] = renderer

    def reset(self) -> None:
        with self._lock:
            self._cache.clear()
            self.hits = 0
            self.misses = 0

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        return key in self._cache


class LRUTemplateCache(TemplateCache):
    """
    Bounded in-memory cache.

    LRU eviction with configurable capacity.

    Args:
        capacity: Maximum number of compiled templates to keep
    """

    def __init__(self, capacity: int = 1000):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._cache: "OrderedDict[str, Renderer]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Renderer]:
        with self._lock:
            renderer = self._cache.get(key)
            if renderer is not None:
                self._cache.move_to_end(key)
            return renderer

    def set(self, key: str, renderer: Renderer) -> None:
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            elif len(self._cache) >= self.capacity:
                evicted, _ = self._cache.popitem(last=False)
                logger.debug("Evicted %s from template cache", evicted)
            self._cache[key] = renderer

    def reset(self) -> None:
        with self._lock:
            self._cache.clear()

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        return key in self._cache
