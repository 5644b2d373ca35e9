"""
Silk Function and Builtin Registries

Registries map names to callables. They are owned by one Executor session and
shared by every call chain it runs, including parallel children, so all
access goes through a lock.

Key classes:
- FunctionRegistry: name -> FunctionDeclaration, last registration wins
- BuiltinRegistry: name -> native callable, with an optional lookup cache
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from silk.nodes import FunctionDeclaration

logger = logging.getLogger(__name__)

Builtin = Callable[[List[Any]], Any]


class FunctionRegistry:
    """Registry of user-defined functions."""

    def __init__(self):
        self._functions: Dict[str, FunctionDeclaration] = {}
        self._lock = threading.Lock()

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._functions

    def __len__(self) -> int:
        with self._lock:
            return len(self._functions)

    def register(self, name: str, declaration: FunctionDeclaration) -> None:
        """Register a function, silently replacing any previous definition."""
        with self._lock:
            replaced = name in self._functions
            self._functions[name] = declaration
        logger.debug(f"Registered function {name}/{declaration.arity} (replaced={replaced})")

    def get(self, name: str) -> Optional[FunctionDeclaration]:
        with self._lock:
            return self._functions.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._functions)


class BuiltinRegistry:
    """
    Registry of native builtins.

    A builtin receives the evaluated argument list and returns a value; it
    reports failure by raising. When caching is enabled, resolved lookups are
    mirrored in a cache. Registering a name drops its cached entry in the same
    critical section, so the cache never disagrees with the primary mapping.
    """

    def __init__(self, cache: bool = True):
        self._builtins: Dict[str, Builtin] = {}
        self._cache: Dict[str, Builtin] = {}
        self._cache_enabled = cache
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._builtins

    def __len__(self) -> int:
        with self._lock:
            return len(self._builtins)

    def register(self, name: str, fn: Builtin) -> None:
        """Register a builtin, replacing any prior binding for the name."""
        if not callable(fn):
            raise TypeError(f"builtin {name} must be callable")
        with self._lock:
            self._builtins[name] = fn
            self._cache.pop(name, None)
        logger.debug(f"Registered builtin {name}")

    def lookup(self, name: str) -> Optional[Builtin]:
        """Resolve a builtin by name, consulting the cache first."""
        with self._lock:
            if self._cache_enabled:
                cached = self._cache.get(name)
                if cached is not None:
                    self.hits += 1
                    return cached
            fn = self._builtins.get(name)
            if fn is not None and self._cache_enabled:
                self.misses += 1
                self._cache[name] = fn
            return fn

    def cached_names(self) -> List[str]:
        with self._lock:
            return sorted(self._cache)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._builtins)
