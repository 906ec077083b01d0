"""
In-memory object indices.

Index functions map an object to zero or more index values; lookups return
the (namespace, name) keys of the objects that produced a value.
"""

import threading
from typing import Callable, Dict, Iterable, List, Set, Tuple

Key = Tuple[str, str]
IndexFunc = Callable[[object], Iterable[str]]


def object_key(obj) -> Key:
    return (obj.metadata.namespace or "", obj.metadata.name)


class Indexer:
    """Thread-safe registry of named indices."""

    def __init__(self):
        self._funcs: Dict[str, IndexFunc] = {}
        self._values: Dict[str, Dict[str, Set[Key]]] = {}
        self._reverse: Dict[str, Dict[Key, List[str]]] = {}
        self._lock = threading.Lock()

    def add_index(self, name: str, func: IndexFunc) -> None:
        with self._lock:
            if name in self._funcs:
                raise ValueError(f"index {name} already registered")
            self._funcs[name] = func
            self._values[name] = {}
            self._reverse[name] = {}

    def has_index(self, name: str) -> bool:
        return name in self._funcs

    def update(self, obj) -> None:
        key = object_key(obj)
        with self._lock:
            for name, func in self._funcs.items():
                self._drop(name, key)
                values = list(func(obj))
                for value in values:
                    self._values[name].setdefault(value, set()).add(key)
                self._reverse[name][key] = values

    def remove(self, key: Key) -> None:
        with self._lock:
            for name in self._funcs:
                self._drop(name, key)

    def keys(self) -> List[Key]:
        """Every object key currently indexed."""
        with self._lock:
            found: Set[Key] = set()
            for reverse in self._reverse.values():
                found.update(reverse)
            return sorted(found)

    def lookup(self, name: str, value: str) -> List[Key]:
        with self._lock:
            if name not in self._funcs:
                raise KeyError(f"unknown index {name}")
            return sorted(self._values[name].get(value, ()))

    def _drop(self, name: str, key: Key) -> None:
        for value in self._reverse[name].pop(key, []):
            keys = self._values[name].get(value)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._values[name][value]
