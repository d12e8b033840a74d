"""Module store: the shared variable store for one pipeline run."""
#
# PURPOSE:
# Holds the variables a pipeline accumulates: seeded from global config and
# caller overrides, extended by step overrides and regex extraction.
#
# KEY CONCEPTS:
# - Threading: a single lock guards the mapping; it is held only for the
#   assignment or copy itself, never while rendering, doing I/O or regex work
# - Snapshots: readers take a point-in-time read-only copy once and work on it
# - Isolation: each pipeline run gets a fresh store so extracted values do not
#   leak between pipelines
#

import logging
from threading import Lock
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional

from netshell.variables.value import Value

logger = logging.getLogger(__name__)


class VariableStore:
    """Mutable, lock-guarded mapping from variable name to Value."""

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._variables: Dict[str, Value] = {}
        self._lock = Lock()
        if initial:
            self.update(initial)

    @classmethod
    def seeded(
        cls,
        globals_: Optional[Mapping[str, Any]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> "VariableStore":
        """
        Build a store from global config variables plus caller overrides.
        Overrides win on name collision.
        """
        store = cls(globals_)
        if overrides:
            store.update(overrides)
        return store

    def get(self, path: str) -> Optional[Value]:
        """
        Look up a dotted path ("user.profile.city", "hosts.0").

        Returns:
            The resolved Value, or None when any segment is absent
        """
        head, *rest = path.split(".")
        with self._lock:
            current = self._variables.get(head)
        for segment in rest:
            if current is None:
                return None
            current = current.child(segment)
        return current

    def set(self, name: str, value: Any) -> None:
        converted = Value.of(value)
        with self._lock:
            self._variables[name] = converted

    def update(self, values: Mapping[str, Any]) -> None:
        converted = {name: Value.of(value) for name, value in values.items()}
        with self._lock:
            self._variables.update(converted)

    def snapshot(self) -> Mapping[str, Value]:
        """Immutable point-in-time copy of every variable."""
        with self._lock:
            return MappingProxyType(dict(self._variables))

    def to_python(self) -> Dict[str, Any]:
        return {name: value.to_python() for name, value in self.snapshot().items()}

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._variables

    def __len__(self) -> int:
        with self._lock:
            return len(self._variables)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

    def __repr__(self) -> str:
        return f"VariableStore({sorted(self.snapshot())})"
