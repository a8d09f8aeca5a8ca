"""Per-dispatch state carried through task lifecycles.

A `TaskContext` holds two kinds of data:

- variables: request-scoped inputs (`command`, `what`, `scriptData`, ...).
  A clone gets its own copy; nothing set on a clone flows back.
- results: a `ResultStore` whose keys merge back into the parent after a
  capability call, following the key's `Merge` discipline.

The dispatcher hands every capability call a clone and merges it back when
the call returns, so siblings never see each other's half-finished state.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

if TYPE_CHECKING:
    from ..config import Configuration
    from ..shell.base import CommandResult, ShellProvider


class Merge(Enum):
    """How a result key is folded back into the parent context."""

    OVERWRITE = "overwrite"  # last writer wins
    APPEND = "append"        # list contributions are concatenated


DEFAULT_DISCIPLINES: Dict[str, Merge] = {
    "files": Merge.APPEND,
    "meta": Merge.APPEND,
}


class ResultStore:
    """Result values plus a log of what changed since the last snapshot."""

    def __init__(self, disciplines: Optional[Dict[str, Merge]] = None) -> None:
        self._values: Dict[str, Any] = {}
        self._disciplines: Dict[str, Merge] = dict(DEFAULT_DISCIPLINES)
        if disciplines:
            self._disciplines.update(disciplines)
        self._written: List[str] = []
        self._appended: Dict[str, List[Any]] = {}

    def declare(self, key: str, discipline: Merge) -> None:
        self._disciplines[key] = discipline

    def discipline(self, key: str) -> Merge:
        return self._disciplines.get(key, Merge.OVERWRITE)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value
        if key not in self._written:
            self._written.append(key)
        self._appended.pop(key, None)

    def add(self, key: str, items: Iterable[Any]) -> None:
        if key not in self._disciplines:
            self._disciplines[key] = Merge.APPEND
        elif self._disciplines[key] is not Merge.APPEND:
            raise ValueError(f"Result `{key}` is declared {self._disciplines[key].value}, cannot append")
        items = list(items)
        current = list(self._values.get(key) or [])
        current.extend(items)
        self._values[key] = current
        if key not in self._written:
            self._appended.setdefault(key, []).extend(items)

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def has(self, key: str) -> bool:
        return key in self._values

    def snapshot(self) -> "ResultStore":
        """Copy the current values into a fresh store with an empty change log."""
        child = ResultStore()
        child._disciplines = dict(self._disciplines)
        child._values = {
            key: list(value) if isinstance(value, list) else value
            for key, value in self._values.items()
        }
        return child

    def merge(self, child: "ResultStore") -> None:
        """Fold the changes recorded in `child` into this store."""
        for key, discipline in child._disciplines.items():
            self._disciplines.setdefault(key, discipline)
        for key in child._written:
            value = child._values[key]
            self.set(key, list(value) if isinstance(value, list) else value)
        for key, items in child._appended.items():
            self.add(key, items)


class TaskContext:
    """Mutable, clonable state carrier for one dispatch."""

    def __init__(
        self,
        configuration: Optional["Configuration"] = None,
        variables: Optional[Dict[str, Any]] = None,
        shell: Optional["ShellProvider"] = None,
    ) -> None:
        self.configuration = configuration
        self._variables: Dict[str, Any] = dict(variables or {})
        self.results = ResultStore()
        self.shell = shell
        self.break_on_first_error = True
        self.command_result: Optional["CommandResult"] = None

    def get(self, key: str, default: Any = None) -> Any:
        return self._variables.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._variables[key] = value

    def has(self, key: str) -> bool:
        return key in self._variables

    def set_result(self, key: str, value: Any) -> None:
        self.results.set(key, value)

    def add_result(self, key: str, items: Iterable[Any]) -> None:
        self.results.add(key, items)

    def get_result(self, key: str, default: Any = None) -> Any:
        return self.results.get(key, default)

    def has_result(self, key: str) -> bool:
        return self.results.has(key)

    def set_command_result(self, result: "CommandResult") -> None:
        self.command_result = result

    def clone(self) -> "TaskContext":
        child = TaskContext(self.configuration, self._variables, self.shell)
        child.results = self.results.snapshot()
        child.break_on_first_error = self.break_on_first_error
        child.command_result = self.command_result
        return child

    def merge_results(self, child: "TaskContext") -> None:
        self.results.merge(child.results)
