"""Capability lookup with memoized resolution."""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterable, List

from ..utils.logging import get_logger
from .errors import CapabilityNotFound, InvalidCapability

if TYPE_CHECKING:
    from ..capabilities.base import Capability

logger = get_logger(__name__)


class CapabilityRegistry:
    """Maps capability names (and aliases) to registered handlers."""

    def __init__(self) -> None:
        self._capabilities: Dict[str, "Capability"] = {}
        self._lookup_cache: Dict[str, "Capability"] = {}

    def register(self, capability: "Capability") -> None:
        self._validate(capability)
        if capability.name in self._capabilities:
            logger.warning("Replacing capability `%s`", capability.name)
        self._capabilities[capability.name] = capability
        self._lookup_cache.clear()

    def _validate(self, capability: "Capability") -> None:
        from ..capabilities.base import RESERVED_TASK_NAMES

        if not isinstance(capability.name, str) or not capability.name.strip():
            raise InvalidCapability(f"{type(capability).__name__} has no name")
        for task_name, attr_name in capability.task_table.items():
            if not isinstance(task_name, str) or not task_name.strip():
                raise InvalidCapability(f"Capability `{capability.name}` declares an empty task name")
            if task_name in RESERVED_TASK_NAMES:
                raise InvalidCapability(
                    f"Capability `{capability.name}` cannot use the lifecycle hook name `{task_name}` as a task"
                )
            if not callable(getattr(capability, attr_name, None)):
                raise InvalidCapability(
                    f"Task `{task_name}` of capability `{capability.name}` is not callable"
                )

    def resolve(self, name: str) -> "Capability":
        if name in self._lookup_cache:
            return self._lookup_cache[name]

        for capability in self._capabilities.values():
            if capability.supports(name):
                self._lookup_cache[name] = capability
                return capability

        raise CapabilityNotFound(name)

    def subset(self, names: Iterable[str]) -> List["Capability"]:
        return [self.resolve(name) for name in names]

    def all(self) -> List["Capability"]:
        return list(self._capabilities.values())

    def __contains__(self, name: str) -> bool:
        try:
            self.resolve(name)
        except CapabilityNotFound:
            return False
        return True
