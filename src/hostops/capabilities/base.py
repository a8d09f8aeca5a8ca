"""Base class for capability handlers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Tuple

from ..utils.logging import get_logger

if TYPE_CHECKING:
    from ..config import Configuration, HostConfig
    from ..tasks.context import TaskContext

TaskHandler = Callable[["HostConfig", "TaskContext"], None]

# Lifecycle hooks are methods on every capability, never task-table entries.
RESERVED_TASK_NAMES = frozenset({"preflightTask", "postflightTask", "fallback"})


def task(name: str) -> Callable[[Callable[..., None]], Callable[..., None]]:
    """Register a method in the capability's task table under `name`."""

    def decorator(fn: Callable[..., None]) -> Callable[..., None]:
        fn.__task_names__ = getattr(fn, "__task_names__", ()) + (name,)  # type: ignore[attr-defined]
        return fn

    return decorator


class Capability:
    """A named unit of functionality a host can list in its `needs`.

    Subclasses expose tasks with the `@task("taskName")` decorator. The
    resulting table is collected once per class and checked when the
    capability is registered.
    """

    name: str = ""
    aliases: Tuple[str, ...] = ()
    overrides: Optional[str] = None

    task_table: Dict[str, str] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        table: Dict[str, str] = {}
        for klass in reversed(cls.__mro__):
            for attr_name, member in vars(klass).items():
                for task_name in getattr(member, "__task_names__", ()):
                    table[task_name] = attr_name
        cls.task_table = table

    def __init__(self) -> None:
        self.logger = get_logger(f"hostops.capabilities.{self.name or type(self).__name__}")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    def supports(self, name: str) -> bool:
        return name == self.name or name in self.aliases

    def overridden_capability(self) -> Optional[str]:
        return self.overrides

    def has_task(self, task_name: str) -> bool:
        return task_name in self.task_table

    def get_task(self, task_name: str) -> TaskHandler:
        return getattr(self, self.task_table[task_name])

    def global_settings(self) -> Dict[str, Any]:
        """Settings this capability contributes to the global configuration."""
        return {}

    def default_config(self, configuration: "Configuration", host_data: Mapping[str, Any]) -> Dict[str, Any]:
        """Defaults merged underneath a host config that needs this capability."""
        return {}

    def preflight_task(self, task_name: str, host: "HostConfig", context: "TaskContext") -> None:
        pass

    def postflight_task(self, task_name: str, host: "HostConfig", context: "TaskContext") -> None:
        pass

    def fallback(self, task_name: str, host: "HostConfig", context: "TaskContext") -> None:
        pass

    def get_shell(self, host: "HostConfig", context: "TaskContext"):
        """The shell tasks should run on: the context's, else the host's own."""
        if context.shell is None:
            context.shell = host.shell()
        return context.shell
