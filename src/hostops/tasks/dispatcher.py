"""Task dispatch across the capabilities a host needs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional

from ..utils.logging import get_logger
from .context import TaskContext
from .errors import EarlyTaskExit, TaskNotFoundInCapability
from .registry import CapabilityRegistry

if TYPE_CHECKING:
    from ..capabilities.base import Capability
    from ..config import HostConfig

logger = get_logger(__name__)


class TaskDispatcher:
    """
    Runs task lifecycles against a host's `needs`.

    One `run_task` walks preflight, `<task>Prepare`, `<task>`, any chained
    tasks, `<task>Finished` and postflight. Every capability call gets a
    clone of the context whose results are merged back afterwards.
    """

    def __init__(self, registry: CapabilityRegistry) -> None:
        self.registry = registry

    def run_task(
        self,
        task_name: str,
        host: "HostConfig",
        context: TaskContext,
        next_tasks: Optional[List[str]] = None,
    ) -> TaskContext:
        context.set_result("runNextTasks", list(next_tasks or []))
        self._preflight(task_name, host, context)
        self._run_task_impl(f"{task_name}Prepare", host, context, fallback_allowed=False)
        self._run_task_impl(task_name, host, context, fallback_allowed=True)

        for next_task_name in context.get_result("runNextTasks", []) or []:
            self.run_task(next_task_name, host, context)

        self._run_task_impl(f"{task_name}Finished", host, context, fallback_allowed=False)
        self._postflight(task_name, host, context)

        return context

    def execute(
        self,
        task_name: str,
        host: "HostConfig",
        context: TaskContext,
        next_tasks: Optional[List[str]] = None,
    ) -> int:
        """Run a task and report an exit code instead of raising `EarlyTaskExit`."""
        try:
            self.run_task(task_name, host, context, next_tasks)
        except EarlyTaskExit as exc:
            logger.error("Task `%s` on `%s` stopped early: %s", task_name, host.config_name, exc)
            context.set_result("exitCode", 1)
            return 1
        return int(context.get_result("exitCode", 0) or 0)

    def call(
        self,
        capability_name: str,
        task_name: str,
        host: "HostConfig",
        context: TaskContext,
    ) -> TaskContext:
        """Run one task on one capability; a missing task is an error."""
        capability = self.registry.resolve(capability_name)
        capability.preflight_task(task_name, host, context)
        self._call_impl(capability, task_name, host, context, optional=False)
        capability.postflight_task(task_name, host, context)

        return context

    def _preflight(self, task_name: str, host: "HostConfig", context: TaskContext) -> None:
        for capability in self.registry.subset(host.needs):
            capability.preflight_task(task_name, host, context)

    def _postflight(self, task_name: str, host: "HostConfig", context: TaskContext) -> None:
        for capability in self.registry.subset(host.needs):
            capability.postflight_task(task_name, host, context)

    def _run_task_impl(
        self,
        task_name: str,
        host: "HostConfig",
        context: TaskContext,
        fallback_allowed: bool,
    ) -> None:
        fn_called = False

        if not context.get("quiet"):
            logger.debug("Running task %s on configuration %s", task_name, host.config_name)

        for capability in self.registry.subset(host.needs):
            if capability.has_task(task_name):
                fn_called = True
                self._call_impl(capability, task_name, host, context, optional=True)

        if not fn_called and fallback_allowed:
            for capability in self.registry.subset(host.needs):
                capability.fallback(task_name, host, context)

    def _overrides(self, host: "HostConfig") -> Dict[str, str]:
        overrides: Dict[str, str] = {}
        for capability in self.registry.subset(host.needs):
            overridden_name = capability.overridden_capability()
            if overridden_name:
                overrides[overridden_name] = capability.name
        return overrides

    def _call_impl(
        self,
        capability: "Capability",
        task_name: str,
        host: "HostConfig",
        in_context: TaskContext,
        optional: bool,
    ) -> None:
        # Recomputed on every call: hosts cloned mid-run may carry other needs.
        overrides = self._overrides(host)
        context = in_context.clone()
        capability_name = capability.name
        context.set("currentMethod", capability_name)

        if capability_name in overrides:
            logger.info("Use override %s for %s", overrides[capability_name], capability_name)
            capability = self.registry.resolve(overrides[capability_name])
        logger.debug("Call task %s on capability %s", task_name, capability_name)

        if capability.has_task(task_name):
            capability.get_task(task_name)(host, context)
            in_context.merge_results(context)
        elif not optional:
            raise TaskNotFoundInCapability(capability_name, task_name)
