"""Errors raised while dispatching tasks and running scripts."""

from __future__ import annotations

from typing import Dict, Mapping, Optional


class TaskError(RuntimeError):
    """Base class for dispatch and script errors."""


class CapabilityNotFound(TaskError, LookupError):
    """No registered capability supports the requested name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Could not find implementation for capability `{name}`")


class InvalidCapability(TaskError, ValueError):
    """A capability's task table failed the registration checks."""


class TaskNotFoundInCapability(TaskError):
    """A mandatory dispatch found no matching task in the capability."""

    def __init__(self, capability_name: str, task_name: str) -> None:
        self.capability_name = capability_name
        self.task_name = task_name
        super().__init__(f"Could not find task `{task_name}` in capability `{capability_name}`")


class MissingCallbackImplementation(TaskError):
    """A script line invokes a callback that is not registered or not callable."""

    def __init__(self, callback_name: str, known: Optional[Mapping[str, object]] = None) -> None:
        self.callback_name = callback_name
        self.known = sorted(known or {})
        super().__init__(
            f"Missing implementation for callback `{callback_name}`, known callbacks: {', '.join(self.known)}"
        )


class UnknownReplacementPattern(TaskError):
    """A script line still contains a `%...%` placeholder after expansion."""

    def __init__(self, offending_line: str, replacements: Dict[str, str]) -> None:
        self.offending_line = offending_line
        self.replacements = replacements
        super().__init__(f"Unknown replacement in line `{offending_line}`")


class EarlyTaskExit(TaskError):
    """Stops the current task chain on purpose."""

    def __init__(self, message: str = "Task chain aborted") -> None:
        super().__init__(message)


class MissingDirectory(TaskError):
    """Raised by the `fail_on_missing_directory` callback."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"`{path}` does not exist!")


class ScriptNotFound(TaskError):
    """A named script is neither in the host config nor in the global scripts."""

    def __init__(self, script_name: str) -> None:
        self.script_name = script_name
        super().__init__(f"Could not find script `{script_name}`")
