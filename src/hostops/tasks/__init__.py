"""Task dispatch and script execution."""

from .context import Merge, ResultStore, TaskContext
from .dispatcher import TaskDispatcher
from .errors import (
    CapabilityNotFound,
    EarlyTaskExit,
    InvalidCapability,
    MissingCallbackImplementation,
    MissingDirectory,
    ScriptNotFound,
    TaskError,
    TaskNotFoundInCapability,
    UnknownReplacementPattern,
)
from .registry import CapabilityRegistry
from .script import CallbackInvocation, Literal, ScriptEngine, parse_script_line

__all__ = [
    "Merge",
    "ResultStore",
    "TaskContext",
    "TaskDispatcher",
    "CapabilityNotFound",
    "EarlyTaskExit",
    "InvalidCapability",
    "MissingCallbackImplementation",
    "MissingDirectory",
    "ScriptNotFound",
    "TaskError",
    "TaskNotFoundInCapability",
    "UnknownReplacementPattern",
    "CapabilityRegistry",
    "CallbackInvocation",
    "Literal",
    "ScriptEngine",
    "parse_script_line",
]
