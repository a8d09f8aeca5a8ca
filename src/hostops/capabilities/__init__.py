"""Capabilities bundled with hostops."""

from __future__ import annotations

from typing import Optional

from ..tasks.dispatcher import TaskDispatcher
from ..tasks.registry import CapabilityRegistry
from ..tasks.script import ScriptEngine
from .base import Capability, task
from .git import GitCapability, MetaInformation
from .local import LocalCapability
from .script import ScriptCapability
from .ssh import SSHCapability

__all__ = [
    "Capability",
    "task",
    "GitCapability",
    "MetaInformation",
    "LocalCapability",
    "ScriptCapability",
    "SSHCapability",
    "create_dispatcher",
]


def create_dispatcher(registry: Optional[CapabilityRegistry] = None) -> TaskDispatcher:
    """Dispatcher over a registry holding the bundled capabilities."""
    registry = registry or CapabilityRegistry()
    dispatcher = TaskDispatcher(registry)
    engine = ScriptEngine(dispatcher)

    registry.register(ScriptCapability(engine))
    registry.register(GitCapability())
    registry.register(LocalCapability())
    registry.register(SSHCapability())
    return dispatcher
