"""Capability running user-declared scripts."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any, Dict, Mapping

from ..tasks.errors import ScriptNotFound
from ..utils.data import merge_data
from .base import Capability, task

if TYPE_CHECKING:
    from ..config import Configuration, HostConfig
    from ..tasks.context import TaskContext
    from ..tasks.script import ScriptEngine


class ScriptCapability(Capability):
    """Runs named scripts and the `common` scripts declared per task and host type."""

    name = "script"

    def __init__(self, engine: "ScriptEngine") -> None:
        super().__init__()
        self.engine = engine

    def default_config(self, configuration: "Configuration", host_data: Mapping[str, Any]) -> Dict[str, Any]:
        source = configuration.source
        if source and os.path.isfile(source):
            return {"rootFolder": os.path.dirname(os.path.abspath(source))}
        return {"rootFolder": os.getcwd()}

    def _find_script(self, host: "HostConfig", context: "TaskContext", script_name: str):
        host_scripts = host.get("scripts", {}) or {}
        if script_name in host_scripts:
            return host_scripts[script_name]
        global_scripts = context.configuration.get_setting("scripts", {}) if context.configuration else {}
        return (global_scripts or {}).get(script_name)

    @task("script")
    def run_named_script(self, host: "HostConfig", context: "TaskContext") -> None:
        script_name = context.get("scriptName")
        script = self._find_script(host, context, script_name) if script_name else None
        if not script:
            raise ScriptNotFound(script_name or "")

        self.logger.info("Running script `%s` on `%s`", script_name, host.config_name)
        variables = merge_data(context.get("variables", {}) or {}, {"arguments": list(context.get("arguments", []))})
        context.set("variables", variables)
        context.set("scriptData", script)
        self.engine.run_script(host, context)

    def fallback(self, task_name: str, host: "HostConfig", context: "TaskContext") -> None:
        self.engine.run_task_specific_scripts(host, task_name, context)

    def preflight_task(self, task_name: str, host: "HostConfig", context: "TaskContext") -> None:
        self.engine.run_task_specific_scripts(host, f"{task_name}Prepare", context)

    def postflight_task(self, task_name: str, host: "HostConfig", context: "TaskContext") -> None:
        self.engine.run_task_specific_scripts(host, f"{task_name}Finished", context)
