"""Script interpreter: `%key%` expansion plus inline callbacks.

A script is an ordered list of lines. Each line is either a literal shell
command or a callback invocation such as `breakOnFirstError(false)`;
`parse_script_line` turns a line into `Literal` or `CallbackInvocation`
so the interpreter never re-parses text while running.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from ..utils.data import expand_strings, flatten_variables, merge_data
from ..utils.logging import get_logger
from .context import TaskContext
from .errors import MissingCallbackImplementation, MissingDirectory, UnknownReplacementPattern

if TYPE_CHECKING:
    from ..config import HostConfig
    from ..shell.base import CommandResult
    from .dispatcher import TaskDispatcher

logger = get_logger(__name__)

CALLBACK_PATTERN = re.compile(r"^\s*([A-Za-z_]\w*)\((.*)\)\s*$")
UNRESOLVED_PATTERN = re.compile(r"%(\S*)%")

# Collections left out of the `settings` variable, they embed the whole config.
EXCLUDED_SETTINGS = ["hosts", "dockerHosts"]

MAX_REPLACEMENT_DISPLAY = 40

Callback = Callable[..., Any]


@dataclass(frozen=True)
class Literal:
    command: str


@dataclass(frozen=True)
class CallbackInvocation:
    name: str
    args: Tuple[str, ...] = ()


Instruction = Union[Literal, CallbackInvocation]


def _parse_argument(raw: str) -> str:
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        value = value[1:-1]
    return value


def parse_script_line(line: str) -> Instruction:
    match = CALLBACK_PATTERN.match(line)
    if not match:
        return Literal(line)
    name, raw_args = match.groups()
    args = tuple(_parse_argument(arg) for arg in raw_args.split(",")) if raw_args.strip() else ()
    return CallbackInvocation(name, args)


def as_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false", "no", "off")
    return bool(value)


def _find_unresolved(strings: Union[List[str], Dict[str, str]]) -> Optional[str]:
    values = strings.values() if isinstance(strings, Mapping) else strings
    for line in values:
        if UNRESOLVED_PATTERN.search(line):
            return line
    return None


def format_replacements(replacements: Mapping[str, str]) -> List[str]:
    """Render replacements as a two-column `Key | Replacement` table."""
    rows = []
    for key, value in replacements.items():
        if len(value) > MAX_REPLACEMENT_DISPLAY:
            value = value[:MAX_REPLACEMENT_DISPLAY] + "…"
        rows.append((key, value))
    width = max([len("Key")] + [len(key) for key, _ in rows])
    lines = [f"{'Key':<{width}} | Replacement", "-" * (width + 3 + len("Replacement"))]
    lines.extend(f"{key:<{width}} | {value}" for key, value in rows)
    return lines


class ScriptEngine:
    """Runs `scriptData` from a task context against one shell."""

    def __init__(self, dispatcher: "TaskDispatcher") -> None:
        self.dispatcher = dispatcher

    def builtin_callbacks(self) -> Dict[str, Callback]:
        return {
            "execute": self.handle_execute_callback,
            "fail_on_error": self.handle_fail_on_error_deprecated_callback,
            "breakOnFirstError": self.handle_break_on_first_error_callback,
            "fail_on_missing_directory": self.handle_fail_on_missing_directory_callback,
        }

    def run_script(self, host: "HostConfig", context: TaskContext) -> Optional["CommandResult"]:
        commands = list(context.get("scriptData", []) or [])
        variables = context.get("variables", {}) or {}
        callbacks = dict(context.get("callbacks", {}) or {})
        environment = context.get("environment", {}) or {}
        if context.shell is None:
            context.shell = host.shell()

        root_folder = host.get("siteFolder") or host.get("rootFolder") or "."
        root_folder = context.get("rootFolder") or root_folder

        if host.get("environment"):
            environment = merge_data(environment, host["environment"])
        settings = context.configuration.get_all_settings(EXCLUDED_SETTINGS) if context.configuration else {}
        variables = merge_data(variables, {"host": host.raw(), "settings": settings})

        replacements = flatten_variables(variables)
        commands = expand_strings(expand_strings(commands, replacements), replacements)
        environment = expand_strings(expand_strings(environment, replacements), replacements)

        callbacks.update(self.builtin_callbacks())
        context.set("host_config", host)

        previous_policy = context.break_on_first_error
        context.break_on_first_error = True
        try:
            result = self._run_script_impl(root_folder, commands, context, callbacks, environment, replacements)
        except UnknownReplacementPattern as exc:
            logger.error("Unknown replacement in line %s", exc.offending_line)
            for line in format_replacements(exc.replacements):
                logger.error("%s", line)
            context.set_result("exitCode", 1)
            return None
        finally:
            context.break_on_first_error = previous_policy

        context.set_result("exitCode", result.exit_code if result else 0)
        return result

    def _run_script_impl(
        self,
        root_folder: str,
        commands: List[str],
        context: TaskContext,
        callbacks: Dict[str, Callback],
        environment: Dict[str, str],
        replacements: Dict[str, str],
    ) -> Optional["CommandResult"]:
        for strings in (commands, environment):
            offending = _find_unresolved(strings)
            if offending is not None:
                raise UnknownReplacementPattern(offending, replacements)

        shell = context.shell
        shell.cd(root_folder)
        shell.apply_environment(environment)

        command_result = None
        for instruction in [parse_script_line(line) for line in commands]:
            if isinstance(instruction, CallbackInvocation):
                self._execute_callback(context, callbacks, instruction)
                continue

            command_result = shell.run(instruction.command)
            context.set_command_result(command_result)
            if command_result.failed() and context.break_on_first_error:
                return command_result

        return command_result

    def _execute_callback(
        self,
        context: TaskContext,
        callbacks: Mapping[str, Callback],
        invocation: CallbackInvocation,
    ) -> None:
        fn = callbacks.get(invocation.name)
        if fn is None or not callable(fn):
            raise MissingCallbackImplementation(invocation.name, callbacks)
        fn(context, *invocation.args)

    def handle_execute_callback(self, context: TaskContext, capability_name: str, task_name: str, *args: str) -> None:
        host = context.get("host_config")
        child = context.clone()
        child.set("arguments", list(args))
        self.dispatcher.call(capability_name, task_name, host, child)
        context.merge_results(child)

    def handle_fail_on_error_deprecated_callback(self, context: TaskContext, flag: Any) -> None:
        logger.warning("`fail_on_error` is deprecated, please use `breakOnFirstError()`")
        self.handle_break_on_first_error_callback(context, flag)

    def handle_break_on_first_error_callback(self, context: TaskContext, flag: Any) -> None:
        context.break_on_first_error = as_flag(flag)

    def handle_fail_on_missing_directory_callback(self, context: TaskContext, path: str) -> None:
        if not context.shell.exists(path):
            raise MissingDirectory(path)

    def run_task_specific_scripts(self, host: "HostConfig", task_name: str, context: TaskContext) -> None:
        common_scripts = context.configuration.get_setting("common", {}) if context.configuration else {}
        common_scripts = common_scripts or {}
        host_type = host.type
        old_style = common_scripts.get(host_type)
        if old_style and isinstance(old_style, (list, dict)):
            logger.warning(
                "Found old-style common scripts! Please regroup by common > taskName > type > commands."
            )
            return

        scripts_for_task = common_scripts.get(task_name)
        script = scripts_for_task.get(host_type) if isinstance(scripts_for_task, dict) else None
        if script:
            logger.info("Running common script for task `%s` and type `%s`", task_name, host_type)
            context.set("scriptData", script)
            self.run_script(host, context)
