"""Command-line interface for hostops."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from typing import Dict, List, Optional

from .capabilities import create_dispatcher
from .config import Configuration, ConfigurationError, load_config
from .shell.ssh import SSHConnectionError
from .tasks.context import TaskContext
from .tasks.dispatcher import TaskDispatcher
from .tasks.errors import EarlyTaskExit, TaskError
from .utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CLIContext:
    """Context captured from CLI arguments."""

    config: Configuration
    dispatcher: TaskDispatcher


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hostops",
        description="Run deployment and maintenance tasks against configured hosts.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path or URL of the JSON config file (default: $HOSTOPS_CONFIG or hostops.json).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a task on a host")
    run_parser.add_argument("task", help="Task name, e.g. deploy")
    run_parser.add_argument("--host", required=True, help="Host config name")
    run_parser.add_argument(
        "--next", action="append", default=[], metavar="TASK",
        help="Task to run after the main task (repeatable)",
    )
    run_parser.add_argument(
        "--set", action="append", default=[], metavar="KEY=VALUE", dest="variables",
        help="Context variable for the run (repeatable)",
    )
    run_parser.add_argument(
        "--arg", action="append", default=[], metavar="VALUE", dest="arguments",
        help="Argument exposed to scripts as %%arguments.N%% (repeatable)",
    )

    call_parser = subparsers.add_parser("call", help="Run one task of one capability on a host")
    call_parser.add_argument("capability", help="Capability name, e.g. git")
    call_parser.add_argument("task", help="Task name, e.g. version")
    call_parser.add_argument("--host", required=True, help="Host config name")
    call_parser.add_argument(
        "--set", action="append", default=[], metavar="KEY=VALUE", dest="variables",
        help="Context variable for the call (repeatable)",
    )

    subparsers.add_parser("hosts", help="List configured hosts")

    return parser


def parse_variables(pairs: List[str]) -> Dict[str, str]:
    variables: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid variable `{pair}`, expected KEY=VALUE")
        variables[key.strip()] = value
    return variables


def _build_context(args: argparse.Namespace) -> CLIContext:
    return CLIContext(config=load_config(args.config), dispatcher=create_dispatcher())


def handle_hosts_command(context: CLIContext) -> int:
    names = context.config.host_names()
    if not names:
        print("No hosts configured.")
        return 0
    for name in names:
        host_data = context.config.hosts[name] or {}
        needs = ", ".join(host_data.get("needs", context.config.get_setting("needs", [])) or [])
        print(f"{name}  [{needs}]")
    return 0


def handle_run_command(args: argparse.Namespace, context: CLIContext) -> int:
    host = context.config.get_host_config(args.host, context.dispatcher.registry)
    task_context = TaskContext(context.config, variables=parse_variables(args.variables))
    task_context.set("arguments", list(args.arguments))
    try:
        exit_code = context.dispatcher.execute(args.task, host, task_context, next_tasks=args.next)
    finally:
        host.close()
    return exit_code


def handle_call_command(args: argparse.Namespace, context: CLIContext) -> int:
    host = context.config.get_host_config(args.host, context.dispatcher.registry)
    task_context = TaskContext(context.config, variables=parse_variables(args.variables))
    try:
        context.dispatcher.call(args.capability, args.task, host, task_context)
    finally:
        host.close()
    return int(task_context.get_result("exitCode", 0) or 0)


def dispatch_command(args: argparse.Namespace) -> int:
    try:
        context = _build_context(args)
        if args.command == "hosts":
            return handle_hosts_command(context)
        if args.command == "run":
            return handle_run_command(args, context)
        if args.command == "call":
            return handle_call_command(args, context)
    except EarlyTaskExit as exc:
        logger.error("Stopped early: %s", exc)
        return 1
    except (TaskError, ConfigurationError, SSHConnectionError, FileNotFoundError, ValueError) as exc:
        logger.error("%s", exc)
        return 2
    raise ValueError(f"Unknown command `{args.command}`")


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return dispatch_command(args)
