"""Shell providers: where task commands actually run."""

from __future__ import annotations

import os
from typing import Any, Mapping

from .base import CommandResult, FailedShellCommand, ShellProvider
from .credentials import SSHCredentials
from .local import LocalShell
from .ssh import SSHConnectionError, SSHShell

__all__ = [
    "CommandResult",
    "FailedShellCommand",
    "ShellProvider",
    "SSHCredentials",
    "LocalShell",
    "SSHConnectionError",
    "SSHShell",
    "create_shell",
]


def create_shell(host_data: Mapping[str, Any]) -> ShellProvider:
    """Build the shell named by a host config's `shellProvider` key."""
    provider = host_data.get("shellProvider", "local")
    executables = host_data.get("executables", {}) or {}
    root_folder = host_data.get("rootFolder")

    if provider == "local":
        return LocalShell(working_dir=root_folder or os.getcwd(), executables=executables)
    if provider == "ssh":
        credentials = SSHCredentials.from_host_config(host_data)
        credentials.validate()
        return SSHShell(credentials, working_dir=root_folder or ".", executables=executables)
    raise ValueError(f"Unknown shell provider `{provider}`")
