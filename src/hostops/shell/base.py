"""Shell provider contract shared by all transports."""

from __future__ import annotations

import os
import re
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional

if TYPE_CHECKING:
    from ..tasks.context import TaskContext

EXECUTABLE_PATTERN = re.compile(r"#!([A-Za-z_][\w-]*)")


class FailedShellCommand(RuntimeError):
    """Raised when a command failed and the caller asked for a hard failure."""

    def __init__(self, message: str, result: "CommandResult") -> None:
        self.result = result
        super().__init__(f"{message} (exit code {result.exit_code})")


@dataclass
class CommandResult:
    command: str
    exit_code: int
    output: List[str] = field(default_factory=list)
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def succeeded(self) -> bool:
        return self.ok

    def failed(self) -> bool:
        return not self.ok

    def raise_exception(self, message: str) -> None:
        raise FailedShellCommand(message, self)

    @classmethod
    def from_text(cls, command: str, exit_code: int, stdout: str, stderr: str = "") -> "CommandResult":
        output = stdout.rstrip("\n").splitlines() if stdout.strip() else []
        return cls(command=command, exit_code=exit_code, output=output, stderr=stderr.strip())


class ShellProvider(ABC):
    """Executes command lines against one target.

    Working directory and environment are state of the provider: `cd` and
    `apply_environment` affect every following `run`.
    """

    name = "base"

    def __init__(
        self,
        working_dir: str = ".",
        executables: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.working_dir = working_dir
        self.environment: Dict[str, str] = {}
        self.executables: Dict[str, str] = dict(executables or {})

    def cd(self, path: str) -> None:
        self.working_dir = path

    def get_working_dir(self) -> str:
        return self.working_dir

    def apply_environment(self, environment: Mapping[str, str]) -> None:
        self.environment.update({key: str(value) for key, value in environment.items()})

    def expand_command(self, command: str) -> str:
        """Replace `#!tool` prefixes with the configured executable."""
        return EXECUTABLE_PATTERN.sub(
            lambda match: self.executables.get(match.group(1), match.group(1)),
            command,
        )

    def run(
        self,
        command: str,
        capture_output: bool = False,
        raise_on_failure: bool = False,
    ) -> CommandResult:
        result = self._execute(self.expand_command(command), capture_output=capture_output)
        if raise_on_failure and result.failed():
            result.raise_exception(f"Command `{command}` failed")
        return result

    def copy_file_from(
        self,
        other: "ShellProvider",
        source: str,
        dest: str,
        context: Optional["TaskContext"] = None,
        remove_after: bool = False,
    ) -> bool:
        """Copy `source` on `other` to `dest` on this shell."""
        handle, local_copy = tempfile.mkstemp(prefix="hostops-")
        os.close(handle)
        try:
            other.get_file(source, local_copy)
            self.put_file(local_copy, dest, context)
        finally:
            os.unlink(local_copy)
        if remove_after:
            other.run(f"rm {source}")
        return True

    @abstractmethod
    def _execute(self, command: str, *, capture_output: bool) -> CommandResult:
        """Run an already expanded command."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        ...

    @abstractmethod
    def put_file(self, source: str, dest: str, context: Optional["TaskContext"] = None) -> None:
        ...

    @abstractmethod
    def get_file(self, source: str, dest: str) -> None:
        ...

    def close(self) -> None:
        """Release transport resources, if any."""
