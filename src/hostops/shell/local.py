"""Local command execution shell."""

from __future__ import annotations

import os
import selectors
import shutil
import subprocess
import sys
import time
from typing import TYPE_CHECKING, Mapping, Optional

from .base import CommandResult, ShellProvider

if TYPE_CHECKING:
    from ..tasks.context import TaskContext


class LocalShell(ShellProvider):
    """
    Runs commands on the current machine through bash.

    Provides the same interface as SSHShell; the working directory and the
    applied environment are kept per shell instance and handed to every
    subprocess.
    """

    name = "local"

    def __init__(
        self,
        working_dir: Optional[str] = None,
        executables: Optional[Mapping[str, str]] = None,
        timeout: int = 600,
    ) -> None:
        super().__init__(working_dir or os.getcwd(), executables)
        self.timeout = timeout

    def cd(self, path: str) -> None:
        self.working_dir = self._resolve(path)

    def _resolve(self, path: str) -> str:
        path = os.path.expanduser(path)
        if not os.path.isabs(path):
            path = os.path.join(self.working_dir, path)
        return os.path.normpath(path)

    def _execute(self, command: str, *, capture_output: bool) -> CommandResult:
        if capture_output:
            return self._run_blocking(command)
        return self._run_streaming(command)

    def _run_blocking(self, command: str) -> CommandResult:
        try:
            result = subprocess.run(
                command,
                shell=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=self.working_dir,
                env=self._get_env(),
                executable="/bin/bash",
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                command=command,
                exit_code=-1,
                stderr=f"Command timed out after {self.timeout} seconds",
            )
        return CommandResult.from_text(command, result.returncode, result.stdout, result.stderr)

    def _run_streaming(self, command: str) -> CommandResult:
        """Run command echoing its output while it is produced."""
        process = subprocess.Popen(
            command,
            shell=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            cwd=self.working_dir,
            env=self._get_env(),
            executable="/bin/bash",
        )
        lines = []
        assert process.stdout is not None
        deadline = time.monotonic() + self.timeout
        sel = selectors.DefaultSelector()
        sel.register(process.stdout, selectors.EVENT_READ)
        try:
            while sel.get_map():
                if time.monotonic() > deadline:
                    return self._kill(process, command, lines)
                for key, _ in sel.select(timeout=0.1):
                    line = key.fileobj.readline()
                    if not line:
                        sel.unregister(key.fileobj)
                        continue
                    lines.append(line.rstrip("\n"))
                    sys.stdout.write(line)
                    sys.stdout.flush()
        finally:
            sel.close()
        process.stdout.close()
        try:
            exit_code = process.wait(timeout=max(deadline - time.monotonic(), 0))
        except subprocess.TimeoutExpired:
            return self._kill(process, command, lines)
        return CommandResult(command=command, exit_code=exit_code, output=lines)

    def _kill(self, process: subprocess.Popen, command: str, lines: list) -> CommandResult:
        process.kill()
        process.wait()
        if process.stdout and not process.stdout.closed:
            process.stdout.close()
        return CommandResult(
            command=command,
            exit_code=-1,
            output=lines,
            stderr=f"Command timed out after {self.timeout} seconds",
        )

    def exists(self, path: str) -> bool:
        return os.path.exists(self._resolve(path))

    def put_file(self, source: str, dest: str, context: Optional["TaskContext"] = None) -> None:
        shutil.copy(source, self._resolve(dest))

    def get_file(self, source: str, dest: str) -> None:
        shutil.copy(self._resolve(source), dest)

    def _get_env(self) -> dict:
        env = os.environ.copy()
        env.update(self.environment)
        return env
