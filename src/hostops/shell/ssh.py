"""SSH shell built on Paramiko."""

from __future__ import annotations

import shlex
import socket
from typing import TYPE_CHECKING, Callable, Mapping, Optional

import paramiko

from ..utils.logging import get_logger
from ..utils.retry import RetryExhausted, retry_until
from .base import CommandResult, ShellProvider
from .credentials import SSHCredentials

if TYPE_CHECKING:
    from ..tasks.context import TaskContext

logger = get_logger(__name__)


class SSHConnectionError(RuntimeError):
    """Raised when an SSH connection cannot be established."""

    pass


class SSHShell(ShellProvider):
    """Runs commands on a remote host over a paramiko.SSHClient."""

    name = "ssh"

    def __init__(
        self,
        credentials: SSHCredentials,
        working_dir: str = ".",
        executables: Optional[Mapping[str, str]] = None,
        *,
        client_factory: Callable[[], paramiko.SSHClient] | None = None,
        command_timeout: int = 600,
    ) -> None:
        super().__init__(working_dir, executables)
        self.credentials = credentials
        self.command_timeout = command_timeout
        self._client_factory = client_factory or paramiko.SSHClient
        self._client: Optional[paramiko.SSHClient] = None

    def __enter__(self) -> "SSHShell":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    def connect(self) -> None:
        if self._client:
            return
        try:
            self._client = retry_until(
                self._open_client,
                tries=self.credentials.connect_tries,
                delay=self.credentials.connect_delay,
                message=f"Could not connect to {self.credentials.host}",
                retry_on=(paramiko.SSHException, socket.error),
            )
        except RetryExhausted as exc:
            raise SSHConnectionError(str(exc.last_error or exc)) from exc

    def _open_client(self) -> paramiko.SSHClient:
        client = self._client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        connect_kwargs = {
            "hostname": self.credentials.host,
            "port": self.credentials.port,
            "username": self.credentials.username,
            "timeout": self.credentials.timeout,
        }
        if self.credentials.auth_method == "password":
            connect_kwargs["password"] = self.credentials.password
            connect_kwargs["look_for_keys"] = False
            connect_kwargs["allow_agent"] = False
        else:
            connect_kwargs["key_filename"] = self.credentials.key_path
            if self.credentials.passphrase:
                connect_kwargs["passphrase"] = self.credentials.passphrase
        try:
            client.connect(**connect_kwargs)
        except Exception:
            client.close()
            raise
        return client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def cd(self, path: str) -> None:
        self.working_dir = self._remote_path(path)

    def _wrap(self, command: str) -> str:
        working_dir = self.working_dir
        if working_dir.startswith("~/"):
            working_dir = "~/" + shlex.quote(working_dir[2:])
        elif working_dir != "~":
            working_dir = shlex.quote(working_dir)
        parts = [f"cd {working_dir}"]
        for key, value in self.environment.items():
            parts.append(f"export {key}={shlex.quote(value)}")
        parts.append(command)
        return " && ".join(parts)

    def _execute(self, command: str, *, capture_output: bool) -> CommandResult:
        if not self._client:
            self.connect()
        assert self._client is not None

        _, stdout, stderr = self._client.exec_command(self._wrap(command), timeout=self.command_timeout)
        stdout.channel.settimeout(float(self.command_timeout))
        try:
            exit_code = stdout.channel.recv_exit_status()
            stdout_text = stdout.read().decode("utf-8", errors="replace")
            stderr_text = stderr.read().decode("utf-8", errors="replace")
        except socket.timeout:
            stdout.channel.close()
            return CommandResult(
                command=command,
                exit_code=-1,
                stderr=f"TIMEOUT: Command did not complete within {self.command_timeout} seconds.",
            )

        result = CommandResult.from_text(command, exit_code, stdout_text, stderr_text)
        if not capture_output:
            for line in result.output:
                logger.info("[%s] %s", self.credentials.host, line)
        return result

    def exists(self, path: str) -> bool:
        result = self.run(f"test -e {shlex.quote(path)}", capture_output=True)
        return result.succeeded()

    def _remote_path(self, path: str) -> str:
        if path.startswith("/") or path.startswith("~"):
            return path
        return f"{self.working_dir.rstrip('/')}/{path}"

    def put_file(self, source: str, dest: str, context: Optional["TaskContext"] = None) -> None:
        if not self._client:
            self.connect()
        assert self._client is not None
        sftp = self._client.open_sftp()
        try:
            sftp.put(source, self._remote_path(dest))
        finally:
            sftp.close()

    def get_file(self, source: str, dest: str) -> None:
        if not self._client:
            self.connect()
        assert self._client is not None
        sftp = self._client.open_sftp()
        try:
            sftp.get(self._remote_path(source), dest)
        finally:
            sftp.close()
