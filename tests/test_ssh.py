import socket
import unittest

import paramiko

from hostops.shell import LocalShell, SSHCredentials, SSHShell, create_shell
from hostops.shell.ssh import SSHConnectionError


class FakeChannel:
    def __init__(self, status: int = 0, hang: bool = False) -> None:
        self._status = status
        self._hang = hang
        self.timeout = None
        self.closed = False

    def settimeout(self, timeout: float) -> None:
        self.timeout = timeout

    def recv_exit_status(self) -> int:
        if self._hang:
            raise socket.timeout()
        return self._status

    def close(self) -> None:
        self.closed = True


class FakeStream:
    def __init__(self, data: str, status: int = 0, hang: bool = False) -> None:
        self._data = data.encode("utf-8")
        self.channel = FakeChannel(status, hang)

    def read(self) -> bytes:
        return self._data


class FakeSFTP:
    def __init__(self, client: "FakeSSHClient") -> None:
        self.client = client

    def put(self, source: str, dest: str) -> None:
        self.client.transfers.append(("put", source, dest))

    def get(self, source: str, dest: str) -> None:
        self.client.transfers.append(("get", source, dest))

    def close(self) -> None:
        pass


class FakeSSHClient:
    status = 0
    stdout = "ok"
    hang = False

    def __init__(self) -> None:
        self.connected = False
        self.closed = False
        self.commands: list[str] = []
        self.transfers: list[tuple] = []

    def set_missing_host_key_policy(self, policy) -> None:  # pragma: no cover - noop
        self.policy = policy

    def connect(self, **kwargs) -> None:
        self.connected = True
        self.kwargs = kwargs

    def exec_command(self, command: str, timeout=None):
        self.commands.append(command)
        return (None, FakeStream(self.stdout, self.status, self.hang), FakeStream("warning"))

    def open_sftp(self) -> FakeSFTP:
        return FakeSFTP(self)

    def close(self) -> None:
        self.closed = True


class RefusingSSHClient(FakeSSHClient):
    attempts = 0

    def connect(self, **kwargs) -> None:
        RefusingSSHClient.attempts += 1
        raise paramiko.SSHException("connection refused")


def _credentials(**overrides) -> SSHCredentials:
    values = {"host": "example.com", "username": "deploy", "password": "secret"}
    values.update(overrides)
    return SSHCredentials(**values)


class SSHShellTests(unittest.TestCase):
    def test_run_command_uses_client_factory(self) -> None:
        shell = SSHShell(_credentials(), client_factory=FakeSSHClient)  # type: ignore[arg-type]
        with shell:
            result = shell.run("echo test", capture_output=True)
            client = shell._client
        self.assertTrue(result.ok)
        self.assertEqual(result.output, ["ok"])
        self.assertEqual(result.stderr, "warning")
        self.assertTrue(client.closed)
        self.assertEqual(client.kwargs["password"], "secret")
        self.assertFalse(client.kwargs["look_for_keys"])

    def test_key_authentication(self) -> None:
        shell = SSHShell(
            _credentials(password=None, key_path="~/.ssh/id_ed25519", passphrase="pw"),
            client_factory=FakeSSHClient,  # type: ignore[arg-type]
        )
        shell.connect()
        self.assertEqual(shell._client.kwargs["key_filename"], "~/.ssh/id_ed25519")
        self.assertEqual(shell._client.kwargs["passphrase"], "pw")
        self.assertNotIn("password", shell._client.kwargs)
        shell.close()

    def test_commands_run_in_working_dir_with_environment(self) -> None:
        shell = SSHShell(
            _credentials(),
            working_dir="/var/www",
            executables={"git": "/usr/bin/git"},
            client_factory=FakeSSHClient,  # type: ignore[arg-type]
        )
        shell.cd("shop")
        shell.apply_environment({"APP_ENV": "prod value"})
        shell.run("#!git status")
        self.assertEqual(
            shell._client.commands[-1],
            "cd /var/www/shop && export APP_ENV='prod value' && /usr/bin/git status",
        )

    def test_home_relative_working_dir(self) -> None:
        shell = SSHShell(_credentials(), working_dir="~/apps", client_factory=FakeSSHClient)  # type: ignore[arg-type]
        shell.run("ls")
        self.assertTrue(shell._client.commands[-1].startswith("cd ~/apps && "))

    def test_exit_code_is_reported(self) -> None:
        class FailingClient(FakeSSHClient):
            status = 2

        shell = SSHShell(_credentials(), client_factory=FailingClient)  # type: ignore[arg-type]
        self.assertTrue(shell.run("false").failed())
        self.assertFalse(shell.exists("/missing"))

    def test_timeout_becomes_exit_code(self) -> None:
        class HangingClient(FakeSSHClient):
            hang = True

        shell = SSHShell(_credentials(), client_factory=HangingClient, command_timeout=3)  # type: ignore[arg-type]
        result = shell.run("sleep 100")
        self.assertEqual(result.exit_code, -1)
        self.assertIn("TIMEOUT", result.stderr)

    def test_connection_is_retried_then_fails(self) -> None:
        RefusingSSHClient.attempts = 0
        shell = SSHShell(
            _credentials(connect_tries=2, connect_delay=0),
            client_factory=RefusingSSHClient,  # type: ignore[arg-type]
        )
        with self.assertRaises(SSHConnectionError):
            shell.connect()
        self.assertEqual(RefusingSSHClient.attempts, 2)

    def test_files_go_through_sftp(self) -> None:
        shell = SSHShell(_credentials(), working_dir="/var/www", client_factory=FakeSSHClient)  # type: ignore[arg-type]
        shell.put_file("/tmp/dump.sql", "backups/dump.sql")
        shell.get_file("/etc/hosts", "/tmp/hosts")
        self.assertEqual(shell._client.transfers, [
            ("put", "/tmp/dump.sql", "/var/www/backups/dump.sql"),
            ("get", "/etc/hosts", "/tmp/hosts"),
        ])


class CreateShellTests(unittest.TestCase):
    def test_local_is_the_default(self) -> None:
        shell = create_shell({"rootFolder": "/tmp"})
        self.assertIsInstance(shell, LocalShell)
        self.assertEqual(shell.get_working_dir(), "/tmp")

    def test_ssh_shell_from_host_config(self) -> None:
        shell = create_shell({
            "shellProvider": "ssh",
            "host": "example.com",
            "user": "deploy",
            "port": "2222",
            "rootFolder": "/var/www",
            "executables": {"git": "git"},
        })
        self.assertIsInstance(shell, SSHShell)
        self.assertEqual(shell.credentials.port, 2222)
        self.assertEqual(shell.get_working_dir(), "/var/www")

    def test_ssh_requires_user(self) -> None:
        with self.assertRaises(ValueError):
            create_shell({"shellProvider": "ssh", "host": "example.com"})

    def test_unknown_provider(self) -> None:
        with self.assertRaises(ValueError):
            create_shell({"shellProvider": "telnet"})


if __name__ == "__main__":
    unittest.main()
