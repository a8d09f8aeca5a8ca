"""SSH credential helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass
class SSHCredentials:
    """Normalized credential payload from a host config."""

    host: str
    username: str
    port: int = 22
    password: Optional[str] = None
    key_path: Optional[str] = None
    passphrase: Optional[str] = None
    timeout: int = 20
    connect_tries: int = 3
    connect_delay: float = 5.0

    @property
    def auth_method(self) -> str:
        return "key" if self.key_path else "password"

    def validate(self) -> None:
        if not self.host:
            raise ValueError("SSH host missing")
        if not self.username:
            raise ValueError("SSH user missing")

    @classmethod
    def from_host_config(cls, data: Mapping[str, Any]) -> "SSHCredentials":
        return cls(
            host=data.get("host", ""),
            username=data.get("user", ""),
            port=int(data.get("port", 22)),
            password=data.get("password"),
            key_path=data.get("keyFile"),
            passphrase=data.get("passphrase"),
            timeout=int(data.get("sshTimeout", 20)),
        )
