"""Capability for hosts reached over SSH."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Mapping

from .base import Capability

if TYPE_CHECKING:
    from ..config import Configuration


class SSHCapability(Capability):
    name = "ssh"

    def default_config(self, configuration: "Configuration", host_data: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "port": 22,
            "shellProvider": "ssh",
            "sshTimeout": configuration.get_setting("sshTimeout", 20),
        }
