"""Capability marking a host as the current machine."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any, Dict, Mapping

from .base import Capability

if TYPE_CHECKING:
    from ..config import Configuration


class LocalCapability(Capability):
    name = "local"

    def default_config(self, configuration: "Configuration", host_data: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "rootFolder": os.getcwd(),
            "shellProvider": "local",
        }
