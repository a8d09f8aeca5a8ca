"""Configuration loading utilities for hostops."""

from __future__ import annotations

import copy
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Set

import requests
from dotenv import load_dotenv

from .utils.data import get_property, merge_data

if TYPE_CHECKING:
    from .shell.base import ShellProvider
    from .tasks.registry import CapabilityRegistry

# Load .env file if it exists
load_dotenv()

_DEFAULT_CONFIG_PATH = Path("hostops.json")

DEFAULT_HOST_TYPE = "dev"


class ConfigurationError(ValueError):
    """Raised when the configuration cannot be used to dispatch tasks."""


class HostConfig:
    """One host's configuration: ordered `needs` plus arbitrary values."""

    def __init__(self, config_name: str, data: Dict[str, Any], shell: Optional["ShellProvider"] = None) -> None:
        self._data = dict(data)
        self._data.setdefault("configName", config_name)
        self._shell = shell

    @property
    def config_name(self) -> str:
        return self._data["configName"]

    @property
    def needs(self) -> List[str]:
        return list(self._data.get("needs", []))

    @property
    def type(self) -> Optional[str]:
        return self._data.get("type")

    def is_type(self, host_type: str) -> bool:
        return self.type == host_type

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def get_property(self, path: str, default: Any = None) -> Any:
        return get_property(self._data, path, default)

    def raw(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)

    def clone(self) -> "HostConfig":
        """Independent copy of the data that keeps talking to the same shell."""
        clone = HostConfig(self.config_name, self.raw())
        clone._shell = self.shell() if self._shell is None else self._shell
        return clone

    def shell(self) -> "ShellProvider":
        if self._shell is None:
            from .shell import create_shell

            self._shell = create_shell(self._data)
        return self._shell

    def set_shell(self, shell: "ShellProvider") -> None:
        self._shell = shell

    def close(self) -> None:
        if self._shell is not None:
            self._shell.close()


@dataclass
class Configuration:
    """Global settings, host configs included under `hosts`."""

    settings: Dict[str, Any] = field(default_factory=dict)
    source: Optional[str] = None
    _applied: Set[str] = field(default_factory=set, init=False, repr=False)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any], source: Optional[str] = None) -> "Configuration":
        # Keys starting with an underscore are comments
        settings = {k: v for k, v in payload.items() if not k.startswith("_")}
        hosts = settings.get("hosts", {}) or {}
        if not isinstance(hosts, dict):
            raise ConfigurationError("`hosts` must be a mapping of host names to host configs")
        settings["hosts"] = hosts
        return cls(settings=settings, source=source)

    @property
    def hosts(self) -> Dict[str, Dict[str, Any]]:
        return self.settings.get("hosts", {})

    def host_names(self) -> List[str]:
        return list(self.hosts)

    def get_setting(self, path: str, default: Any = None) -> Any:
        return get_property(self.settings, path, default)

    def get_all_settings(self, exclude: Iterable[str] = ()) -> Dict[str, Any]:
        excluded = set(exclude)
        return {key: copy.deepcopy(value) for key, value in self.settings.items() if key not in excluded}

    def apply_global_settings(self, registry: "CapabilityRegistry") -> None:
        """Merge capability defaults underneath the loaded settings, once each."""
        for capability in registry.all():
            if capability.name in self._applied:
                continue
            self.settings = merge_data(capability.global_settings(), self.settings)
            self._applied.add(capability.name)

    def get_host_config(self, name: str, registry: "CapabilityRegistry") -> HostConfig:
        if name not in self.hosts:
            raise ConfigurationError(
                f"Could not find host config `{name}`, available: {', '.join(self.host_names()) or 'none'}"
            )
        self.apply_global_settings(registry)

        data = self.hosts[name] or {}
        needs = data.get("needs", self.get_setting("needs"))
        if not needs or not isinstance(needs, list) or not all(isinstance(n, str) for n in needs):
            raise ConfigurationError(f"Host config `{name}` needs a non-empty list of capability names in `needs`")

        defaults: Dict[str, Any] = {
            "configName": name,
            "type": DEFAULT_HOST_TYPE,
            "needs": needs,
            "executables": self.get_setting("executables", {}) or {},
        }
        for capability in registry.subset(needs):
            defaults = merge_data(defaults, capability.default_config(self, data))
        merged = merge_data(defaults, data)
        merged["needs"] = list(needs)

        if merged.get("shellProvider") == "ssh" and not merged.get("password"):
            env_password = os.getenv("HOSTOPS_SSH_PASSWORD")
            if env_password:
                merged["password"] = env_password

        return HostConfig(name, merged)


def _is_url(location: str) -> bool:
    return location.startswith("http://") or location.startswith("https://")


def read_resource(location: str) -> Dict[str, Any]:
    """Read a JSON document from a local path or an http(s) URL."""
    if _is_url(location):
        response = requests.get(location, timeout=30)
        response.raise_for_status()
        return response.json()
    with open(location, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _load_data(location: str, parents: frozenset = frozenset()) -> Dict[str, Any]:
    if location in parents:
        raise ConfigurationError(f"`inheritsFrom` loop detected at {location}")

    data = read_resource(location)
    if not isinstance(data, dict):
        raise ConfigurationError(f"{location} does not contain a JSON object")

    inherits = data.pop("inheritsFrom", []) or []
    if isinstance(inherits, str):
        inherits = [inherits]
    base: Dict[str, Any] = {}
    for parent in inherits:
        if not _is_url(parent) and not _is_url(location) and not os.path.isabs(parent):
            parent = str(Path(location).parent / parent)
        base = merge_data(base, _load_data(parent, parents | {location}))
    return merge_data(base, data)


def load_config(path: Optional[str] = None) -> Configuration:
    """Load configuration from `path` or the default location.

    Environment variables:
    - HOSTOPS_CONFIG: config file used when no path is given
    - HOSTOPS_SSH_PASSWORD: password for ssh hosts without one
    - HOSTOPS_LOG_LEVEL: logging level (see utils.logging)
    """

    candidates: List[str] = []
    if path:
        candidates.append(path)
    env_path = os.getenv("HOSTOPS_CONFIG")
    if env_path:
        candidates.append(env_path)
    candidates.append(str(_DEFAULT_CONFIG_PATH))

    for candidate in candidates:
        if _is_url(candidate) or Path(candidate).is_file():
            return Configuration.from_dict(_load_data(candidate), source=candidate)

    raise FileNotFoundError(
        f"Could not find configuration file. Looked in: {', '.join(candidates)}"
    )
