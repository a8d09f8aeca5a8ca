"""Git-based code deployment for a host's working copy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Mapping

from ..config import ConfigurationError
from ..tasks.errors import EarlyTaskExit
from .base import Capability, task

if TYPE_CHECKING:
    from ..config import Configuration, HostConfig
    from ..tasks.context import TaskContext


@dataclass(frozen=True)
class MetaInformation:
    """One labelled value reported by `getMetaInformation`."""

    label: str
    value: str
    is_public: bool = True


class GitCapability(Capability):
    """Keeps `gitRootFolder` in sync with a branch of the project repository."""

    name = "git"

    def global_settings(self) -> Dict[str, Any]:
        return {
            "gitOptions": {
                "pull": ["--no-edit", "--rebase"],
            },
            "executables": {
                "git": "git",
            },
        }

    def default_config(self, configuration: "Configuration", host_data: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "branch": "develop",
            "gitRootFolder": host_data.get("rootFolder", "."),
            "ignoreSubmodules": False,
            "gitOptions": configuration.get_setting("gitOptions", {}) or {},
        }

    def get_version(self, host: "HostConfig", context: "TaskContext") -> str:
        shell = self.get_shell(host, context)
        shell.cd(host["gitRootFolder"])
        result = shell.run("#!git describe --always --tags", capture_output=True)
        if result.succeeded() and result.output:
            return result.output[0].replace("/", "-")
        return ""

    def get_commit_hash(self, host: "HostConfig", context: "TaskContext") -> str:
        shell = self.get_shell(host, context)
        shell.cd(host["gitRootFolder"])
        result = shell.run("#!git rev-parse HEAD", capture_output=True)
        return result.output[0] if result.output else ""

    def is_working_copy_clean(self, host: "HostConfig", context: "TaskContext") -> bool:
        shell = self.get_shell(host, context)
        shell.cd(host["gitRootFolder"])
        result = shell.run("#!git diff --exit-code --quiet", capture_output=True)
        return result.succeeded()

    @task("version")
    def version(self, host: "HostConfig", context: "TaskContext") -> None:
        version = self.get_version(host, context)
        context.set("version", version)
        context.set_result("version", version)

    @task("deploy")
    def deploy(self, host: "HostConfig", context: "TaskContext") -> None:
        shell = self.get_shell(host, context)
        shell.cd(host["gitRootFolder"])
        if not self.is_working_copy_clean(host, context):
            self.logger.error("Working copy is not clean, aborting")
            shell.run("#!git status")
            raise EarlyTaskExit(f"Working copy of `{host.config_name}` is not clean")

        branch = context.get("branch") or host["branch"]

        shell.run("#!git fetch -q origin")
        shell.run(f"#!git checkout {branch}")
        shell.run("#!git fetch --tags")

        git_options = " ".join(host.get_property("gitOptions.pull", []) or [])
        shell.run(f"#!git pull -q {git_options} origin {branch}")

        if not host.get("ignoreSubmodules"):
            shell.run("#!git submodule update --init")
            shell.run("#!git submodule sync")

    @task("backupPrepare")
    def backup_prepare(self, host: "HostConfig", context: "TaskContext") -> None:
        version = self.get_version(host, context)
        if version:
            basename = list(context.get_result("basename", []) or [])
            basename.insert(1, version)
            context.set_result("basename", basename)

    @task("getMetaInformation")
    def get_meta_information(self, host: "HostConfig", context: "TaskContext") -> None:
        context.add_result("meta", [
            MetaInformation("Version", self.get_version(host, context)),
            MetaInformation("Commit", self.get_commit_hash(host, context)),
        ])

    @task("appCheckExisting")
    def app_check_existing(self, host: "HostConfig", context: "TaskContext") -> None:
        if not context.get_result("appInstallDir"):
            context.set_result("appInstallDir", host["gitRootFolder"])

    @task("appCreate")
    def app_create(self, host: "HostConfig", context: "TaskContext") -> None:
        current_stage = context.get("currentStage")
        if not current_stage:
            raise ValueError("Missing currentStage on context!")
        if current_stage.get("stage") != "installCode":
            return

        shell = context.get("outerShell") or self.get_shell(host, context)
        install_dir = context.get("installDir") or host["gitRootFolder"]
        repository = context.configuration.get_setting("repository") if context.configuration else None
        if not repository:
            raise ConfigurationError("Missing `repository` in the configuration, cannot create the app")

        shell.run(f"#!git clone -b {host['branch']} {repository} {install_dir}")

        cwd = shell.get_working_dir()
        if not host.get("ignoreSubmodules"):
            shell.cd(install_dir)
            shell.run("#!git submodule update --init")

        shell.run("touch .projectCreated")
        shell.cd(cwd)
