import unittest

from hostops.capabilities import create_dispatcher
from hostops.capabilities.git import MetaInformation
from hostops.config import Configuration, ConfigurationError
from hostops.shell.base import CommandResult, ShellProvider
from hostops.tasks.context import TaskContext


class ScriptedShell(ShellProvider):
    """Answers commands from a table instead of running them."""

    name = "scripted"

    def __init__(self, exit_codes=None, outputs=None) -> None:
        super().__init__(".")
        self.commands: list[str] = []
        self.directories: list[str] = []
        self.exit_codes = dict(exit_codes or {})
        self.outputs = dict(outputs or {})

    def cd(self, path: str) -> None:
        super().cd(path)
        self.directories.append(path)

    def _execute(self, command: str, *, capture_output: bool) -> CommandResult:
        self.commands.append(command)
        return CommandResult(command, self.exit_codes.get(command, 0), list(self.outputs.get(command, [])))

    def exists(self, path: str) -> bool:
        return False

    def put_file(self, source, dest, context=None) -> None:  # pragma: no cover - unused
        pass

    def get_file(self, source, dest) -> None:  # pragma: no cover - unused
        pass


DIRTY = {"git diff --exit-code --quiet": 1}


class GitTestCase(unittest.TestCase):
    host_data: dict = {}

    def setUp(self) -> None:
        self.dispatcher = create_dispatcher()
        host = {"needs": ["git", "script"], "rootFolder": "/srv/app"}
        host.update(self.host_data)
        self.configuration = Configuration.from_dict({
            "repository": "git@example.com:acme/shop.git",
            "hosts": {"web": host},
            "common": {
                "deployPrepare": {"dev": ["echo prepare"]},
                "deployFinished": {"dev": ["echo finished"]},
            },
        })
        self.host = self.configuration.get_host_config("web", self.dispatcher.registry)

    def use_shell(self, **kwargs) -> ScriptedShell:
        shell = ScriptedShell(**kwargs)
        self.host.set_shell(shell)
        return shell


class GitDefaultsTests(GitTestCase):
    def test_defaults_and_global_settings(self) -> None:
        self.assertEqual(self.host["branch"], "develop")
        self.assertEqual(self.host["gitRootFolder"], "/srv/app")
        self.assertFalse(self.host["ignoreSubmodules"])
        self.assertEqual(self.host.get_property("gitOptions.pull"), ["--no-edit", "--rebase"])
        self.assertEqual(self.host["executables"]["git"], "git")


class GitDeployTests(GitTestCase):
    def test_dirty_working_copy_aborts_the_chain(self) -> None:
        shell = self.use_shell(exit_codes=DIRTY)
        context = TaskContext(self.configuration)

        with self.assertLogs("hostops", level="ERROR") as logs:
            exit_code = self.dispatcher.execute("deploy", self.host, context, next_tasks=["version"])

        self.assertEqual(exit_code, 1)
        self.assertNotIn("git describe --always --tags", shell.commands)
        self.assertEqual(shell.commands, ["echo prepare", "git diff --exit-code --quiet", "git status"])
        self.assertFalse([c for c in shell.commands if c.startswith(("git fetch", "git checkout", "git pull"))])
        self.assertNotIn("echo finished", shell.commands)
        self.assertTrue(any("Working copy is not clean" in line for line in logs.output))

    def test_clean_working_copy_is_updated(self) -> None:
        shell = self.use_shell()
        exit_code = self.dispatcher.execute("deploy", self.host, TaskContext(self.configuration))

        self.assertEqual(exit_code, 0)
        self.assertEqual(shell.commands, [
            "echo prepare",
            "git diff --exit-code --quiet",
            "git fetch -q origin",
            "git checkout develop",
            "git fetch --tags",
            "git pull -q --no-edit --rebase origin develop",
            "git submodule update --init",
            "git submodule sync",
            "echo finished",
        ])
        self.assertIn("/srv/app", shell.directories)

    def test_branch_from_context_wins(self) -> None:
        shell = self.use_shell()
        self.dispatcher.execute("deploy", self.host, TaskContext(self.configuration, variables={"branch": "hotfix"}))
        self.assertIn("git checkout hotfix", shell.commands)
        self.assertIn("git pull -q --no-edit --rebase origin hotfix", shell.commands)


class GitWithoutSubmodulesTests(GitTestCase):
    host_data = {"ignoreSubmodules": True, "branch": "main"}

    def test_submodules_can_be_ignored(self) -> None:
        shell = self.use_shell()
        self.dispatcher.execute("deploy", self.host, TaskContext(self.configuration))
        self.assertIn("git checkout main", shell.commands)
        self.assertFalse([c for c in shell.commands if "submodule" in c])


class GitInformationTests(GitTestCase):
    outputs = {
        "git describe --always --tags": ["release/1.2-3-gabc"],
        "git rev-parse HEAD": ["abc123"],
    }

    def test_version(self) -> None:
        self.use_shell(outputs=self.outputs)
        context = TaskContext(self.configuration)
        self.dispatcher.call("git", "version", self.host, context)
        self.assertEqual(context.get_result("version"), "release-1.2-3-gabc")

    def test_version_is_empty_when_describe_fails(self) -> None:
        self.use_shell(exit_codes={"git describe --always --tags": 128})
        context = TaskContext(self.configuration)
        self.dispatcher.call("git", "version", self.host, context)
        self.assertEqual(context.get_result("version"), "")

    def test_backup_prepare_inserts_version(self) -> None:
        self.use_shell(outputs=self.outputs)
        context = TaskContext(self.configuration)
        context.set_result("basename", ["web", "2024-01-01"])
        self.dispatcher.call("git", "backupPrepare", self.host, context)
        self.assertEqual(context.get_result("basename"), ["web", "release-1.2-3-gabc", "2024-01-01"])

    def test_meta_information_is_appended(self) -> None:
        self.use_shell(outputs=self.outputs)
        context = TaskContext(self.configuration)
        context.add_result("meta", [MetaInformation("Host", "web")])
        self.dispatcher.call("git", "getMetaInformation", self.host, context)
        self.assertEqual(context.get_result("meta"), [
            MetaInformation("Host", "web"),
            MetaInformation("Version", "release-1.2-3-gabc"),
            MetaInformation("Commit", "abc123"),
        ])

    def test_app_check_existing_keeps_known_dir(self) -> None:
        self.use_shell()
        context = TaskContext(self.configuration)
        self.dispatcher.call("git", "appCheckExisting", self.host, context)
        self.assertEqual(context.get_result("appInstallDir"), "/srv/app")

        context.set_result("appInstallDir", "/srv/other")
        self.dispatcher.call("git", "appCheckExisting", self.host, context)
        self.assertEqual(context.get_result("appInstallDir"), "/srv/other")


class GitAppCreateTests(GitTestCase):
    def test_install_code_stage_clones_repository(self) -> None:
        shell = self.use_shell()
        context = TaskContext(self.configuration, variables={
            "currentStage": {"stage": "installCode"},
            "installDir": "/srv/new",
        })
        self.dispatcher.call("git", "appCreate", self.host, context)
        self.assertEqual(shell.commands, [
            "git clone -b develop git@example.com:acme/shop.git /srv/new",
            "git submodule update --init",
            "touch .projectCreated",
        ])
        self.assertEqual(shell.directories[-2:], ["/srv/new", "."])

    def test_other_stages_are_ignored(self) -> None:
        shell = self.use_shell()
        context = TaskContext(self.configuration, variables={"currentStage": {"stage": "spinUp"}})
        self.dispatcher.call("git", "appCreate", self.host, context)
        self.assertEqual(shell.commands, [])

    def test_stage_is_required(self) -> None:
        self.use_shell()
        with self.assertRaises(ValueError):
            self.dispatcher.call("git", "appCreate", self.host, TaskContext(self.configuration))

    def test_repository_is_required(self) -> None:
        self.use_shell()
        self.configuration.settings.pop("repository")
        context = TaskContext(self.configuration, variables={"currentStage": {"stage": "installCode"}})
        with self.assertRaises(ConfigurationError):
            self.dispatcher.call("git", "appCreate", self.host, context)


if __name__ == "__main__":
    unittest.main()
