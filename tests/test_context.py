import unittest

from hostops.tasks.context import Merge, ResultStore, TaskContext


class ResultStoreTests(unittest.TestCase):
    def test_overwrite_is_the_default_discipline(self) -> None:
        store = ResultStore()
        self.assertIs(store.discipline("version"), Merge.OVERWRITE)
        self.assertIs(store.discipline("files"), Merge.APPEND)

    def test_add_refuses_overwrite_keys(self) -> None:
        store = ResultStore()
        store.declare("version", Merge.OVERWRITE)
        with self.assertRaises(ValueError):
            store.add("version", ["1.0"])

    def test_merge_appends_and_overwrites(self) -> None:
        parent = ResultStore()
        parent.set("version", "1.0")
        parent.add("files", ["a.txt"])

        child = parent.snapshot()
        child.set("version", "2.0")
        child.add("files", ["b.txt"])
        parent.merge(child)

        self.assertEqual(parent.get("version"), "2.0")
        self.assertEqual(parent.get("files"), ["a.txt", "b.txt"])

    def test_snapshot_does_not_share_lists(self) -> None:
        parent = ResultStore()
        parent.add("files", ["a.txt"])
        child = parent.snapshot()
        child.add("files", ["b.txt"])
        self.assertEqual(parent.get("files"), ["a.txt"])

    def test_unchanged_snapshot_merges_to_nothing(self) -> None:
        parent = ResultStore()
        parent.add("files", ["a.txt"])
        parent.merge(parent.snapshot())
        self.assertEqual(parent.get("files"), ["a.txt"])


class TaskContextTests(unittest.TestCase):
    def test_clone_isolates_variables(self) -> None:
        context = TaskContext(variables={"branch": "main"})
        child = context.clone()
        child.set("branch", "feature")
        child.set("extra", True)
        self.assertEqual(context.get("branch"), "main")
        self.assertFalse(context.has("extra"))

    def test_results_flow_back_only_through_merge(self) -> None:
        context = TaskContext()
        child = context.clone()
        child.set_result("exitCode", 3)
        self.assertFalse(context.has_result("exitCode"))
        context.merge_results(child)
        self.assertEqual(context.get_result("exitCode"), 3)

    def test_clone_shares_shell_and_policy(self) -> None:
        shell = object()
        context = TaskContext(shell=shell)  # type: ignore[arg-type]
        context.break_on_first_error = False
        child = context.clone()
        self.assertIs(child.shell, shell)
        self.assertFalse(child.break_on_first_error)


if __name__ == "__main__":
    unittest.main()
