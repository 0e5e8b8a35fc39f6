import sys

import pytest

from captainhook.provision.runner import CommandError, CommandRunner


class TestRun:

    def test_success_with_capture(self):
        result = CommandRunner().run([sys.executable, "-c", "print('hi')"], capture=True)
        assert result.returncode == 0
        assert result.stdout.strip() == "hi"

    def test_extra_env(self):
        result = CommandRunner().run(
            [sys.executable, "-c", "import os; print(os.environ['HOOK_TEST'])"],
            capture=True,
            env={"HOOK_TEST": "yes"},
        )
        assert result.stdout.strip() == "yes"

    def test_failure_raises(self):
        with pytest.raises(CommandError) as exc:
            CommandRunner().run([sys.executable, "-c", "raise SystemExit(3)"])
        assert exc.value.returncode == 3

    def test_failure_ignored_without_check(self):
        result = CommandRunner().run([sys.executable, "-c", "raise SystemExit(3)"], check=False)
        assert result.returncode == 3

    def test_missing_executable(self):
        with pytest.raises(CommandError) as exc:
            CommandRunner().run(["definitely-not-a-real-command-xyz"])
        assert exc.value.returncode is None
        assert "command not found" in str(exc.value)

    def test_missing_executable_without_check(self):
        result = CommandRunner().run(["definitely-not-a-real-command-xyz"], check=False)
        assert result.returncode == 127


class TestFiles:

    def test_write_file_creates_parents_and_mode(self, tmp_path):
        target = tmp_path / "a" / "b.env"
        CommandRunner().write_file(target, "X=1\n", mode=0o600)
        assert target.read_text() == "X=1\n"
        assert (target.stat().st_mode & 0o777) == 0o600

    def test_symlink_replaces(self, tmp_path):
        first, second = tmp_path / "one", tmp_path / "two"
        first.write_text("1")
        second.write_text("2")
        link = tmp_path / "link"
        runner = CommandRunner()
        runner.symlink(first, link)
        runner.symlink(second, link)
        assert link.read_text() == "2"

    def test_remove_missing_is_fine(self, tmp_path):
        CommandRunner().remove(tmp_path / "nothing")


class TestDryRun:

    def test_commands_not_executed(self):
        result = CommandRunner(dry_run=True).run(["definitely-not-a-real-command-xyz"])
        assert result.returncode == 0

    def test_files_untouched(self, tmp_path):
        runner = CommandRunner(dry_run=True)
        runner.write_file(tmp_path / "f", "data")
        runner.make_dirs(tmp_path / "d")
        runner.copy_tree(tmp_path, tmp_path / "copy")
        assert list(tmp_path.iterdir()) == []


def test_symlink_creates_missing_parent(tmp_path):
    target = tmp_path / "site.conf"
    target.write_text("server {}")
    link = tmp_path / "sites-enabled" / "site.conf"
    CommandRunner().symlink(target, link)
    assert link.is_symlink()
    assert link.read_text() == "server {}"
