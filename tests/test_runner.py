"""
Tests for db_backup/runner.py

These spawn the running Python interpreter as the external command.
"""

import sys

from db_backup.runner import COMMAND_NOT_FOUND, SubprocessRunner


class TestSubprocessRunner:

    def test_captures_output_and_exit_code(self):
        script = "import sys; sys.stdout.write('out'); sys.stderr.write('err'); sys.exit(3)"

        result = SubprocessRunner().run([sys.executable, "-c", script])

        assert result.returncode == 3
        assert result.stdout == "out"
        assert result.stderr == "err"

    def test_env_is_merged_over_process_environment(self, monkeypatch):
        monkeypatch.setenv("INHERITED_VALUE", "kept")
        script = "import os, sys; sys.stdout.write(os.environ['INHERITED_VALUE'] + ':' + os.environ['PGPASSWORD'])"

        result = SubprocessRunner().run([sys.executable, "-c", script], env={"PGPASSWORD": "secret"})

        assert result.stdout == "kept:secret"

    def test_none_values_are_not_exported(self, monkeypatch):
        monkeypatch.delenv("MYSQL_PWD", raising=False)
        script = "import os, sys; sys.stdout.write(str('MYSQL_PWD' in os.environ))"

        result = SubprocessRunner().run([sys.executable, "-c", script], env={"MYSQL_PWD": None})

        assert result.stdout == "False"

    def test_missing_executable(self):
        result = SubprocessRunner().run(["definitely-not-a-real-tool-4f1c"])

        assert result.returncode == COMMAND_NOT_FOUND
        assert "definitely-not-a-real-tool-4f1c" in result.stderr
