"""Tests for test-file discovery, the Rule Zero linter CLI and the lint hook."""

import json
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from testwarden.errors import InputNotFoundError
from testwarden.integrity.discovery import (
    discover,
    find_test_files,
    is_test_file,
    resolve_test_dirs,
)
from testwarden.integrity.lint_hook import run_hook
from testwarden.integrity.linter import lint, main

from conftest import write_file

MUTATING = (
    "test('AC-2: close', async ({ page }) => {\n"
    "  await page.evaluate(() => {\n"
    "    document.getElementById('modal').style.display = 'none';\n"
    "  });\n"
    "});\n"
)
READ_ONLY = (
    "test('AC-1: title', async ({ page }) => {\n"
    "  const title = await page.evaluate(() => document.title);\n"
    "  expect(title).toBe('Home');\n"
    "});\n"
)
WARNING_ONLY = (
    "test('AC-3: search', async ({ page }) => {\n"
    "  await page.evaluate(() => { document.getElementById('q').value = 'x'; });\n"
    "});\n"
)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

class TestIsTestFile:

    @pytest.mark.parametrize("name", [
        "login.spec.ts", "login.test.js", "api.spec.mjs", "LoginTests.cs",
        "test_login.py", "login_test.py", "login_test.go",
    ])
    def test_recognized(self, name):
        assert is_test_file(name)

    @pytest.mark.parametrize("name", [
        "login.ts", "helpers.js", "conftest.py", "Login.cs", "spec.md", "_test.py",
    ])
    def test_rejected(self, name):
        assert not is_test_file(name)


class TestDiscovery:

    def test_auto_detects_conventional_dirs(self, project, ctx):
        write_file(project, "tests/e2e/a.spec.ts", READ_ONLY)
        write_file(project, "spec/b.test.js", READ_ONLY)
        write_file(project, "tests/helpers.ts", "export {}")
        files = discover(ctx)
        names = sorted(p.name for p in files)
        assert names == ["a.spec.ts", "b.test.js"]

    def test_skips_dependency_trees(self, project):
        write_file(project, "tests/node_modules/lib/x.spec.js", MUTATING)
        write_file(project, "tests/build/y.spec.js", MUTATING)
        write_file(project, "tests/ok.spec.js", READ_ONLY)
        files = find_test_files(project / "tests")
        assert [p.name for p in files] == ["ok.spec.js"]

    def test_no_test_dirs_returns_none(self, ctx):
        assert discover(ctx) is None

    def test_explicit_dir_must_exist(self, ctx):
        with pytest.raises(InputNotFoundError, match="Directory not found"):
            resolve_test_dirs(ctx, "missing")

    def test_explicit_file_must_exist(self, ctx):
        with pytest.raises(InputNotFoundError, match="File not found"):
            discover(ctx, cli_file="tests/missing.spec.ts")

    def test_explicit_file_only(self, project, ctx):
        write_file(project, "tests/a.spec.ts", READ_ONLY)
        target = write_file(project, "tests/b.spec.ts", READ_ONLY)
        assert discover(ctx, cli_file="tests/b.spec.ts") == [target]


# ---------------------------------------------------------------------------
# Linter
# ---------------------------------------------------------------------------

class TestLintJson:
    """--json output and exit codes."""

    def test_clean_project(self, project, ctx, capsys):
        write_file(project, "tests/e2e/title.spec.ts", READ_ONLY)
        code = lint(ctx, json_output=True)
        data = json.loads(capsys.readouterr().out)
        assert code == 0
        assert data["files"] == 1
        assert data["violations"] == []
        assert data["status"] == "clean"
        assert "unreadable" not in data

    def test_blocked_project(self, project, ctx, capsys):
        write_file(project, "tests/e2e/modal.spec.ts", MUTATING)
        code = lint(ctx, json_output=True)
        data = json.loads(capsys.readouterr().out)
        assert code == 1
        assert data["status"] == "blocked"
        assert data["critical"] == 1
        record = data["violations"][0]
        assert set(record) == {"file", "line", "id", "severity", "description", "rule", "context"}
        assert record["file"] == "tests/e2e/modal.spec.ts"
        assert record["line"] == 3

    def test_warnings_only_exit_zero(self, project, ctx, capsys):
        write_file(project, "tests/search.spec.ts", WARNING_ONLY)
        code = lint(ctx, json_output=True)
        data = json.loads(capsys.readouterr().out)
        assert code == 0
        assert data["status"] == "warnings"
        assert data["warnings"] == 1

    def test_no_test_dirs(self, ctx, capsys):
        code = lint(ctx, json_output=True)
        data = json.loads(capsys.readouterr().out)
        assert code == 0
        assert data == {"error": "No test directories found", "violations": [], "files": 0}

    def test_missing_file(self, ctx, capsys):
        code = lint(ctx, cli_file="tests/nope.spec.ts", json_output=True)
        data = json.loads(capsys.readouterr().out)
        assert code == 1
        assert "File not found" in data["error"]
        assert data["violations"] == []
        assert data["files"] == 0


class TestLintHuman:
    """Human-readable report."""

    def test_pass_message(self, project, ctx, capsys):
        write_file(project, "tests/title.spec.ts", READ_ONLY)
        assert lint(ctx) == 0
        out = capsys.readouterr().out
        assert "Test Integrity Linter" in out
        assert "PASS: No Rule Zero violations detected." in out

    def test_blocked_message_with_suggestions(self, project, ctx, capsys):
        write_file(project, "tests/modal.spec.ts", MUTATING)
        assert lint(ctx, show_suggestions=True) == 1
        out = capsys.readouterr().out
        assert "CRITICAL VIOLATIONS: 1" in out
        assert "[CRITICAL] tests/modal.spec.ts:3" in out
        assert "Fix: Remove this code." in out
        assert "BLOCKED:" in out

    def test_warnings_only_message(self, project, ctx, capsys):
        write_file(project, "tests/search.spec.ts", WARNING_ONLY)
        assert lint(ctx) == 0
        out = capsys.readouterr().out
        assert "WARNINGS ONLY" in out

    def test_no_test_dirs_message(self, ctx, capsys):
        assert lint(ctx) == 0
        assert "No test directories found" in capsys.readouterr().out

    def test_empty_test_dir(self, project, ctx, capsys):
        (project / "tests").mkdir()
        assert lint(ctx) == 0
        assert "No test files found." in capsys.readouterr().out


class TestLintMain:
    """Process entry point."""

    def test_main_exit_code(self, project, capsys):
        write_file(project, "tests/modal.spec.ts", MUTATING)
        with pytest.raises(SystemExit) as exc:
            main(["--project-root", str(project), "--json"])
        assert exc.value.code == 1
        assert json.loads(capsys.readouterr().out)["status"] == "blocked"

    def test_main_log_file_gets_debug_summary(self, project, package_logger):
        write_file(project, "tests/modal.spec.ts", MUTATING)
        with pytest.raises(SystemExit) as exc:
            main(["--project-root", str(project), "--json", "--log-file", "logs/lint.log"])
        assert exc.value.code == 1
        for handler in package_logger.handlers:
            handler.flush()
        text = (project / "logs" / "lint.log").read_text(encoding="utf-8")
        assert "Scanned 1 file(s): 1 critical, 0 warnings, 0 unreadable" in text

    def test_main_reads_sys_argv(self, project, capsys):
        write_file(project, "tests/e2e/title.spec.ts", READ_ONLY)
        argv = ["linter.py", "--project-root", str(project), "--dir", "tests/e2e"]
        with patch("sys.argv", argv):
            with pytest.raises(SystemExit) as exc:
                main()
        assert exc.value.code == 0
        assert "Scanning 1 test file(s)" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# Lint hook
# ---------------------------------------------------------------------------

class TestLintHook:

    def test_ignores_non_test_files(self, project, ctx, capsys):
        path = write_file(project, "src/app.js", MUTATING)
        assert run_hook(str(path), ctx) == 0
        assert capsys.readouterr().out == ""

    def test_ignores_empty_path(self, ctx):
        assert run_hook("", ctx) == 0

    def test_blocks_mutating_test_file(self, project, ctx, capsys):
        path = write_file(project, "tests/modal.spec.ts", MUTATING)
        assert run_hook(str(path), ctx) == 1
        assert "CRITICAL VIOLATIONS: 1" in capsys.readouterr().out

    def test_clean_test_file(self, project, ctx):
        path = write_file(project, "tests/title.spec.ts", READ_ONLY)
        assert run_hook(str(path), ctx) == 0
