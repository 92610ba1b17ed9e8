"""Tests for CLI commands — package manager and logging setup mocked."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from depsync.cli import main
from depsync.controller import ModeController
from depsync.package_manager import PackageManager
from tests.helpers import FakeRunner, read_manifest, write_manifest


@pytest.fixture
def fake_runner():
    runner = FakeRunner()

    def factory(root):
        return ModeController(root, package_manager=PackageManager(runner=runner))

    with (
        patch("depsync.cli.ModeController", side_effect=factory),
        patch("depsync.cli.setup_logging"),
    ):
        yield runner


def _invoke(project: Path, *args: str):
    return CliRunner().invoke(main, ["--root", str(project), *args])


class TestList:
    def test_lists_components(self, project: Path, fake_runner):
        result = _invoke(project, "list")
        assert result.exit_code == 0
        assert "app-web" in result.output
        assert "3 component(s)" in result.output

    def test_empty_project(self, tmp_path: Path, fake_runner):
        result = _invoke(tmp_path, "list")
        assert result.exit_code == 0
        assert "No components found." in result.output


class TestInstall:
    def test_all_succeed(self, project: Path, fake_runner):
        result = _invoke(project, "install", "force")
        assert result.exit_code == 0
        assert "install: 3/3 succeeded" in result.output
        assert ["npm", "install", "--force"] in fake_runner.commands

    def test_failure_exits_one(self, project: Path, fake_runner):
        fake_runner.returncode = 1
        result = _invoke(project, "install", "--single", "tools")
        assert result.exit_code == 1
        assert "install: 0/1 succeeded" in result.output
        assert "[!] tools" in result.output

    def test_single_and_exclude_conflict(self, project: Path, fake_runner):
        result = _invoke(project, "install", "--single", "tools", "--exclude", "app-web")
        assert result.exit_code == 2
        assert fake_runner.commands == []

    def test_unknown_component(self, project: Path, fake_runner):
        result = _invoke(project, "install", "--single", "nope")
        assert result.exit_code == 1
        assert "Unknown component(s): nope" in result.output

    def test_invalid_mode(self, project: Path, fake_runner):
        result = _invoke(project, "install", "sideways")
        assert result.exit_code == 2

    def test_reinstall(self, project: Path, fake_runner):
        (project / "tools" / "package-lock.json").write_text("{}")
        result = _invoke(project, "reinstall", "--exclude", "app-web", "--exclude", "app-api")
        assert result.exit_code == 0
        assert not (project / "tools" / "package-lock.json").exists()


class TestClean:
    def test_clean(self, project: Path, fake_runner):
        (project / "app-web" / "node_modules").mkdir()
        result = _invoke(project, "clean")
        assert result.exit_code == 0
        assert "clean: 3/3 succeeded" in result.output
        assert not (project / "app-web" / "node_modules").exists()


class TestUpdate:
    def test_update(self, project: Path, saved_policy, fake_runner):
        result = _invoke(project, "update")
        assert result.exit_code == 0
        assert "+ lib-a@1.0.0 (base, dependencies)" in result.output
        assert "update: 3/3 succeeded" in result.output
        assert read_manifest(project / "tools")["dependencies"] == {"lib-a": "1.0.0"}

    def test_dry_run(self, project: Path, saved_policy, fake_runner):
        result = _invoke(project, "update", "--dry-run")
        assert result.exit_code == 0
        assert "lib-a" in result.output
        assert "dependencies" not in read_manifest(project / "tools")

    def test_broken_manifest_exits_one(self, project: Path, saved_policy, fake_runner):
        (project / "tools" / "package.json").write_text("{ broken")
        result = _invoke(project, "update")
        assert result.exit_code == 1
        assert "update: 2/3 succeeded" in result.output
        assert "lib-a" in read_manifest(project / "app-web")["dependencies"]

    def test_missing_policy(self, project: Path, fake_runner):
        result = _invoke(project, "update")
        assert result.exit_code == 1
        assert "Policy file not found" in result.output


class TestPolicyCommand:
    def test_generate_then_refuse_overwrite(self, project: Path, fake_runner):
        first = _invoke(project, "policy", "generate")
        assert first.exit_code == 0
        assert "Policy written to" in first.output

        second = _invoke(project, "policy", "generate")
        assert second.exit_code == 1
        assert "already exists" in second.output

        assert _invoke(project, "policy", "generate", "--force").exit_code == 0


class TestConflicts:
    def test_no_conflicts(self, project: Path, fake_runner):
        result = _invoke(project, "conflicts")
        assert result.exit_code == 0
        assert "No version conflicts." in result.output

    def test_conflicts_exit_one(self, project: Path, fake_runner):
        (project / "yarn.lock").write_text('react@^18.2.0:\n  version "17.0.2"\n')
        result = _invoke(project, "conflicts")
        assert result.exit_code == 1
        assert "react: wants ^18.2.0, installed 17.0.2 [app-web]" in result.output


class TestDepcheck:
    def test_reports_unused(self, project: Path, fake_runner):
        write_manifest(project / "tools", {"devDependencies": {"jest": "^29.0.0"}})
        result = _invoke(project, "depcheck", "--single", "tools")
        assert result.exit_code == 0
        assert "tools (unknown): jest" in result.output
        assert fake_runner.commands == []


class TestWorkspace:
    def test_enable_status_disable(self, project: Path, fake_runner):
        with patch("depsync.package_manager.shutil.which", return_value="/usr/bin/yarn"):
            enabled = _invoke(project, "workspace", "enable")
        assert enabled.exit_code == 0, enabled.output
        assert "Workspace mode enabled." in enabled.output

        status = _invoke(project, "workspace", "status")
        assert "Configured: yes" in status.output
        assert "Workspaces: 3" in status.output

        disabled = _invoke(project, "workspace", "disable")
        assert "Workspace mode disabled." in disabled.output
        assert "workspaces" not in read_manifest(project)

    def test_enable_without_yarn(self, project: Path, fake_runner):
        with patch("depsync.package_manager.shutil.which", return_value=None):
            result = _invoke(project, "workspace", "enable")
        assert result.exit_code == 1
        assert "not found on PATH" in result.output

    def test_sync_not_configured(self, project: Path, fake_runner):
        result = _invoke(project, "workspace", "sync")
        assert result.exit_code == 1

    def test_clean_modules(self, project: Path, fake_runner):
        write_manifest(project, {"name": "root", "workspaces": ["app-web"]})
        (project / "app-web" / "node_modules").mkdir()
        result = _invoke(project, "workspace", "clean-modules")
        assert result.exit_code == 0
        assert "[+] app-web" in result.output
        assert "in 1 component(s)" in result.output
