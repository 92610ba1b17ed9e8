"""Shared pytest fixtures for depsync tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from depsync.policy import PolicyTable, save_policy
from tests.helpers import write_manifest


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project root with a root manifest and three components."""
    write_manifest(tmp_path, {"name": "root", "version": "1.0.0"})
    write_manifest(tmp_path / "app-web", {"name": "app-web", "dependencies": {"react": "^18.2.0"}})
    write_manifest(tmp_path / "app-api", {"name": "app-api", "dependencies": {"express": "^4.18.0"}})
    write_manifest(tmp_path / "tools", {"name": "tools"})
    (tmp_path / "docs").mkdir()
    return tmp_path


@pytest.fixture
def policy() -> PolicyTable:
    return PolicyTable.model_validate(
        {
            "baseDependencies": {"lib-a": "1.0.0"},
            "conditionalDependencies": {
                "jquery": {"version": "^3.7.1", "patterns": ['"jquery"']},
            },
            "devDependencies": {"typescript": "~5.3.3"},
            "conditionalDevDependencies": {"webpack": "^5.90.0"},
            "deprecatedDependencies": ["old-lib"],
        }
    )


@pytest.fixture
def saved_policy(project: Path, policy: PolicyTable) -> PolicyTable:
    save_policy(project / ".depsync" / "dependencies-config.json", policy)
    return policy
