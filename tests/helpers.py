"""Builders for component trees and a recording subprocess runner."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from depsync.models import Component


def write_manifest(directory: Path, data: dict[str, Any] | None = None) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "package.json"
    path.write_text(json.dumps(data if data is not None else {"name": directory.name}, indent=2) + "\n")
    return path


def read_manifest(directory: Path) -> dict[str, Any]:
    return json.loads((directory / "package.json").read_text())


def make_component(root: Path, rel_path: str, data: dict[str, Any] | None = None) -> Component:
    directory = root / rel_path
    manifest = write_manifest(directory, data)
    return Component(
        path=rel_path,
        abs_path=directory,
        manifest_path=manifest,
        has_compiler_config=(directory / "tsconfig.json").is_file(),
    )


class FakeProcess:
    def __init__(self, returncode: int = 0, stdout: str = ""):
        self.returncode = returncode
        self.stdout = stdout


class FakeRunner:
    """Stand-in for ``subprocess.run`` that records every command."""

    def __init__(self, returncode: int = 0, node_version: str = "v20.11.0"):
        self.calls: list[tuple[list[str], dict[str, Any]]] = []
        self.returncode = returncode
        self.node_version = node_version

    def __call__(self, command, **kwargs):
        self.calls.append((list(command), kwargs))
        if command[:2] == ["node", "--version"]:
            return FakeProcess(0, self.node_version + "\n")
        return FakeProcess(self.returncode)

    @property
    def commands(self) -> list[list[str]]:
        return [c for c, _ in self.calls]
