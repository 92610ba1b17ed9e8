"""Package-manager boundary. Every npm, yarn and node invocation goes through here."""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Callable, Sequence
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from depsync.config import Commands
from depsync.exceptions import PackageManagerError
from depsync.models import CommandResult

log = structlog.get_logger("depsync.package_manager")

Runner = Callable[..., Any]

# Exit status reported when the executable itself cannot be started.
COMMAND_NOT_FOUND = 127


class InstallMode(str, Enum):
    NORMAL = "normal"
    LEGACY = "legacy"
    FORCE = "force"

    @property
    def flags(self) -> list[str]:
        if self is InstallMode.LEGACY:
            return ["--legacy-peer-deps"]
        if self is InstallMode.FORCE:
            return ["--force"]
        return []


class PackageManager:
    """Run package-manager commands; non-zero exits are returned, not raised."""

    def __init__(self, commands: Commands | None = None, runner: Runner = subprocess.run) -> None:
        self._commands = commands or Commands()
        self._runner = runner

    @property
    def npm(self) -> str:
        return self._commands.npm.resolve()

    @property
    def yarn(self) -> str:
        return self._commands.yarn.resolve()

    def _run(self, command: list[str], cwd: Path) -> CommandResult:
        log.info("package_manager.run", command=" ".join(command), cwd=str(cwd))
        try:
            proc = self._runner(command, cwd=str(cwd), check=False)
        except FileNotFoundError:
            log.error("package_manager.not_found", executable=command[0])
            return CommandResult(COMMAND_NOT_FOUND, command, str(cwd))
        if proc.returncode != 0:
            log.warning("package_manager.failed", command=" ".join(command), status=proc.returncode)
        return CommandResult(proc.returncode, command, str(cwd))

    def install(self, cwd: Path, mode: InstallMode = InstallMode.NORMAL) -> CommandResult:
        """Per-component install."""
        return self._run([self.npm, "install", *InstallMode(mode).flags], cwd)

    def workspace_install(self, root: Path) -> CommandResult:
        """Centralized install at the project root."""
        return self._run([self.yarn, "install"], root)

    def uninstall(self, cwd: Path, packages: Sequence[str]) -> CommandResult:
        return self._run([self.npm, "uninstall", *packages], cwd)

    def yarn_available(self) -> bool:
        return shutil.which(self.yarn) is not None

    def require_yarn(self) -> None:
        if not self.yarn_available():
            raise PackageManagerError(
                f"'{self.yarn}' not found on PATH; install it with '{self.npm} install -g yarn'"
            )

    def runtime_version(self) -> str | None:
        """Installed node version, e.g. ``18.20.8``; None when node is unavailable."""
        try:
            proc = self._runner(["node", "--version"], capture_output=True, text=True, check=False)
        except FileNotFoundError:
            return None
        if proc.returncode != 0:
            return None
        return (proc.stdout or "").strip().lstrip("v") or None
