"""Mode controller — run commands in per-component or centralized workspace mode.

Per-component mode installs each component on its own. Centralized mode
registers every component in the root manifest's ``workspaces`` and installs
once at the root, forcing version convergence through ``resolutions``.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import structlog

from depsync.cleaner import clean_components
from depsync.config import (
    ProjectConfig,
    WorkspaceState,
    load_project_config,
    persist_workspace_state,
    policy_path,
)
from depsync.depcheck import analyze, remove_unused
from depsync.exceptions import DepSyncError, ManifestError, PolicyError
from depsync.locator import locate, select
from depsync.models import (
    CleanResult,
    Component,
    ConflictRecord,
    ConvergenceResult,
    DepcheckResult,
    ReconcileResult,
    WorkspaceHealth,
)
from depsync.package_manager import InstallMode, PackageManager
from depsync.policy import PolicyTable, generate_policy, load_policy, save_policy
from depsync.reconciler import reconcile_all
from depsync.report import BatchReport
from depsync.resolver import (
    auto_fix_for_runtime,
    collect_targets,
    converge,
    detect_conflicts,
    read_resolutions,
)
from depsync.versioning import read_installed_versions
from depsync.workspace import (
    check_health,
    clean_local_modules,
    detect,
    register_workspaces,
    sync_workspaces,
    unregister_workspaces,
)

log = structlog.get_logger("depsync.controller")

WORKSPACE_TARGET = "(workspace)"


class ModeController:
    """Entry point for every command; owns the project root and its configuration."""

    def __init__(
        self,
        root: Path,
        config: ProjectConfig | None = None,
        package_manager: PackageManager | None = None,
    ) -> None:
        self.root = Path(root)
        self.config = config if config is not None else load_project_config(self.root)
        self.files = self.config.files
        self.package_manager = package_manager or PackageManager(self.config.commands)

    # ── discovery ───────────────────────────────────────────────────────

    def components(self) -> list[Component]:
        return locate(self.root, self.config.components, self.files)

    def targets(self, scope: str = "all", names: Sequence[str] = ()) -> list[Component]:
        return select(self.components(), scope, names)

    def policy(self) -> PolicyTable:
        return load_policy(policy_path(self.root))

    @property
    def centralized(self) -> bool:
        return self.config.workspace.active

    # ── install / clean ─────────────────────────────────────────────────

    def install(
        self,
        scope: str = "all",
        names: Sequence[str] = (),
        mode: InstallMode = InstallMode.NORMAL,
    ) -> BatchReport:
        if self.centralized:
            if scope != "all":
                log.warning("controller.scope_ignored", scope=scope, reason="workspace mode installs at the root")
            return self._workspace_install_report()
        return self._install_components(self.targets(scope, names), mode)

    def _install_components(self, components: Sequence[Component], mode: InstallMode) -> BatchReport:
        report = BatchReport("install")
        workspace = detect(self.root, self.files)
        blocked = workspace.configured and workspace.lock_file and workspace.package_manager == "yarn"
        for component in components:
            report.start(component.path)
            if blocked:
                report.fail(
                    component.path,
                    "root is a yarn workspace with a lock file; use the workspace install",
                )
                continue
            result = self.package_manager.install(component.abs_path, mode)
            if result.ok:
                report.succeed(component.path, f"{result.display} ({mode.value})")
            else:
                report.fail(component.path, f"{result.display} exited with status {result.returncode}")
        return report

    def workspace_install(self) -> ConvergenceResult:
        """Centralized install at the root with conflict convergence."""
        targets = collect_targets(self.components())
        runtime = self.package_manager.runtime_version()
        if runtime and (self.root / self.files.package_json).is_file():
            auto_fix_for_runtime(self.root, runtime, self.files)
        return converge(
            self.root,
            lambda: self.package_manager.workspace_install(self.root),
            targets,
            self.files,
        )

    def _workspace_install_report(self) -> BatchReport:
        report = BatchReport("install")
        report.start(WORKSPACE_TARGET)
        result = self.workspace_install()
        if result.success:
            detail = f"{result.installs} install(s)"
            if result.resolutions:
                detail += "; pinned " + ", ".join(f"{k}={v}" for k, v in result.resolutions.items())
            report.succeed(WORKSPACE_TARGET, detail)
        else:
            unresolved = ", ".join(c.package for c in result.conflicts)
            report.fail(WORKSPACE_TARGET, result.error or f"unresolved conflicts: {unresolved}")
        return report

    def clean(self, scope: str = "all", names: Sequence[str] = ()) -> tuple[list[CleanResult], BatchReport]:
        return clean_components(self.targets(scope, names), self.files)

    def reinstall(
        self,
        scope: str = "all",
        names: Sequence[str] = (),
        mode: InstallMode = InstallMode.NORMAL,
    ) -> BatchReport:
        _, cleaned = self.clean(scope, names)
        if not cleaned.ok:
            return cleaned
        return self.install(scope, names, mode)

    # ── policy ──────────────────────────────────────────────────────────

    def update(self, dry_run: bool = False) -> tuple[list[ReconcileResult], BatchReport]:
        """Reconcile every component with the policy (always global)."""
        return reconcile_all(self.components(), self.policy(), self.files, dry_run=dry_run)

    def generate_policy(self, force: bool = False) -> Path:
        path = policy_path(self.root)
        if path.exists() and not force:
            raise PolicyError(f"{path} already exists; pass --force to overwrite")
        return save_policy(path, generate_policy(self.components()))

    def depcheck(
        self,
        scope: str = "all",
        names: Sequence[str] = (),
        remove: bool = False,
    ) -> tuple[list[DepcheckResult], BatchReport]:
        report = BatchReport("depcheck")
        results: list[DepcheckResult] = []
        for component in self.targets(scope, names):
            report.start(component.path)
            try:
                result = analyze(component)
                outcome = remove_unused(component, result.unused, self.package_manager) if remove else None
            except ManifestError as e:
                report.fail(component.path, str(e))
                continue
            results.append(result)
            if outcome is not None and not outcome.ok:
                report.fail(component.path, f"{outcome.display} exited with status {outcome.returncode}")
                continue
            report.succeed(component.path, f"{len(result.unused)} unused")
        return results, report

    # ── conflicts ───────────────────────────────────────────────────────

    def conflicts(self) -> list[ConflictRecord]:
        installed = read_installed_versions(self.root, self.files.workspace_lock, self.files.package_lock)
        return detect_conflicts(
            installed,
            collect_targets(self.components()),
            read_resolutions(self.root, self.files),
        )

    # ── workspace mode ──────────────────────────────────────────────────

    def enable_workspace(self) -> ConvergenceResult:
        self.package_manager.require_yarn()
        components = self.components()
        if not components:
            raise DepSyncError("No components found to register as workspaces")
        packages = register_workspaces(self.root, components, self.files)
        persist_workspace_state(
            self.root,
            self.config,
            WorkspaceState(enabled=True, initialized=True, packages_path=packages, use_yarn=True),
        )
        log.info("controller.workspace_enabled", packages=len(packages))
        return self.workspace_install()

    def disable_workspace(self) -> bool:
        changed = unregister_workspaces(self.root, self.files)
        persist_workspace_state(self.root, self.config, WorkspaceState(enabled=False, initialized=False))
        log.info("controller.workspace_disabled", changed=changed)
        return changed

    def sync_workspace(self) -> bool:
        if not detect(self.root, self.files).configured:
            raise DepSyncError("Workspace mode is not configured in the root manifest")
        components = self.components()
        changed = sync_workspaces(self.root, components, self.files)
        if changed:
            state = self.config.workspace.model_copy(update={"packages_path": [c.path for c in components]})
            persist_workspace_state(self.root, self.config, state)
        return changed

    def workspace_status(self) -> WorkspaceHealth:
        return check_health(self.root, self.components(), self.files)

    def clean_local_modules(self) -> tuple[dict[str, int], list[str]]:
        if not (self.centralized or detect(self.root, self.files).configured):
            raise DepSyncError("Workspace mode is not enabled; enable it before removing local modules")
        return clean_local_modules(self.components(), self.files)
