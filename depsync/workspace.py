"""Workspace configuration in the root manifest.

Centralized mode is expressed in the root ``package.json`` by a ``workspaces``
array listing every component, ``private: true`` and a few helper scripts.
These functions inspect and rewrite that manifest; installing is left to the
mode controller.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

import structlog

from depsync.config import FileNames
from depsync.fs import directory_size, format_bytes, remove_tree
from depsync.manifest import ensure_map, read_json, write_json
from depsync.models import Component, WorkspaceHealth

log = structlog.get_logger("depsync.workspace")

WORKSPACE_SCRIPTS: dict[str, str] = {
    "install:workspace": "yarn install",
    "install:all": "yarn workspaces run install",
    "clean:workspace": "yarn workspaces run clean",
}


def workspace_packages(manifest: dict[str, Any]) -> list[str] | None:
    """The declared workspace globs, or None when the manifest declares none."""
    value = manifest.get("workspaces")
    if isinstance(value, dict):
        value = value.get("packages")
    if not isinstance(value, list):
        return None
    return [str(v) for v in value]


def _root_manifest(root: Path, files: FileNames) -> dict[str, Any] | None:
    path = root / files.package_json
    if not path.is_file():
        return None
    return read_json(path)


def detect(root: Path, files: FileNames | None = None) -> WorkspaceHealth:
    """Inspect the root manifest and lock files (no size computation)."""
    files = files or FileNames()
    root = Path(root)
    health = WorkspaceHealth()
    manifest = _root_manifest(root, files)
    packages = workspace_packages(manifest) if manifest is not None else None
    if packages is not None:
        health.configured = True
        health.packages = packages
    if (root / files.workspace_lock).is_file():
        health.lock_file = True
        health.package_manager = "yarn"
    elif (root / files.package_lock).is_file():
        health.lock_file = True
    return health


def check_health(
    root: Path,
    components: Sequence[Component],
    files: FileNames | None = None,
) -> WorkspaceHealth:
    """Detect the workspace and list what keeps it from being usable."""
    files = files or FileNames()
    root = Path(root)
    health = detect(root, files)

    health.local_modules = [c.path for c in components if (c.abs_path / files.node_modules).is_dir()]
    root_modules = root / files.node_modules
    health.root_modules_size = directory_size(root_modules)

    if not health.configured:
        health.issues.append("no workspaces configured in the root manifest")
        return health
    if not health.packages:
        health.issues.append("workspaces list is empty")
    if not health.lock_file:
        health.issues.append("no lock file at the root; run an install")
    if not root_modules.is_dir():
        health.issues.append("root node_modules not found; run an install")
    health.missing_packages = [
        p for p in health.packages if not any(ch in p for ch in "*?[") and not (root / p).is_dir()
    ]
    if health.missing_packages:
        health.issues.append(f"missing workspace directories: {', '.join(health.missing_packages)}")
    return health


def register_workspaces(
    root: Path,
    components: Sequence[Component],
    files: FileNames | None = None,
) -> list[str]:
    """Write the workspace configuration into the root manifest.

    An existing ``workspaces`` declaration is adopted unchanged. Returns the
    registered package paths.
    """
    files = files or FileNames()
    root = Path(root)
    path = root / files.package_json
    manifest = _root_manifest(root, files)
    if manifest is None:
        manifest = {"name": root.name, "version": "1.0.0", "private": True}

    existing = workspace_packages(manifest)
    if existing is not None:
        log.info("workspace.adopted", packages=len(existing))
        return existing

    packages = [c.path for c in components]
    manifest["workspaces"] = packages
    manifest["private"] = True
    ensure_map(manifest, "scripts").update(WORKSPACE_SCRIPTS)
    write_json(path, manifest)
    log.info("workspace.registered", packages=len(packages))
    return packages


def unregister_workspaces(root: Path, files: FileNames | None = None) -> bool:
    """Remove the workspace configuration and the workspace lock file."""
    files = files or FileNames()
    root = Path(root)
    changed = False
    manifest = _root_manifest(root, files)
    if manifest is not None:
        if "workspaces" in manifest:
            del manifest["workspaces"]
            changed = True
        scripts = manifest.get("scripts")
        if isinstance(scripts, dict):
            for name in WORKSPACE_SCRIPTS:
                if name in scripts:
                    del scripts[name]
                    changed = True
        if changed:
            write_json(root / files.package_json, manifest)
    if remove_tree(root / files.workspace_lock):
        changed = True
    log.info("workspace.unregistered", changed=changed)
    return changed


def sync_workspaces(
    root: Path,
    components: Sequence[Component],
    files: FileNames | None = None,
) -> bool:
    """Rewrite ``workspaces`` when the located components differ from it."""
    files = files or FileNames()
    root = Path(root)
    manifest = _root_manifest(root, files)
    if manifest is None:
        return False
    current = workspace_packages(manifest) or []
    wanted = [c.path for c in components]
    if set(current) == set(wanted):
        return False
    manifest["workspaces"] = wanted
    write_json(root / files.package_json, manifest)
    log.info(
        "workspace.synced",
        added=sorted(set(wanted) - set(current)),
        removed=sorted(set(current) - set(wanted)),
    )
    return True


def clean_local_modules(
    components: Sequence[Component],
    files: FileNames | None = None,
) -> tuple[dict[str, int], list[str]]:
    """Delete every component's own node_modules.

    Returns the bytes freed per component and the components that could not
    be cleaned.
    """
    files = files or FileNames()
    freed: dict[str, int] = {}
    failed: list[str] = []
    for component in components:
        modules = component.abs_path / files.node_modules
        if not modules.is_dir():
            continue
        size = directory_size(modules)
        try:
            remove_tree(modules)
        except OSError as e:
            log.warning("workspace.clean_failed", component=component.path, error=str(e))
            failed.append(component.path)
            continue
        freed[component.path] = size
        log.info("workspace.modules_removed", component=component.path, size=format_bytes(size))
    return freed, failed
