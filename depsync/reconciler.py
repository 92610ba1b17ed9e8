"""Manifest reconciler — apply the policy table to component manifests.

:func:`plan` is pure: it works on a deep copy of the manifest and returns the
updated document together with a :class:`ManifestDiff`. Running it again on its
own output yields an empty diff.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable, Set
from typing import Any

import structlog

from depsync.config import FileNames
from depsync.exceptions import CleanError, DepSyncError
from depsync.manifest import dependency_map, ensure_map, read_json, write_json
from depsync.models import (
    DEPENDENCIES,
    DEV_DEPENDENCIES,
    Component,
    DependencyChange,
    FieldChange,
    ManifestDiff,
    Origin,
    ReconcileResult,
    RemovedDependency,
    Section,
)
from depsync.policy import PolicyTable
from depsync.report import BatchReport
from depsync.scanner import scan

log = structlog.get_logger("depsync.reconciler")


def plan(
    manifest: dict[str, Any],
    policy: PolicyTable,
    used: Set[str],
) -> tuple[dict[str, Any], ManifestDiff]:
    """Compute the reconciled manifest and the changes it carries."""
    result = copy.deepcopy(manifest)
    diff = ManifestDiff()
    deprecated = set(policy.deprecated())

    def _set(section: Section, name: str, version: str, origin: Origin) -> None:
        if name in deprecated:
            return
        previous = dependency_map(result, section).get(name)
        if previous == version:
            return
        ensure_map(result, section)[name] = version
        change = DependencyChange(name, version, section, origin, previous)
        (diff.updated if previous is not None else diff.added).append(change)

    for name, version in policy.base().items():
        _set(DEPENDENCIES, name, version, "base")

    for name, spec in policy.conditional().items():
        dev_section = dependency_map(result, DEV_DEPENDENCIES)
        if name in used and name in dev_section and name not in deprecated:
            # Used runtime packages are declared once, in the runtime section.
            previous = dev_section.pop(name)
            ensure_map(result, DEPENDENCIES)[name] = spec.version
            diff.moved.append(
                DependencyChange(name, spec.version, DEPENDENCIES, "conditional", previous)
            )
        elif name in used or name in dependency_map(result, DEPENDENCIES):
            _set(DEPENDENCIES, name, spec.version, "conditional")

    for name, spec in policy.conditional_dev().items():
        runtime = dependency_map(result, DEPENDENCIES)
        if name in runtime and name not in deprecated:
            # Dev-only packages never stay in the runtime section.
            previous = runtime.pop(name)
            ensure_map(result, DEV_DEPENDENCIES)[name] = spec.version
            diff.moved.append(
                DependencyChange(name, spec.version, DEV_DEPENDENCIES, "conditional", previous)
            )
        elif name in used or name in dependency_map(result, DEV_DEPENDENCIES):
            _set(DEV_DEPENDENCIES, name, spec.version, "conditional")

    for name, version in policy.dev().items():
        _set(DEV_DEPENDENCIES, name, version, "dev")

    for name in policy.deprecated():
        for section in (DEPENDENCIES, DEV_DEPENDENCIES):
            deps = dependency_map(result, section)
            if name in deps:
                removed = deps.pop(name)
                diff.removed_deprecated.append(RemovedDependency(name, section, str(removed)))

    _merge_fields(result, "scripts", policy.scripts(), diff.scripts)
    _merge_fields(result, "engines", policy.engines(), diff.engines)
    return result, diff


def _merge_fields(
    manifest: dict[str, Any],
    key: str,
    wanted: dict[str, str],
    changes: list[FieldChange],
) -> None:
    for field_name, value in wanted.items():
        current = manifest.get(key)
        previous = current.get(field_name) if isinstance(current, dict) else None
        if previous != value:
            ensure_map(manifest, key)[field_name] = value
            changes.append(FieldChange(field_name, value, previous))


def reconcile(
    component: Component,
    policy: PolicyTable,
    used: Set[str],
    dry_run: bool = False,
) -> ReconcileResult:
    """Apply *policy* to the component manifest; write only when something changed."""
    manifest = read_json(component.manifest_path)
    updated, diff = plan(manifest, policy, used)
    result = ReconcileResult(component=component, diff=diff)
    if diff.is_empty:
        log.debug("reconciler.up_to_date", component=component.path)
        return result
    if not dry_run:
        write_json(component.manifest_path, updated)
        result.written = True
    log.info(
        "reconciler.manifest_written" if result.written else "reconciler.manifest_planned",
        component=component.path,
        **diff.as_dict(),
    )
    return result


def reconcile_compiler_config(
    component: Component,
    policy: PolicyTable,
    files: FileNames | None = None,
    dry_run: bool = False,
) -> list[str]:
    """Overlay the standard compiler config key by key; return the changed keys."""
    wanted = policy.compiler_config()
    files = files or FileNames()
    path = component.abs_path / files.ts_config
    if not wanted or not path.is_file():
        return []

    config = read_json(path, lenient=True)
    changed = [k for k, v in wanted.items() if k not in config or config[k] != v]
    if changed and not dry_run:
        for key in changed:
            config[key] = wanted[key]
        write_json(path, config)
        log.info("reconciler.compiler_config_written", component=component.path, keys=changed)
    return changed


def remove_legacy_lint_config(component: Component, files: FileNames | None = None) -> bool:
    """Delete the legacy lint config if present. Returns True when a file was removed."""
    files = files or FileNames()
    path = component.abs_path / files.lint_config
    if not path.is_file():
        return False
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        raise CleanError(f"Cannot remove {path}: {e}") from e
    log.info("reconciler.lint_config_removed", component=component.path)
    return True


def reconcile_all(
    components: Iterable[Component],
    policy: PolicyTable,
    files: FileNames | None = None,
    dry_run: bool = False,
    on_result: Callable[[ReconcileResult], None] | None = None,
) -> tuple[list[ReconcileResult], BatchReport]:
    """Scan and reconcile every component; one failure never stops the batch."""
    files = files or FileNames()
    signatures = policy.signatures()
    report = BatchReport("update")
    results: list[ReconcileResult] = []

    for component in components:
        report.start(component.path)
        try:
            used = scan(component.abs_path, signatures)
            result = reconcile(component, policy, used, dry_run=dry_run)
            result.compiler_keys = reconcile_compiler_config(component, policy, files, dry_run)
            if not dry_run:
                result.lint_config_removed = remove_legacy_lint_config(component, files)
        except DepSyncError as e:
            report.fail(component.path, str(e))
            continue
        results.append(result)
        if on_result is not None:
            on_result(result)
        report.succeed(component.path, result.diff.summary())

    log.info("reconciler.batch_done", succeeded=report.succeeded, total=report.total)
    return results, report
