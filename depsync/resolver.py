"""Version conflict resolver for the centralized workspace install.

A joint install may pick versions a component never asked for. Conflicts are
found by comparing the lock file against the ranges components declare, and
fixed by writing ``resolutions`` into the root manifest before reinstalling.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from pathlib import Path

import structlog

from depsync.config import FileNames
from depsync.exceptions import ManifestError
from depsync.manifest import dependency_map, read_json, write_json
from depsync.models import CommandResult, Component, ConflictRecord, ConvergenceResult
from depsync.versioning import bare_version, highest, is_tracked, read_installed_versions, satisfies

log = structlog.get_logger("depsync.resolver")

# (package, minimum runtime major, override to use below it)
RUNTIME_REQUIREMENTS: list[tuple[str, int, str]] = [
    ("@azure/logger", 20, "^1.0.0"),
]

# package -> declared range -> components declaring it
Targets = dict[str, dict[str, list[str]]]


def collect_targets(components: Iterable[Component]) -> Targets:
    """Declared ranges per package across all components, untracked specs skipped."""
    targets: Targets = {}
    for component in components:
        try:
            manifest = read_json(component.manifest_path)
        except ManifestError as e:
            log.warning("resolver.manifest_skipped", component=component.path, error=str(e))
            continue
        for section in ("dependencies", "devDependencies"):
            for name, spec in dependency_map(manifest, section).items():
                if not is_tracked(spec):
                    continue
                declared = targets.setdefault(name, {}).setdefault(spec.strip(), [])
                if component.path not in declared:
                    declared.append(component.path)
    return targets


def _normalize(targets: Mapping[str, str | Mapping[str, list[str]]]) -> Targets:
    normalized: Targets = {}
    for name, value in targets.items():
        if isinstance(value, str):
            normalized[name] = {value: []}
        else:
            normalized[name] = {r: list(c) for r, c in value.items()}
    return normalized


def detect_conflicts(
    installed: Mapping[str, list[str]],
    targets: Mapping[str, str | Mapping[str, list[str]]],
    resolutions: Mapping[str, str] | None = None,
) -> list[ConflictRecord]:
    """Compare installed versions with target ranges.

    *targets* maps a package either to one range or to ``{range: [components]}``.
    A root resolution replaces every declared range of its package. A package
    conflicts when an installed version falls outside a target range, or when
    more than one distinct version is installed.
    """
    normalized = _normalize(targets)
    for name, pinned in (resolutions or {}).items():
        declared = normalized.get(name, {})
        everyone = sorted({c for comps in declared.values() for c in comps})
        normalized[name] = {pinned: everyone}

    conflicts: list[ConflictRecord] = []
    for name, ranges in normalized.items():
        versions = list(dict.fromkeys(installed.get(name) or []))
        if not versions:
            continue
        tracked = {r: comps for r, comps in ranges.items() if is_tracked(r)}
        if not tracked:
            continue
        bad = [r for r in tracked if not all(satisfies(v, r) for v in versions)]
        if not bad and len(versions) == 1:
            continue
        shown = bad or list(tracked)
        components = sorted({c for r in shown for c in tracked[r]})
        record = ConflictRecord(
            package=name,
            target_range=shown[0],
            installed_versions=versions,
            needs_resolution=True,
            components=components,
        )
        log.info(
            "resolver.conflict",
            package=name,
            target=record.target_range,
            installed=versions,
            components=components,
        )
        conflicts.append(record)
    return conflicts


def plan_resolutions(conflicts: Iterable[ConflictRecord], strict: bool = False) -> dict[str, str]:
    """Overrides for *conflicts*.

    The relaxed pass pins a package to its single installed version and
    otherwise forces the target range. The strict pass always pins an exact
    version: the highest installed one satisfying the target, else the target's
    bare version.
    """
    overrides: dict[str, str] = {}
    for record in conflicts:
        if not record.needs_resolution:
            continue
        versions = record.installed_versions
        if not strict:
            overrides[record.package] = versions[0] if len(versions) == 1 else record.target_range
            continue
        compatible = [v for v in versions if satisfies(v, record.target_range)]
        overrides[record.package] = highest(compatible) or bare_version(record.target_range)
    return overrides


def read_resolutions(root: Path, files: FileNames | None = None) -> dict[str, str]:
    files = files or FileNames()
    path = Path(root) / files.package_json
    if not path.is_file():
        return {}
    try:
        manifest = read_json(path)
    except ManifestError as e:
        log.warning("resolver.root_manifest_unreadable", error=str(e))
        return {}
    resolutions = manifest.get("resolutions")
    if not isinstance(resolutions, dict):
        return {}
    return {k: v for k, v in resolutions.items() if isinstance(v, str)}


def add_resolutions(
    root: Path,
    overrides: Mapping[str, str],
    merge: bool = True,
    files: FileNames | None = None,
) -> dict[str, str]:
    """Write *overrides* into the root manifest ``resolutions``; return the result."""
    files = files or FileNames()
    path = Path(root) / files.package_json
    if not path.is_file():
        raise ManifestError(str(path), "root manifest not found")
    manifest = read_json(path)
    current = manifest.get("resolutions")
    resolutions = dict(current) if merge and isinstance(current, dict) else {}
    resolutions.update(overrides)
    if resolutions != current:
        manifest["resolutions"] = resolutions
        write_json(path, manifest)
        log.info("resolver.resolutions_written", overrides=dict(overrides), merge=merge)
    return resolutions


def converge(
    root: Path,
    install: Callable[[], CommandResult],
    targets: Mapping[str, str | Mapping[str, list[str]]],
    files: FileNames | None = None,
) -> ConvergenceResult:
    """Install, then force convergence with resolutions.

    Sequence: install, detect, relaxed resolutions, reinstall, detect, strict
    resolutions, reinstall, detect. There is exactly one strict retry. A
    failed install stops the sequence without running detection.
    """
    files = files or FileNames()
    result = ConvergenceResult(success=False)

    def _install() -> bool:
        outcome = install()
        result.installs += 1
        if not outcome.ok:
            result.error = f"{outcome.display} exited with status {outcome.returncode}"
            log.error("resolver.install_failed", command=outcome.display, status=outcome.returncode)
        return outcome.ok

    def _detect() -> list[ConflictRecord]:
        installed = read_installed_versions(root, files.workspace_lock, files.package_lock)
        result.conflicts = detect_conflicts(installed, targets, read_resolutions(root, files))
        return result.conflicts

    if not _install():
        return result
    if not _detect():
        result.success = True
        return result

    for strict in (False, True):
        overrides = plan_resolutions(result.conflicts, strict=strict)
        add_resolutions(root, overrides, files=files)
        result.resolutions.update(overrides)
        result.strict_retry = strict
        log.info("resolver.retry", strict=strict, packages=sorted(overrides))
        if not _install():
            return result
        if not _detect():
            result.success = True
            return result

    log.warning("resolver.unresolved", packages=[c.package for c in result.conflicts])
    return result


def suggest_engine_overrides(runtime_version: str) -> dict[str, str]:
    """Overrides for packages whose newer releases need a newer runtime."""
    try:
        major = int(runtime_version.strip().lstrip("v").split(".")[0])
    except ValueError:
        log.warning("resolver.runtime_version_unparsable", version=runtime_version)
        return {}
    return {pkg: override for pkg, minimum, override in RUNTIME_REQUIREMENTS if major < minimum}


def auto_fix_for_runtime(
    root: Path,
    runtime_version: str,
    files: FileNames | None = None,
) -> dict[str, str]:
    """Write runtime-driven overrides as resolutions; return what was suggested."""
    suggestions = suggest_engine_overrides(runtime_version)
    if suggestions:
        add_resolutions(root, suggestions, files=files)
        log.info("resolver.runtime_overrides", runtime=runtime_version, overrides=suggestions)
    return suggestions
