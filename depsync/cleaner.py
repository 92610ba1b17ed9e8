"""Component cleanup: drop installed modules, lock files and legacy configs."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from depsync.config import FileNames
from depsync.exceptions import CleanError
from depsync.fs import remove_tree
from depsync.models import CleanResult, Component
from depsync.report import BatchReport

log = structlog.get_logger("depsync.cleaner")


def clean_component(component: Component, files: FileNames | None = None) -> CleanResult:
    files = files or FileNames()
    result = CleanResult(component=component.path)
    for name in (files.node_modules, files.package_lock, files.lint_config):
        try:
            if remove_tree(component.abs_path / name):
                result.removed.append(name)
        except OSError as e:
            raise CleanError(f"{component.path}: cannot remove {name}: {e}") from e
    log.info("cleaner.cleaned", component=component.path, removed=result.removed)
    return result


def clean_components(
    components: Iterable[Component],
    files: FileNames | None = None,
) -> tuple[list[CleanResult], BatchReport]:
    report = BatchReport("clean")
    results: list[CleanResult] = []
    for component in components:
        report.start(component.path)
        try:
            result = clean_component(component, files)
        except CleanError as e:
            report.fail(component.path, str(e))
            continue
        results.append(result)
        report.succeed(component.path, ", ".join(result.removed) or "nothing to remove")
    return results, report
