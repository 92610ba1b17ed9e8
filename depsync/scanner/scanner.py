"""Usage scanner — decide which policy dependencies a component actually uses."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from functools import lru_cache
from pathlib import Path

import structlog

# Ensure detectors are registered before any scan runs.
import depsync.scanner.detectors  # noqa: F401
from depsync.fs import walk
from depsync.models import Component, DependencySignature
from depsync.scanner.registry import detectors_for

log = structlog.get_logger("depsync.scanner")

SCAN_EXTENSIONS = {".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".vue", ".svelte", ".json"}

IGNORE_DIRS = {
    "node_modules",
    ".git",
    "dist",
    "build",
    "lib",
    "temp",
    "release",
    "coverage",
    ".next",
    ".nuxt",
}

# Files that merely restate what is declared; reading them would mark every
# declared dependency as used.
_DECLARATION_FILES = {"package.json", "package-lock.json", "npm-shrinkwrap.json"}


@lru_cache(maxsize=1024)
def _compile(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern)
    except re.error:
        return None


def matches_pattern(pattern: str, content: str) -> bool:
    """True when *pattern* occurs literally, or as a regex with a non-empty match."""
    if not pattern:
        return False
    if pattern in content:
        return True
    regex = _compile(pattern)
    if regex is None:
        return False
    return any(m.group(0) for m in regex.finditer(content))


def scan(component_path: Path, signatures: Sequence[DependencySignature]) -> set[str]:
    """Return the names of *signatures* with usage evidence below *component_path*."""
    component_path = Path(component_path)
    pending = {s.name: s for s in signatures}
    used: set[str] = set()

    def _on_file(file_path: Path) -> None:
        name = file_path.name
        detectors = detectors_for(name)
        scannable = file_path.suffix.lower() in SCAN_EXTENSIONS and name not in _DECLARATION_FILES
        if not detectors and not scannable:
            return
        try:
            content = file_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            log.debug("scanner.read_failed", file=str(file_path), error=str(e))
            return

        for detector in detectors:
            found = detector.detect(file_path, content, signatures)
            if found:
                log.debug("scanner.detected", file=name, detector=detector.name, deps=sorted(found))
            used.update(found)
            for dep in found:
                pending.pop(dep, None)

        if scannable:
            for dep, sig in list(pending.items()):
                if any(matches_pattern(p, content) for p in sig.patterns):
                    used.add(dep)
                    del pending[dep]

    walk(component_path, exclude=IGNORE_DIRS, on_file=_on_file)
    return used


def scan_components(
    components: Iterable[Component],
    signatures: Sequence[DependencySignature],
) -> dict[str, set[str]]:
    """Scan every component; keys are root-relative component paths."""
    results: dict[str, set[str]] = {}
    for component in components:
        results[component.path] = scan(component.abs_path, signatures)
        log.debug("scanner.component_done", component=component.path, used=len(results[component.path]))
    return results


def collect_used(
    components: Iterable[Component],
    signatures: Sequence[DependencySignature],
) -> set[str]:
    """Union of the dependencies used by any of *components*."""
    used: set[str] = set()
    for names in scan_components(components, signatures).values():
        used |= names
    return used
