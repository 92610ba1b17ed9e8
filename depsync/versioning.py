"""Version-range helpers and lock-file parsing.

Only the simple range forms used in component manifests are understood:
``1.2.3``, ``^1.2.3`` and ``~1.2.3``. Everything else (git URLs, file paths,
dist-tags, compound ranges) is treated as untracked.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog

log = structlog.get_logger("depsync.versioning")

_OPERATOR_RE = re.compile(r"^[\^~>=<]+\s*")
_TRACKED_RE = re.compile(r"^[\^~]?v?\d+(\.\d+){0,2}(-[0-9A-Za-z.-]+)?(\+[0-9A-Za-z.-]+)?$")
_LEADING_INT_RE = re.compile(r"^(\d+)")

# yarn.lock entry header: unindented, ends with a colon
_YARN_HEADER_RE = re.compile(r"^(?![#\s]).*:\s*$")
# v1: `  version "1.2.3"`   berry: `  version: 1.2.3`
_YARN_VERSION_RE = re.compile(r'^\s+version:?\s+"?([^"\s]+)"?\s*$')


def is_tracked(spec: str) -> bool:
    """True for plain, caret and tilde semver specs."""
    return isinstance(spec, str) and bool(_TRACKED_RE.match(spec.strip()))


def bare_version(spec: str) -> str:
    """``^1.2.3-beta.1`` -> ``1.2.3``."""
    stripped = _OPERATOR_RE.sub("", spec.strip())
    if stripped.startswith("v"):
        stripped = stripped[1:]
    return stripped.split("-")[0].split("+")[0]


def version_key(version: str) -> tuple[int, int, int]:
    parts: list[int] = []
    for piece in bare_version(version).split(".")[:3]:
        m = _LEADING_INT_RE.match(piece)
        parts.append(int(m.group(1)) if m else 0)
    while len(parts) < 3:
        parts.append(0)
    return parts[0], parts[1], parts[2]


def compare_versions(a: str, b: str) -> int:
    ka, kb = version_key(a), version_key(b)
    return (ka > kb) - (ka < kb)


def highest(versions: Iterable[str]) -> str | None:
    best: str | None = None
    for v in versions:
        if best is None or compare_versions(v, best) > 0:
            best = v
    return best


def satisfies(installed: str, target: str) -> bool:
    """Whether an installed version is compatible with a target range.

    Caret: same major and installed minor >= target minor.
    Tilde: same major and minor. Anything else: same bare version.
    """
    target = target.strip()
    t_major, t_minor, _ = version_key(target)
    i_major, i_minor, _ = version_key(installed)
    if target.startswith("^"):
        return i_major == t_major and i_minor >= t_minor
    if target.startswith("~"):
        return i_major == t_major and i_minor == t_minor
    return bare_version(installed) == bare_version(target)


# ── lock files ──────────────────────────────────────────────────────────


def _descriptor_name(descriptor: str) -> str | None:
    descriptor = descriptor.strip().strip('"').strip("'")
    at = descriptor.rfind("@")
    if at <= 0:
        return None
    return descriptor[:at]


def parse_yarn_lock(text: str) -> dict[str, list[str]]:
    """Installed versions per package from a yarn.lock (classic or berry)."""
    installed: dict[str, list[str]] = {}
    current: list[str] = []
    for line in text.splitlines():
        if _YARN_HEADER_RE.match(line):
            header = line.rstrip().rstrip(":")
            names = [_descriptor_name(d) for d in header.split(",")]
            current = list(dict.fromkeys(n for n in names if n))
            continue
        if not current:
            continue
        m = _YARN_VERSION_RE.match(line)
        if m:
            for name in current:
                versions = installed.setdefault(name, [])
                if m.group(1) not in versions:
                    versions.append(m.group(1))
            current = []
    return installed


def parse_package_lock(data: dict[str, Any]) -> dict[str, list[str]]:
    """Installed versions per package from a package-lock.json document."""
    installed: dict[str, list[str]] = {}

    def _add(name: str, version: Any) -> None:
        if not name or not isinstance(version, str):
            return
        versions = installed.setdefault(name, [])
        if version not in versions:
            versions.append(version)

    packages = data.get("packages")
    if isinstance(packages, dict):
        for key, entry in packages.items():
            if not key or not isinstance(entry, dict) or entry.get("link"):
                continue
            _, sep, name = key.rpartition("node_modules/")
            if sep:
                _add(name, entry.get("version"))
        return installed

    # lockfileVersion 1: nested "dependencies" trees
    def _walk_v1(deps: Any) -> None:
        if not isinstance(deps, dict):
            return
        for name, entry in deps.items():
            if isinstance(entry, dict):
                _add(name, entry.get("version"))
                _walk_v1(entry.get("dependencies"))

    _walk_v1(data.get("dependencies"))
    return installed


def read_installed_versions(
    root: Path,
    workspace_lock: str = "yarn.lock",
    package_lock: str = "package-lock.json",
) -> dict[str, list[str]]:
    """Read installed versions at *root*; missing or unparsable locks yield ``{}``."""
    root = Path(root)
    yarn_lock = root / workspace_lock
    npm_lock = root / package_lock
    try:
        if yarn_lock.is_file():
            return parse_yarn_lock(yarn_lock.read_text(encoding="utf-8"))
        if npm_lock.is_file():
            data = json.loads(npm_lock.read_text(encoding="utf-8"))
            return parse_package_lock(data) if isinstance(data, dict) else {}
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        log.warning("versioning.lock_unreadable", root=str(root), error=str(e))
    return {}
