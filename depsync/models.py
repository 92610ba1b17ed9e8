"""Data models shared by the engine modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

Section = Literal["dependencies", "devDependencies"]
Origin = Literal["base", "conditional", "dev"]

DEPENDENCIES: Section = "dependencies"
DEV_DEPENDENCIES: Section = "devDependencies"


@dataclass(frozen=True)
class Component:
    """A sub-project directory that carries its own manifest."""

    path: str  # root-relative POSIX path, e.g. "apps/web"
    abs_path: Path
    manifest_path: Path
    has_compiler_config: bool = False

    @property
    def name(self) -> str:
        return self.abs_path.name


@dataclass
class DependencySignature:
    """A dependency together with the source patterns that prove it is used."""

    name: str
    version_spec: str
    patterns: list[str] = field(default_factory=list)
    description: str = ""
    is_dev: bool = False


# ── manifest diffs ──────────────────────────────────────────────────────


@dataclass
class DependencyChange:
    name: str
    version: str
    section: Section
    origin: Origin
    previous: str | None = None  # version before the change, None when newly added


@dataclass
class RemovedDependency:
    name: str
    section: Section
    version: str


@dataclass
class FieldChange:
    """A script or engine constraint set on the manifest."""

    key: str
    value: str
    previous: str | None = None


@dataclass
class ManifestDiff:
    added: list[DependencyChange] = field(default_factory=list)
    updated: list[DependencyChange] = field(default_factory=list)
    removed_deprecated: list[RemovedDependency] = field(default_factory=list)
    moved: list[DependencyChange] = field(default_factory=list)
    scripts: list[FieldChange] = field(default_factory=list)
    engines: list[FieldChange] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.added
            or self.updated
            or self.removed_deprecated
            or self.moved
            or self.scripts
            or self.engines
        )

    def in_section(self, section: Section) -> list[DependencyChange]:
        """Added, updated and moved entries landing in *section*."""
        return [c for c in self.added + self.updated + self.moved if c.section == section]

    def by_origin(self, origin: Origin) -> list[DependencyChange]:
        return [c for c in self.added + self.updated + self.moved if c.origin == origin]

    def as_dict(self) -> dict[str, Any]:
        return {
            "added": [
                {"name": c.name, "version": c.version, "type": c.origin, "section": c.section}
                for c in self.added
            ],
            "updated": [
                {"name": c.name, "from": c.previous, "to": c.version, "section": c.section}
                for c in self.updated
            ],
            "removed_deprecated": [
                {"name": r.name, "section": r.section} for r in self.removed_deprecated
            ],
            "moved": [{"name": c.name, "to": c.section} for c in self.moved],
            "scripts": {c.key: c.value for c in self.scripts},
            "engines": {c.key: c.value for c in self.engines},
        }

    def summary(self) -> str:
        if self.is_empty:
            return "up to date"
        parts = []
        for label, items in (
            ("added", self.added),
            ("updated", self.updated),
            ("removed", self.removed_deprecated),
            ("moved", self.moved),
            ("scripts", self.scripts),
            ("engines", self.engines),
        ):
            if items:
                parts.append(f"{len(items)} {label}")
        return ", ".join(parts)


@dataclass
class ReconcileResult:
    component: Component
    diff: ManifestDiff
    written: bool = False
    compiler_keys: list[str] = field(default_factory=list)  # tsconfig keys changed
    lint_config_removed: bool = False


# ── version conflicts ───────────────────────────────────────────────────


@dataclass
class ConflictRecord:
    package: str
    target_range: str
    installed_versions: list[str]
    needs_resolution: bool = True
    components: list[str] = field(default_factory=list)


@dataclass
class ConvergenceResult:
    """Outcome of an install / detect / resolve cycle."""

    success: bool
    installs: int = 0
    conflicts: list[ConflictRecord] = field(default_factory=list)
    resolutions: dict[str, str] = field(default_factory=dict)
    strict_retry: bool = False
    error: str | None = None


# ── package manager, cleanup, depcheck ──────────────────────────────────


@dataclass
class CommandResult:
    returncode: int
    command: list[str]
    cwd: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def display(self) -> str:
        return " ".join(self.command)


@dataclass
class CleanResult:
    component: str
    removed: list[str] = field(default_factory=list)  # names of removed entries


@dataclass
class DepcheckResult:
    component: str
    project_type: str
    used: list[str] = field(default_factory=list)
    unused: list[str] = field(default_factory=list)
    kept: list[str] = field(default_factory=list)  # not safe to remove, never reported


@dataclass
class WorkspaceHealth:
    """Workspace inspection result for the project root."""

    configured: bool = False
    packages: list[str] = field(default_factory=list)
    lock_file: bool = False
    package_manager: str = "npm"  # "yarn" | "npm"
    missing_packages: list[str] = field(default_factory=list)
    local_modules: list[str] = field(default_factory=list)  # components with node_modules
    root_modules_size: int = 0
    issues: list[str] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return not self.issues
