"""Project configuration — component filters, file names, commands, workspace state.

The configuration is persisted as ``.depsync/project-config.json`` with camelCase
keys. It is always loaded into typed models, mutated, and written back whole.
"""

from __future__ import annotations

import os
import re
import sys
from collections.abc import Mapping
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from depsync.exceptions import ConfigError

log = structlog.get_logger("depsync.config")

CONFIG_DIR = ".depsync"
PROJECT_CONFIG_FILE = "project-config.json"
POLICY_FILE = "dependencies-config.json"

# Matches a JavaScript regex literal such as ``/^my-app-\w+$/i``.
_JS_REGEX_LITERAL = re.compile(r"^/(.*)/([gimsuy]*)$", re.DOTALL)

_DEFAULT_EXCLUDE_DIRS = ["node_modules", ".git", "dist", "build", "lib", "temp", CONFIG_DIR]


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── component filters ────────────────────────────────────────────────────


class PrefixFilter(_Model):
    enabled: bool = False
    prefix: str = ""

    def matches(self, directory: Path, rel_path: str) -> bool:
        return directory.name.startswith(self.prefix)


class StructureFilter(_Model):
    enabled: bool = False
    required_files: list[str] = Field(default_factory=list)
    required_folders: list[str] = Field(default_factory=list)

    def matches(self, directory: Path, rel_path: str) -> bool:
        if not all((directory / f).exists() for f in self.required_files):
            return False
        return all((directory / d).is_dir() for d in self.required_folders)


class ListFilter(_Model):
    enabled: bool = False
    folders: list[str] = Field(default_factory=list)

    def matches(self, directory: Path, rel_path: str) -> bool:
        return directory.name in self.folders or rel_path in self.folders


class RegexFilter(_Model):
    """Name filter stored as pattern source text, compiled on first use."""

    enabled: bool = False
    pattern: str = ""
    flags: str = ""

    _compiled: re.Pattern[str] | None = PrivateAttr(default=None)

    @model_validator(mode="before")
    @classmethod
    def _unwrap_js_literal(cls, data: object) -> object:
        if isinstance(data, dict) and isinstance(data.get("pattern"), str):
            m = _JS_REGEX_LITERAL.match(data["pattern"])
            if m:
                data = {**data, "pattern": m.group(1), "flags": data.get("flags") or m.group(2)}
        return data

    def compiled(self) -> re.Pattern[str]:
        if self._compiled is None:
            flags = 0
            if "i" in self.flags:
                flags |= re.IGNORECASE
            if "m" in self.flags:
                flags |= re.MULTILINE
            if "s" in self.flags:
                flags |= re.DOTALL
            try:
                self._compiled = re.compile(self.pattern, flags)
            except re.error as e:
                raise ConfigError(f"Invalid component pattern {self.pattern!r}: {e}") from e
        return self._compiled

    def matches(self, directory: Path, rel_path: str) -> bool:
        return self.compiled().search(directory.name) is not None


class RecursiveSearch(_Model):
    enabled: bool = False
    max_depth: int = 3
    exclude_dirs: list[str] = Field(default_factory=lambda: list(_DEFAULT_EXCLUDE_DIRS))


class ComponentFilters(_Model):
    filter_by_prefix: PrefixFilter = Field(default_factory=PrefixFilter)
    filter_by_structure: StructureFilter = Field(default_factory=StructureFilter)
    filter_by_list: ListFilter = Field(default_factory=ListFilter)
    filter_by_regex: RegexFilter = Field(default_factory=RegexFilter)
    recursive_search: RecursiveSearch = Field(default_factory=RecursiveSearch)

    def active(self) -> list[PrefixFilter | StructureFilter | ListFilter | RegexFilter]:
        """Enabled filters; a directory must satisfy all of them."""
        candidates = [
            self.filter_by_prefix,
            self.filter_by_structure,
            self.filter_by_list,
            self.filter_by_regex,
        ]
        return [f for f in candidates if f.enabled]


# ── files, commands, workspace ───────────────────────────────────────────


class FileNames(_Model):
    package_json: str = "package.json"
    ts_config: str = "tsconfig.json"
    node_modules: str = "node_modules"
    package_lock: str = "package-lock.json"
    workspace_lock: str = "yarn.lock"
    lint_config: str = "tslint.json"


class PlatformCommand(_Model):
    windows: str
    unix: str

    def resolve(self) -> str:
        return self.windows if sys.platform == "win32" else self.unix


class Commands(_Model):
    npm: PlatformCommand = Field(
        default_factory=lambda: PlatformCommand(windows="npm.cmd", unix="npm")
    )
    yarn: PlatformCommand = Field(
        default_factory=lambda: PlatformCommand(windows="yarn.cmd", unix="yarn")
    )


class WorkspaceState(_Model):
    enabled: bool = False
    initialized: bool = False
    packages_path: list[str] = Field(default_factory=list)
    use_yarn: bool = True

    @property
    def active(self) -> bool:
        return self.enabled and self.initialized


class ProjectInfo(_Model):
    name: str = ""
    version: str = "1.0.0"
    description: str = ""


class ProjectConfig(_Model):
    project: ProjectInfo = Field(default_factory=ProjectInfo)
    components: ComponentFilters = Field(default_factory=ComponentFilters)
    files: FileNames = Field(default_factory=FileNames)
    commands: Commands = Field(default_factory=Commands)
    workspace: WorkspaceState = Field(default_factory=WorkspaceState)


# ── persistence ──────────────────────────────────────────────────────────


def project_config_path(root: Path) -> Path:
    return Path(root) / CONFIG_DIR / PROJECT_CONFIG_FILE


def policy_path(root: Path) -> Path:
    return Path(root) / CONFIG_DIR / POLICY_FILE


def load_project_config(root: Path) -> ProjectConfig:
    """Load the project configuration, falling back to defaults when absent."""
    path = project_config_path(root)
    if not path.is_file():
        log.info("config.defaults", path=str(path))
        return ProjectConfig()
    try:
        return ProjectConfig.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        raise ConfigError(f"Cannot load {path}: {e}") from e


def save_project_config(root: Path, config: ProjectConfig) -> Path:
    path = project_config_path(root)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(config.model_dump_json(by_alias=True, indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot write {path}: {e}") from e
    return path


def persist_workspace_state(root: Path, config: ProjectConfig, state: WorkspaceState) -> None:
    """Replace the workspace section and write the whole configuration back."""
    config.workspace = state
    save_project_config(root, config)
    log.info(
        "config.workspace_persisted",
        enabled=state.enabled,
        initialized=state.initialized,
        packages=len(state.packages_path),
    )


def resolve_project_root(
    explicit: str | os.PathLike[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Path:
    """Pick the project root.

    Inside a package-manager lifecycle script the process may run from a
    dependency-cache directory, so the initiating directory (``INIT_CWD``)
    takes precedence over the process cwd there.
    """
    if explicit is not None:
        return Path(explicit).resolve()
    env = os.environ if environ is None else environ
    init_cwd = env.get("INIT_CWD")
    if init_cwd and env.get("npm_lifecycle_event"):
        return Path(init_cwd).resolve()
    return Path.cwd().resolve()
