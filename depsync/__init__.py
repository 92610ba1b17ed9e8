"""depsync: dependency reconciliation for multi-component JavaScript projects."""

__version__ = "0.1.0"

from depsync.config import ProjectConfig, load_project_config, resolve_project_root
from depsync.controller import ModeController
from depsync.exceptions import (
    CleanError,
    ComponentNotFoundError,
    ConfigError,
    DepSyncError,
    ManifestError,
    PackageManagerError,
    PolicyError,
)
from depsync.locator import locate, select
from depsync.models import Component, ConflictRecord, DependencySignature, ManifestDiff
from depsync.policy import PolicyTable, generate_policy, load_policy, save_policy
from depsync.reconciler import plan, reconcile, reconcile_all
from depsync.resolver import add_resolutions, converge, detect_conflicts
from depsync.scanner import scan

__all__ = [
    "CleanError",
    "Component",
    "ComponentNotFoundError",
    "ConfigError",
    "ConflictRecord",
    "DepSyncError",
    "DependencySignature",
    "ManifestDiff",
    "ManifestError",
    "ModeController",
    "PackageManagerError",
    "PolicyError",
    "PolicyTable",
    "ProjectConfig",
    "add_resolutions",
    "converge",
    "detect_conflicts",
    "generate_policy",
    "load_policy",
    "load_project_config",
    "locate",
    "plan",
    "reconcile",
    "reconcile_all",
    "resolve_project_root",
    "save_policy",
    "scan",
    "select",
]
