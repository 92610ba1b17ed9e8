"""Policy table — the centrally maintained dependency rules for every component.

Persisted as ``.depsync/dependencies-config.json``::

    {
      "baseDependencies": {"@scope/core": "1.2.0"},
      "conditionalDependencies": {
        "jquery": {"version": "^3.7.1", "patterns": ["jquery", "import.*jquery"]}
      },
      "devDependencies": {"typescript": "~5.3.3"},
      "conditionalDevDependencies": {"webpack": "^5.90.0"},
      "deprecatedDependencies": ["tslint"],
      "standardScripts": {"build": "gulp bundle"},
      "standardTsConfig": {"compilerOptions": {"target": "es2016"}},
      "nodeEngines": {"node": ">=18"}
    }

A conditional entry given as a bare string is taken as its version, with the
package name as its only usage pattern.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from depsync.exceptions import ManifestError, PolicyError
from depsync.manifest import dependency_map, read_json
from depsync.models import Component, DependencySignature
from depsync.versioning import compare_versions, highest

log = structlog.get_logger("depsync.policy")


class ConditionalSpec(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: str
    patterns: list[str] = Field(default_factory=list)
    description: str = ""

    @model_validator(mode="before")
    @classmethod
    def _from_version_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"version": data}
        return data


class PolicyTable(BaseModel):
    """Dependency policy; every accessor returns a fresh copy."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    base_dependencies: dict[str, str] = Field(default_factory=dict)
    conditional_dependencies: dict[str, ConditionalSpec] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict)
    conditional_dev_dependencies: dict[str, ConditionalSpec] = Field(default_factory=dict)
    deprecated_dependencies: list[str] = Field(default_factory=list)
    standard_scripts: dict[str, str] = Field(default_factory=dict)
    standard_ts_config: dict[str, Any] = Field(default_factory=dict)
    node_engines: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_overlaps(self) -> PolicyTable:
        # A name owns exactly one section and one version.
        sections = {
            "baseDependencies": self.base_dependencies,
            "conditionalDependencies": self.conditional_dependencies,
            "devDependencies": self.dev_dependencies,
            "conditionalDevDependencies": self.conditional_dev_dependencies,
        }
        owners: dict[str, list[str]] = {}
        for section, names in sections.items():
            for name in names:
                owners.setdefault(name, []).append(section)
        clashes = {name: found for name, found in owners.items() if len(found) > 1}
        if clashes:
            detail = "; ".join(
                f"{name} ({', '.join(found)})" for name, found in sorted(clashes.items())
            )
            raise ValueError(f"listed in more than one dependency section: {detail}")
        for specs in (self.conditional_dependencies, self.conditional_dev_dependencies):
            for name, spec in specs.items():
                if not spec.patterns:
                    spec.patterns = [name]
        return self

    # ── accessors ───────────────────────────────────────────────────────

    def base(self) -> dict[str, str]:
        return dict(self.base_dependencies)

    def conditional(self) -> dict[str, ConditionalSpec]:
        return {k: v.model_copy(deep=True) for k, v in self.conditional_dependencies.items()}

    def dev(self) -> dict[str, str]:
        return dict(self.dev_dependencies)

    def conditional_dev(self) -> dict[str, ConditionalSpec]:
        return {k: v.model_copy(deep=True) for k, v in self.conditional_dev_dependencies.items()}

    def deprecated(self) -> list[str]:
        return list(self.deprecated_dependencies)

    def scripts(self) -> dict[str, str]:
        return dict(self.standard_scripts)

    def compiler_config(self) -> dict[str, Any]:
        return copy.deepcopy(self.standard_ts_config)

    def engines(self) -> dict[str, str]:
        return dict(self.node_engines)

    def signatures(self) -> list[DependencySignature]:
        """Usage signatures for every conditional dependency, runtime first."""
        sigs = [
            DependencySignature(
                name=name,
                version_spec=spec.version,
                patterns=list(spec.patterns),
                description=spec.description,
            )
            for name, spec in self.conditional_dependencies.items()
        ]
        sigs.extend(
            DependencySignature(
                name=name,
                version_spec=spec.version,
                patterns=list(spec.patterns),
                description=spec.description,
                is_dev=True,
            )
            for name, spec in self.conditional_dev_dependencies.items()
        )
        return sigs

    def managed_names(self) -> set[str]:
        return (
            set(self.base_dependencies)
            | set(self.conditional_dependencies)
            | set(self.dev_dependencies)
            | set(self.conditional_dev_dependencies)
        )

    def is_empty(self) -> bool:
        return not (
            self.base_dependencies
            or self.conditional_dependencies
            or self.dev_dependencies
            or self.conditional_dev_dependencies
            or self.deprecated_dependencies
            or self.standard_scripts
            or self.standard_ts_config
            or self.node_engines
        )


# ── persistence ─────────────────────────────────────────────────────────


def load_policy(path: Path) -> PolicyTable:
    path = Path(path)
    if not path.is_file():
        raise PolicyError(f"Policy file not found: {path} (run 'depsync policy generate')")
    try:
        return PolicyTable.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        raise PolicyError(f"Cannot load policy {path}: {e}") from e


def save_policy(path: Path, policy: PolicyTable) -> Path:
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(policy.model_dump_json(by_alias=True, indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        raise PolicyError(f"Cannot write policy {path}: {e}") from e
    log.info("policy.saved", path=str(path))
    return path


# ── bootstrap from existing manifests ───────────────────────────────────


def _split(
    usage: dict[str, list[str]], total: int
) -> tuple[dict[str, str], dict[str, ConditionalSpec]]:
    common: dict[str, str] = {}
    partial: dict[str, ConditionalSpec] = {}
    for name in sorted(usage):
        version = highest(usage[name]) or usage[name][0]
        if len(usage[name]) == total:
            common[name] = version
        else:
            partial[name] = ConditionalSpec(version=version, patterns=[name])
    return common, partial


def generate_policy(components: Iterable[Component]) -> PolicyTable:
    """Bootstrap a policy from the manifests the components already carry.

    Dependencies declared by every component become base (or dev) entries at
    the highest declared version; the rest become conditional entries whose
    only usage pattern is the package name. A name declared as a runtime
    dependency anywhere is kept out of the dev sections. The standard compiler config is
    copied from the component declaring the highest ``typescript`` version.
    """
    runtime: dict[str, list[str]] = {}
    dev: dict[str, list[str]] = {}
    typescript: list[tuple[str, Component]] = []
    total = 0

    for component in components:
        try:
            manifest = read_json(component.manifest_path)
        except ManifestError as e:
            log.warning("policy.manifest_skipped", component=component.path, error=str(e))
            continue
        total += 1
        for name, version in dependency_map(manifest, "dependencies").items():
            runtime.setdefault(name, []).append(str(version))
        dev_deps = dependency_map(manifest, "devDependencies")
        for name, version in dev_deps.items():
            dev.setdefault(name, []).append(str(version))
        ts = dev_deps.get("typescript") or dependency_map(manifest, "dependencies").get("typescript")
        if isinstance(ts, str):
            typescript.append((ts, component))

    base, conditional = _split(runtime, total)
    dev_base, conditional_dev = _split(dev, total)
    # Runtime wins: a name declared anywhere as a runtime dependency is never a dev entry.
    for name in set(base) | set(conditional):
        dev_base.pop(name, None)
        conditional_dev.pop(name, None)

    ts_config: dict[str, Any] = {}
    if typescript:
        best_version, best = typescript[0]
        for version, component in typescript[1:]:
            if compare_versions(version, best_version) > 0:
                best_version, best = version, component
        ts_path = best.abs_path / "tsconfig.json"
        if ts_path.is_file():
            try:
                ts_config = read_json(ts_path, lenient=True)
            except ManifestError as e:
                log.warning("policy.tsconfig_skipped", component=best.path, error=str(e))
        log.info("policy.tsconfig_source", component=best.path, typescript=best_version)

    log.info(
        "policy.generated",
        components=total,
        base=len(base),
        conditional=len(conditional),
        dev=len(dev_base),
        conditional_dev=len(conditional_dev),
    )
    return PolicyTable(
        base_dependencies=base,
        conditional_dependencies=conditional,
        dev_dependencies=dev_base,
        conditional_dev_dependencies=conditional_dev,
        standard_ts_config=ts_config,
    )
