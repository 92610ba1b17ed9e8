"""Unused dependency check — a conservative depcheck for components.

Only packages on a known safe-to-remove list (test runners, build-only and
deployment helpers) are ever reported as unused, and only when nothing in the
component's sources or configuration references them.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any

import structlog

from depsync.manifest import dependency_map, read_json, write_json
from depsync.models import CommandResult, Component, DepcheckResult, DependencySignature
from depsync.package_manager import PackageManager
from depsync.scanner import matches_pattern, scan

log = structlog.get_logger("depsync.depcheck")

TEST_PACKAGES = {
    "@testing-library/dom",
    "@testing-library/jest-dom",
    "@testing-library/react",
    "@testing-library/user-event",
    "jest",
    "mocha",
    "chai",
    "karma",
    "jasmine",
    "protractor",
    "cypress",
    "playwright",
}
BUILD_ONLY_PACKAGES = {"gh-pages", "ts-loader", "webpack-cli", "webpack-dev-server"}
DEPLOYMENT_PACKAGES = {"gh-pages", "vercel", "netlify-cli"}

SAFE_TO_REMOVE = TEST_PACKAGES | BUILD_ONLY_PACKAGES | DEPLOYMENT_PACKAGES

# Name fragments never removed for a given project type
ALWAYS_KEEP: dict[str, list[str]] = {
    "sharepoint": ["@microsoft/sp-", "@microsoft/rush-stack-", "gulp", "webpack", "typescript", "eslint"],
    "nextjs": ["next", "react", "react-dom", "next-images", "next-seo", "next-auth"],
    "react": ["react", "react-dom", "react-scripts"],
    "wordpress": ["wp-", "wordpress", "gutenberg"],
    "vue": ["vue", "@vue/cli", "vue-loader"],
    "angular": ["@angular/", "ng-"],
}
DEV_ALWAYS_KEEP: dict[str, list[str]] = {
    "nextjs": [
        "@types/react",
        "@types/react-dom",
        "@types/node",
        "typescript",
        "eslint",
        "eslint-config-next",
        "tailwindcss",
        "postcss",
        "autoprefixer",
    ],
}

CONFIG_FILES = [
    "next.config.js",
    "next.config.ts",
    "tailwind.config.js",
    "tailwind.config.ts",
    "postcss.config.js",
    "postcss.config.mjs",
    "webpack.config.js",
    "webpack.config.ts",
    "vite.config.js",
    "vite.config.ts",
    "babel.config.js",
    ".eslintrc.js",
    ".eslintrc.cjs",
    ".eslintrc.json",
    "tsconfig.json",
]


def detect_project_type(manifest: dict[str, Any]) -> str:
    deps = dict(dependency_map(manifest, "devDependencies"))
    deps.update(dependency_map(manifest, "dependencies"))
    names = list(deps)
    if any("@microsoft/sp-" in n or "@microsoft/rush-stack-" in n for n in names):
        return "sharepoint"
    if any(n in deps for n in ("next", "next-images", "next-seo")):
        return "nextjs"
    if any(n in deps for n in ("react", "react-dom", "react-scripts")):
        return "react"
    if any("wp-" in n or "wordpress" in n for n in names):
        return "wordpress"
    if any(n in deps for n in ("vue", "@vue/cli", "vue-loader")):
        return "vue"
    if any("@angular/" in n or "ng-" in n for n in names):
        return "angular"
    return "unknown"


def is_safe_to_remove(name: str, project_type: str, is_dev: bool = False) -> bool:
    keep = list(ALWAYS_KEEP.get(project_type, []))
    if is_dev:
        keep += DEV_ALWAYS_KEEP.get(project_type, [])
    if any(fragment in name for fragment in keep):
        return False
    return name in SAFE_TO_REMOVE


def usage_patterns(name: str) -> list[str]:
    """Regex patterns proving *name* is imported, required or referenced."""
    n = re.escape(name)
    return [
        rf"""import\s+.*\s+from\s+['"]{n}['"]""",
        rf"""import\s*\(\s*['"]{n}['"]\s*\)""",
        rf"""require\s*\(\s*['"]{n}['"]\s*\)""",
        rf"""['"]{n}['"]""",
        rf"""['"]{n}/""",
    ]


def _referenced_in_config(component: Component, name: str, manifest: dict[str, Any]) -> bool:
    scripts = manifest.get("scripts")
    if isinstance(scripts, dict) and any(name in str(cmd) for cmd in scripts.values()):
        return True
    quoted = rf"""['"]{re.escape(name)}['"/]"""
    for file_name in CONFIG_FILES:
        path = component.abs_path / file_name
        if not path.is_file():
            continue
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            # Unreadable config: assume it references the package.
            return True
        if matches_pattern(quoted, content):
            return True
    return False


def analyze(component: Component) -> DepcheckResult:
    """Classify every declared dependency as used, unused or kept."""
    manifest = read_json(component.manifest_path)
    project_type = detect_project_type(manifest)
    result = DepcheckResult(component=component.path, project_type=project_type)

    runtime = dependency_map(manifest, "dependencies")
    dev = dependency_map(manifest, "devDependencies")
    protected = set(dependency_map(manifest, "peerDependencies")) | set(
        dependency_map(manifest, "optionalDependencies")
    )

    candidates: list[DependencySignature] = []
    for name in list(runtime) + [n for n in dev if n not in runtime]:
        if name in protected or not is_safe_to_remove(name, project_type, is_dev=name in dev):
            result.kept.append(name)
        elif _referenced_in_config(component, name, manifest):
            result.used.append(name)
        else:
            candidates.append(
                DependencySignature(name=name, version_spec="", patterns=usage_patterns(name))
            )

    if candidates:
        found = scan(component.abs_path, candidates)
        for sig in candidates:
            (result.used if sig.name in found else result.unused).append(sig.name)

    log.info(
        "depcheck.analyzed",
        component=component.path,
        project_type=project_type,
        used=len(result.used),
        unused=result.unused,
        kept=len(result.kept),
    )
    return result


def remove_unused(
    component: Component,
    unused: Sequence[str],
    package_manager: PackageManager,
) -> CommandResult | None:
    """Drop *unused* from the manifest, then uninstall them. None when there is nothing to do."""
    if not unused:
        return None
    manifest = read_json(component.manifest_path)
    changed = False
    for section in ("dependencies", "devDependencies"):
        deps = dependency_map(manifest, section)
        for name in unused:
            if name in deps:
                del deps[name]
                changed = True
    if changed:
        write_json(component.manifest_path, manifest)
        log.info("depcheck.removed", component=component.path, packages=list(unused))
    return package_manager.uninstall(component.abs_path, unused)
