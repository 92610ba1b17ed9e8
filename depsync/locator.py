"""Find the component sub-projects below the project root."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import structlog

from depsync.config import ComponentFilters, FileNames
from depsync.exceptions import ComponentNotFoundError
from depsync.fs import walk
from depsync.models import Component

log = structlog.get_logger("depsync.locator")

# Never components, even when recursive search is off.
_ALWAYS_SKIPPED = {"node_modules", ".git", ".depsync"}

SCOPES = ("all", "single", "exclude")


def locate(
    root: Path,
    filters: ComponentFilters,
    files: FileNames | None = None,
) -> list[Component]:
    """Return the components below *root*, in directory-listing order.

    A directory is a component when it satisfies every enabled filter and
    contains the manifest file. Without recursive search only the immediate
    children of *root* are considered; with it, non-matching directories are
    descended into up to ``maxDepth`` levels.
    """
    root = Path(root).resolve()
    files = files or FileNames()
    active = filters.active()
    recursive = filters.recursive_search

    found: list[Component] = []
    seen: set[Path] = set()

    def _qualifies(directory: Path, rel_path: str) -> bool:
        if not all(f.matches(directory, rel_path) for f in active):
            return False
        return (directory / files.package_json).is_file()

    def _visit(directory: Path, depth: int) -> bool:
        rel_path = directory.relative_to(root).as_posix()
        try:
            qualifies = _qualifies(directory, rel_path)
            key = directory.resolve()
        except OSError as e:
            log.debug("locator.dir_skipped", path=rel_path, error=str(e))
            return False
        if not qualifies:
            return recursive.enabled
        if key not in seen:
            seen.add(key)
            found.append(
                Component(
                    path=rel_path,
                    abs_path=directory,
                    manifest_path=directory / files.package_json,
                    has_compiler_config=(directory / files.ts_config).is_file(),
                )
            )
        return False

    exclude = _ALWAYS_SKIPPED | set(recursive.exclude_dirs if recursive.enabled else ())
    max_depth = max(recursive.max_depth, 1) if recursive.enabled else 1
    walk(root, exclude=exclude, on_dir=_visit, max_depth=max_depth)

    log.debug("locator.done", root=str(root), count=len(found), filters=len(active))
    return found


def select(
    components: Sequence[Component],
    scope: str = "all",
    names: Sequence[str] = (),
) -> list[Component]:
    """Narrow *components* to a command scope.

    ``single`` keeps the one component named ``names[0]``; ``exclude`` drops
    every component named in *names*. Names match either the directory name
    or the root-relative path.
    """
    if scope == "all":
        return list(components)

    def _named(component: Component, name: str) -> bool:
        return name in (component.name, component.path)

    if scope == "single":
        if len(names) != 1:
            raise ValueError("scope 'single' takes exactly one component name")
        picked = [c for c in components if _named(c, names[0])]
        if not picked:
            raise ComponentNotFoundError([names[0]])
        return picked[:1]

    if scope == "exclude":
        unknown = [n for n in names if not any(_named(c, n) for c in components)]
        if unknown:
            log.warning("locator.unknown_excludes", names=unknown)
        return [c for c in components if not any(_named(c, n) for n in names)]

    raise ValueError(f"Unknown scope {scope!r}; expected one of {', '.join(SCOPES)}")
