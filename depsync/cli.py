"""CLI entry point: depsync.

Subcommands:
    depsync list                                  # Show located components
    depsync install [--single NAME | --exclude NAME ...] [normal|legacy|force]
    depsync reinstall [...]                       # clean, then install
    depsync clean [--single NAME | --exclude NAME ...]
    depsync update [--dry-run]                    # Apply the policy to every component
    depsync depcheck [--remove]                   # Report (and drop) unused dependencies
    depsync conflicts                             # Compare the lock file with declared ranges
    depsync policy generate [--force]             # Bootstrap the policy from manifests
    depsync workspace enable|disable|status|sync|clean-modules
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import NoReturn

import click

from depsync.config import resolve_project_root
from depsync.controller import ModeController
from depsync.core.logging import setup_logging
from depsync.exceptions import DepSyncError
from depsync.fs import format_bytes
from depsync.models import ConvergenceResult
from depsync.package_manager import InstallMode
from depsync.report import BatchReport

_STATUS_ICONS = {
    "succeeded": "+",
    "failed": "!",
    "skipped": "-",
    "running": "~",
    "pending": ".",
}


def _controller(ctx: click.Context) -> ModeController:
    try:
        return ModeController(resolve_project_root(ctx.obj.get("root")))
    except DepSyncError as e:
        _fail(str(e))


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _scope(single: str | None, exclude: Sequence[str]) -> tuple[str, tuple[str, ...]]:
    if single and exclude:
        raise click.UsageError("--single and --exclude cannot be combined")
    if single:
        return "single", (single,)
    if exclude:
        return "exclude", tuple(exclude)
    return "all", ()


def _print_report(report: BatchReport) -> None:
    for o in report.outcomes:
        icon = _STATUS_ICONS.get(o.status, "?")
        detail = f" - {o.error or o.detail}" if (o.error or o.detail) else ""
        click.echo(f"  [{icon}] {o.component}{detail}")
    click.echo(report.summary_line())


def _print_convergence(result: ConvergenceResult) -> None:
    click.echo(f"Installs run: {result.installs}")
    for package, version in result.resolutions.items():
        click.echo(f"  pinned {package} -> {version}")
    if result.error:
        click.echo(f"Install failed: {result.error}", err=True)
    for c in result.conflicts:
        click.echo(f"  unresolved {c.package}: wants {c.target_range}, installed {', '.join(c.installed_versions)}")


_scope_options = [
    click.option("--single", default=None, metavar="NAME", help="Only this component"),
    click.option("--exclude", multiple=True, metavar="NAME", help="Skip this component (repeatable)"),
]


def scope_options(func):
    for option in reversed(_scope_options):
        func = option(func)
    return func


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.option(
    "--root",
    default=None,
    type=click.Path(exists=True, file_okay=False),
    help="Project root (default: INIT_CWD inside npm scripts, else cwd)",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, root: str | None) -> None:
    """depsync: reconcile dependencies across the components of a project."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["root"] = root


@main.command("list")
@click.pass_context
def list_components(ctx: click.Context) -> None:
    """List the located components."""
    try:
        components = _controller(ctx).components()
    except DepSyncError as e:
        _fail(str(e))
    if not components:
        click.echo("No components found.")
        return
    for c in components:
        marker = " (tsconfig)" if c.has_compiler_config else ""
        click.echo(f"  {c.path}{marker}")
    click.echo(f"{len(components)} component(s)")


@main.command()
@scope_options
@click.argument("mode", required=False, default="normal", type=click.Choice([m.value for m in InstallMode]))
@click.pass_context
def install(ctx: click.Context, single: str | None, exclude: tuple[str, ...], mode: str) -> None:
    """Install dependencies (per component, or once at the root in workspace mode)."""
    scope, names = _scope(single, exclude)
    try:
        report = _controller(ctx).install(scope, names, InstallMode(mode))
    except DepSyncError as e:
        _fail(str(e))
    _print_report(report)
    if not report.ok:
        sys.exit(1)


@main.command()
@scope_options
@click.argument("mode", required=False, default="normal", type=click.Choice([m.value for m in InstallMode]))
@click.pass_context
def reinstall(ctx: click.Context, single: str | None, exclude: tuple[str, ...], mode: str) -> None:
    """Clean, then install."""
    scope, names = _scope(single, exclude)
    try:
        report = _controller(ctx).reinstall(scope, names, InstallMode(mode))
    except DepSyncError as e:
        _fail(str(e))
    _print_report(report)
    if not report.ok:
        sys.exit(1)


@main.command()
@scope_options
@click.pass_context
def clean(ctx: click.Context, single: str | None, exclude: tuple[str, ...]) -> None:
    """Remove node_modules, lock files and legacy lint configs."""
    scope, names = _scope(single, exclude)
    try:
        _, report = _controller(ctx).clean(scope, names)
    except DepSyncError as e:
        _fail(str(e))
    _print_report(report)
    if not report.ok:
        sys.exit(1)


@main.command()
@click.option("--dry-run", is_flag=True, help="Show the changes without writing them")
@click.pass_context
def update(ctx: click.Context, dry_run: bool) -> None:
    """Apply the dependency policy to every component."""
    try:
        results, report = _controller(ctx).update(dry_run=dry_run)
    except DepSyncError as e:
        _fail(str(e))
    for r in results:
        if r.diff.is_empty and not r.compiler_keys:
            continue
        click.echo(f"{r.component.path}:")
        for c in r.diff.added:
            click.echo(f"  + {c.name}@{c.version} ({c.origin}, {c.section})")
        for c in r.diff.updated:
            click.echo(f"  ~ {c.name} {c.previous} -> {c.version}")
        for c in r.diff.moved:
            click.echo(f"  > {c.name} moved to {c.section}")
        for d in r.diff.removed_deprecated:
            click.echo(f"  - {d.name} (deprecated, {d.section})")
        for f in r.diff.scripts:
            click.echo(f"  script {f.key}: {f.value}")
        for f in r.diff.engines:
            click.echo(f"  engine {f.key}: {f.value}")
        if r.compiler_keys:
            click.echo(f"  tsconfig: {', '.join(r.compiler_keys)}")
    _print_report(report)
    if not report.ok:
        sys.exit(1)


@main.command()
@scope_options
@click.option("--remove", is_flag=True, help="Remove the unused dependencies")
@click.pass_context
def depcheck(ctx: click.Context, single: str | None, exclude: tuple[str, ...], remove: bool) -> None:
    """Report dependencies that are safe to remove and unused."""
    scope, names = _scope(single, exclude)
    try:
        results, report = _controller(ctx).depcheck(scope, names, remove=remove)
    except DepSyncError as e:
        _fail(str(e))
    for r in results:
        if r.unused:
            click.echo(f"{r.component} ({r.project_type}): {', '.join(r.unused)}")
    _print_report(report)
    if not report.ok:
        sys.exit(1)


@main.command()
@click.pass_context
def conflicts(ctx: click.Context) -> None:
    """Show installed versions that diverge from the declared ranges."""
    try:
        records = _controller(ctx).conflicts()
    except DepSyncError as e:
        _fail(str(e))
    if not records:
        click.echo("No version conflicts.")
        return
    for c in records:
        who = f" [{', '.join(c.components)}]" if c.components else ""
        click.echo(f"  {c.package}: wants {c.target_range}, installed {', '.join(c.installed_versions)}{who}")
    sys.exit(1)


# ── policy ──


@main.group()
def policy() -> None:
    """Manage the dependency policy file."""


@policy.command("generate")
@click.option("--force", is_flag=True, help="Overwrite an existing policy file")
@click.pass_context
def policy_generate(ctx: click.Context, force: bool) -> None:
    """Build the policy from the manifests the components already have."""
    try:
        path = _controller(ctx).generate_policy(force=force)
    except DepSyncError as e:
        _fail(str(e))
    click.echo(f"Policy written to {path}")


# ── workspace ──


@main.group()
def workspace() -> None:
    """Switch between per-component and centralized workspace mode."""


@workspace.command("enable")
@click.pass_context
def workspace_enable(ctx: click.Context) -> None:
    """Register every component as a workspace and install at the root."""
    try:
        result = _controller(ctx).enable_workspace()
    except DepSyncError as e:
        _fail(str(e))
    _print_convergence(result)
    if not result.success:
        sys.exit(1)
    click.echo("Workspace mode enabled.")


@workspace.command("disable")
@click.pass_context
def workspace_disable(ctx: click.Context) -> None:
    """Remove the workspace configuration from the root manifest."""
    try:
        changed = _controller(ctx).disable_workspace()
    except DepSyncError as e:
        _fail(str(e))
    click.echo("Workspace mode disabled." if changed else "Workspace mode was not configured.")


@workspace.command("status")
@click.pass_context
def workspace_status(ctx: click.Context) -> None:
    """Report the workspace configuration and its health."""
    try:
        health = _controller(ctx).workspace_status()
    except DepSyncError as e:
        _fail(str(e))
    click.echo(f"Configured: {'yes' if health.configured else 'no'}")
    click.echo(f"Package manager: {health.package_manager}")
    click.echo(f"Lock file: {'yes' if health.lock_file else 'no'}")
    click.echo(f"Workspaces: {len(health.packages)}")
    click.echo(f"Components with local node_modules: {len(health.local_modules)}")
    click.echo(f"Root node_modules: {format_bytes(health.root_modules_size)}")
    for issue in health.issues:
        click.echo(f"  ! {issue}")


@workspace.command("sync")
@click.pass_context
def workspace_sync(ctx: click.Context) -> None:
    """Update the workspaces list after components were added or removed."""
    try:
        changed = _controller(ctx).sync_workspace()
    except DepSyncError as e:
        _fail(str(e))
    click.echo("Workspaces updated." if changed else "Workspaces already up to date.")


@workspace.command("clean-modules")
@click.pass_context
def workspace_clean_modules(ctx: click.Context) -> None:
    """Delete per-component node_modules left over from per-component installs."""
    try:
        freed, failed = _controller(ctx).clean_local_modules()
    except DepSyncError as e:
        _fail(str(e))
    for path, size in freed.items():
        click.echo(f"  [+] {path} ({format_bytes(size)})")
    for path in failed:
        click.echo(f"  [!] {path}")
    click.echo(f"Freed {format_bytes(sum(freed.values()))} in {len(freed)} component(s)")
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
