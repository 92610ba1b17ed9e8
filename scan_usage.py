#!/usr/bin/env python3
"""Standalone usage scanner: shows which policy dependencies each component uses.

Usage:
    python scan_usage.py /path/to/project
    python scan_usage.py .                       # scan current directory
    python scan_usage.py . --component apps/web  # one component only
    python scan_usage.py . --json
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from depsync.config import load_project_config, policy_path
from depsync.exceptions import DepSyncError
from depsync.locator import locate, select
from depsync.policy import load_policy
from depsync.scanner import scan_components


def _print_usage(usage: dict[str, set[str]], declared: dict[str, str], as_json: bool) -> None:
    if not usage:
        print("No components found.")
        return

    if as_json:
        rows = [
            {"component": path, "used": sorted(names)}
            for path, names in usage.items()
        ]
        print(json.dumps(rows, indent=2))
        return

    print(f"Scanned {len(usage)} component(s) against {len(declared)} conditional dependencies\n")
    for path, names in usage.items():
        print(f"  {path}  ({len(names)} used)")
        for name in sorted(names):
            print(f"    {name} {declared.get(name, '')}")
        print()


def main() -> None:
    parser = argparse.ArgumentParser(description="Scan components for dependency usage")
    parser.add_argument("root", help="Project root containing .depsync/")
    parser.add_argument("--component", default=None, help="Scan only this component")
    parser.add_argument("--json", action="store_true", dest="as_json", help="Output as JSON")
    args = parser.parse_args()

    root = Path(args.root).resolve()
    if not root.is_dir():
        print(f"Error: {root} is not a directory", file=sys.stderr)
        sys.exit(1)

    try:
        config = load_project_config(root)
        policy = load_policy(policy_path(root))
        components = locate(root, config.components, config.files)
        if args.component:
            components = select(components, "single", [args.component])
    except DepSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    signatures = policy.signatures()
    usage = scan_components(components, signatures)
    _print_usage(usage, {s.name: s.version_spec for s in signatures}, args.as_json)


if __name__ == "__main__":
    main()
