"""Usage scanner."""

from depsync.scanner.scanner import collect_used, matches_pattern, scan, scan_components

__all__ = ["collect_used", "matches_pattern", "scan", "scan_components"]
