"""Manifest I/O — read and write package.json / tsconfig.json documents.

Documents are loaded into plain dicts (insertion order preserved) and written
back with 2-space indentation and a trailing newline. ``tsconfig.json`` may
carry comments and trailing commas, which :func:`loads_jsonc` tolerates.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from depsync.exceptions import ManifestError
from depsync.models import Section

# A string literal (kept) or a line / block comment (dropped).
_COMMENT_RE = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/', re.DOTALL)
_STRING_OR_TRAILING_COMMA_RE = re.compile(r'("(?:\\.|[^"\\])*")|,(\s*[}\]])')


def loads_jsonc(text: str) -> Any:
    """Parse JSON that may contain comments and trailing commas."""
    stripped = _COMMENT_RE.sub(lambda m: m.group(1) or "", text)
    stripped = _STRING_OR_TRAILING_COMMA_RE.sub(lambda m: m.group(1) or m.group(2), stripped)
    return json.loads(stripped)


def read_json(path: Path, lenient: bool = False) -> dict[str, Any]:
    """Load a JSON object from *path*; raise :class:`ManifestError` when it is not one."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(str(path), e.strerror or str(e)) from e
    if text.startswith("\ufeff"):
        text = text[1:]
    try:
        data = loads_jsonc(text) if lenient else json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestError(str(path), f"invalid JSON ({e.msg} at line {e.lineno})") from e
    if not isinstance(data, dict):
        raise ManifestError(str(path), "top-level value is not an object")
    return data


def write_json(path: Path, data: dict[str, Any]) -> None:
    try:
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    except OSError as e:
        raise ManifestError(str(path), e.strerror or str(e)) from e


def dependency_map(manifest: dict[str, Any], section: Section) -> dict[str, str]:
    """The *section* mapping of *manifest*; non-object values count as empty."""
    value = manifest.get(section)
    return value if isinstance(value, dict) else {}


def ensure_map(manifest: dict[str, Any], key: str) -> dict[str, Any]:
    """Return ``manifest[key]``, creating an empty object at the end if missing."""
    value = manifest.get(key)
    if not isinstance(value, dict):
        value = {}
        manifest[key] = value
    return value


def declared(manifest: dict[str, Any]) -> dict[str, str]:
    """All runtime and dev dependencies declared by *manifest*."""
    merged = dict(dependency_map(manifest, "devDependencies"))
    merged.update(dependency_map(manifest, "dependencies"))
    return merged
