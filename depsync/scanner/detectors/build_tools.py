"""Detector for build-tool configuration files (gulp, webpack, rollup, vite, babel)."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from depsync.models import DependencySignature
from depsync.scanner.registry import register_detector

# Config file name -> packages its presence proves are in use
_TOOL_FILES: dict[str, tuple[str, ...]] = {
    "gulpfile.js": ("gulp",),
    "webpack.config.js": ("webpack", "webpack-cli"),
    "rollup.config.js": ("rollup",),
    "vite.config.js": ("vite",),
    "vite.config.ts": ("vite",),
    "babel.config.js": ("@babel/core",),
}


class BuildToolDetector:
    name = "build-tools"
    file_patterns = list(_TOOL_FILES)

    def detect(
        self,
        file_path: Path,
        content: str,
        signatures: Sequence[DependencySignature],
    ) -> set[str]:
        tools = set(_TOOL_FILES.get(file_path.name.lower(), ()))
        used: set[str] = set()
        for sig in signatures:
            # Plugins are referenced by quoted package name in these files.
            if sig.name in tools or f'"{sig.name}"' in content or f"'{sig.name}'" in content:
                used.add(sig.name)
        return used


register_detector(BuildToolDetector())
