"""Detector for tsconfig.json compiler configuration files."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path

from depsync.manifest import loads_jsonc
from depsync.models import DependencySignature
from depsync.scanner.registry import register_detector


class CompilerConfigDetector:
    name = "compiler-config"
    file_patterns = ["tsconfig.json", "tsconfig.*.json"]

    def detect(
        self,
        file_path: Path,
        content: str,
        signatures: Sequence[DependencySignature],
    ) -> set[str]:
        try:
            data = loads_jsonc(content)
        except json.JSONDecodeError:
            return set()
        if not isinstance(data, dict):
            return set()

        names = {s.name for s in signatures}
        used: set[str] = set()

        extends = data.get("extends")
        references = [extends] if isinstance(extends, str) else list(extends or [])

        options = data.get("compilerOptions")
        if isinstance(options, dict):
            for type_name in options.get("types") or []:
                if isinstance(type_name, str) and f"@types/{type_name}" in names:
                    used.add(f"@types/{type_name}")
            references.extend(options.get("typeRoots") or [])

        for ref in references:
            if not isinstance(ref, str):
                continue
            used.update(name for name in names if name in ref)
        return used


register_detector(CompilerConfigDetector())
