"""Detector for lint configuration files."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from depsync.models import DependencySignature
from depsync.scanner.registry import register_detector


class LintConfigDetector:
    name = "lint-config"
    file_patterns = [".eslintrc", ".eslintrc.*", "eslint.config.*", "tslint.json"]

    def detect(
        self,
        file_path: Path,
        content: str,
        signatures: Sequence[DependencySignature],
    ) -> set[str]:
        return {s.name for s in signatures if "lint" in s.name}


register_detector(LintConfigDetector())
