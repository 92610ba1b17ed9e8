"""Match configuration files to usage detectors."""

from __future__ import annotations

from collections.abc import Sequence
from fnmatch import fnmatch
from pathlib import Path
from typing import Protocol, runtime_checkable

from depsync.models import DependencySignature


@runtime_checkable
class UsageDetector(Protocol):
    """Interface that every configuration-file detector must satisfy."""

    name: str
    file_patterns: list[str]

    def detect(
        self,
        file_path: Path,
        content: str,
        signatures: Sequence[DependencySignature],
    ) -> set[str]: ...


DETECTOR_REGISTRY: dict[str, UsageDetector] = {}


def register_detector(detector: UsageDetector) -> None:
    """Register a detector instance by its name."""
    DETECTOR_REGISTRY[detector.name] = detector


def detectors_for(file_name: str) -> list[UsageDetector]:
    """Detectors whose file patterns match *file_name* (case-insensitive)."""
    lowered = file_name.lower()
    return [
        d
        for d in DETECTOR_REGISTRY.values()
        if any(fnmatch(lowered, pattern) for pattern in d.file_patterns)
    ]
