"""Configuration-file detectors, auto-registered on import."""

from depsync.scanner.detectors import (
    build_tools,  # noqa: F401
    compiler_config,  # noqa: F401
    lint_config,  # noqa: F401
)
