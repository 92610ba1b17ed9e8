"""Custom exceptions for depsync."""


class DepSyncError(Exception):
    """Base exception for all depsync errors."""


class ConfigError(DepSyncError):
    """Raised when the project configuration cannot be loaded or saved."""


class PolicyError(DepSyncError):
    """Raised when the dependency policy file is missing or malformed."""


class ManifestError(DepSyncError):
    """Raised when a component manifest cannot be read, parsed or written."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class CleanError(DepSyncError):
    """Raised when a component cannot be cleaned."""


class PackageManagerError(DepSyncError):
    """Raised when the package-manager executable cannot be started."""


class ComponentNotFoundError(DepSyncError):
    """Raised when a component named on the command line does not exist."""

    def __init__(self, names: list[str]):
        self.names = names
        super().__init__(f"Unknown component(s): {', '.join(names)}")
