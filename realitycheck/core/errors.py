"""Typed failures surfaced across the plugin boundary.

Each error carries a stable ``code`` string that callers on the UI side
switch on.
"""


class UsageError(Exception):
    """Base class for all RealityCheck errors."""

    code = "USAGE_ERROR"

    def __init__(self, message: str = "", code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class PermissionDeniedError(UsageError):
    """Usage-statistics access has not been granted to this process."""

    code = "PERMISSION_DENIED"


class PackageNotFoundError(UsageError):
    """A package is no longer installed (or never was)."""

    code = "NOT_FOUND"

    def __init__(self, package_id: str) -> None:
        super().__init__(f"Package not found: {package_id}")
        self.package_id = package_id


class CollaboratorError(UsageError):
    """A platform or persistence collaborator failed."""

    code = "COLLABORATOR_FAILURE"


class InvalidArgumentError(UsageError):
    """A required argument is missing from an interactive call."""

    code = "INVALID_ARGUMENT"


class NotImplementedMethodError(UsageError):
    """The requested plugin method does not exist."""

    code = "NOT_IMPLEMENTED"
