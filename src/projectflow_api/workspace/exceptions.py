"""
Workspace Exceptions

Typed failures raised by the domain layer. The HTTP layer maps each class
to a status code in ``projectflow_api.errors.handle_workspace_errors``.
"""


class WorkspaceError(Exception):
    """Base class for all domain failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(WorkspaceError):
    """Missing or malformed input."""


class AuthenticationFailed(WorkspaceError):
    """Credentials or tokens could not be verified."""


class Forbidden(WorkspaceError):
    """The principal is known but its role does not allow the operation."""


class NotFound(WorkspaceError):
    """The entity does not exist in the caller's tenant."""


class Conflict(WorkspaceError):
    """A unique field is already taken, or the entity is in a terminal state."""


class ImageStoreError(WorkspaceError):
    """The external image store rejected an upload."""


class ServiceUnavailable(WorkspaceError):
    """A required backing service is not configured or not reachable."""
