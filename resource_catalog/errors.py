"""Exception types shared by the catalog backend and client."""

from typing import Optional


# ============================================================================
# Backend errors (converted into error envelopes)
# ============================================================================


class CatalogError(Exception):
    """Base class for errors reported to callers as an error envelope."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BusyError(CatalogError):
    """The global write lock could not be acquired in time."""

    def __init__(self, message: str = "Busy"):
        super().__init__(message)


class ResourceNotFoundError(CatalogError):
    """No row carries the requested id."""

    def __init__(self, resource_id: str):
        super().__init__(f"Resource not found: {resource_id}")
        self.resource_id = resource_id


class PayloadError(CatalogError):
    """The request body or an embedded file payload is malformed or too large."""


class StoragePermissionError(CatalogError):
    """The asset store refused the operation for lack of permission."""


# ============================================================================
# Client errors
# ============================================================================


class ConfigurationError(Exception):
    """The client is missing configuration needed to reach the backend."""


class BackendError(Exception):
    """The backend answered with an error envelope or a failing HTTP status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class UploadError(Exception):
    """A create/edit carrying a file could not be completed."""

    def __init__(self, message: str, *, permission_denied: bool = False):
        super().__init__(message)
        self.message = message
        self.permission_denied = permission_denied


_PERMISSION_MARKERS = (
    "permission",
    "authoriz",
    "autorizzazione",
    "driveapp",
    "access denied",
    "accessdenied",
    "forbidden",
)


def is_permission_error(exc: BaseException) -> bool:
    """Return True when an error message points at a permission problem.

    These can never be fixed by retrying.
    """
    text = " ".join(str(exc).lower().split())
    return any(marker in text for marker in _PERMISSION_MARKERS)
