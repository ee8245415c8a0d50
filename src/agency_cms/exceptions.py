"""
Error taxonomy shared by the content store, the CRUD gateway and the HTTP layer.

Every exception maps to one HTTP status and serialises to the `{"error": message}` body the
admin API returns on failure.
"""

from typing import Any, Dict, Optional


class CMSError(Exception):
    """Base class for all Agency CMS errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body = dict(self.details)
        body["error"] = self.message
        return body


class ValidationError(CMSError):
    """A required field is missing or a value is not acceptable."""

    status_code = 400


class AuthError(CMSError):
    """Wrong admin password or missing session."""

    status_code = 401


class NotFound(CMSError):
    """No document exists under the requested key."""

    status_code = 404


class DuplicateKey(CMSError):
    """A unique key (slug or filename) is already taken."""

    status_code = 409


class ConflictError(CMSError):
    """The entity is still referenced by posts and cannot be deleted."""

    status_code = 409


class StorageUnavailable(CMSError):
    """The content store or object store could not complete the operation."""

    status_code = 503
