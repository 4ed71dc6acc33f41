# Overview: Domain error taxonomy shared by services, routes, and the dashboard store.

from __future__ import annotations


class DashboardError(Exception):
    """Base for every failure an operation reports to its caller."""

    status_code = 500
    title = "Error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(DashboardError):
    """400-level input problem (negative stock/price, short text, malformed file)."""

    status_code = 400
    title = "Invalid data"


class InvalidFormat(ValidationError):
    """Backup snapshot does not have the expected shape."""

    title = "Invalid backup file"


class OutOfStock(DashboardError):
    """Sale attempted against a product with no stock left."""

    status_code = 409
    title = "Out of stock"


class NotFound(DashboardError):
    """Referenced product or transaction does not exist."""

    status_code = 404
    title = "Not found"


class StorageUnavailable(DashboardError):
    """No authenticated session, or the backing store cannot be reached."""

    status_code = 503
    title = "Storage unavailable"


class PermissionDenied(DashboardError):
    """
    The backing store rejected a write because of access rules.

    Carries the operation context for logging; the message shown to users
    stays generic.
    """

    status_code = 403
    title = "Permission denied"

    def __init__(
        self,
        message: str = "The operation was rejected by the data store.",
        *,
        operation: str | None = None,
        collection: str | None = None,
        path: str | None = None,
        payload: dict | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.collection = collection
        self.path = path
        self.payload = payload

    def context(self) -> dict:
        return {
            "operation": self.operation,
            "collection": self.collection,
            "path": self.path,
            "payload": self.payload,
        }
