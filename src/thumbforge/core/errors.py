"""Error hierarchy for thumbforge.

Errors are values: they are constructed, returned inside an ``Err`` and inspected
by callers. They subclass Exception only so that ``Err.unwrap()`` and the
transaction manager can raise them.

- ValidationError: Malformed input (not retryable)
- NotFoundError: Entity absent or soft-deleted (not retryable)
- ConflictError: Request conflicts with current entity state
- DatabaseError: Persistence failure (may be transient)
- CacheError: Cache failure (never authoritative)
- StorageError: Object-store failure
"""

from typing import Any


class BaseError(Exception):
    """Base for all thumbforge errors.

    Attributes:
        name: Machine-stable error kind
        status_code: HTTP-style severity code
        message: Human-readable message
        detail: Optional structured context, safe to log and serialize
        is_operational: False for programming/configuration errors
    """

    name = "BaseError"
    status_code = 500

    def __init__(
        self,
        message: str,
        detail: dict[str, Any] | None = None,
        is_operational: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.is_operational = is_operational

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API clients and structured logs."""
        return {
            "name": self.name,
            "message": self.message,
            "status_code": self.status_code,
            "detail": self.detail,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, detail={self.detail!r})"


class ValidationError(BaseError):
    """Malformed input."""

    name = "ValidationError"
    status_code = 422


class NotFoundError(BaseError):
    """Referenced entity does not exist or is soft-deleted."""

    name = "NotFoundError"
    status_code = 404

    def __init__(self, resource: str, identifier: str | None = None):
        if identifier is not None:
            message = f"{resource} with identifier '{identifier}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(message, {"resource": resource, "identifier": identifier})


class ConflictError(BaseError):
    """Request conflicts with the entity's current state."""

    name = "ConflictError"
    status_code = 409


class DatabaseError(BaseError):
    """Persistence layer failure."""

    name = "DatabaseError"
    status_code = 500


class CacheError(BaseError):
    """Cache layer failure."""

    name = "CacheError"
    status_code = 500


class StorageError(BaseError):
    """Object-store failure."""

    name = "StorageError"
    status_code = 500


def exception_detail(exc: BaseException, **context: Any) -> dict[str, Any]:
    """Build a serializable detail dict for a caught client exception."""
    return {**context, "error": str(exc), "error_type": type(exc).__name__}
