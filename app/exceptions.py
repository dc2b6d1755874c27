"""
Exception hierarchy for LedgerFlow.

Service functions raise these; the FastAPI handlers registered in
``app.main`` turn them into JSON error responses. Each class carries the
HTTP status code it maps to so the handler stays a single function.

- ValidationError: bad or missing input, reported per field
- NotFoundError: entity absent *or* owned by someone else
- ConflictError: uniqueness violations (e.g. duplicate invoice number)
- UnauthorizedError: no authenticated owner for the request
- StorageError: the database could not complete the operation
"""

from typing import Any, Optional


class LedgerError(Exception):
    """Base class for all application errors."""

    error_code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        context: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        self.message = message
        self.details = details or {}
        self.context = context or {}
        self.cause = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    @property
    def failed_step(self) -> Optional[str]:
        """Name of the unit-of-work step that raised, if any."""
        return self.context.get("failed_step")

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error_code": self.error_code, "message": self.message}
        if self.details:
            body["details"] = self.details
        if self.failed_step:
            body["failed_step"] = self.failed_step
        return body

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class ValidationError(LedgerError):
    """Input failed validation. ``details`` maps field name to message."""

    error_code = "VALIDATION_ERROR"
    status_code = 400

    @classmethod
    def from_pydantic(cls, exc, message: str = "Validation error") -> "ValidationError":
        """Build from a ``pydantic.ValidationError``, one entry per offending field."""
        details: dict[str, str] = {}
        for error in exc.errors():
            loc = [str(part) for part in error.get("loc", ()) if part != "__root__"]
            field = ".".join(loc) if loc else "__all__"
            # Keep the first message reported for a field
            details.setdefault(field, error.get("msg", "Invalid value"))
        return cls(message, details=details)


class NotFoundError(LedgerError):
    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, **kwargs):
        super().__init__(f"{entity} not found", **kwargs)
        self.entity = entity


class ConflictError(LedgerError):
    error_code = "CONFLICT"
    status_code = 409


class UnauthorizedError(LedgerError):
    error_code = "UNAUTHORIZED"
    status_code = 401


class StorageError(LedgerError):
    error_code = "STORAGE_UNAVAILABLE"
    status_code = 503
