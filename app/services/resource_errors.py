"""Exceptions raised by the resource engine and its operation backends."""

from __future__ import annotations


class ResourceError(Exception):
    """Base class for resource engine errors."""

    status_code = 400
    code = "resource_error"

    def __init__(self, message: str, *, details: object = None):
        self.message = message
        self.details = details
        super().__init__(message)


class RecordValidationError(ResourceError):
    """Raised when submitted values fail field-level validation."""

    status_code = 422
    code = "validation_error"

    def __init__(self, field_errors: dict[str, str], message: str = "Validation error"):
        self.field_errors = dict(field_errors)
        super().__init__(message, details=self.field_errors)


class ResourceOperationError(ResourceError):
    """Raised when the operation backend rejects or fails a request."""

    status_code = 502
    code = "operation_error"

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        status_code: int | None = None,
        details: object = None,
    ):
        self.operation = operation
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message, details=details)


class RecordNotFoundError(ResourceOperationError):
    status_code = 404
    code = "not_found"

    def __init__(self, record_id: str, *, operation: str | None = None):
        self.record_id = record_id
        super().__init__(f"Record {record_id} not found", operation=operation)


class ConfirmationRequired(ResourceError):
    """Raised when a destructive operation is attempted without confirmation."""

    status_code = 409
    code = "confirmation_required"

    def __init__(self, record_ids: list[str]):
        self.record_ids = list(record_ids)
        count = len(self.record_ids)
        noun = "item" if count == 1 else "items"
        super().__init__(
            f"Deleting {count} {noun} requires confirmation",
            details={"ids": self.record_ids},
        )


class StaleConfirmationError(ResourceError):
    """Raised when a confirmed bulk action no longer matches the pending one."""

    status_code = 409
    code = "stale_confirmation"

    def __init__(self, record_ids: tuple[str, ...] | list[str]):
        self.record_ids = list(record_ids)
        super().__init__(
            "The selection changed after it was shown for confirmation. Review it and try again.",
            details={"ids": self.record_ids},
        )
