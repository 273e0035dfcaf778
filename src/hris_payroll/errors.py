"""Exception hierarchy for payroll and benefit operations.

Each error carries the HTTP status a transport layer should map it to, so
callers outside the engine never need to inspect message text.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID


class PayrollError(Exception):
    """Base class for all engine errors."""

    http_status = 500
    code = "payroll_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(PayrollError):
    """Input or state failed validation.

    ``errors`` holds every problem found, and ``employee_ids`` the employees
    they belong to when the check ran across a whole period.
    """

    http_status = 400
    code = "validation_error"

    def __init__(
        self,
        message: str,
        errors: list[str] | None = None,
        employee_ids: list[UUID] | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.errors = errors if errors is not None else [message]
        self.employee_ids = employee_ids or []
        super().__init__(message, details)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["errors"] = list(self.errors)
        data["employee_ids"] = [str(e) for e in self.employee_ids]
        return data


class NotFoundError(PayrollError):
    """A referenced record does not exist (or is soft-deleted)."""

    http_status = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ConflictError(PayrollError):
    """The record's current state does not allow the operation."""

    http_status = 409
    code = "conflict"


class InvalidTransitionError(ConflictError):
    """Raised when an invalid state transition is attempted."""

    code = "invalid_transition"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        from_status = getattr(from_status, "value", from_status)
        to_status = getattr(to_status, "value", to_status)
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class DuplicateRecordError(ConflictError, ValidationError):
    """A unique business key already has a record."""

    http_status = 409
    code = "duplicate_record"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        ValidationError.__init__(self, message, details=details)


class ComputationError(PayrollError):
    """Internal inconsistency detected while computing amounts."""

    http_status = 500
    code = "computation_error"
