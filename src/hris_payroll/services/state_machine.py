"""Payroll period, item and terminal leave state machines."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from hris_payroll.errors import InvalidTransitionError

if TYPE_CHECKING:
    from hris_payroll.models import PayrollPeriod


class PeriodStatus(str, Enum):
    """Payroll period status values."""

    DRAFT = "Draft"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    PAID = "Paid"


class ItemStatus(str, Enum):
    """Payroll item status values."""

    DRAFT = "Draft"
    FINALIZED = "Finalized"
    PAID = "Paid"


class TerminalLeaveStatus(str, Enum):
    """Terminal leave benefit claim status values."""

    COMPUTED = "Computed"
    APPROVED = "Approved"
    PAID = "Paid"
    CANCELLED = "Cancelled"


class PeriodStateMachine:
    """State machine for payroll period status transitions.

    Allowed transitions:
    - Draft → Processing (first item processed)
    - Processing → Completed (finalize)
    - Processing → Draft (cancel, items discarded)
    - Completed → Paid (mark as paid)
    - Completed → Processing (reopen)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PeriodStatus.DRAFT: [PeriodStatus.PROCESSING],
        PeriodStatus.PROCESSING: [PeriodStatus.COMPLETED, PeriodStatus.DRAFT],
        PeriodStatus.COMPLETED: [PeriodStatus.PAID, PeriodStatus.PROCESSING],
        PeriodStatus.PAID: [],  # Terminal state
    }

    # Statuses where items can be created, recalculated or adjusted
    EDITABLE = {
        PeriodStatus.DRAFT,
        PeriodStatus.PROCESSING,
    }

    # Statuses that count as completed payroll history for benefits
    COMPLETED_HISTORY = {
        PeriodStatus.COMPLETED,
        PeriodStatus.PAID,
    }

    # Statuses where the period may be soft-deleted
    DELETABLE = {
        PeriodStatus.DRAFT,
        PeriodStatus.COMPLETED,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_edit(cls, status: str) -> bool:
        return status in cls.EDITABLE

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.VALID_TRANSITIONS.get(status, [])

    @classmethod
    def is_reopen(cls, from_status: str, to_status: str) -> bool:
        return from_status == PeriodStatus.COMPLETED and to_status == PeriodStatus.PROCESSING

    @classmethod
    def is_cancel(cls, from_status: str, to_status: str) -> bool:
        return from_status == PeriodStatus.PROCESSING and to_status == PeriodStatus.DRAFT

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def validate_period_for_transition(
        cls,
        period: PayrollPeriod,
        to_status: str,
        item_statuses: list[str] | None = None,
    ) -> list[str]:
        """Validate a period for a specific transition.

        ``item_statuses`` lists the statuses of the period's items. Returns
        error messages (empty if valid).
        """
        errors: list[str] = []
        from_status = period.status
        item_statuses = item_statuses or []

        if period.deleted_at is not None:
            errors.append("Payroll period is deleted")
            return errors

        if not cls.can_transition(from_status, to_status):
            errors.append(f"Cannot transition from '{from_status}' to '{to_status}'")
            return errors

        if to_status == PeriodStatus.COMPLETED:
            if not item_statuses:
                errors.append("Payroll period has no payroll items")

        elif to_status == PeriodStatus.PAID:
            not_finalized = [
                s for s in item_statuses if s not in (ItemStatus.FINALIZED, ItemStatus.PAID)
            ]
            if not_finalized:
                errors.append(f"{len(not_finalized)} item(s) are not finalized")

        elif cls.is_reopen(from_status, to_status):
            paid = [s for s in item_statuses if s == ItemStatus.PAID]
            if paid:
                errors.append(f"{len(paid)} item(s) are already paid")

        return errors


class ItemStateMachine:
    """Payroll item status rules.

    Items are edited only in Draft, and only while their period is editable.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        ItemStatus.DRAFT: [ItemStatus.FINALIZED],
        ItemStatus.FINALIZED: [ItemStatus.PAID, ItemStatus.DRAFT],
        ItemStatus.PAID: [],
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        return to_status in cls.VALID_TRANSITIONS.get(from_status, [])

    @classmethod
    def can_edit(cls, item_status: str, period_status: str) -> bool:
        return item_status == ItemStatus.DRAFT and PeriodStateMachine.can_edit(period_status)


class TerminalLeaveStateMachine:
    """Terminal leave claim lifecycle: Computed → Approved → Paid, or Cancelled."""

    VALID_TRANSITIONS: dict[str, list[str]] = {
        TerminalLeaveStatus.COMPUTED: [TerminalLeaveStatus.APPROVED, TerminalLeaveStatus.CANCELLED],
        TerminalLeaveStatus.APPROVED: [TerminalLeaveStatus.PAID, TerminalLeaveStatus.CANCELLED],
        TerminalLeaveStatus.PAID: [],
        TerminalLeaveStatus.CANCELLED: [],
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        return to_status in cls.VALID_TRANSITIONS.get(from_status, [])

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)
