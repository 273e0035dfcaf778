"""Tests for payroll period, item and terminal leave state machines."""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from hris_payroll.errors import ConflictError, InvalidTransitionError
from hris_payroll.services.state_machine import (
    ItemStateMachine,
    PeriodStateMachine,
    PeriodStatus,
    TerminalLeaveStateMachine,
)


def _period(status: str, deleted: bool = False):
    return SimpleNamespace(
        status=status,
        deleted_at=datetime(2025, 1, 1, tzinfo=timezone.utc) if deleted else None,
    )


class TestPeriodStateMachine:
    """Test period transitions."""

    def test_valid_transitions(self):
        assert PeriodStateMachine.can_transition("Draft", "Processing") is True
        assert PeriodStateMachine.can_transition("Processing", "Completed") is True
        assert PeriodStateMachine.can_transition("Completed", "Paid") is True

        # reopen and cancel
        assert PeriodStateMachine.can_transition("Completed", "Processing") is True
        assert PeriodStateMachine.can_transition("Processing", "Draft") is True

    def test_invalid_transitions(self):
        # Can't skip processing
        assert PeriodStateMachine.can_transition("Draft", "Completed") is False
        assert PeriodStateMachine.can_transition("Draft", "Paid") is False
        assert PeriodStateMachine.can_transition("Processing", "Paid") is False

        # Paid is terminal
        assert PeriodStateMachine.can_transition("Paid", "Processing") is False
        assert PeriodStateMachine.can_transition("Paid", "Draft") is False
        assert PeriodStateMachine.is_terminal("Paid") is True

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            PeriodStateMachine.validate_transition("Draft", "Paid")

        assert exc_info.value.from_status == "Draft"
        assert exc_info.value.to_status == "Paid"
        assert isinstance(exc_info.value, ConflictError)

    def test_enum_and_string_statuses_are_interchangeable(self):
        assert PeriodStateMachine.can_transition(PeriodStatus.DRAFT, "Processing") is True
        with pytest.raises(InvalidTransitionError) as exc_info:
            PeriodStateMachine.validate_transition(PeriodStatus.PAID, PeriodStatus.DRAFT)
        assert exc_info.value.from_status == "Paid"

    def test_is_reopen_and_cancel(self):
        assert PeriodStateMachine.is_reopen("Completed", "Processing") is True
        assert PeriodStateMachine.is_reopen("Processing", "Draft") is False
        assert PeriodStateMachine.is_cancel("Processing", "Draft") is True
        assert PeriodStateMachine.is_cancel("Completed", "Processing") is False

    def test_can_edit(self):
        assert PeriodStateMachine.can_edit("Draft") is True
        assert PeriodStateMachine.can_edit("Processing") is True
        assert PeriodStateMachine.can_edit("Completed") is False
        assert PeriodStateMachine.can_edit("Paid") is False

    def test_next_statuses(self):
        assert PeriodStateMachine.get_next_statuses("Completed") == ["Paid", "Processing"]
        assert PeriodStateMachine.get_next_statuses("Paid") == []


class TestPeriodTransitionValidation:
    def test_finalize_requires_items(self):
        errors = PeriodStateMachine.validate_period_for_transition(
            _period("Processing"), "Completed", []
        )
        assert errors == ["Payroll period has no payroll items"]

    def test_pay_requires_finalized_items(self):
        errors = PeriodStateMachine.validate_period_for_transition(
            _period("Completed"), "Paid", ["Finalized", "Draft"]
        )
        assert errors == ["1 item(s) are not finalized"]

    def test_reopen_blocked_by_paid_items(self):
        errors = PeriodStateMachine.validate_period_for_transition(
            _period("Completed"), "Processing", ["Paid", "Finalized"]
        )
        assert errors == ["1 item(s) are already paid"]

    def test_deleted_period_rejected(self):
        errors = PeriodStateMachine.validate_period_for_transition(
            _period("Processing", deleted=True), "Completed", ["Draft"]
        )
        assert errors == ["Payroll period is deleted"]

    def test_valid_finalize(self):
        assert (
            PeriodStateMachine.validate_period_for_transition(
                _period("Processing"), "Completed", ["Draft", "Draft"]
            )
            == []
        )


class TestItemStateMachine:
    def test_transitions(self):
        assert ItemStateMachine.can_transition("Draft", "Finalized") is True
        assert ItemStateMachine.can_transition("Finalized", "Paid") is True
        assert ItemStateMachine.can_transition("Finalized", "Draft") is True
        assert ItemStateMachine.can_transition("Draft", "Paid") is False
        assert ItemStateMachine.can_transition("Paid", "Draft") is False

    def test_can_edit_requires_draft_item_in_editable_period(self):
        assert ItemStateMachine.can_edit("Draft", "Processing") is True
        assert ItemStateMachine.can_edit("Draft", "Completed") is False
        assert ItemStateMachine.can_edit("Finalized", "Processing") is False


class TestTerminalLeaveStateMachine:
    def test_lifecycle(self):
        assert TerminalLeaveStateMachine.can_transition("Computed", "Approved") is True
        assert TerminalLeaveStateMachine.can_transition("Approved", "Paid") is True
        assert TerminalLeaveStateMachine.can_transition("Computed", "Cancelled") is True
        assert TerminalLeaveStateMachine.can_transition("Approved", "Cancelled") is True

    def test_paid_and_cancelled_are_terminal(self):
        with pytest.raises(InvalidTransitionError):
            TerminalLeaveStateMachine.validate_transition("Paid", "Cancelled")
        with pytest.raises(InvalidTransitionError):
            TerminalLeaveStateMachine.validate_transition("Cancelled", "Approved")
        with pytest.raises(InvalidTransitionError):
            TerminalLeaveStateMachine.validate_transition("Computed", "Paid")
