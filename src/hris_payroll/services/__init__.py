"""Payroll, benefit and leave services."""

from hris_payroll.services.audit_service import AuditService, RequestContext
from hris_payroll.services.benefit_service import BenefitService
from hris_payroll.services.leave_ledger import AccrualResult, CarryForwardResult, LeaveLedger
from hris_payroll.services.override_service import OverrideService
from hris_payroll.services.payroll_item_service import PayrollItemService
from hris_payroll.services.period_service import PeriodService, PeriodSummary
from hris_payroll.services.state_machine import (
    ItemStateMachine,
    ItemStatus,
    PeriodStateMachine,
    PeriodStatus,
    TerminalLeaveStateMachine,
    TerminalLeaveStatus,
)
from hris_payroll.services.terminal_leave_service import TerminalLeaveService
from hris_payroll.services.validation import FinalizationReport, ValidationEngine

__all__ = [
    "AccrualResult",
    "AuditService",
    "BenefitService",
    "CarryForwardResult",
    "FinalizationReport",
    "ItemStateMachine",
    "ItemStatus",
    "LeaveLedger",
    "OverrideService",
    "PayrollItemService",
    "PeriodService",
    "PeriodStateMachine",
    "PeriodStatus",
    "PeriodSummary",
    "RequestContext",
    "TerminalLeaveService",
    "TerminalLeaveStateMachine",
    "TerminalLeaveStatus",
    "ValidationEngine",
]
