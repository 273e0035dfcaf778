"""Domain events and the in-process emitter."""

from hris_payroll.events.emitter import EventBatch, EventEmitter, Subscription
from hris_payroll.events.types import (
    BenefitRecorded,
    DomainEvent,
    EventCategory,
    EventMetadata,
    LeaveAccrued,
    PayrollItemFinalized,
    PayrollItemPaid,
    PayrollPeriodFinalized,
    PayrollPeriodPaid,
    PayrollPeriodReopened,
    TerminalLeaveStatusChanged,
)

__all__ = [
    "BenefitRecorded",
    "DomainEvent",
    "EventBatch",
    "EventCategory",
    "EventEmitter",
    "EventMetadata",
    "LeaveAccrued",
    "PayrollItemFinalized",
    "PayrollItemPaid",
    "PayrollPeriodFinalized",
    "PayrollPeriodPaid",
    "PayrollPeriodReopened",
    "Subscription",
    "TerminalLeaveStatusChanged",
]
