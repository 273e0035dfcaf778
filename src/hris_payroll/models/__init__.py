"""ORM models for the payroll engine."""

from hris_payroll.models.audit import AuditLog
from hris_payroll.models.base import Base, jsonable, utcnow
from hris_payroll.models.benefits import BENEFIT_TYPES, CompensationBenefit, TerminalLeaveBenefit
from hris_payroll.models.employee import SEPARATED_STATUSES, Employee
from hris_payroll.models.leave import LeaveBalance, LeaveLedgerEntry, LeaveType
from hris_payroll.models.payroll import (
    AllowanceType,
    DeductionType,
    EmployeeOverride,
    PayrollItem,
    PayrollItemLine,
    PayrollPeriod,
)

__all__ = [
    "AllowanceType",
    "AuditLog",
    "BENEFIT_TYPES",
    "Base",
    "CompensationBenefit",
    "DeductionType",
    "Employee",
    "EmployeeOverride",
    "LeaveBalance",
    "LeaveLedgerEntry",
    "LeaveType",
    "PayrollItem",
    "PayrollItemLine",
    "PayrollPeriod",
    "SEPARATED_STATUSES",
    "TerminalLeaveBenefit",
    "jsonable",
    "utcnow",
]
