"""Domain events published by the payroll engine.

Events are immutable records of something that already happened. The
notification sink subscribes to them; the engine never waits on it.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from hris_payroll.models import jsonable, utcnow


class EventCategory(str, Enum):
    """Event categories for routing and filtering."""

    PAYROLL = "payroll"
    BENEFITS = "benefits"
    LEAVE = "leave"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every domain event."""

    event_id: UUID
    timestamp: datetime
    correlation_id: UUID
    actor_id: UUID | None
    actor_type: str
    source_service: str
    version: int = 1

    @classmethod
    def create(
        cls,
        actor_id: UUID | None = None,
        correlation_id: UUID | None = None,
        actor_type: str = "user",
        source_service: str = "payroll",
    ) -> EventMetadata:
        return cls(
            event_id=uuid4(),
            timestamp=utcnow(),
            correlation_id=correlation_id or uuid4(),
            actor_id=actor_id,
            actor_type=actor_type if actor_id else "system",
            source_service=source_service,
        )


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    metadata: EventMetadata

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    @property
    def category(self) -> EventCategory:
        raise NotImplementedError("Subclasses must define category")

    def to_dict(self) -> dict[str, Any]:
        data = jsonable(asdict(self))
        data["event_type"] = self.event_type
        data["category"] = self.category.value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


# ===== Payroll events =====


@dataclass(frozen=True)
class PayrollItemFinalized(DomainEvent):
    payroll_item_id: UUID
    payroll_period_id: UUID
    employee_id: UUID
    net_pay: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYROLL


@dataclass(frozen=True)
class PayrollItemPaid(DomainEvent):
    payroll_item_id: UUID
    payroll_period_id: UUID
    employee_id: UUID
    net_pay: Decimal
    pay_date: date

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYROLL


@dataclass(frozen=True)
class PayrollPeriodFinalized(DomainEvent):
    payroll_period_id: UUID
    item_count: int
    total_net_pay: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYROLL


@dataclass(frozen=True)
class PayrollPeriodPaid(DomainEvent):
    payroll_period_id: UUID
    item_count: int
    total_net_pay: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYROLL


@dataclass(frozen=True)
class PayrollPeriodReopened(DomainEvent):
    payroll_period_id: UUID
    reason: str
    reopen_count: int

    @property
    def category(self) -> EventCategory:
        return EventCategory.PAYROLL


# ===== Benefit events =====


@dataclass(frozen=True)
class BenefitRecorded(DomainEvent):
    benefit_id: UUID
    employee_id: UUID
    benefit_type: str
    year: int
    amount: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.BENEFITS


@dataclass(frozen=True)
class TerminalLeaveStatusChanged(DomainEvent):
    terminal_leave_id: UUID
    employee_id: UUID
    from_status: str
    to_status: str
    amount: Decimal

    @property
    def category(self) -> EventCategory:
        return EventCategory.BENEFITS


# ===== Leave events =====


@dataclass(frozen=True)
class LeaveAccrued(DomainEvent):
    employee_id: UUID
    year: int
    month: int
    days_by_leave_type: dict[str, str]

    @property
    def category(self) -> EventCategory:
        return EventCategory.LEAVE
