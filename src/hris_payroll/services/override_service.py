"""Employee-specific allowance and deduction overrides."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hris_payroll.errors import ConflictError, NotFoundError
from hris_payroll.models import AllowanceType, DeductionType, Employee, EmployeeOverride
from hris_payroll.services.audit_service import AuditService, RequestContext
from hris_payroll.services.validation import raise_if_errors

logger = logging.getLogger(__name__)


class OverrideService:
    """Creates, lists and deactivates overrides; every change is audited."""

    def __init__(self, session: AsyncSession, context: RequestContext | None = None):
        self.session = session
        self.context = context or RequestContext()
        self.audit = AuditService(session, self.context)

    async def create_override(
        self,
        employee_id: UUID,
        override_kind: str,
        type_id: UUID,
        amount: Decimal,
        effective_date: date,
        end_date: date | None = None,
        reason: str | None = None,
        user_id: UUID | None = None,
    ) -> EmployeeOverride:
        errors: list[str] = []
        if override_kind not in ("allowance", "deduction"):
            errors.append("Override kind must be 'allowance' or 'deduction'")
        amount = Decimal(str(amount))
        if amount < 0:
            errors.append("Override amount cannot be negative")
        if end_date is not None and end_date < effective_date:
            errors.append("End date cannot be before the effective date")
        raise_if_errors("Invalid override", errors)

        employee = await self.session.get(Employee, employee_id)
        if employee is None or employee.deleted_at is not None:
            raise NotFoundError("Employee", employee_id)
        model = AllowanceType if override_kind == "allowance" else DeductionType
        if await self.session.get(model, type_id) is None:
            raise NotFoundError(model.__name__, type_id)

        override = EmployeeOverride(
            employee_id=employee_id,
            override_kind=override_kind,
            allowance_type_id=type_id if override_kind == "allowance" else None,
            deduction_type_id=type_id if override_kind == "deduction" else None,
            amount=amount,
            effective_date=effective_date,
            end_date=end_date,
            reason=reason,
            is_active=True,
            created_by=user_id or self.context.user_id,
        )
        self.session.add(override)
        await self.session.flush()
        await self.audit.record(
            "CREATE",
            EmployeeOverride.__tablename__,
            override.id,
            new_values={
                "employee_id": employee_id,
                "override_kind": override_kind,
                "type_id": type_id,
                "amount": amount,
                "effective_date": effective_date,
                "end_date": end_date,
                "reason": reason,
            },
            user_id=user_id,
        )
        logger.info("Created %s override for employee %s", override_kind, employee_id)
        return override

    async def deactivate_override(
        self, override_id: UUID, reason: str | None = None, user_id: UUID | None = None
    ) -> EmployeeOverride:
        override = await self.session.get(EmployeeOverride, override_id)
        if override is None:
            raise NotFoundError("EmployeeOverride", override_id)
        if not override.is_active:
            raise ConflictError("Override is already inactive")
        override.is_active = False
        await self.session.flush()
        await self.audit.record(
            "DEACTIVATE",
            EmployeeOverride.__tablename__,
            override.id,
            old_values={"is_active": True},
            new_values={"is_active": False, "reason": reason},
            user_id=user_id,
        )
        return override

    async def list_overrides(
        self, employee_id: UUID, active_only: bool = True
    ) -> list[EmployeeOverride]:
        query = select(EmployeeOverride).where(EmployeeOverride.employee_id == employee_id)
        if active_only:
            query = query.where(EmployeeOverride.is_active.is_(True))
        result = await self.session.execute(query.order_by(EmployeeOverride.effective_date))
        return list(result.scalars())
