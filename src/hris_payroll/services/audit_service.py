"""Audit trail writer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hris_payroll.models import AuditLog, jsonable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestContext:
    """Caller information recorded with each audit entry."""

    user_id: UUID | None = None
    ip_address: str | None = None
    user_agent: str | None = None


class AuditService:
    """Appends AuditLog rows in the caller's transaction."""

    def __init__(self, session: AsyncSession, context: RequestContext | None = None):
        self.session = session
        self.context = context or RequestContext()

    async def record(
        self,
        action: str,
        table_name: str,
        record_id: UUID | None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        user_id: UUID | None = None,
    ) -> AuditLog:
        entry = AuditLog(
            user_id=user_id or self.context.user_id,
            action=action,
            table_name=table_name,
            record_id=record_id,
            old_values=jsonable(old_values) if old_values is not None else None,
            new_values=jsonable(new_values) if new_values is not None else None,
            ip_address=self.context.ip_address,
            user_agent=self.context.user_agent,
        )
        self.session.add(entry)
        logger.debug("audit %s %s %s", action, table_name, record_id)
        return entry

    async def history(self, table_name: str, record_id: UUID) -> list[AuditLog]:
        """Audit entries for one record, oldest first."""
        await self.session.flush()
        result = await self.session.execute(
            select(AuditLog)
            .where(AuditLog.table_name == table_name, AuditLog.record_id == record_id)
            .order_by(AuditLog.created_at, AuditLog.id)
        )
        return list(result.scalars())
