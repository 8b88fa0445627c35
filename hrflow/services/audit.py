from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from hrflow.models.audit import AuditLog
from hrflow.models.base import now_utc

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlmodel import SQLModel

    from hrflow.models.enums import AuditAction, AuditEntityType

logger = logging.getLogger(__name__)


def to_audit_value(value: Any) -> Any:
    """Convert a value to something JSON-safe for the audit log."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {str(k): to_audit_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_audit_value(v) for v in value]
    return value


def model_to_audit_dict(model: SQLModel) -> dict[str, Any]:
    """Serialize a SQLModel instance to a JSON-safe dict for audit logging."""
    return {key: to_audit_value(value) for key, value in model.model_dump().items()}


@dataclass(frozen=True)
class AuditRecord:
    """One append-only audit entry, collected during a transaction and written after commit."""

    entity_type: AuditEntityType
    entity_id: uuid.UUID
    action: AuditAction
    actor_id: uuid.UUID | None
    at: datetime
    field: str | None = None
    old: Any = None
    new: Any = None


def write_audit_log(session: AsyncSession, record: AuditRecord) -> AuditLog:
    """Stage an audit row on the session."""
    entry = AuditLog(
        actor_id=record.actor_id,
        entity_type=record.entity_type.value,
        entity_id=record.entity_id,
        action=record.action.value,
        field=record.field,
        old_value=to_audit_value(record.old),
        new_value=to_audit_value(record.new),
        created_at=record.at,
    )
    session.add(entry)
    return entry


async def record_audit(session: AsyncSession, records: list[AuditRecord]) -> None:
    """Fire-and-forget sink: write the records in their own short transaction.

    Failures are logged and discarded; the workflow transition they describe has
    already committed.
    """
    if not records:
        return
    try:
        for record in records:
            write_audit_log(session, record)
        await session.commit()
    except SQLAlchemyError:
        logger.exception(
            "Audit write failed for %d record(s), first entity %s %s",
            len(records),
            records[0].entity_type,
            records[0].entity_id,
        )
        await session.rollback()


async def audit_now(
    session: AsyncSession,
    *,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    action: AuditAction,
    actor_id: uuid.UUID | None,
    field: str | None = None,
    old: Any = None,
    new: Any = None,
) -> None:
    """Record a single audit entry for an administrative change that has just committed."""
    await record_audit(
        session,
        [
            AuditRecord(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                actor_id=actor_id,
                at=now_utc(),
                field=field,
                old=old,
                new=new,
            )
        ],
    )
