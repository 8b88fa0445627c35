from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from hrflow.exceptions import AppError, NotFoundError
from hrflow.models.base import now_utc
from hrflow.models.enums import AuditAction, AuditEntityType
from hrflow.models.request_type import RequestType
from hrflow.schemas.request_type import (
    RequestTypeListResponse,
    RequestTypeResponse,
    approval_steps_adapter,
)
from hrflow.services.approver import validate_approver_specs
from hrflow.services.audit import audit_now, model_to_audit_dict

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from hrflow.schemas.auth import AuthContext
    from hrflow.schemas.request_type import (
        ApprovalStepDef,
        CreateRequestTypePayload,
        UpdateRequestTypePayload,
    )

logger = logging.getLogger(__name__)


def _build_request_type_response(request_type: RequestType) -> RequestTypeResponse:
    return RequestTypeResponse(
        id=request_type.id,
        name=request_type.name,
        description=request_type.description,
        has_fulfillment=request_type.has_fulfillment,
        is_published=request_type.is_published,
        published_at=request_type.published_at,
        approval_steps=approval_steps_adapter.validate_python(request_type.approval_steps),
        certificate_template_id=request_type.certificate_template_id,
        created_by=request_type.created_by,
        created_at=request_type.created_at,
    )


def _dump_steps(steps: list[ApprovalStepDef]) -> list[dict]:
    return approval_steps_adapter.dump_python(steps, mode="json")


async def get_request_type_or_404(session: AsyncSession, request_type_id: uuid.UUID) -> RequestType:
    """Fetch a request type. Raises 404 if not found."""
    request_type = await session.get(RequestType, request_type_id)
    if request_type is None:
        raise NotFoundError("Request type not found")
    return request_type


async def _ensure_unique_name(
    session: AsyncSession, name: str, exclude_id: uuid.UUID | None = None
) -> None:
    query = select(RequestType.id).where(col(RequestType.name) == name)
    if exclude_id is not None:
        query = query.where(col(RequestType.id) != exclude_id)
    result = await session.execute(query)
    if result.first() is not None:
        raise AppError(f"A request type named '{name}' already exists", status_code=409)


async def create_request_type(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateRequestTypePayload,
) -> RequestTypeResponse:
    """Create a request type after checking every approver spec resolves to something real."""
    await _ensure_unique_name(session, payload.name)
    await validate_approver_specs(payload.approval_steps)

    now = now_utc()
    request_type = RequestType(
        name=payload.name,
        description=payload.description,
        has_fulfillment=payload.has_fulfillment,
        approval_steps=_dump_steps(payload.approval_steps),
        is_published=payload.is_published,
        published_at=now if payload.is_published else None,
        certificate_template_id=payload.certificate_template_id,
        created_by=auth.user_id,
        created_at=now,
        updated_at=now,
    )
    session.add(request_type)
    await session.commit()
    logger.info("Request type %s created with %d step(s)", request_type.name, len(payload.approval_steps))

    await audit_now(
        session,
        entity_type=AuditEntityType.REQUEST_TYPE,
        entity_id=request_type.id,
        action=AuditAction.CREATE,
        actor_id=auth.user_id,
        new=model_to_audit_dict(request_type),
    )
    return _build_request_type_response(request_type)


async def update_request_type(
    session: AsyncSession,
    auth: AuthContext,
    request_type_id: uuid.UUID,
    payload: UpdateRequestTypePayload,
) -> RequestTypeResponse:
    """Administrative edit. Submissions already created keep their own step snapshot."""
    request_type = await get_request_type_or_404(session, request_type_id)
    before = model_to_audit_dict(request_type)
    changes = payload.model_dump(exclude_unset=True)

    if "name" in changes and changes["name"] is not None:
        await _ensure_unique_name(session, changes["name"], exclude_id=request_type.id)
        request_type.name = changes["name"]
    if "description" in changes:
        request_type.description = changes["description"]
    if "has_fulfillment" in changes and changes["has_fulfillment"] is not None:
        request_type.has_fulfillment = changes["has_fulfillment"]
    if "certificate_template_id" in changes:
        request_type.certificate_template_id = changes["certificate_template_id"]
    if payload.approval_steps is not None:
        await validate_approver_specs(payload.approval_steps)
        request_type.approval_steps = _dump_steps(payload.approval_steps)

    request_type.updated_at = now_utc()
    session.add(request_type)
    await session.commit()

    await audit_now(
        session,
        entity_type=AuditEntityType.REQUEST_TYPE,
        entity_id=request_type.id,
        action=AuditAction.UPDATE,
        actor_id=auth.user_id,
        old=before,
        new=model_to_audit_dict(request_type),
    )
    return _build_request_type_response(request_type)


async def set_published(
    session: AsyncSession,
    auth: AuthContext,
    request_type_id: uuid.UUID,
    published: bool,
) -> RequestTypeResponse:
    """Publish or unpublish a request type. Only published types accept submissions."""
    request_type = await get_request_type_or_404(session, request_type_id)
    was_published = request_type.is_published
    now = now_utc()
    request_type.is_published = published
    if published and not was_published:
        request_type.published_at = now
    request_type.updated_at = now
    session.add(request_type)
    await session.commit()

    await audit_now(
        session,
        entity_type=AuditEntityType.REQUEST_TYPE,
        entity_id=request_type.id,
        action=AuditAction.PUBLISH if published else AuditAction.UNPUBLISH,
        actor_id=auth.user_id,
        field="is_published",
        old=was_published,
        new=published,
    )
    return _build_request_type_response(request_type)


async def get_request_type(session: AsyncSession, request_type_id: uuid.UUID) -> RequestTypeResponse:
    """Get a single request type."""
    return _build_request_type_response(await get_request_type_or_404(session, request_type_id))


async def list_request_types(
    session: AsyncSession,
    published_only: bool = False,
    offset: int = 0,
    limit: int = 50,
) -> RequestTypeListResponse:
    """List request types by name."""
    base_filters = []
    if published_only:
        base_filters.append(col(RequestType.is_published).is_(True))

    count_result = await session.execute(select(func.count()).select_from(RequestType).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(RequestType).where(*base_filters).order_by(col(RequestType.name)).offset(offset).limit(limit)
    )
    return RequestTypeListResponse(
        items=[_build_request_type_response(rt) for rt in result.scalars().all()],
        total=total,
    )
