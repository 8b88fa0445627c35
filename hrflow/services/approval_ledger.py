# ruff: noqa: TC003
from __future__ import annotations

import enum
import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from hrflow.exceptions import NotAuthorizedError, NotPendingError
from hrflow.models.approval_action import RequestApprovalAction
from hrflow.models.enums import ActionStatus, AuditAction, AuditEntityType, Decision, SubmissionStatus
from hrflow.services.audit import AuditRecord

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hrflow.models.submission import RequestSubmission
    from hrflow.services.approver import ResolvedApprover

logger = logging.getLogger(__name__)


class StepOutcome(enum.StrEnum):
    """What a recorded decision did to the active step."""

    STEP_NOT_YET_COMPLETE = "step_not_yet_complete"
    STEP_COMPLETE = "step_complete"
    SUBMISSION_REJECTED = "submission_rejected"


def materialize_actions(
    session: AsyncSession,
    submission: RequestSubmission,
    step_index: int,
    approvers: list[ResolvedApprover],
    now: datetime,
    audit: list[AuditRecord],
) -> list[RequestApprovalAction]:
    """Create one pending action per resolved approver for the step being activated."""
    actions = [
        RequestApprovalAction(
            submission_id=submission.id,
            step_index=step_index,
            approver_id=approver.user_id,
            approver_type=approver.approver_type.value,
            approver_role_id=approver.role_id,
            approver_position_id=approver.position_id,
            status=ActionStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        for approver in approvers
    ]
    session.add_all(actions)
    audit.extend(
        AuditRecord(
            entity_type=AuditEntityType.APPROVAL_ACTION,
            entity_id=action.id,
            action=AuditAction.CREATE,
            actor_id=None,
            at=now,
            new={"submission_id": submission.id, "step_index": step_index, "approver_id": action.approver_id},
        )
        for action in actions
    )
    logger.info(
        "Step %d of %s activated with %d approver(s)", step_index, submission.reference_code, len(actions)
    )
    return actions


async def list_actions(session: AsyncSession, submission_id: uuid.UUID) -> list[RequestApprovalAction]:
    result = await session.execute(
        select(RequestApprovalAction)
        .where(col(RequestApprovalAction.submission_id) == submission_id)
        .order_by(col(RequestApprovalAction.step_index), col(RequestApprovalAction.created_at))
    )
    return list(result.scalars().all())


async def get_action(session: AsyncSession, action_id: uuid.UUID) -> RequestApprovalAction | None:
    return await session.get(RequestApprovalAction, action_id)


async def find_pending_action(
    session: AsyncSession,
    submission: RequestSubmission,
    approver_id: uuid.UUID,
) -> RequestApprovalAction | None:
    """The actor's pending action on the submission's current step, if any."""
    if submission.current_step_index is None:
        return None
    result = await session.execute(
        select(RequestApprovalAction).where(
            col(RequestApprovalAction.submission_id) == submission.id,
            col(RequestApprovalAction.step_index) == submission.current_step_index,
            col(RequestApprovalAction.approver_id) == approver_id,
            col(RequestApprovalAction.status) == ActionStatus.PENDING.value,
        )
    )
    return result.scalar_one_or_none()


async def _count_pending(session: AsyncSession, submission_id: uuid.UUID, step_index: int) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(RequestApprovalAction)
        .where(
            col(RequestApprovalAction.submission_id) == submission_id,
            col(RequestApprovalAction.step_index) == step_index,
            col(RequestApprovalAction.status) == ActionStatus.PENDING.value,
        )
    )
    return result.scalar_one()


async def step_action_statuses(session: AsyncSession, submission_id: uuid.UUID, step_index: int) -> list[str]:
    """Statuses of every action materialized for one step."""
    result = await session.execute(
        select(RequestApprovalAction.status).where(
            col(RequestApprovalAction.submission_id) == submission_id,
            col(RequestApprovalAction.step_index) == step_index,
        )
    )
    return list(result.scalars().all())


async def record_decision(
    session: AsyncSession,
    submission: RequestSubmission,
    action: RequestApprovalAction,
    decision: Decision,
    actor_id: uuid.UUID,
    notes: str | None,
    now: datetime,
    audit: list[AuditRecord],
) -> StepOutcome:
    """Record one approver's decision. The caller must hold the submission row lock.

    Decisions are checked against the identity frozen on the action; role and
    position membership is never re-resolved here.
    """
    if submission.status != SubmissionStatus.PENDING:
        raise NotPendingError(f"Submission {submission.reference_code} is {submission.status}")
    if action.status != ActionStatus.PENDING:
        raise NotPendingError("This approval action has already been decided")
    if action.approver_id != actor_id or action.step_index != submission.current_step_index:
        logger.warning(
            "User %s refused on action %s of %s (bound approver %s, step %d, current step %s)",
            actor_id,
            action.id,
            submission.reference_code,
            action.approver_id,
            action.step_index,
            submission.current_step_index,
        )
        raise NotAuthorizedError("You are not the approver for this step")

    new_status = ActionStatus.APPROVED if decision == Decision.APPROVE else ActionStatus.REJECTED
    action.status = new_status.value
    action.acted_at = now
    action.notes = notes
    action.updated_at = now
    session.add(action)
    await session.flush()

    audit.append(
        AuditRecord(
            entity_type=AuditEntityType.APPROVAL_ACTION,
            entity_id=action.id,
            action=AuditAction.APPROVE if decision == Decision.APPROVE else AuditAction.REJECT,
            actor_id=actor_id,
            at=now,
            field="status",
            old=ActionStatus.PENDING,
            new=new_status,
        )
    )

    if decision == Decision.REJECT:
        return StepOutcome.SUBMISSION_REJECTED
    if await _count_pending(session, submission.id, action.step_index) == 0:
        return StepOutcome.STEP_COMPLETE
    return StepOutcome.STEP_NOT_YET_COMPLETE
