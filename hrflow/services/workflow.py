# ruff: noqa: TC003
from __future__ import annotations

import logging
import secrets
import string
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING, TypeVar

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.orm import aliased
from sqlmodel import col

from hrflow.config import get_settings
from hrflow.exceptions import (
    AppError,
    NotAuthorizedError,
    NotFoundError,
    NotPendingError,
)
from hrflow.models.approval_action import RequestApprovalAction
from hrflow.models.base import now_utc
from hrflow.models.enums import (
    ActionStatus,
    ApproverType,
    AuditAction,
    AuditEntityType,
    Decision,
    SubmissionStatus,
)
from hrflow.models.fulfillment import RequestFulfillment
from hrflow.models.submission import RequestSubmission
from hrflow.schemas.request_type import approval_steps_adapter
from hrflow.schemas.submission import (
    ApprovalActionResponse,
    DecisionResult,
    FulfillmentResponse,
    SubmissionListResponse,
    SubmissionResponse,
)
from hrflow.services import approval_ledger, leave, state_machine
from hrflow.services.approval_ledger import StepOutcome
from hrflow.services.approver import resolve_step
from hrflow.services.audit import AuditRecord
from hrflow.services.hooks import TransitionEvent, dispatch_post_commit
from hrflow.services.request_type import get_request_type_or_404
from hrflow.services.storage import get_file_store
from hrflow.services.transaction import run_with_retry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hrflow.schemas.auth import AuthContext
    from hrflow.schemas.submission import CreateSubmissionPayload, SubmissionScope

logger = logging.getLogger(__name__)

T = TypeVar("T")

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
_REFERENCE_SUFFIX_LENGTH = 5


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_action_response(action: RequestApprovalAction) -> ApprovalActionResponse:
    return ApprovalActionResponse(
        id=action.id,
        step_index=action.step_index,
        approver_id=action.approver_id,
        approver_type=ApproverType(action.approver_type),
        approver_role_id=action.approver_role_id,
        approver_position_id=action.approver_position_id,
        status=ActionStatus(action.status),
        acted_at=action.acted_at,
        notes=action.notes,
    )


def _build_fulfillment_response(fulfillment: RequestFulfillment) -> FulfillmentResponse:
    return FulfillmentResponse(
        fulfilled_by=fulfillment.fulfilled_by,
        file_path=fulfillment.file_path,
        file_url=get_file_store().url(fulfillment.file_path),
        original_filename=fulfillment.original_filename,
        notes=fulfillment.notes,
        completed_at=fulfillment.completed_at,
    )


def _build_submission_response(
    submission: RequestSubmission,
    actions: list[RequestApprovalAction],
    fulfillment: RequestFulfillment | None,
) -> SubmissionResponse:
    return SubmissionResponse(
        id=submission.id,
        request_type_id=submission.request_type_id,
        requester_id=submission.requester_id,
        reference_code=submission.reference_code,
        status=SubmissionStatus(submission.status),
        current_step_index=submission.current_step_index,
        approval_state=submission.approval_state,
        answers=submission.answers,
        submitted_at=submission.submitted_at,
        decided_at=submission.decided_at,
        fulfilled_at=submission.fulfilled_at,
        certificate_path=submission.certificate_path,
        is_completed=state_machine.is_completed(submission.status),
        actions=[_build_action_response(a) for a in actions],
        fulfillment=_build_fulfillment_response(fulfillment) if fulfillment is not None else None,
        created_at=submission.created_at,
    )


async def _get_fulfillment(session: AsyncSession, submission_id: uuid.UUID) -> RequestFulfillment | None:
    result = await session.execute(
        select(RequestFulfillment).where(col(RequestFulfillment.submission_id) == submission_id)
    )
    return result.scalar_one_or_none()


async def _load_response(session: AsyncSession, submission: RequestSubmission) -> SubmissionResponse:
    await session.refresh(submission)
    actions = await approval_ledger.list_actions(session, submission.id)
    fulfillment = await _get_fulfillment(session, submission.id)
    return _build_submission_response(submission, actions, fulfillment)


async def _get_submission_or_404(session: AsyncSession, submission_id: uuid.UUID) -> RequestSubmission:
    submission = await session.get(RequestSubmission, submission_id)
    if submission is None:
        raise NotFoundError("Submission not found")
    return submission


async def _lock_submission(session: AsyncSession, submission_id: uuid.UUID) -> RequestSubmission:
    """Load the submission with a FOR UPDATE lock. Every decision on it serializes here."""
    result = await session.execute(
        select(RequestSubmission)
        .where(col(RequestSubmission.id) == submission_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    submission = result.scalar_one_or_none()
    if submission is None:
        raise NotFoundError("Submission not found")
    return submission


async def _generate_reference_code(session: AsyncSession, now: datetime) -> str:
    """REQ-YYYYMMDD-XXXXX with a random uppercase alphanumeric suffix, unique across submissions."""
    while True:
        suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(_REFERENCE_SUFFIX_LENGTH))
        code = f"REQ-{now:%Y%m%d}-{suffix}"
        result = await session.execute(
            select(RequestSubmission.id).where(col(RequestSubmission.reference_code) == code)
        )
        if result.first() is None:
            return code


async def _run_transition(
    session: AsyncSession,
    operation: Callable[[], Awaitable[tuple[T, TransitionEvent]]],
) -> T:
    """Run one workflow transaction with bounded conflict retries, then fire post-commit hooks.

    Any error rolls the whole transaction back; nothing partial is committed and no
    hook fires.
    """
    result, event = await run_with_retry(session, operation)
    await dispatch_post_commit(session, event)
    return result


def _status_audit(
    submission: RequestSubmission,
    action: AuditAction,
    old: SubmissionStatus | None,
    actor_id: uuid.UUID,
    now: datetime,
) -> AuditRecord:
    return AuditRecord(
        entity_type=AuditEntityType.SUBMISSION,
        entity_id=submission.id,
        action=action,
        actor_id=actor_id,
        at=now,
        field="status",
        old=old,
        new=submission.status,
    )


async def _activate_step(
    session: AsyncSession,
    submission: RequestSubmission,
    step_index: int,
    now: datetime,
    audit: list[AuditRecord],
) -> None:
    step = state_machine.step_definition(submission.approval_state, step_index)
    approvers = await resolve_step(step, submission.requester_id)
    approval_ledger.materialize_actions(session, submission, step_index, approvers, now, audit)
    submission.current_step_index = step_index


async def _apply_outcome(
    session: AsyncSession,
    submission: RequestSubmission,
    outcome: StepOutcome,
    actor_id: uuid.UUID,
    notes: str | None,
    now: datetime,
    audit: list[AuditRecord],
) -> None:
    """Advance, finish or terminate the submission after a recorded decision."""
    step_index = submission.current_step_index
    if step_index is None:
        msg = f"Submission {submission.reference_code} has no active step"
        raise NotPendingError(msg)

    if outcome == StepOutcome.STEP_NOT_YET_COMPLETE:
        submission.updated_at = now
        submission.version += 1
        return

    # The stored step status mirrors the step's actions.
    step_status = state_machine.derive_step_status(
        await approval_ledger.step_action_statuses(session, submission.id, step_index)
    )
    submission.approval_state = state_machine.with_step_status(submission.approval_state, step_index, step_status)

    if outcome == StepOutcome.SUBMISSION_REJECTED:
        old = state_machine.transition(submission, SubmissionStatus.REJECTED, now)
        audit.append(_status_audit(submission, AuditAction.REJECT, old, actor_id, now))
        await leave.apply_leave_transition(session, submission, actor_id, now, audit, notes=notes)
        logger.info("Submission %s rejected at step %d by %s", submission.reference_code, step_index, actor_id)
        return

    next_index = step_index + 1
    if next_index < state_machine.step_count(submission.approval_state):
        await _activate_step(session, submission, next_index, now, audit)
        submission.updated_at = now
        submission.version += 1
        audit.append(
            AuditRecord(
                entity_type=AuditEntityType.SUBMISSION,
                entity_id=submission.id,
                action=AuditAction.ADVANCE,
                actor_id=actor_id,
                at=now,
                field="current_step_index",
                old=step_index,
                new=next_index,
            )
        )
        logger.info("Submission %s advanced to step %d", submission.reference_code, next_index)
        return

    target = state_machine.approved_status(bool(submission.approval_state.get("has_fulfillment")))
    old = state_machine.transition(submission, target, now)
    audit.append(_status_audit(submission, AuditAction.APPROVE, old, actor_id, now))
    await leave.apply_leave_transition(session, submission, actor_id, now, audit)
    logger.info("Submission %s approved, now %s", submission.reference_code, target)


async def _can_fulfill(session: AsyncSession, auth: AuthContext, submission: RequestSubmission) -> bool:
    """Managers, or anyone who approved the final step."""
    if auth.is_manager:
        return True
    last_index = state_machine.step_count(submission.approval_state) - 1
    if last_index < 0:
        return False
    result = await session.execute(
        select(RequestApprovalAction.id).where(
            col(RequestApprovalAction.submission_id) == submission.id,
            col(RequestApprovalAction.step_index) == last_index,
            col(RequestApprovalAction.approver_id) == auth.user_id,
            col(RequestApprovalAction.status) == ActionStatus.APPROVED.value,
        )
    )
    return result.first() is not None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def create_submission(
    session: AsyncSession,
    auth: AuthContext,
    request_type_id: uuid.UUID,
    payload: CreateSubmissionPayload,
    now: datetime | None = None,
) -> SubmissionResponse:
    """Submit a request of the given type.

    Flow:
    1. Snapshot the type's steps onto the submission
    2. Validate leave answers and compute working days (leave type only)
    3. Resolve and materialize step 0, or finish immediately when there are no steps
    4. Reserve leave days (or reserve and deduct for a zero-step leave type)
    5. Commit, then fire post-commit hooks
    """
    now = now or now_utc()

    async def _operation() -> tuple[RequestSubmission, TransitionEvent]:
        request_type = await get_request_type_or_404(session, request_type_id)
        if not request_type.is_published:
            raise AppError("This request type is not accepting submissions", status_code=422)

        steps = approval_steps_adapter.validate_python(request_type.approval_steps)
        approval_state = state_machine.build_approval_state(steps, request_type.has_fulfillment)
        if leave.is_leave_request_type(request_type):
            approval_state["leave"] = await leave.prepare_leave(session, auth.user_id, payload.answers, now.date())

        submission = RequestSubmission(
            request_type_id=request_type.id,
            requester_id=auth.user_id,
            reference_code=await _generate_reference_code(session, now),
            status=SubmissionStatus.PENDING.value,
            approval_state=approval_state,
            answers=payload.answers,
            submitted_at=now,
            created_at=now,
            updated_at=now,
        )
        audit: list[AuditRecord] = []

        if steps:
            # Resolve before anything is written so a bad step leaves no trace.
            approvers = await resolve_step(steps[0], auth.user_id)
            session.add(submission)
            await session.flush()
            approval_ledger.materialize_actions(session, submission, 0, approvers, now, audit)
            submission.current_step_index = 0
            await leave.reserve_for_submission(session, submission, auth.user_id, now, audit)
        else:
            session.add(submission)
            await session.flush()
            state_machine.transition(submission, state_machine.approved_status(request_type.has_fulfillment), now)
            await leave.apply_leave_transition(session, submission, auth.user_id, now, audit)

        audit.insert(0, _status_audit(submission, AuditAction.SUBMIT, None, auth.user_id, now))
        session.add(submission)
        await session.commit()
        logger.info(
            "Submission %s created by %s for %s (%s)",
            submission.reference_code,
            auth.user_id,
            request_type.name,
            submission.status,
        )
        event = TransitionEvent(
            submission_id=submission.id,
            from_status=None,
            to_status=SubmissionStatus(submission.status),
            actor_id=auth.user_id,
            at=now,
            audit=audit,
        )
        return submission, event

    submission = await _run_transition(session, _operation)
    return await _load_response(session, submission)


async def _decide(
    session: AsyncSession,
    auth: AuthContext,
    submission_id: uuid.UUID,
    action_id: uuid.UUID | None,
    decision: Decision,
    notes: str | None,
    now: datetime,
) -> tuple[StepOutcome, RequestSubmission]:
    async def _operation() -> tuple[tuple[StepOutcome, RequestSubmission], TransitionEvent]:
        submission = await _lock_submission(session, submission_id)
        if action_id is not None:
            action = await approval_ledger.get_action(session, action_id)
            if action is None or action.submission_id != submission.id:
                raise NotFoundError("Approval action not found")
            # Re-read under the submission lock.
            await session.refresh(action)
        else:
            if submission.status != SubmissionStatus.PENDING:
                raise NotPendingError(f"Submission {submission.reference_code} is {submission.status}")
            action = await approval_ledger.find_pending_action(session, submission, auth.user_id)
            if action is None:
                logger.warning(
                    "User %s has no pending action on %s at step %s",
                    auth.user_id,
                    submission.reference_code,
                    submission.current_step_index,
                )
                raise NotAuthorizedError("You are not an approver for the current step of this submission")

        from_status = SubmissionStatus(submission.status)
        audit: list[AuditRecord] = []
        outcome = await approval_ledger.record_decision(
            session, submission, action, decision, auth.user_id, notes, now, audit
        )
        await _apply_outcome(session, submission, outcome, auth.user_id, notes, now, audit)
        session.add(submission)
        await session.commit()

        event = TransitionEvent(
            submission_id=submission.id,
            from_status=from_status,
            to_status=SubmissionStatus(submission.status),
            actor_id=auth.user_id,
            at=now,
            audit=audit,
        )
        return (outcome, submission), event

    return await _run_transition(session, _operation)


async def approve_submission(
    session: AsyncSession,
    auth: AuthContext,
    submission_id: uuid.UUID,
    notes: str | None = None,
    now: datetime | None = None,
) -> DecisionResult:
    """Approve the actor's pending action on the submission's current step."""
    outcome, submission = await _decide(
        session, auth, submission_id, None, Decision.APPROVE, notes, now or now_utc()
    )
    return DecisionResult(outcome=outcome.value, submission=await _load_response(session, submission))


async def reject_submission(
    session: AsyncSession,
    auth: AuthContext,
    submission_id: uuid.UUID,
    notes: str,
    now: datetime | None = None,
) -> DecisionResult:
    """Reject through the actor's pending action. Terminal for the whole submission."""
    outcome, submission = await _decide(session, auth, submission_id, None, Decision.REJECT, notes, now or now_utc())
    return DecisionResult(outcome=outcome.value, submission=await _load_response(session, submission))


async def decide_action(
    session: AsyncSession,
    auth: AuthContext,
    action_id: uuid.UUID,
    decision: Decision,
    notes: str | None = None,
    now: datetime | None = None,
) -> DecisionResult:
    """Record a decision against a specific approval action."""
    action = await approval_ledger.get_action(session, action_id)
    if action is None:
        raise NotFoundError("Approval action not found")
    outcome, submission = await _decide(
        session, auth, action.submission_id, action_id, decision, notes, now or now_utc()
    )
    return DecisionResult(outcome=outcome.value, submission=await _load_response(session, submission))


async def fulfill_submission(
    session: AsyncSession,
    auth: AuthContext,
    submission_id: uuid.UUID,
    data: bytes,
    filename: str,
    notes: str | None = None,
    now: datetime | None = None,
) -> SubmissionResponse:
    """Attach the fulfillment artifact and complete the submission."""
    now = now or now_utc()
    submission = await _get_submission_or_404(session, submission_id)
    if not await _can_fulfill(session, auth, submission):
        raise NotAuthorizedError("Only a final-step approver or a manager can fulfill this request")
    if submission.status != SubmissionStatus.FULFILLMENT:
        raise NotPendingError(f"Submission {submission.reference_code} is not awaiting fulfillment")
    if not data:
        raise AppError("Fulfillment file is empty", status_code=422)
    max_bytes = get_settings().max_upload_bytes
    if len(data) > max_bytes:
        raise AppError(f"Fulfillment file exceeds the {max_bytes} byte limit", status_code=413)

    path: str | None = None

    async def _operation() -> tuple[RequestSubmission, TransitionEvent]:
        nonlocal path
        locked = await _lock_submission(session, submission_id)
        old = state_machine.transition(locked, SubmissionStatus.COMPLETED, now)
        # Stored only once the transition is known to be legal; a retry reuses the file.
        if path is None:
            path = await get_file_store().store(data, filename, f"fulfillments/{locked.reference_code}")
        fulfillment = RequestFulfillment(
            submission_id=locked.id,
            fulfilled_by=auth.user_id,
            file_path=path,
            original_filename=filename,
            notes=notes,
            completed_at=now,
            created_at=now,
            updated_at=now,
        )
        session.add(fulfillment)
        session.add(locked)
        await session.commit()
        logger.info("Submission %s fulfilled by %s", locked.reference_code, auth.user_id)

        audit = [_status_audit(locked, AuditAction.FULFILL, old, auth.user_id, now)]
        event = TransitionEvent(
            submission_id=locked.id,
            from_status=old,
            to_status=SubmissionStatus.COMPLETED,
            actor_id=auth.user_id,
            at=now,
            audit=audit,
        )
        return locked, event

    submission = await _run_transition(session, _operation)
    return await _load_response(session, submission)


async def get_submission(
    session: AsyncSession,
    auth: AuthContext,
    submission_id: uuid.UUID,
) -> SubmissionResponse:
    """Get a submission. Visible to its requester, any of its approvers, and managers."""
    submission = await _get_submission_or_404(session, submission_id)
    actions = await approval_ledger.list_actions(session, submission.id)
    if not (
        auth.is_manager
        or submission.requester_id == auth.user_id
        or any(a.approver_id == auth.user_id for a in actions)
    ):
        raise NotAuthorizedError("Not authorized to view this submission")
    fulfillment = await _get_fulfillment(session, submission.id)
    return _build_submission_response(submission, actions, fulfillment)


def _assigned_filter(user_id: uuid.UUID):  # noqa: ANN202
    """Pending on the actor at the current step, or awaiting fulfillment the actor can give."""
    final_action = aliased(RequestApprovalAction)
    last_step = (
        select(func.max(final_action.step_index))
        .where(final_action.submission_id == RequestSubmission.id)
        .scalar_subquery()
    )
    pending_on_me = exists().where(
        col(RequestApprovalAction.submission_id) == col(RequestSubmission.id),
        col(RequestApprovalAction.approver_id) == user_id,
        col(RequestApprovalAction.status) == ActionStatus.PENDING.value,
        col(RequestApprovalAction.step_index) == col(RequestSubmission.current_step_index),
    )
    fulfillable_by_me = exists().where(
        col(RequestApprovalAction.submission_id) == col(RequestSubmission.id),
        col(RequestApprovalAction.approver_id) == user_id,
        col(RequestApprovalAction.status) == ActionStatus.APPROVED.value,
        col(RequestApprovalAction.step_index) == last_step,
    )
    return or_(
        and_(col(RequestSubmission.status) == SubmissionStatus.PENDING.value, pending_on_me),
        and_(col(RequestSubmission.status) == SubmissionStatus.FULFILLMENT.value, fulfillable_by_me),
    )


async def list_submissions(
    session: AsyncSession,
    auth: AuthContext,
    scope: SubmissionScope = "mine",
    status_filter: SubmissionStatus | None = None,
    request_type_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> SubmissionListResponse:
    """List submissions visible in the given scope, newest first.

    ``all`` is only honoured for managers; everyone else falls back to ``mine``.
    """
    if scope == "all" and not auth.is_manager:
        scope = "mine"

    base_filters = []
    if scope == "mine":
        base_filters.append(col(RequestSubmission.requester_id) == auth.user_id)
    elif scope == "assigned":
        base_filters.append(_assigned_filter(auth.user_id))
    if status_filter is not None:
        base_filters.append(col(RequestSubmission.status) == status_filter.value)
    if request_type_id is not None:
        base_filters.append(col(RequestSubmission.request_type_id) == request_type_id)

    count_result = await session.execute(select(func.count()).select_from(RequestSubmission).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(RequestSubmission)
        .where(*base_filters)
        .order_by(col(RequestSubmission.submitted_at).desc())
        .offset(offset)
        .limit(limit)
    )
    submissions = list(result.scalars().all())
    ids = [s.id for s in submissions]

    actions_by_submission: dict[uuid.UUID, list[RequestApprovalAction]] = {sid: [] for sid in ids}
    fulfillments: dict[uuid.UUID, RequestFulfillment] = {}
    if ids:
        actions_result = await session.execute(
            select(RequestApprovalAction)
            .where(col(RequestApprovalAction.submission_id).in_(ids))
            .order_by(col(RequestApprovalAction.step_index), col(RequestApprovalAction.created_at))
        )
        for action in actions_result.scalars().all():
            actions_by_submission[action.submission_id].append(action)
        fulfillment_result = await session.execute(
            select(RequestFulfillment).where(col(RequestFulfillment.submission_id).in_(ids))
        )
        fulfillments = {f.submission_id: f for f in fulfillment_result.scalars().all()}

    return SubmissionListResponse(
        items=[
            _build_submission_response(s, actions_by_submission[s.id], fulfillments.get(s.id)) for s in submissions
        ],
        total=total,
    )
