# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, File, Form, Query, UploadFile

from hrflow.api.deps import AuthDep
from hrflow.config import get_settings
from hrflow.db import SessionDep
from hrflow.models.enums import SubmissionStatus
from hrflow.schemas.submission import (
    ActionDecisionPayload,
    DecisionPayload,
    DecisionResult,
    RejectPayload,
    SubmissionListResponse,
    SubmissionResponse,
    SubmissionScope,
)
from hrflow.services import workflow

submissions_router = APIRouter(prefix="/submissions", tags=["submissions"])
actions_router = APIRouter(prefix="/actions", tags=["submissions"])


@submissions_router.get("", response_model=SubmissionListResponse)
async def list_submissions(
    session: SessionDep,
    auth: AuthDep,
    scope: SubmissionScope = Query(default="mine"),
    status_filter: SubmissionStatus | None = Query(default=None, alias="status"),
    request_type_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> SubmissionListResponse:
    """List submissions: the actor's own, those awaiting the actor, or all (managers)."""
    return await workflow.list_submissions(session, auth, scope, status_filter, request_type_id, offset, limit)


@submissions_router.get("/{submission_id}", response_model=SubmissionResponse)
async def get_submission(
    submission_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> SubmissionResponse:
    """Get a submission with its approval trail."""
    return await workflow.get_submission(session, auth, submission_id)


@submissions_router.post("/{submission_id}/approve", response_model=DecisionResult)
async def approve_submission(
    submission_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: DecisionPayload | None = None,
) -> DecisionResult:
    """Approve the actor's pending action on the current step."""
    notes = payload.notes if payload else None
    return await workflow.approve_submission(session, auth, submission_id, notes)


@submissions_router.post("/{submission_id}/reject", response_model=DecisionResult)
async def reject_submission(
    submission_id: uuid.UUID,
    payload: RejectPayload,
    session: SessionDep,
    auth: AuthDep,
) -> DecisionResult:
    """Reject the submission through the actor's pending action."""
    return await workflow.reject_submission(session, auth, submission_id, payload.notes)


@submissions_router.post("/{submission_id}/fulfillment", response_model=SubmissionResponse)
async def fulfill_submission(
    submission_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    file: UploadFile = File(),
    notes: str | None = Form(default=None),
) -> SubmissionResponse:
    """Upload the fulfillment artifact and complete the submission."""
    # One byte past the limit is enough to reject an oversized upload.
    data = await file.read(get_settings().max_upload_bytes + 1)
    return await workflow.fulfill_submission(
        session, auth, submission_id, data, file.filename or "upload.bin", notes
    )


@actions_router.post("/{action_id}/decision", response_model=DecisionResult)
async def decide_action(
    action_id: uuid.UUID,
    payload: ActionDecisionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> DecisionResult:
    """Record a decision against a specific approval action."""
    return await workflow.decide_action(session, auth, action_id, payload.decision, payload.notes)
