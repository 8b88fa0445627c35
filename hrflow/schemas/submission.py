# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Literal, Self

from pydantic import BaseModel, Field, model_validator

from hrflow.models.enums import ActionStatus, ApproverType, Decision, SubmissionStatus

SubmissionScope = Literal["mine", "assigned", "all"]

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class CreateSubmissionPayload(BaseModel):
    """Request body for submitting a request of a given type."""

    answers: dict[str, Any] = Field(default_factory=dict)


class LeaveAnswers(BaseModel):
    """Answers a submission of the designated leave request type must carry."""

    leave_type: str = Field(min_length=1, max_length=20, description="Leave type code")
    start_date: date
    end_date: date
    reason: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must not be before start_date"
            raise ValueError(msg)
        return self


class DecisionPayload(BaseModel):
    """Request body for approving."""

    notes: str | None = Field(default=None, max_length=1000)


class RejectPayload(BaseModel):
    """Request body for rejecting. A reason is mandatory."""

    notes: str = Field(min_length=1, max_length=1000)


class ActionDecisionPayload(BaseModel):
    """Request body for recording a decision against a specific action."""

    decision: Decision
    notes: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _require_reject_notes(self) -> Self:
        if self.decision == Decision.REJECT and not self.notes:
            msg = "notes are required when rejecting"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ApprovalActionResponse(BaseModel):
    """One approver's decision slot."""

    id: uuid.UUID
    step_index: int
    approver_id: uuid.UUID
    approver_type: ApproverType
    approver_role_id: uuid.UUID | None
    approver_position_id: uuid.UUID | None
    status: ActionStatus
    acted_at: datetime | None
    notes: str | None


class FulfillmentResponse(BaseModel):
    """The fulfillment artifact attached to a submission."""

    fulfilled_by: uuid.UUID
    file_path: str
    file_url: str
    original_filename: str | None
    notes: str | None
    completed_at: datetime


class SubmissionResponse(BaseModel):
    """Response schema for a submission with its approval trail."""

    id: uuid.UUID
    request_type_id: uuid.UUID
    requester_id: uuid.UUID
    reference_code: str
    status: SubmissionStatus
    current_step_index: int | None
    approval_state: dict[str, Any]
    answers: dict[str, Any]
    submitted_at: datetime
    decided_at: datetime | None
    fulfilled_at: datetime | None
    certificate_path: str | None
    is_completed: bool
    actions: list[ApprovalActionResponse]
    fulfillment: FulfillmentResponse | None = None
    created_at: datetime


class SubmissionListResponse(BaseModel):
    """Paginated list of submissions."""

    items: list[SubmissionResponse]
    total: int


class DecisionResult(BaseModel):
    """Outcome of recording a decision."""

    outcome: Literal["step_not_yet_complete", "step_complete", "submission_rejected"]
    submission: SubmissionResponse
