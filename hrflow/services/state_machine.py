"""Submission lifecycle rules and the per-step snapshot kept in ``approval_state``.

Everything here is synchronous and side-effect free apart from mutating the
submission passed in; persistence and locking belong to the orchestrator.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from hrflow.exceptions import InvalidTransitionError
from hrflow.models.enums import ActionStatus, SubmissionStatus
from hrflow.schemas.request_type import ApprovalStepDef

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from hrflow.models.submission import RequestSubmission

ALLOWED_TRANSITIONS: dict[SubmissionStatus, frozenset[SubmissionStatus]] = {
    SubmissionStatus.PENDING: frozenset(
        {SubmissionStatus.APPROVED, SubmissionStatus.FULFILLMENT, SubmissionStatus.REJECTED}
    ),
    SubmissionStatus.APPROVED: frozenset(),
    SubmissionStatus.FULFILLMENT: frozenset({SubmissionStatus.COMPLETED}),
    SubmissionStatus.REJECTED: frozenset(),
    SubmissionStatus.COMPLETED: frozenset(),
}

# Statuses in which the requester's request has been granted.
GRANTED_STATUSES = frozenset({SubmissionStatus.APPROVED, SubmissionStatus.FULFILLMENT, SubmissionStatus.COMPLETED})


def approved_status(has_fulfillment: bool) -> SubmissionStatus:
    """Status a submission lands in once its last step (if any) is approved."""
    return SubmissionStatus.FULFILLMENT if has_fulfillment else SubmissionStatus.APPROVED


def is_completed(status: str) -> bool:
    """Whether nothing more is expected of the submission's approvers or fulfiller."""
    return status in (SubmissionStatus.APPROVED, SubmissionStatus.COMPLETED)


def transition(submission: RequestSubmission, target: SubmissionStatus, now: datetime) -> SubmissionStatus:
    """Move the submission to ``target``, returning the previous status.

    Leaving ``pending`` clears the current step and stamps ``decided_at``;
    reaching ``completed`` stamps ``fulfilled_at``.
    """
    current = SubmissionStatus(submission.status)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(f"Submission {submission.reference_code} cannot go from {current} to {target}")

    submission.status = target.value
    if current == SubmissionStatus.PENDING:
        submission.current_step_index = None
        submission.decided_at = now
    if target == SubmissionStatus.COMPLETED:
        submission.fulfilled_at = now
    submission.version += 1
    submission.updated_at = now
    return current


# ---------------------------------------------------------------------------
# Step snapshot
# ---------------------------------------------------------------------------


def build_approval_state(steps: list[ApprovalStepDef], has_fulfillment: bool) -> dict[str, Any]:
    """Freeze the request type's step definitions onto a new submission."""
    return {
        "has_fulfillment": has_fulfillment,
        "steps": [{**step.model_dump(mode="json"), "status": ActionStatus.PENDING.value} for step in steps],
    }


def step_count(approval_state: dict[str, Any]) -> int:
    return len(approval_state.get("steps", []))


def step_definition(approval_state: dict[str, Any], index: int) -> ApprovalStepDef:
    """The step definition as it was when the submission was created."""
    raw = approval_state["steps"][index]
    return ApprovalStepDef.model_validate({k: v for k, v in raw.items() if k != "status"})


def with_step_status(approval_state: dict[str, Any], index: int, status: ActionStatus) -> dict[str, Any]:
    """Return a copy of the state with one step's status replaced."""
    state = copy.deepcopy(approval_state)
    state["steps"][index]["status"] = status.value
    return state


def derive_step_status(action_statuses: Iterable[str]) -> ActionStatus:
    """Any rejection rejects the step; it is approved only when every action is."""
    statuses = list(action_statuses)
    if any(s == ActionStatus.REJECTED for s in statuses):
        return ActionStatus.REJECTED
    if statuses and all(s == ActionStatus.APPROVED for s in statuses):
        return ActionStatus.APPROVED
    return ActionStatus.PENDING
