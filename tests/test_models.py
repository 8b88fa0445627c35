from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal

from hrflow.models import (
    AuditLog,
    LeaveBalance,
    LeaveRequest,
    RequestApprovalAction,
    RequestSubmission,
    RequestType,
    SQLModel,
)
from hrflow.models.enums import ActionStatus, LeaveRequestStatus, SubmissionStatus

EXPECTED_TABLES = {
    "audit_log",
    "holiday",
    "leave_accrual",
    "leave_balance",
    "leave_request",
    "leave_type",
    "request_approval_action",
    "request_fulfillment",
    "request_submission",
    "request_type",
}


def test_all_tables_registered() -> None:
    table_names = set(SQLModel.metadata.tables.keys())
    assert EXPECTED_TABLES.issubset(table_names)


def test_request_type_defaults() -> None:
    request_type = RequestType(name="Travel Approval", created_by=uuid.uuid4())
    assert request_type.id is not None
    assert request_type.is_published is False
    assert request_type.has_fulfillment is False
    assert request_type.approval_steps == []
    assert request_type.has_certificate_generation is False


def test_submission_defaults() -> None:
    submission = RequestSubmission(
        request_type_id=uuid.uuid4(),
        requester_id=uuid.uuid4(),
        reference_code="REQ-20260105-ABCDE",
        submitted_at=datetime(2026, 1, 5, tzinfo=UTC),
    )
    assert submission.status == SubmissionStatus.PENDING
    assert submission.current_step_index is None
    assert submission.version == 1
    assert submission.certificate_path is None


def test_approval_action_defaults() -> None:
    action = RequestApprovalAction(
        submission_id=uuid.uuid4(),
        step_index=0,
        approver_id=uuid.uuid4(),
        approver_type="user",
    )
    assert action.status == ActionStatus.PENDING
    assert action.acted_at is None


def test_leave_balance_starts_at_zero() -> None:
    balance = LeaveBalance(employee_id=uuid.uuid4(), leave_type_id=uuid.uuid4(), year=2026)
    for name in ("entitled", "accrued", "carried_over", "used", "pending", "balance"):
        assert getattr(balance, name) == Decimal("0")
    assert balance.version == 1


def test_leave_request_defaults_to_pending() -> None:
    leave_request = LeaveRequest(
        request_submission_id=uuid.uuid4(),
        employee_id=uuid.uuid4(),
        leave_type_id=uuid.uuid4(),
        start_date=date(2026, 1, 5),
        end_date=date(2026, 1, 7),
        days=Decimal("3"),
    )
    assert leave_request.status == LeaveRequestStatus.PENDING


def test_audit_log_instantiation() -> None:
    entry = AuditLog(entity_type="SUBMISSION", entity_id=uuid.uuid4(), action="SUBMIT")
    assert entry.actor_id is None
    assert entry.created_at is not None
