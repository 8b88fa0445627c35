from __future__ import annotations

import enum


class SubmissionStatus(enum.StrEnum):
    """Lifecycle of a request submission."""

    PENDING = "pending"
    APPROVED = "approved"
    FULFILLMENT = "fulfillment"
    REJECTED = "rejected"
    COMPLETED = "completed"


class ActionStatus(enum.StrEnum):
    """Decision state of one approver's action (also used for step status)."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Decision(enum.StrEnum):
    """Decision an approver can record."""

    APPROVE = "approve"
    REJECT = "reject"


class ApproverType(enum.StrEnum):
    """How an approver spec identifies its approvers."""

    USER = "user"
    ROLE = "role"
    POSITION = "position"


class LeaveRequestStatus(enum.StrEnum):
    """Status of the denormalized leave request snapshot."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class LeaveLedgerStage(enum.StrEnum):
    """How far a submission's leave days have moved through the balance ledger."""

    RESERVED = "reserved"
    DEDUCTED = "deducted"
    RELEASED = "released"


class AccrualType(enum.StrEnum):
    """Origin of a leave accrual credit."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"
    MANUAL = "manual"
    ADJUSTMENT = "adjustment"


class HolidayType(enum.StrEnum):
    """Classification of a holiday."""

    REGULAR = "regular"
    SPECIAL = "special"
    LOCAL = "local"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    REQUEST_TYPE = "REQUEST_TYPE"
    SUBMISSION = "SUBMISSION"
    APPROVAL_ACTION = "APPROVAL_ACTION"
    LEAVE_BALANCE = "LEAVE_BALANCE"
    LEAVE_TYPE = "LEAVE_TYPE"
    HOLIDAY = "HOLIDAY"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    ADVANCE = "ADVANCE"
    FULFILL = "FULFILL"
    PUBLISH = "PUBLISH"
    UNPUBLISH = "UNPUBLISH"
    RESERVE = "RESERVE"
    DEDUCT = "DEDUCT"
    RELEASE = "RELEASE"
    ACCRUE = "ACCRUE"
