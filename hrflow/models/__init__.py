from sqlmodel import SQLModel

from hrflow.models.approval_action import RequestApprovalAction
from hrflow.models.audit import AuditLog
from hrflow.models.base import TimestampMixin, UUIDBase
from hrflow.models.enums import (
    AccrualType,
    ActionStatus,
    ApproverType,
    AuditAction,
    AuditEntityType,
    Decision,
    HolidayType,
    LeaveLedgerStage,
    LeaveRequestStatus,
    SubmissionStatus,
)
from hrflow.models.fulfillment import RequestFulfillment
from hrflow.models.holiday import Holiday
from hrflow.models.leave import LeaveAccrual, LeaveBalance, LeaveRequest, LeaveType
from hrflow.models.request_type import RequestType
from hrflow.models.submission import RequestSubmission

__all__ = [
    "AccrualType",
    "ActionStatus",
    "ApproverType",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "Decision",
    "Holiday",
    "HolidayType",
    "LeaveAccrual",
    "LeaveBalance",
    "LeaveLedgerStage",
    "LeaveRequest",
    "LeaveRequestStatus",
    "LeaveType",
    "RequestApprovalAction",
    "RequestFulfillment",
    "RequestSubmission",
    "RequestType",
    "SQLModel",
    "SubmissionStatus",
    "TimestampMixin",
    "UUIDBase",
]
