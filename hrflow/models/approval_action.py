# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from hrflow.models.base import TimestampMixin, UUIDBase
from hrflow.models.enums import ActionStatus


class RequestApprovalAction(UUIDBase, TimestampMixin, table=True):
    """One resolved approver's decision slot for one step of a submission.

    ``approver_id`` is frozen at step activation. ``approver_role_id`` and
    ``approver_position_id`` only record which spec produced the approver.
    """

    __tablename__ = "request_approval_action"
    __table_args__ = (
        sa.UniqueConstraint("submission_id", "step_index", "approver_id", name="uq_action_submission_step_approver"),
        sa.Index("ix_action_approver_status", "approver_id", "status"),
    )

    submission_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("request_submission.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    step_index: int
    approver_id: uuid.UUID
    approver_type: str = Field(max_length=20)
    approver_role_id: uuid.UUID | None = None
    approver_position_id: uuid.UUID | None = None
    status: str = Field(default=ActionStatus.PENDING, max_length=20, sa_column_kwargs={"server_default": "pending"})
    acted_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    notes: str | None = None
