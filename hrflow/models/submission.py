# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from hrflow.models.base import TimestampMixin, UUIDBase, VersionedMixin
from hrflow.models.enums import SubmissionStatus


class RequestSubmission(UUIDBase, TimestampMixin, VersionedMixin, table=True):
    """One employee's request moving through its request type's approval pipeline."""

    __tablename__ = "request_submission"
    __table_args__ = (
        sa.UniqueConstraint("reference_code", name="uq_submission_reference_code"),
        sa.Index("ix_submission_requester_status", "requester_id", "status"),
    )

    request_type_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("request_type.id", ondelete="RESTRICT"), nullable=False, index=True
        ),
    )
    requester_id: uuid.UUID = Field(index=True)
    reference_code: str = Field(max_length=32)
    status: str = Field(
        default=SubmissionStatus.PENDING, max_length=20, index=True, sa_column_kwargs={"server_default": "pending"}
    )
    current_step_index: int | None = None
    approval_state: dict[str, Any] = Field(default_factory=dict, sa_type=sa.JSON)
    answers: dict[str, Any] = Field(default_factory=dict, sa_type=sa.JSON)
    submitted_at: datetime = Field(sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    decided_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    fulfilled_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    certificate_path: str | None = Field(default=None, max_length=500)
