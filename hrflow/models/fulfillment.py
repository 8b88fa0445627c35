# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from hrflow.models.base import TimestampMixin, UUIDBase


class RequestFulfillment(UUIDBase, TimestampMixin, table=True):
    """The deliverable attached to a submission that required fulfillment."""

    __tablename__ = "request_fulfillment"
    __table_args__ = (sa.UniqueConstraint("submission_id", name="uq_fulfillment_submission"),)

    submission_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("request_submission.id", ondelete="CASCADE"), nullable=False),
    )
    fulfilled_by: uuid.UUID
    file_path: str = Field(max_length=500)
    original_filename: str | None = Field(default=None, max_length=255)
    notes: str | None = None
    completed_at: datetime = Field(sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
