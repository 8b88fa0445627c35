# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from hrflow.models.base import TimestampMixin, UUIDBase


class RequestType(UUIDBase, TimestampMixin, table=True):
    """A configurable kind of HR request with its ordered approval pipeline.

    ``approval_steps`` holds the validated step definitions as JSON: a list of
    ``{"name", "description", "approvers": [ApproverSpec, ...]}`` objects in order.
    """

    __tablename__ = "request_type"
    __table_args__ = (sa.UniqueConstraint("name", name="uq_request_type_name"),)

    name: str = Field(max_length=255)
    description: str | None = None
    has_fulfillment: bool = Field(default=False)
    approval_steps: list[dict[str, Any]] = Field(default_factory=list, sa_type=sa.JSON)
    is_published: bool = Field(default=False, index=True)
    published_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    certificate_template_id: uuid.UUID | None = None
    created_by: uuid.UUID

    @property
    def has_certificate_generation(self) -> bool:
        return self.certificate_template_id is not None
