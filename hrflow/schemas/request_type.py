# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Literal, Self

from pydantic import BaseModel, Field, TypeAdapter, model_validator

# ---------------------------------------------------------------------------
# Approver specs (discriminated union on approver_type)
# ---------------------------------------------------------------------------


class UserApprover(BaseModel):
    """A named user approves."""

    approver_type: Literal["user"] = "user"
    user_id: uuid.UUID


class RoleApprover(BaseModel):
    """Every active holder of the role approves (one action each)."""

    approver_type: Literal["role"] = "role"
    role_id: uuid.UUID


class PositionApprover(BaseModel):
    """The current occupant(s) of the position approve, scoped to the requester's faculty."""

    approver_type: Literal["position"] = "position"
    position_id: uuid.UUID


ApproverSpec = Annotated[
    UserApprover | RoleApprover | PositionApprover,
    Field(discriminator="approver_type"),
]


class ApprovalStepDef(BaseModel):
    """One stage of the pipeline. Every resolved approver must approve."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    approvers: list[ApproverSpec] = Field(min_length=1)

    @model_validator(mode="after")
    def _reject_duplicate_specs(self) -> Self:
        seen = {spec.model_dump_json() for spec in self.approvers}
        if len(seen) != len(self.approvers):
            msg = f"Step '{self.name}' lists the same approver more than once"
            raise ValueError(msg)
        return self


approval_steps_adapter: TypeAdapter[list[ApprovalStepDef]] = TypeAdapter(list[ApprovalStepDef])


# ---------------------------------------------------------------------------
# API request / response schemas
# ---------------------------------------------------------------------------


class CreateRequestTypePayload(BaseModel):
    """Request body for creating a request type."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    has_fulfillment: bool = False
    is_published: bool = False
    approval_steps: list[ApprovalStepDef] = []
    certificate_template_id: uuid.UUID | None = None


class UpdateRequestTypePayload(BaseModel):
    """Request body for an administrative edit. Omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    has_fulfillment: bool | None = None
    approval_steps: list[ApprovalStepDef] | None = None
    certificate_template_id: uuid.UUID | None = None


class RequestTypeResponse(BaseModel):
    """Response schema for a request type."""

    id: uuid.UUID
    name: str
    description: str | None
    has_fulfillment: bool
    is_published: bool
    published_at: datetime | None
    approval_steps: list[ApprovalStepDef]
    certificate_template_id: uuid.UUID | None
    created_by: uuid.UUID
    created_at: datetime


class RequestTypeListResponse(BaseModel):
    """Paginated list of request types."""

    items: list[RequestTypeResponse]
    total: int
