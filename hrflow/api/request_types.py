# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from hrflow.api.deps import AuthDep, ManagerDep
from hrflow.db import SessionDep
from hrflow.schemas.request_type import (
    CreateRequestTypePayload,
    RequestTypeListResponse,
    RequestTypeResponse,
    UpdateRequestTypePayload,
)
from hrflow.schemas.submission import CreateSubmissionPayload, SubmissionResponse
from hrflow.services import request_type as request_type_service
from hrflow.services import workflow

request_types_router = APIRouter(prefix="/request-types", tags=["request-types"])


@request_types_router.post("", response_model=RequestTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_request_type(
    payload: CreateRequestTypePayload,
    session: SessionDep,
    auth: ManagerDep,
) -> RequestTypeResponse:
    """Create a request type (manager only)."""
    return await request_type_service.create_request_type(session, auth, payload)


@request_types_router.get("", response_model=RequestTypeListResponse)
async def list_request_types(
    session: SessionDep,
    auth: AuthDep,
    published_only: bool = Query(default=False),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> RequestTypeListResponse:
    """List request types."""
    return await request_type_service.list_request_types(session, published_only, offset, limit)


@request_types_router.get("/{request_type_id}", response_model=RequestTypeResponse)
async def get_request_type(
    request_type_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> RequestTypeResponse:
    """Get a single request type."""
    return await request_type_service.get_request_type(session, request_type_id)


@request_types_router.put("/{request_type_id}", response_model=RequestTypeResponse)
async def update_request_type(
    request_type_id: uuid.UUID,
    payload: UpdateRequestTypePayload,
    session: SessionDep,
    auth: ManagerDep,
) -> RequestTypeResponse:
    """Edit a request type (manager only). In-flight submissions keep their steps."""
    return await request_type_service.update_request_type(session, auth, request_type_id, payload)


@request_types_router.post("/{request_type_id}/publish", response_model=RequestTypeResponse)
async def publish_request_type(
    request_type_id: uuid.UUID,
    session: SessionDep,
    auth: ManagerDep,
) -> RequestTypeResponse:
    """Open a request type for submissions."""
    return await request_type_service.set_published(session, auth, request_type_id, published=True)


@request_types_router.post("/{request_type_id}/unpublish", response_model=RequestTypeResponse)
async def unpublish_request_type(
    request_type_id: uuid.UUID,
    session: SessionDep,
    auth: ManagerDep,
) -> RequestTypeResponse:
    """Stop accepting submissions for a request type."""
    return await request_type_service.set_published(session, auth, request_type_id, published=False)


@request_types_router.post(
    "/{request_type_id}/submissions",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_submission(
    request_type_id: uuid.UUID,
    payload: CreateSubmissionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> SubmissionResponse:
    """Submit a request of this type."""
    return await workflow.create_submission(session, auth, request_type_id, payload)
