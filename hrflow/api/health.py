import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from hrflow.config import get_settings
from hrflow.db import SessionDep
from hrflow.services.certificate import get_certificate_generator
from hrflow.services.identity import get_identity_provider
from hrflow.services.notification import get_notifier
from hrflow.services.storage import get_file_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Service status plus the external collaborators the workflow is wired to."""

    status: Literal["ok", "degraded", "error"]
    version: str
    environment: str
    leave_balance_enforced: bool
    collaborators: dict[str, str]


def _collaborators() -> dict[str, str]:
    return {
        "identity": type(get_identity_provider()).__name__,
        "file_store": type(get_file_store()).__name__,
        "certificates": type(get_certificate_generator()).__name__,
        "notifier": type(get_notifier()).__name__,
    }


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    """Report database connectivity. A database failure degrades the status instead of erroring."""
    settings = get_settings()
    status: Literal["ok", "degraded", "error"] = "ok"

    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: database connectivity failed")
        status = "degraded"

    return HealthResponse(
        status=status,
        version=settings.app_version,
        environment=settings.environment,
        leave_balance_enforced=settings.enforce_leave_balance,
        collaborators=_collaborators(),
    )
