# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from hrflow.models.enums import SubmissionStatus
from hrflow.services.audit import AuditRecord, record_audit

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass
class TransitionEvent:
    """What one committed workflow call did to a submission.

    ``from_status`` is None for a newly created submission. Step advancement
    inside ``pending`` produces an event with equal from/to statuses.
    """

    submission_id: uuid.UUID
    from_status: SubmissionStatus | None
    to_status: SubmissionStatus
    actor_id: uuid.UUID
    at: datetime
    audit: list[AuditRecord] = field(default_factory=list)

    @property
    def status_changed(self) -> bool:
        return self.from_status != self.to_status


PostCommitHook = Callable[["AsyncSession", TransitionEvent], Awaitable[None]]


async def audit_hook(session: AsyncSession, event: TransitionEvent) -> None:
    """Flush the audit records collected during the transaction."""
    await record_audit(session, event.audit)


def _default_hooks() -> list[PostCommitHook]:
    # Imported lazily: both modules import TransitionEvent from here.
    from hrflow.services.certificate import certificate_hook
    from hrflow.services.notification import notification_hook

    return [audit_hook, certificate_hook, notification_hook]


_hooks: list[PostCommitHook] | None = None


def get_post_commit_hooks() -> list[PostCommitHook]:
    """Ordered side effects run after every committed workflow transition."""
    global _hooks
    if _hooks is None:
        _hooks = _default_hooks()
    return _hooks


def set_post_commit_hooks(hooks: list[PostCommitHook] | None) -> None:
    """Override the hook list (None restores the defaults)."""
    global _hooks
    _hooks = hooks


async def dispatch_post_commit(session: AsyncSession, event: TransitionEvent) -> None:
    """Run every hook in order. A failing hook is logged and never re-raised."""
    for hook in get_post_commit_hooks():
        try:
            await hook(session, event)
        except Exception as exc:
            logger.exception(
                "Post-commit hook %s failed for submission %s (%s -> %s)",
                getattr(hook, "__name__", repr(hook)),
                event.submission_id,
                event.from_status,
                event.to_status,
            )
            if isinstance(exc, SQLAlchemyError):
                await session.rollback()


CERTIFICATE_STATUSES = frozenset(
    {SubmissionStatus.APPROVED, SubmissionStatus.FULFILLMENT, SubmissionStatus.COMPLETED}
)
