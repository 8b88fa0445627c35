# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from hrflow.models.enums import SubmissionStatus
from hrflow.models.submission import RequestSubmission

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hrflow.services.hooks import TransitionEvent

logger = logging.getLogger(__name__)

_NOTIFY_STATUSES = frozenset({SubmissionStatus.COMPLETED, SubmissionStatus.REJECTED})


@dataclass(frozen=True)
class RequesterNotice:
    requester_id: uuid.UUID
    submission_id: uuid.UUID
    reference_code: str
    status: SubmissionStatus


@runtime_checkable
class Notifier(Protocol):
    """Interface for delivering notices to requesters (mail, push, ...)."""

    async def notify(self, notice: RequesterNotice) -> None:
        """Deliver the notice."""
        ...


class InMemoryNotifier:
    """Keeps delivered notices in a list."""

    def __init__(self) -> None:
        self.sent: list[RequesterNotice] = []

    async def notify(self, notice: RequesterNotice) -> None:
        self.sent.append(notice)


_notifier: Notifier = InMemoryNotifier()


def get_notifier() -> Notifier:
    """Return the configured notifier."""
    return _notifier


def set_notifier(notifier: Notifier) -> None:
    """Override the notifier (for testing or production wiring)."""
    global _notifier
    _notifier = notifier


async def notification_hook(session: AsyncSession, event: TransitionEvent) -> None:
    """Tell the requester their submission was completed or rejected."""
    if not event.status_changed or event.to_status not in _NOTIFY_STATUSES:
        return
    submission = await session.get(RequestSubmission, event.submission_id)
    if submission is None:
        return
    await get_notifier().notify(
        RequesterNotice(
            requester_id=submission.requester_id,
            submission_id=submission.id,
            reference_code=submission.reference_code,
            status=event.to_status,
        )
    )
    logger.info("Requester notified: %s is %s", submission.reference_code, event.to_status)
