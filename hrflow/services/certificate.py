# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from hrflow.models.request_type import RequestType
from hrflow.models.submission import RequestSubmission
from hrflow.services.hooks import CERTIFICATE_STATUSES

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from hrflow.services.hooks import TransitionEvent

logger = logging.getLogger(__name__)


@runtime_checkable
class CertificateGenerator(Protocol):
    """Interface for the certificate renderer. Rendering itself lives elsewhere."""

    async def generate(
        self,
        submission_id: uuid.UUID,
        reference_code: str,
        requester_id: uuid.UUID,
        template_id: uuid.UUID,
    ) -> str | None:
        """Render a certificate and return its stored path, or None when nothing was produced."""
        ...


class InMemoryCertificateGenerator:
    """Records generation calls and returns a fake path."""

    def __init__(self) -> None:
        self.generated: list[uuid.UUID] = []

    async def generate(
        self,
        submission_id: uuid.UUID,
        reference_code: str,
        requester_id: uuid.UUID,
        template_id: uuid.UUID,
    ) -> str | None:
        self.generated.append(submission_id)
        return f"certificates/{reference_code}.png"


_generator: CertificateGenerator = InMemoryCertificateGenerator()


def get_certificate_generator() -> CertificateGenerator:
    """Return the configured certificate generator."""
    return _generator


def set_certificate_generator(generator: CertificateGenerator) -> None:
    """Override the generator (for testing or production wiring)."""
    global _generator
    _generator = generator


async def certificate_hook(session: AsyncSession, event: TransitionEvent) -> None:
    """Produce a certificate once the submission reaches an approved state.

    Skipped when the request type has no template or the certificate already exists.
    """
    if event.to_status not in CERTIFICATE_STATUSES:
        return

    submission = await session.get(RequestSubmission, event.submission_id)
    if submission is None or submission.certificate_path is not None:
        return
    request_type = await session.get(RequestType, submission.request_type_id)
    if request_type is None or not request_type.has_certificate_generation:
        return

    path = await get_certificate_generator().generate(
        submission.id,
        submission.reference_code,
        submission.requester_id,
        request_type.certificate_template_id,
    )
    if path is None:
        logger.warning("Certificate generator produced nothing for %s", submission.reference_code)
        return

    submission.certificate_path = path
    session.add(submission)
    await session.commit()
    logger.info("Certificate generated for %s at %s", submission.reference_code, path)
