# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from hrflow.exceptions import EmptyStepError, UnknownApproverError
from hrflow.models.enums import ApproverType
from hrflow.schemas.request_type import PositionApprover, RoleApprover, UserApprover
from hrflow.services.identity import get_identity_provider

if TYPE_CHECKING:
    from hrflow.schemas.request_type import ApprovalStepDef, ApproverSpec
    from hrflow.services.identity import IdentityProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedApprover:
    """A concrete user bound to a step, with the spec that produced them."""

    user_id: uuid.UUID
    approver_type: ApproverType
    role_id: uuid.UUID | None = None
    position_id: uuid.UUID | None = None


async def _is_inactive(provider: IdentityProvider, user_id: uuid.UUID) -> bool:
    user = await provider.get_user(user_id)
    return user is not None and not user.is_active


async def _resolve_user(provider: IdentityProvider, spec: UserApprover) -> list[ResolvedApprover]:
    if await provider.get_user(spec.user_id) is None:
        raise UnknownApproverError(f"Approver user {spec.user_id} does not exist")
    return [ResolvedApprover(user_id=spec.user_id, approver_type=ApproverType.USER)]


async def _resolve_role(provider: IdentityProvider, spec: RoleApprover) -> list[ResolvedApprover]:
    if not await provider.role_exists(spec.role_id):
        raise UnknownApproverError(f"Approver role {spec.role_id} does not exist")
    resolved = []
    for user_id in await provider.users_in_role(spec.role_id):
        if await _is_inactive(provider, user_id):
            continue
        resolved.append(ResolvedApprover(user_id=user_id, approver_type=ApproverType.ROLE, role_id=spec.role_id))
    return resolved


async def _resolve_position(
    provider: IdentityProvider,
    spec: PositionApprover,
    requester_id: uuid.UUID,
) -> list[ResolvedApprover]:
    position = await provider.get_position(spec.position_id)
    if position is None:
        raise UnknownApproverError(f"Approver position {spec.position_id} does not exist")

    requester_faculty = (await provider.employee_org_context(requester_id)).faculty_id
    resolved = []
    for user_id in await provider.position_holders(spec.position_id):
        if await _is_inactive(provider, user_id):
            continue
        if position.is_scoped and requester_faculty is not None:
            # Holder's own faculty wins over the position's.
            approver_faculty = (await provider.employee_org_context(user_id)).faculty_id or position.faculty_id
            if approver_faculty is not None and approver_faculty != requester_faculty:
                logger.info(
                    "Excluding position %s holder %s: faculty %s does not match requester faculty %s",
                    position.id,
                    user_id,
                    approver_faculty,
                    requester_faculty,
                )
                continue
        resolved.append(
            ResolvedApprover(user_id=user_id, approver_type=ApproverType.POSITION, position_id=spec.position_id)
        )
    return resolved


async def resolve_spec(
    spec: ApproverSpec,
    requester_id: uuid.UUID,
    provider: IdentityProvider | None = None,
) -> list[ResolvedApprover]:
    """Resolve one approver spec to the users it currently designates."""
    provider = provider or get_identity_provider()
    if isinstance(spec, UserApprover):
        return await _resolve_user(provider, spec)
    if isinstance(spec, RoleApprover):
        return await _resolve_role(provider, spec)
    return await _resolve_position(provider, spec, requester_id)


async def resolve_step(
    step: ApprovalStepDef,
    requester_id: uuid.UUID,
    provider: IdentityProvider | None = None,
) -> list[ResolvedApprover]:
    """Resolve a step to its distinct approvers.

    A user designated by several specs gets one action, attributed to the first spec
    that produced them. The requester never approves their own submission. Raises
    EmptyStepError when nobody is left.
    """
    provider = provider or get_identity_provider()
    seen: set[uuid.UUID] = {requester_id}
    approvers: list[ResolvedApprover] = []
    for spec in step.approvers:
        for approver in await resolve_spec(spec, requester_id, provider):
            if approver.user_id == requester_id:
                logger.info("Excluding requester %s from approval step '%s'", requester_id, step.name)
            if approver.user_id in seen:
                continue
            seen.add(approver.user_id)
            approvers.append(approver)

    if not approvers:
        raise EmptyStepError(f"Approval step '{step.name}' resolved to no approvers")
    return approvers


async def validate_approver_specs(steps: list[ApprovalStepDef], provider: IdentityProvider | None = None) -> None:
    """Check every spec references an existing user, role or position."""
    provider = provider or get_identity_provider()
    for step in steps:
        for spec in step.approvers:
            if isinstance(spec, UserApprover):
                found = await provider.get_user(spec.user_id) is not None
            elif isinstance(spec, RoleApprover):
                found = await provider.role_exists(spec.role_id)
            else:
                found = await provider.get_position(spec.position_id) is not None
            if not found:
                raise UnknownApproverError(
                    f"Step '{step.name}' references an unknown {spec.approver_type} approver"
                )
