# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class UserInfo(BaseModel):
    """A platform user as seen by the identity provider."""

    id: uuid.UUID
    name: str
    email: str | None = None
    employee_id: uuid.UUID | None = None
    is_active: bool = True


class PositionInfo(BaseModel):
    """An organizational position. Scoped when tied to a faculty or department."""

    id: uuid.UUID
    name: str
    faculty_id: uuid.UUID | None = None
    department_id: uuid.UUID | None = None

    @property
    def is_scoped(self) -> bool:
        return self.faculty_id is not None or self.department_id is not None


class OrgContext(BaseModel):
    """Where an employee sits in the organization."""

    faculty_id: uuid.UUID | None = None
    department_id: uuid.UUID | None = None


@runtime_checkable
class IdentityProvider(Protocol):
    """Interface for the identity and role provider."""

    async def get_user(self, user_id: uuid.UUID) -> UserInfo | None:
        """Fetch a user. Returns None if not found."""
        ...

    async def role_exists(self, role_id: uuid.UUID) -> bool:
        """Whether the role is defined."""
        ...

    async def get_position(self, position_id: uuid.UUID) -> PositionInfo | None:
        """Fetch a position. Returns None if not found."""
        ...

    async def user_has_role(self, user_id: uuid.UUID, role_id: uuid.UUID) -> bool:
        """Whether the user currently holds the role."""
        ...

    async def users_in_role(self, role_id: uuid.UUID) -> list[uuid.UUID]:
        """Users currently holding the role."""
        ...

    async def position_holders(self, position_id: uuid.UUID) -> list[uuid.UUID]:
        """Users currently occupying the position."""
        ...

    async def employee_org_context(self, user_id: uuid.UUID) -> OrgContext:
        """Faculty / department of the user's employee record (empty when unknown)."""
        ...


class InMemoryIdentityProvider:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._users: dict[uuid.UUID, UserInfo] = {}
        self._roles: dict[uuid.UUID, set[uuid.UUID]] = {}
        self._positions: dict[uuid.UUID, PositionInfo] = {}
        self._position_holders: dict[uuid.UUID, set[uuid.UUID]] = {}
        self._org: dict[uuid.UUID, OrgContext] = {}

    def seed_user(self, user: UserInfo, org: OrgContext | None = None) -> None:
        """Seed a user and, optionally, their organizational context."""
        self._users[user.id] = user
        if org is not None:
            self._org[user.id] = org

    def seed_role(self, role_id: uuid.UUID, members: list[uuid.UUID] | None = None) -> None:
        """Seed a role with its members."""
        self._roles.setdefault(role_id, set()).update(members or [])

    def seed_position(self, position: PositionInfo, holders: list[uuid.UUID] | None = None) -> None:
        """Seed a position with its current occupants."""
        self._positions[position.id] = position
        self._position_holders.setdefault(position.id, set()).update(holders or [])

    def vacate_position(self, position_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Remove an occupant from a position."""
        self._position_holders.get(position_id, set()).discard(user_id)

    async def get_user(self, user_id: uuid.UUID) -> UserInfo | None:
        return self._users.get(user_id)

    async def role_exists(self, role_id: uuid.UUID) -> bool:
        return role_id in self._roles

    async def get_position(self, position_id: uuid.UUID) -> PositionInfo | None:
        return self._positions.get(position_id)

    async def user_has_role(self, user_id: uuid.UUID, role_id: uuid.UUID) -> bool:
        return user_id in self._roles.get(role_id, set())

    async def users_in_role(self, role_id: uuid.UUID) -> list[uuid.UUID]:
        return sorted(self._roles.get(role_id, set()), key=str)

    async def position_holders(self, position_id: uuid.UUID) -> list[uuid.UUID]:
        return sorted(self._position_holders.get(position_id, set()), key=str)

    async def employee_org_context(self, user_id: uuid.UUID) -> OrgContext:
        return self._org.get(user_id, OrgContext())


_identity_provider: IdentityProvider = InMemoryIdentityProvider()


def get_identity_provider() -> IdentityProvider:
    """FastAPI dependency for the identity provider."""
    return _identity_provider


def set_identity_provider(provider: IdentityProvider) -> None:
    """Override the provider (for testing or production wiring)."""
    global _identity_provider
    _identity_provider = provider
