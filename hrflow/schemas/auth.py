# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

MANAGER_ROLE = "manager"


class AuthContext(BaseModel):
    """Dev auth context extracted from request headers."""

    user_id: uuid.UUID
    role: str = "employee"

    @property
    def is_manager(self) -> bool:
        """Whether the actor holds the "manage requests" permission."""
        return self.role == MANAGER_ROLE
