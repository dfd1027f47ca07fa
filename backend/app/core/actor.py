"""
Authenticated principal passed from the auth layer into domain services.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from backend.app.models.enums import UserRole, ReserverKind, reserver_kind_for


@dataclass(frozen=True)
class Actor:
    user_id: int
    username: str
    role: UserRole

    @classmethod
    def from_token_payload(cls, payload: Dict[str, Any]) -> "Actor":
        """Build an actor from a decoded JWT; raises ValueError on an unknown role."""
        return cls(
            user_id=int(payload["user_id"]),
            username=payload.get("sub", ""),
            role=UserRole(payload["role"]),
        )

    @property
    def reserver_kind(self) -> Optional[ReserverKind]:
        return reserver_kind_for(self.role)

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN
