"""
Security guards for role-based and ownership-based access control.

Provides dependencies for protecting endpoints.
"""

from typing import Iterable
from fastapi import Depends, HTTPException, status
from backend.app.core.actor import Actor
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError
from backend.app.models.enums import UserRole


def require_role(allowed_roles: Iterable[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/donations")
        async def create_donation(actor: Actor = Depends(require_role([UserRole.DONOR]))):
            ...

    Raises:
        HTTPException 403 if the actor's role is not in allowed_roles
    """
    allowed = frozenset(allowed_roles)

    async def role_checker(current_user: Actor = Depends(get_current_user)) -> Actor:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join(sorted(r.value for r in allowed))}"
            )
        return current_user

    return role_checker


def require_admin(current_user: Actor = Depends(get_current_user)) -> Actor:
    """Dependency for admin-only endpoints."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


class OwnershipGuard:
    """
    Ownership guard for resources that belong to a single user.

    Usage:
        ownership_guard = OwnershipGuard()
        ownership_guard.enforce(donation.donor_id, actor, "donation", "update")
    """

    def enforce(
        self,
        resource_owner_id: int,
        current_user: Actor,
        resource_name: str = "resource",
        action: str = "access"
    ):
        """
        Enforce that the actor owns the resource.

        Raises:
            InsufficientPermissionsError if the actor is not the owner
        """
        if current_user.user_id != resource_owner_id:
            raise InsufficientPermissionsError(
                message=f"You can only {action} your own {resource_name}s",
                details={"resource": resource_name}
            )
