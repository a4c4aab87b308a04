from typing import Dict, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser
from app.core.enums import UserRole


def check_permission(module: str, action: str):
    """
    Dependency factory to enforce a specific permission.

    Example:
        Depends(check_permission("fees", "create"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> None:
        if current_user.role == UserRole.ADMIN.value:
            return
        permissions: Dict[str, Dict[str, bool]] = current_user.permissions or {}
        module_perms = permissions.get(module, {})
        if not module_perms.get(action, False):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

    return _checker


def can_act_for_guardian(current_user: CurrentUser, guardian_id: Optional[UUID]) -> bool:
    """Parents may only act on students of their own guardian record; staff roles are unrestricted."""
    if current_user.role != UserRole.PARENT.value:
        return True
    return current_user.guardian_id is not None and current_user.guardian_id == guardian_id
