"""API Dependencies - Common dependencies for routes"""
from typing import Callable, Optional
from fastapi import Depends, Header

from ..domain.models import ActorContext
from ..domain.errors import AuthenticationError, PermissionDeniedError
from ..repositories.directory_repo import DirectoryRepository


async def get_current_user_dep(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id")
) -> ActorContext:
    """
    Resolve the caller from the trusted X-User-Id header

    Raises:
        AuthenticationError: header missing, user unknown or inactive
    """
    if not x_user_id:
        raise AuthenticationError("X-User-Id header is missing")

    user = DirectoryRepository().get_user(x_user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Unknown or inactive user", details={"user_id": x_user_id})

    return ActorContext.from_user(user)


def require_permission(permission: str) -> Callable:
    """
    Build a dependency that returns the caller if they hold the permission

    Usage:
        actor: ActorContext = Depends(require_permission(TICKETS_VIEW))
    """
    async def _dependency(actor: ActorContext = Depends(get_current_user_dep)) -> ActorContext:
        if not actor.can(permission):
            raise PermissionDeniedError(
                f"Permission '{permission}' required",
                details={"permission": permission}
            )
        return actor

    return _dependency
