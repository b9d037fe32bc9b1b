from fastapi import Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser


def require_roles(*roles: str):
    """
    Dependency factory to restrict an endpoint to the given roles. Admin always passes.

    Example:
        Depends(require_roles("mentor"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role == "admin" or current_user.role in roles:
            return current_user
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )

    return _checker


def ensure_self_or_admin(current_user: CurrentUser, student_id: str) -> None:
    """Students may act only on their own records."""
    if current_user.role == "admin" or current_user.id == student_id:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You can only access your own records",
    )
