# shiftwatch/api/dependencies/caller.py
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from shiftwatch.models.user import USER_ROLES


@dataclass(frozen=True)
class Caller:
    """
    Identity of the user making the request, as asserted by the gateway.
    """

    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


async def get_caller(
    x_user_id: Optional[int] = Header(
        default=None,
        alias="X-User-Id",
        description="Authenticated user id, set by the upstream gateway.",
    ),
    x_user_role: Optional[str] = Header(
        default=None,
        alias="X-User-Role",
        description="Role of the authenticated user: admin, owl or guest.",
    ),
) -> Caller:
    """
    Dependency resolving the caller of an authenticated route.

    Rules
    -----
    - X-User-Id missing           -> 401
    - X-User-Role missing         -> treated as "guest"
    - X-User-Role not a known role -> 401
    """
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header.",
        )

    role = (x_user_role or "guest").lower()
    if role not in USER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role '{role}'.",
        )

    return Caller(user_id=x_user_id, role=role)


async def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    """
    Dependency for admin-only routes: 403 unless the caller is an admin.
    """
    if not caller.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required.",
        )
    return caller
