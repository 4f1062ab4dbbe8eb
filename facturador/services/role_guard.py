"""
FACTURADOR-DIAN: Role Guard
============================
Restricción de endpoints por rol y por empresa.
Roles: admin > accountant > vendor > viewer
"""
from fastapi import Depends, HTTPException

from facturador.core.exceptions import ForbiddenError
from facturador.dependencies import get_current_user

ROLE_HIERARCHY = {"admin": 4, "accountant": 3, "vendor": 2, "viewer": 1}


def require_role(user: dict, minimum_role: str):
    """Raises 403 if user role is below minimum_role."""
    user_level = ROLE_HIERARCHY.get(user.get("role", "viewer"), 0)
    required_level = ROLE_HIERARCHY.get(minimum_role, 99)
    if user_level < required_level:
        raise HTTPException(
            status_code=403,
            detail=f"Permiso insuficiente. Se requiere rol '{minimum_role}' o superior."
        )


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    require_role(user, "admin")
    return user


def require_company_access(user: dict, company_id: str):
    """Users act only on their own company."""
    if user.get("company_id") != company_id:
        raise ForbiddenError()
