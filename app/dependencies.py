"""FastAPI dependencies."""

from collections.abc import Awaitable, Callable
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenException
from app.core.permissions import PermissionAction, Resource, StaffRole, permissions_for_role
from app.core.redis_client import CacheManager, get_cache_manager
from app.core.security import decode_access_token
from app.core.tenant import TenantContext
from app.database import get_db
from app.models.users import users

# Security
security = HTTPBearer(auto_error=False)


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> UUID:
    """
    Extract and validate user ID from JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        User ID from token

    Raises:
        HTTPException: If token is missing, invalid or expired
    """
    if credentials is None:
        raise _credentials_error("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _credentials_error()

    user_id_str = payload.get("sub")
    if user_id_str is None or not isinstance(user_id_str, str):
        raise _credentials_error()

    try:
        return UUID(user_id_str)
    except ValueError:
        raise _credentials_error("Invalid user ID format")


async def get_tenant_context(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
    x_clinic_id: Annotated[UUID | None, Header()] = None,
) -> TenantContext:
    """
    Resolve the clinic and permissions of the authenticated staff member.

    Args:
        user_id: User ID from JWT token
        db: Database session
        x_clinic_id: Optional clinic the client believes it is working in

    Returns:
        Tenant context for the request

    Raises:
        HTTPException: If the user does not exist
        ForbiddenException: If the user is inactive or the clinic header mismatches
    """
    result = await db.execute(
        select(users.c.id, users.c.clinic_id, users.c.role, users.c.is_active).where(
            users.c.id == user_id
        )
    )
    user = result.mappings().first()

    if not user:
        raise _credentials_error("User not found")

    if not user["is_active"]:
        raise ForbiddenException("User account is deactivated")

    if x_clinic_id is not None and x_clinic_id != user["clinic_id"]:
        raise ForbiddenException("Access denied to this clinic")

    role = StaffRole(user["role"])
    return TenantContext(
        clinic_id=user["clinic_id"],
        user_id=user["id"],
        role=role,
        permissions=permissions_for_role(role),
    )


def require_permission(
    resource: Resource, action: PermissionAction
) -> Callable[..., Awaitable[TenantContext]]:
    """
    Build a dependency that checks one permission of the acting staff member.

    Usage:
        tenant: Annotated[TenantContext, Depends(require_permission(R.PAYMENTS, A.CREATE))]
    """

    async def checker(
        tenant: Annotated[TenantContext, Depends(get_tenant_context)],
    ) -> TenantContext:
        if not tenant.can(resource, action):
            raise ForbiddenException(
                f"Role {tenant.role.value} cannot {action.value} {resource.value}"
            )
        return tenant

    return checker


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentTenant = Annotated[TenantContext, Depends(get_tenant_context)]
Cache = Annotated[CacheManager | None, Depends(get_cache_manager)]
