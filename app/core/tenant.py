"""Per-request tenant context."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.core.permissions import PermissionAction, Resource, StaffRole, has_permission


class TenantContext(BaseModel):
    """Clinic, acting staff member and their permissions for one request.

    Every service query is filtered by ``clinic_id`` and every write is
    stamped with it.
    """

    model_config = ConfigDict(frozen=True)

    clinic_id: UUID
    user_id: UUID
    role: StaffRole
    permissions: frozenset[str]

    def can(self, resource: Resource, action: PermissionAction) -> bool:
        """Check a permission for the acting staff member."""
        return has_permission(self.role, resource, action)
