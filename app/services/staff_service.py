"""Staff service for clinic team management."""

from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException, NotFoundException
from app.core.permissions import StaffRole
from app.core.tenant import TenantContext
from app.models.users import users
from app.schemas.staff import StaffCreate, StaffResponse
from app.services.activity_service import log_activity

logger = structlog.get_logger(__name__)


class StaffService:
    """Service for clinic staff members."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def list_staff(
        self,
        tenant: TenantContext,
        role: StaffRole | None = None,
        is_active: bool | None = True,
    ) -> list[StaffResponse]:
        """List staff of the tenant clinic, optionally filtered by role."""
        conditions = [users.c.clinic_id == tenant.clinic_id]
        if role is not None:
            conditions.append(users.c.role == role.value)
        if is_active is not None:
            conditions.append(users.c.is_active.is_(is_active))

        result = await self.db.execute(
            select(users).where(and_(*conditions)).order_by(users.c.last_name, users.c.first_name)
        )
        return [StaffResponse.model_validate(dict(row)) for row in result.mappings()]

    async def get_staff(self, tenant: TenantContext, staff_id: UUID) -> StaffResponse:
        """
        Get a staff member.

        Raises:
            NotFoundException: If staff member not found in the clinic
        """
        result = await self.db.execute(
            select(users).where(and_(users.c.id == staff_id, users.c.clinic_id == tenant.clinic_id))
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Staff member not found")
        return StaffResponse.model_validate(dict(row))

    async def create_staff(self, tenant: TenantContext, data: StaffCreate) -> StaffResponse:
        """
        Add a staff member to the tenant clinic.

        Raises:
            ConflictException: If the email is already used in this clinic
        """
        email = data.email.lower()
        try:
            result = await self.db.execute(
                select(users.c.id).where(
                    and_(users.c.clinic_id == tenant.clinic_id, func.lower(users.c.email) == email)
                )
            )
            if result.first() is not None:
                raise ConflictException("A staff member with this email already exists")

            stmt = (
                insert(users)
                .values(
                    clinic_id=tenant.clinic_id,
                    email=email,
                    first_name=data.first_name,
                    last_name=data.last_name,
                    role=data.role.value,
                    professional_title=data.professional_title,
                    license_number=data.license_number,
                    phone=data.phone,
                )
                .returning(users)
            )
            result = await self.db.execute(stmt)
            row = dict(result.mappings().one())

            await log_activity(
                self.db,
                clinic_id=tenant.clinic_id,
                user_id=tenant.user_id,
                action="create",
                resource_type="staff",
                resource_id=row["id"],
                description=f"Added {data.role.value} {data.first_name} {data.last_name}",
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "staff_created",
            clinic_id=str(tenant.clinic_id),
            staff_id=str(row["id"]),
            role=data.role.value,
        )
        return StaffResponse.model_validate(row)
