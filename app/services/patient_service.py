"""Patient service for business logic."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException, NotFoundException
from app.core.tenant import TenantContext
from app.models.patients import patients
from app.schemas.patients import (
    PatientCreate,
    PatientListResponse,
    PatientResponse,
    PatientUpdate,
)
from app.services.activity_service import log_activity

logger = structlog.get_logger(__name__)


class PatientService:
    """Service for managing patients."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def _next_patient_number(self, clinic_id: UUID) -> str:
        """Next zero-padded six digit number after the clinic's highest one."""
        result = await self.db.execute(
            select(patients.c.patient_number)
            .where(patients.c.clinic_id == clinic_id)
            .order_by(patients.c.patient_number.desc())
            .limit(1)
        )
        last = result.scalar_one_or_none()
        return f"{int(last) + 1 if last else 1:06d}"

    async def _get_row(self, clinic_id: UUID, patient_id: UUID) -> dict[str, Any]:
        result = await self.db.execute(
            select(patients).where(
                and_(patients.c.id == patient_id, patients.c.clinic_id == clinic_id)
            )
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Patient not found")
        return dict(row)

    async def create_patient(self, tenant: TenantContext, data: PatientCreate) -> PatientResponse:
        """
        Register a patient in the tenant clinic.

        Raises:
            ConflictException: If a patient with the same name already exists
        """
        try:
            result = await self.db.execute(
                select(patients.c.id).where(
                    and_(
                        patients.c.clinic_id == tenant.clinic_id,
                        func.lower(patients.c.first_name) == data.first_name.lower(),
                        func.lower(patients.c.last_name) == data.last_name.lower(),
                    )
                )
            )
            if result.first() is not None:
                raise ConflictException("A patient with this name already exists")

            values = data.model_dump()
            values["gender"] = data.gender.value if data.gender else None
            stmt = (
                insert(patients)
                .values(
                    **values,
                    clinic_id=tenant.clinic_id,
                    patient_number=await self._next_patient_number(tenant.clinic_id),
                    created_by=tenant.user_id,
                )
                .returning(patients)
            )
            result = await self.db.execute(stmt)
            row = dict(result.mappings().one())

            await log_activity(
                self.db,
                clinic_id=tenant.clinic_id,
                user_id=tenant.user_id,
                action="create",
                resource_type="patient",
                resource_id=row["id"],
                description=f"Registered patient {data.first_name} {data.last_name}",
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "patient_created",
            clinic_id=str(tenant.clinic_id),
            patient_id=str(row["id"]),
            patient_number=row["patient_number"],
        )
        return PatientResponse.model_validate(row)

    async def get_patient(self, tenant: TenantContext, patient_id: UUID) -> PatientResponse:
        """Get patient by ID."""
        return PatientResponse.model_validate(await self._get_row(tenant.clinic_id, patient_id))

    async def list_patients(
        self,
        tenant: TenantContext,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
        include_inactive: bool = False,
    ) -> PatientListResponse:
        """
        List clinic patients with optional name or number search.

        Args:
            tenant: Request tenant context
            search: Case-insensitive match on name or patient number
            page: Page number (1-indexed)
            page_size: Items per page
            include_inactive: Include deactivated patients

        Returns:
            Paginated list of patients
        """
        conditions = [patients.c.clinic_id == tenant.clinic_id]
        if not include_inactive:
            conditions.append(patients.c.is_active.is_(True))
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(
                or_(
                    func.lower(patients.c.first_name).like(pattern),
                    func.lower(patients.c.last_name).like(pattern),
                    patients.c.patient_number.like(pattern),
                )
            )

        count_stmt = select(func.count()).select_from(patients).where(and_(*conditions))
        total = (await self.db.execute(count_stmt)).scalar_one()

        stmt = (
            select(patients)
            .where(and_(*conditions))
            .order_by(patients.c.last_name, patients.c.first_name)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.db.execute(stmt)
        items = [PatientResponse.model_validate(dict(row)) for row in result.mappings()]

        return PatientListResponse(total=total, page=page, page_size=page_size, items=items)

    async def update_patient(
        self, tenant: TenantContext, patient_id: UUID, data: PatientUpdate
    ) -> PatientResponse:
        """
        Update patient details.

        Raises:
            NotFoundException: If patient not found
        """
        try:
            existing = await self._get_row(tenant.clinic_id, patient_id)
            update_data = data.model_dump(exclude_unset=True, mode="json")
            if not update_data:
                return PatientResponse.model_validate(existing)
            if "date_of_birth" in update_data:
                update_data["date_of_birth"] = data.date_of_birth

            stmt = (
                update(patients)
                .where(and_(patients.c.id == patient_id, patients.c.clinic_id == tenant.clinic_id))
                .values(**update_data, updated_at=datetime.now(UTC))
                .returning(patients)
            )
            result = await self.db.execute(stmt)
            row = dict(result.mappings().one())

            await log_activity(
                self.db,
                clinic_id=tenant.clinic_id,
                user_id=tenant.user_id,
                action="update",
                resource_type="patient",
                resource_id=patient_id,
                description="Updated patient",
                old_values={key: existing[key] for key in update_data},
                new_values=update_data,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("patient_updated", clinic_id=str(tenant.clinic_id), patient_id=str(patient_id))
        return PatientResponse.model_validate(row)
