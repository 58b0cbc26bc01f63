"""Appointment service for booking and scheduling logic."""

from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import time_codec
from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    NotFoundException,
    ValidationException,
)
from app.core.tenant import TenantContext
from app.models.appointments import appointment_staff, appointments, prescriptions
from app.models.billing import payments
from app.models.patients import patients
from app.models.users import users
from app.schemas.appointments import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    AppointmentWithBalance,
    ConflictCheckRequest,
    ConflictCheckResponse,
)
from app.schemas.billing import PaymentStatus
from app.services.activity_service import log_activity
from app.services.clinic_service import ClinicService
from app.services.conflict_checker import ConflictChecker

logger = structlog.get_logger(__name__)

CONFLICT_MESSAGE = "Time slot conflicts with existing appointments"


class AppointmentService:
    """Service for managing appointments."""

    def __init__(self, db: AsyncSession, clinic_service: ClinicService | None = None):
        """Initialize service with database session."""
        self.db = db
        self.clinic_service = clinic_service or ClinicService(db)
        self.conflict_checker = ConflictChecker(db)

    async def _resolve_duration(self, clinic_id: UUID, duration_minutes: int | None) -> int:
        if duration_minutes is not None:
            return duration_minutes
        clinic_settings = await self.clinic_service.get_settings(clinic_id)
        return clinic_settings.default_appointment_duration_minutes

    @staticmethod
    def _normalize_slot(start_minute: int, duration_minutes: int) -> tuple[str, str]:
        """
        Derive wall-clock start and end for a same-day slot.

        Raises:
            ValidationException: If the slot runs past the end of the day
        """
        end_minute = start_minute + duration_minutes
        if end_minute > time_codec.LAST_MINUTE:
            raise ValidationException(
                field_errors={
                    "duration_minutes": [
                        "Appointment must end on the same day (by 23:59)",
                    ]
                }
            )
        return time_codec.encode(start_minute), time_codec.encode(end_minute)

    async def _lock_staff(self, clinic_id: UUID, staff_ids: list[UUID]) -> set[UUID]:
        """Lock the staff rows of a booking and return those that are active."""
        stmt = (
            select(users.c.id)
            .where(
                and_(
                    users.c.clinic_id == clinic_id,
                    users.c.id.in_(staff_ids),
                    users.c.is_active.is_(True),
                )
            )
            .order_by(users.c.id)
            .with_for_update()
        )
        result = await self.db.execute(stmt)
        return set(result.scalars().all())

    async def _check_slot(
        self,
        clinic_id: UUID,
        staff_ids: list[UUID],
        appointment_date: date,
        start_time: str,
        end_time: str,
        exclude_appointment_id: UUID | None = None,
    ) -> None:
        """Lock staff, reject overlaps, then make sure every staff member exists."""
        active_staff = await self._lock_staff(clinic_id, staff_ids)

        conflicts = await self.conflict_checker.find_conflicts(
            clinic_id=clinic_id,
            staff_ids=staff_ids,
            appointment_date=appointment_date,
            start_time=start_time,
            end_time=end_time,
            exclude_appointment_id=exclude_appointment_id,
        )
        if conflicts:
            logger.info(
                "appointment_conflict_detected",
                clinic_id=str(clinic_id),
                appointment_date=appointment_date.isoformat(),
                start_time=start_time,
                end_time=end_time,
                conflict_count=len(conflicts),
            )
            raise ConflictException(CONFLICT_MESSAGE, conflicts=conflicts)

        missing = [staff_id for staff_id in staff_ids if staff_id not in active_staff]
        if missing:
            raise NotFoundException(f"Staff member {missing[0]} not found in this clinic")

    async def _ensure_patient(self, clinic_id: UUID, patient_id: UUID) -> None:
        stmt = select(patients.c.id).where(
            and_(patients.c.id == patient_id, patients.c.clinic_id == clinic_id)
        )
        result = await self.db.execute(stmt)
        if result.scalar_one_or_none() is None:
            raise NotFoundException("Patient not found")

    async def _get_row(self, clinic_id: UUID, appointment_id: UUID) -> dict[str, Any]:
        stmt = select(appointments).where(
            and_(appointments.c.id == appointment_id, appointments.c.clinic_id == clinic_id)
        )
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Appointment not found")
        return dict(row)

    async def _staff_ids_for(self, appointment_ids: list[UUID]) -> dict[UUID, list[UUID]]:
        if not appointment_ids:
            return {}
        stmt = (
            select(appointment_staff.c.appointment_id, appointment_staff.c.staff_id)
            .where(appointment_staff.c.appointment_id.in_(appointment_ids))
            .order_by(appointment_staff.c.position)
        )
        result = await self.db.execute(stmt)
        staff: dict[UUID, list[UUID]] = {}
        for row in result.mappings():
            staff.setdefault(row["appointment_id"], []).append(row["staff_id"])
        return staff

    async def _replace_staff(self, appointment_id: UUID, staff_ids: list[UUID]) -> None:
        """Store every staff member after the primary dentist, in order."""
        await self.db.execute(
            delete(appointment_staff).where(appointment_staff.c.appointment_id == appointment_id)
        )
        extra = staff_ids[1:]
        if extra:
            await self.db.execute(
                insert(appointment_staff),
                [
                    {
                        "appointment_id": appointment_id,
                        "staff_id": staff_id,
                        "role": "assistant",
                        "position": position,
                    }
                    for position, staff_id in enumerate(extra, start=1)
                ],
            )

    @staticmethod
    def _to_response(row: dict[str, Any], extra_staff: list[UUID]) -> AppointmentResponse:
        start_minute = time_codec.from_time(row["start_time"])
        return AppointmentResponse(
            id=row["id"],
            clinic_id=row["clinic_id"],
            patient_id=row["patient_id"],
            dentist_id=row["dentist_id"],
            staff_ids=[row["dentist_id"], *extra_staff],
            appointment_date=row["appointment_date"],
            start_time=time_codec.encode(start_minute),
            end_time=time_codec.encode(time_codec.from_time(row["end_time"])),
            start_minute=start_minute,
            duration_minutes=row["duration_minutes"],
            appointment_type=row["appointment_type"],
            chief_complaint=row["chief_complaint"],
            notes=row["notes"],
            status=row["status"],
            estimated_cost=row["estimated_cost"],
            actual_cost=row["actual_cost"],
            cancellation_reason=row["cancellation_reason"],
            created_by=row["created_by"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def check_conflicts(
        self, tenant: TenantContext, data: ConflictCheckRequest
    ) -> ConflictCheckResponse:
        """
        Report overlaps for a candidate slot without writing anything.

        Args:
            tenant: Request tenant context
            data: Candidate slot

        Returns:
            Normalized slot and the conflicting bookings, if any
        """
        duration = await self._resolve_duration(tenant.clinic_id, data.duration_minutes)
        start_time, end_time = self._normalize_slot(data.start_minute, duration)
        conflicts = await self.conflict_checker.find_conflicts(
            clinic_id=tenant.clinic_id,
            staff_ids=data.staff_ids,
            appointment_date=data.appointment_date,
            start_time=start_time,
            end_time=end_time,
            exclude_appointment_id=data.exclude_appointment_id,
        )
        return ConflictCheckResponse(
            start_time=start_time,
            end_time=end_time,
            has_conflict=bool(conflicts),
            conflicts=conflicts,
        )

    async def create_appointment(
        self, tenant: TenantContext, data: AppointmentCreate
    ) -> AppointmentResponse:
        """
        Book a new appointment.

        The overlap check, the reference checks and every write run in one
        transaction with the involved staff rows locked, so two requests for
        the same staff cannot both pass the check.

        Args:
            tenant: Request tenant context (clinic and creator)
            data: Booking request

        Returns:
            Persisted appointment

        Raises:
            ValidationException: If the slot runs past the end of the day
            ConflictException: If any staff member is already booked
            NotFoundException: If the patient or a staff member is not in the clinic
        """
        duration = await self._resolve_duration(tenant.clinic_id, data.duration_minutes)
        start_time, end_time = self._normalize_slot(data.start_minute, duration)

        try:
            await self._check_slot(
                tenant.clinic_id, data.staff_ids, data.appointment_date, start_time, end_time
            )
            await self._ensure_patient(tenant.clinic_id, data.patient_id)

            stmt = (
                insert(appointments)
                .values(
                    clinic_id=tenant.clinic_id,
                    patient_id=data.patient_id,
                    dentist_id=data.staff_ids[0],
                    appointment_date=data.appointment_date,
                    start_time=time_codec.to_time(time_codec.decode(start_time)),
                    end_time=time_codec.to_time(time_codec.decode(end_time)),
                    duration_minutes=duration,
                    appointment_type=data.appointment_type,
                    chief_complaint=data.complaint,
                    notes=data.notes,
                    status=data.status.value,
                    estimated_cost=data.estimated_cost,
                    created_by=tenant.user_id,
                )
                .returning(appointments)
            )
            result = await self.db.execute(stmt)
            row = dict(result.mappings().one())
            appointment_id = row["id"]

            await self._replace_staff(appointment_id, data.staff_ids)

            if data.prescriptions:
                await self.db.execute(
                    insert(prescriptions),
                    [
                        {
                            "clinic_id": tenant.clinic_id,
                            "appointment_id": appointment_id,
                            "patient_id": data.patient_id,
                            "prescribed_by_id": data.staff_ids[0],
                            "medication_name": p.text,
                            "instructions": p.text,
                        }
                        for p in data.prescriptions
                    ],
                )

            await log_activity(
                self.db,
                clinic_id=tenant.clinic_id,
                user_id=tenant.user_id,
                action="create",
                resource_type="appointment",
                resource_id=appointment_id,
                description=(
                    f"Booked appointment on {data.appointment_date} {start_time}-{end_time}"
                ),
                new_values={
                    "patient_id": data.patient_id,
                    "staff_ids": data.staff_ids,
                    "appointment_date": data.appointment_date,
                    "start_time": start_time,
                    "end_time": end_time,
                },
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "appointment_created",
            clinic_id=str(tenant.clinic_id),
            appointment_id=str(appointment_id),
            start_time=start_time,
            end_time=end_time,
        )
        return self._to_response(row, data.staff_ids[1:])

    async def get_appointment(
        self, tenant: TenantContext, appointment_id: UUID
    ) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found in the tenant clinic
        """
        row = await self._get_row(tenant.clinic_id, appointment_id)
        staff = await self._staff_ids_for([appointment_id])
        return self._to_response(row, staff.get(appointment_id, []))

    async def list_appointments(
        self,
        tenant: TenantContext,
        from_date: date,
        to_date: date,
        dentist_id: UUID | None = None,
    ) -> AppointmentListResponse:
        """
        List appointments in a date range with their payment position.

        Args:
            tenant: Request tenant context
            from_date: First date (inclusive)
            to_date: Last date (inclusive)
            dentist_id: Optional primary dentist filter

        Returns:
            Appointments ordered by date and start time
        """
        if to_date < from_date:
            raise ValidationException(field_errors={"to_date": ["Must not be before from_date"]})

        conditions = [
            appointments.c.clinic_id == tenant.clinic_id,
            appointments.c.appointment_date >= from_date,
            appointments.c.appointment_date <= to_date,
        ]
        if dentist_id is not None:
            conditions.append(appointments.c.dentist_id == dentist_id)

        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(appointments.c.appointment_date, appointments.c.start_time)
        )
        result = await self.db.execute(stmt)
        rows = [dict(row) for row in result.mappings()]
        ids = [row["id"] for row in rows]

        staff = await self._staff_ids_for(ids)
        paid = await self._paid_amounts(tenant.clinic_id, ids)

        items = []
        for row in rows:
            base = self._to_response(row, staff.get(row["id"], []))
            due = row["actual_cost"] if row["actual_cost"] is not None else row["estimated_cost"]
            paid_amount = paid.get(row["id"], 0)
            items.append(
                AppointmentWithBalance(
                    **base.model_dump(),
                    paid_amount=paid_amount,
                    outstanding_amount=max(due - paid_amount, 0),
                    is_paid=paid_amount >= due,
                )
            )

        return AppointmentListResponse(total=len(items), items=items)

    async def _paid_amounts(self, clinic_id: UUID, appointment_ids: list[UUID]) -> dict[UUID, int]:
        if not appointment_ids:
            return {}
        stmt = (
            select(payments.c.appointment_id, func.sum(payments.c.amount).label("paid"))
            .where(
                and_(
                    payments.c.clinic_id == clinic_id,
                    payments.c.appointment_id.in_(appointment_ids),
                    payments.c.status == PaymentStatus.CONFIRMED.value,
                )
            )
            .group_by(payments.c.appointment_id)
        )
        result = await self.db.execute(stmt)
        return {row["appointment_id"]: int(row["paid"] or 0) for row in result.mappings()}

    async def update_appointment(
        self,
        tenant: TenantContext,
        appointment_id: UUID,
        data: AppointmentUpdate,
    ) -> AppointmentResponse:
        """
        Update an appointment, re-checking the slot when it moves.

        The appointment itself is excluded from the overlap check.

        Raises:
            NotFoundException: If appointment not found
            BadRequestException: If the appointment is already closed
            ConflictException: If the new slot overlaps another booking
        """
        try:
            existing = await self._get_row(tenant.clinic_id, appointment_id)
            if AppointmentStatus(existing["status"]).is_terminal:
                raise BadRequestException(
                    f"Cannot update an appointment that is {existing['status']}"
                )

            current_staff = [
                existing["dentist_id"],
                *(await self._staff_ids_for([appointment_id])).get(appointment_id, []),
            ]
            old_values: dict[str, Any] = {}
            values: dict[str, Any] = {}

            staff_ids = data.staff_ids or current_staff
            if data.changes_slot:
                appointment_date = data.appointment_date or existing["appointment_date"]
                start_minute = (
                    data.start_minute
                    if data.start_minute is not None
                    else time_codec.from_time(existing["start_time"])
                )
                duration = data.duration_minutes or existing["duration_minutes"]
                start_time, end_time = self._normalize_slot(start_minute, duration)

                await self._check_slot(
                    tenant.clinic_id,
                    staff_ids,
                    appointment_date,
                    start_time,
                    end_time,
                    exclude_appointment_id=appointment_id,
                )

                values.update(
                    appointment_date=appointment_date,
                    start_time=time_codec.to_time(start_minute),
                    end_time=time_codec.to_time(start_minute + duration),
                    duration_minutes=duration,
                    dentist_id=staff_ids[0],
                )

            if data.complaint is not None:
                values["chief_complaint"] = data.complaint
            if data.notes is not None:
                values["notes"] = data.notes
            if data.actual_cost is not None:
                values["actual_cost"] = data.actual_cost
            if data.status is not None:
                values["status"] = data.status.value
            elif data.is_done is not None:
                values["status"] = (
                    AppointmentStatus.COMPLETED.value
                    if data.is_done
                    else AppointmentStatus.SCHEDULED.value
                )

            for key, value in values.items():
                if existing[key] != value:
                    old_values[key] = existing[key]
            new_values = {key: values[key] for key in old_values}
            if data.staff_ids is not None and data.staff_ids != current_staff:
                old_values["staff_ids"] = current_staff
                new_values["staff_ids"] = data.staff_ids

            values["updated_at"] = datetime.now(UTC)
            stmt = (
                update(appointments)
                .where(
                    and_(
                        appointments.c.id == appointment_id,
                        appointments.c.clinic_id == tenant.clinic_id,
                    )
                )
                .values(**values)
                .returning(appointments)
            )
            result = await self.db.execute(stmt)
            row = dict(result.mappings().one())

            if data.staff_ids is not None:
                await self._replace_staff(appointment_id, staff_ids)

            await log_activity(
                self.db,
                clinic_id=tenant.clinic_id,
                user_id=tenant.user_id,
                action="update",
                resource_type="appointment",
                resource_id=appointment_id,
                description="Updated appointment",
                old_values=old_values,
                new_values=new_values,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "appointment_updated",
            clinic_id=str(tenant.clinic_id),
            appointment_id=str(appointment_id),
            changed=sorted(new_values),
        )
        return self._to_response(row, staff_ids[1:])

    async def update_status(
        self,
        tenant: TenantContext,
        appointment_id: UUID,
        data: AppointmentStatusUpdate,
    ) -> AppointmentResponse:
        """
        Move an open appointment to another status.

        Moving to ``cancelled`` behaves like :meth:`cancel_appointment`.
        """
        if data.status == AppointmentStatus.CANCELLED:
            return await self.cancel_appointment(
                tenant, appointment_id, AppointmentCancel(reason=data.notes)
            )
        return await self._set_status(tenant, appointment_id, data.status, notes=data.notes)

    async def cancel_appointment(
        self,
        tenant: TenantContext,
        appointment_id: UUID,
        data: AppointmentCancel,
    ) -> AppointmentResponse:
        """Cancel an appointment, freeing its slot for new bookings."""
        return await self._set_status(
            tenant,
            appointment_id,
            AppointmentStatus.CANCELLED,
            cancellation_reason=data.reason,
        )

    async def _set_status(
        self,
        tenant: TenantContext,
        appointment_id: UUID,
        status: AppointmentStatus,
        notes: str | None = None,
        cancellation_reason: str | None = None,
    ) -> AppointmentResponse:
        try:
            existing = await self._get_row(tenant.clinic_id, appointment_id)
            old_status = AppointmentStatus(existing["status"])
            if old_status.is_terminal:
                raise BadRequestException(
                    f"Cannot change status of an appointment that is {old_status.value}"
                )

            values: dict[str, Any] = {"status": status.value, "updated_at": datetime.now(UTC)}
            if notes is not None:
                values["notes"] = notes
            if status == AppointmentStatus.CANCELLED:
                values["cancellation_reason"] = cancellation_reason

            stmt = (
                update(appointments)
                .where(
                    and_(
                        appointments.c.id == appointment_id,
                        appointments.c.clinic_id == tenant.clinic_id,
                    )
                )
                .values(**values)
                .returning(appointments)
            )
            result = await self.db.execute(stmt)
            row = dict(result.mappings().one())

            await log_activity(
                self.db,
                clinic_id=tenant.clinic_id,
                user_id=tenant.user_id,
                action="cancel" if status == AppointmentStatus.CANCELLED else "status_change",
                resource_type="appointment",
                resource_id=appointment_id,
                description=f"Status changed from {old_status.value} to {status.value}",
                old_values={"status": old_status.value},
                new_values={"status": status.value},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "appointment_status_changed",
            clinic_id=str(tenant.clinic_id),
            appointment_id=str(appointment_id),
            old_status=old_status.value,
            new_status=status.value,
        )
        staff = await self._staff_ids_for([appointment_id])
        return self._to_response(row, staff.get(appointment_id, []))
