"""Staff double-booking detection."""

from datetime import date
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import time_codec
from app.models.appointments import appointment_staff, appointments
from app.models.patients import patients
from app.models.users import users
from app.schemas.appointments import AppointmentStatus, ConflictDescriptor


def slots_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """
    Check whether two half-open minute intervals intersect.

    Back-to-back slots (one ends when the other starts) do not overlap.
    """
    return start_a < end_b and start_b < end_a


class ConflictChecker:
    """Finds existing bookings that would double-book any of the given staff."""

    def __init__(self, db: AsyncSession):
        """Initialize checker with database session."""
        self.db = db

    async def find_conflicts(
        self,
        clinic_id: UUID,
        staff_ids: list[UUID],
        appointment_date: date,
        start_time: str,
        end_time: str,
        exclude_appointment_id: UUID | None = None,
    ) -> list[ConflictDescriptor]:
        """
        Find non-cancelled appointments overlapping a candidate slot.

        An existing appointment conflicts when it shares at least one staff
        member (as primary dentist or additional staff) with the candidate
        and its time range intersects ``[start_time, end_time)``.

        Args:
            clinic_id: Clinic to search in
            staff_ids: Staff members of the candidate booking
            appointment_date: Candidate date
            start_time: Candidate start as ``"HH:MM"``
            end_time: Candidate end as ``"HH:MM"``
            exclude_appointment_id: Appointment to ignore (when rescheduling)

        Returns:
            Conflicts ordered by start time
        """
        if not staff_ids:
            return []

        start = time_codec.decode(start_time)
        end = time_codec.decode(end_time)
        wanted = set(staff_ids)

        staffed_ids = select(appointment_staff.c.appointment_id).where(
            appointment_staff.c.staff_id.in_(staff_ids)
        )
        conditions = [
            appointments.c.clinic_id == clinic_id,
            appointments.c.appointment_date == appointment_date,
            appointments.c.status != AppointmentStatus.CANCELLED.value,
            or_(
                appointments.c.dentist_id.in_(staff_ids),
                appointments.c.id.in_(staffed_ids),
            ),
        ]
        if exclude_appointment_id is not None:
            conditions.append(appointments.c.id != exclude_appointment_id)

        stmt = (
            select(
                appointments.c.id,
                appointments.c.dentist_id,
                appointments.c.start_time,
                appointments.c.end_time,
                patients.c.first_name,
                patients.c.last_name,
            )
            .join(patients, patients.c.id == appointments.c.patient_id)
            .where(and_(*conditions))
        )
        result = await self.db.execute(stmt)

        overlapping = []
        for row in result.mappings():
            existing_start = time_codec.from_time(row["start_time"])
            existing_end = time_codec.from_time(row["end_time"])
            if slots_overlap(start, end, existing_start, existing_end):
                overlapping.append((existing_start, existing_end, row))

        if not overlapping:
            return []

        staff_by_appointment = await self._staff_by_appointment(
            [row["id"] for _, _, row in overlapping]
        )
        names = await self._staff_names(wanted)

        conflicts = []
        for existing_start, existing_end, row in overlapping:
            attending = [row["dentist_id"], *staff_by_appointment.get(row["id"], [])]
            shared = next(staff_id for staff_id in attending if staff_id in wanted)
            conflicts.append(
                ConflictDescriptor(
                    appointment_id=row["id"],
                    patient_name=f"{row['first_name']} {row['last_name']}",
                    staff_name=names.get(shared, str(shared)),
                    start_time=time_codec.encode(existing_start),
                    end_time=time_codec.encode(existing_end),
                )
            )

        conflicts.sort(key=lambda c: (c.start_time, str(c.appointment_id)))
        return conflicts

    async def _staff_by_appointment(self, appointment_ids: list[UUID]) -> dict[UUID, list[UUID]]:
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

    async def _staff_names(self, staff_ids: set[UUID]) -> dict[UUID, str]:
        stmt = select(users.c.id, users.c.first_name, users.c.last_name).where(
            users.c.id.in_(staff_ids)
        )
        result = await self.db.execute(stmt)
        return {row["id"]: f"{row['first_name']} {row['last_name']}" for row in result.mappings()}
