"""Tests for appointment booking endpoints."""

from uuid import UUID, uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException
from app.core.permissions import StaffRole, permissions_for_role
from app.core.tenant import TenantContext
from app.models import activity_logs, appointment_staff, appointments, clinics, prescriptions
from app.schemas.appointments import AppointmentCreate
from app.services import appointment_service as appointment_module
from app.services.appointment_service import AppointmentService

URL = "/api/v1/appointments/"


async def _count(db: AsyncSession, table) -> int:
    return (await db.execute(select(func.count()).select_from(table))).scalar_one()


@pytest.mark.asyncio
async def test_create_appointment(
    client: AsyncClient, admin_headers: dict, booking, patient: dict, dentist: dict
) -> None:
    """Test booking a free slot."""
    response = await client.post(URL, json=booking(540), headers=admin_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["start_time"] == "09:00"
    assert data["end_time"] == "10:00"
    assert data["start_minute"] == 540
    assert data["duration_minutes"] == 60
    assert data["status"] == "scheduled"
    assert data["patient_id"] == str(patient["id"])
    assert data["dentist_id"] == str(dentist["id"])
    assert data["staff_ids"] == [str(dentist["id"])]
    assert data["chief_complaint"] == "Toothache"


@pytest.mark.asyncio
async def test_scenario_overlap_rejected_and_touching_slot_accepted(
    client: AsyncClient, admin_headers: dict, booking
) -> None:
    """Test D1 booked 09:00-10:00 rejects 09:30-10:30 and accepts 10:00-11:00."""
    first = await client.post(URL, json=booking(540), headers=admin_headers)
    assert first.status_code == 201

    overlapping = await client.post(URL, json=booking(570), headers=admin_headers)
    assert overlapping.status_code == 409
    body = overlapping.json()
    assert body["error"] == "ConflictException"
    assert len(body["conflicts"]) == 1
    conflict = body["conflicts"][0]
    assert conflict["appointment_id"] == first.json()["id"]
    assert (conflict["start_time"], conflict["end_time"]) == ("09:00", "10:00")
    assert conflict["patient_name"] == "Pedro Dela Cruz"
    assert conflict["staff_name"] == "Jose Santos"

    touching = await client.post(URL, json=booking(600), headers=admin_headers)
    assert touching.status_code == 201
    assert touching.json()["start_time"] == "10:00"


@pytest.mark.asyncio
async def test_one_minute_overlap_rejected(
    client: AsyncClient, admin_headers: dict, booking
) -> None:
    """Test 09:59-10:59 conflicts with 09:00-10:00."""
    assert (await client.post(URL, json=booking(540), headers=admin_headers)).status_code == 201

    response = await client.post(URL, json=booking(599), headers=admin_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_identical_resubmission_conflicts_with_first_booking(
    client: AsyncClient, admin_headers: dict, booking, db_session: AsyncSession
) -> None:
    """Test sending the same booking twice does not create a duplicate."""
    first = await client.post(URL, json=booking(540), headers=admin_headers)
    second = await client.post(URL, json=booking(540), headers=admin_headers)

    assert second.status_code == 409
    assert [c["appointment_id"] for c in second.json()["conflicts"]] == [first.json()["id"]]
    assert await _count(db_session, appointments) == 1


@pytest.mark.asyncio
async def test_other_dentist_can_take_same_slot(
    client: AsyncClient, admin_headers: dict, booking, second_dentist: dict
) -> None:
    """Test overlap only matters when staff is shared."""
    assert (await client.post(URL, json=booking(540), headers=admin_headers)).status_code == 201

    response = await client.post(
        URL, json=booking(540, staff_ids=[str(second_dentist["id"])]), headers=admin_headers
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_cascaded_records_written(
    client: AsyncClient,
    admin_headers: dict,
    booking,
    dentist: dict,
    assistant: dict,
    db_session: AsyncSession,
) -> None:
    """Test staff associations, prescriptions and the audit entry are stored."""
    response = await client.post(
        URL,
        json=booking(
            540,
            staff_ids=[str(dentist["id"]), str(assistant["id"])],
            prescriptions=[{"text": "Amoxicillin 500mg"}, {"text": "Mefenamic acid 500mg"}],
        ),
        headers=admin_headers,
    )
    assert response.status_code == 201
    appointment_id = UUID(response.json()["id"])
    assert response.json()["staff_ids"] == [str(dentist["id"]), str(assistant["id"])]

    staff_rows = (
        (await db_session.execute(select(appointment_staff))).mappings().all()
    )
    assert [(r["staff_id"], r["role"], r["position"]) for r in staff_rows] == [
        (assistant["id"], "assistant", 1)
    ]

    prescription_rows = (
        (
            await db_session.execute(
                select(prescriptions).where(prescriptions.c.appointment_id == appointment_id)
            )
        )
        .mappings()
        .all()
    )
    assert sorted(r["medication_name"] for r in prescription_rows) == [
        "Amoxicillin 500mg",
        "Mefenamic acid 500mg",
    ]
    assert all(r["prescribed_by_id"] == dentist["id"] for r in prescription_rows)

    log = (
        (
            await db_session.execute(
                select(activity_logs).where(activity_logs.c.resource_id == appointment_id)
            )
        )
        .mappings()
        .one()
    )
    assert log["action"] == "create"
    assert log["resource_type"] == "appointment"


@pytest.mark.asyncio
async def test_assistant_double_booking_rejected(
    client: AsyncClient,
    admin_headers: dict,
    booking,
    dentist: dict,
    second_dentist: dict,
    assistant: dict,
) -> None:
    """Test an assistant cannot be in two overlapping appointments."""
    first = await client.post(
        URL,
        json=booking(540, staff_ids=[str(dentist["id"]), str(assistant["id"])]),
        headers=admin_headers,
    )
    assert first.status_code == 201

    response = await client.post(
        URL,
        json=booking(570, staff_ids=[str(second_dentist["id"]), str(assistant["id"])]),
        headers=admin_headers,
    )
    assert response.status_code == 409
    assert response.json()["conflicts"][0]["staff_name"] == "Ben Torres"


@pytest.mark.asyncio
async def test_patient_from_other_clinic_not_found(
    client: AsyncClient,
    admin_headers: dict,
    booking,
    other_patient: dict,
    db_session: AsyncSession,
) -> None:
    """Test a patient of another tenant cannot be booked."""
    response = await client.post(
        URL, json=booking(540, patient_id=str(other_patient["id"])), headers=admin_headers
    )

    assert response.status_code == 404
    assert await _count(db_session, appointments) == 0


@pytest.mark.asyncio
async def test_unknown_staff_not_found(
    client: AsyncClient, admin_headers: dict, booking
) -> None:
    """Test a staff id outside the clinic is rejected."""
    response = await client.post(
        URL, json=booking(540, staff_ids=[str(uuid4())]), headers=admin_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"staff_ids": []}, "staff_ids"),
        ({"start_minute": 1440}, "start_minute"),
        ({"start_minute": -1}, "start_minute"),
        ({"duration_minutes": 0}, "duration_minutes"),
        ({"estimated_cost": -100}, "estimated_cost"),
        ({"status": "completed"}, "status"),
    ],
)
async def test_validation_errors_are_field_keyed(
    client: AsyncClient, admin_headers: dict, booking, overrides: dict, field: str
) -> None:
    """Test invalid input returns 400 with per-field messages."""
    response = await client.post(URL, json={**booking(540), **overrides}, headers=admin_headers)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "ValidationException"
    assert field in body["field_errors"]
    assert body["field_errors"][field]


@pytest.mark.asyncio
async def test_duplicate_staff_rejected(
    client: AsyncClient, admin_headers: dict, booking, dentist: dict
) -> None:
    """Test the same staff member cannot be listed twice."""
    response = await client.post(
        URL,
        json=booking(540, staff_ids=[str(dentist["id"]), str(dentist["id"])]),
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert "staff_ids" in response.json()["field_errors"]


@pytest.mark.asyncio
async def test_slot_past_end_of_day_rejected(
    client: AsyncClient, admin_headers: dict, booking
) -> None:
    """Test a booking must end by 23:59 on the same day."""
    response = await client.post(URL, json=booking(1400, 60), headers=admin_headers)

    assert response.status_code == 400
    assert "duration_minutes" in response.json()["field_errors"]

    last_slot = await client.post(URL, json=booking(1380, 59), headers=admin_headers)
    assert last_slot.status_code == 201
    assert last_slot.json()["end_time"] == "23:59"


@pytest.mark.asyncio
async def test_default_duration(client: AsyncClient, admin_headers: dict, booking) -> None:
    """Test the duration falls back to 60 minutes."""
    response = await client.post(URL, json=booking(540, None), headers=admin_headers)

    assert response.status_code == 201
    assert response.json()["duration_minutes"] == 60
    assert response.json()["end_time"] == "10:00"


@pytest.mark.asyncio
async def test_clinic_default_duration(
    client: AsyncClient,
    admin_headers: dict,
    booking,
    clinic: dict,
    db_session: AsyncSession,
) -> None:
    """Test a clinic's configured default duration is used."""
    await db_session.execute(
        update(clinics)
        .where(clinics.c.id == clinic["id"])
        .values(settings={"default_appointment_duration_minutes": 45})
    )
    await db_session.commit()

    response = await client.post(URL, json=booking(540, None), headers=admin_headers)

    assert response.status_code == 201
    assert response.json()["end_time"] == "09:45"


@pytest.mark.asyncio
async def test_requires_authentication(client: AsyncClient, booking) -> None:
    """Test booking without a token is rejected."""
    response = await client.post(URL, json=booking(540))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_token_rejected(client: AsyncClient, booking) -> None:
    """Test a token not signed with the shared secret is rejected."""
    response = await client.post(
        URL, json=booking(540), headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_dentist_cannot_book(
    client: AsyncClient, booking, dentist: dict, headers_for
) -> None:
    """Test dentists only have read access to appointments."""
    response = await client.post(URL, json=booking(540), headers=headers_for(dentist))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_receptionist_can_book(
    client: AsyncClient, booking, receptionist: dict, headers_for
) -> None:
    """Test front desk staff manage appointments."""
    response = await client.post(URL, json=booking(540), headers=headers_for(receptionist))
    assert response.status_code == 201
    assert response.json()["created_by"] == str(receptionist["id"])


@pytest.mark.asyncio
async def test_get_appointment_scoped_to_clinic(
    client: AsyncClient,
    admin_headers: dict,
    booking,
    other_admin: dict,
    headers_for,
) -> None:
    """Test appointments of another clinic are not visible."""
    created = await client.post(URL, json=booking(540), headers=admin_headers)
    appointment_id = created.json()["id"]

    own = await client.get(f"{URL}{appointment_id}", headers=admin_headers)
    assert own.status_code == 200
    assert own.json()["id"] == appointment_id

    foreign = await client.get(f"{URL}{appointment_id}", headers=headers_for(other_admin))
    assert foreign.status_code == 404


@pytest.mark.asyncio
async def test_update_excluding_itself(client: AsyncClient, admin_headers: dict, booking) -> None:
    """Test moving X from 09:00-10:00 to 09:30-10:30 succeeds when nothing else overlaps."""
    created = await client.post(URL, json=booking(540), headers=admin_headers)
    appointment_id = created.json()["id"]

    response = await client.put(
        f"{URL}{appointment_id}", json={"start_minute": 570}, headers=admin_headers
    )

    assert response.status_code == 200
    data = response.json()
    assert (data["start_time"], data["end_time"]) == ("09:30", "10:30")


@pytest.mark.asyncio
async def test_update_into_other_booking_rejected(
    client: AsyncClient, admin_headers: dict, booking
) -> None:
    """Test moving an appointment onto another one conflicts."""
    await client.post(URL, json=booking(600), headers=admin_headers)
    created = await client.post(URL, json=booking(540), headers=admin_headers)

    response = await client.put(
        f"{URL}{created.json()['id']}", json={"start_minute": 570}, headers=admin_headers
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_update_replaces_staff(
    client: AsyncClient,
    admin_headers: dict,
    booking,
    dentist: dict,
    second_dentist: dict,
    assistant: dict,
) -> None:
    """Test changing staff replaces the associations and primary dentist."""
    created = await client.post(
        URL,
        json=booking(540, staff_ids=[str(dentist["id"]), str(assistant["id"])]),
        headers=admin_headers,
    )

    response = await client.put(
        f"{URL}{created.json()['id']}",
        json={"staff_ids": [str(second_dentist["id"])]},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["dentist_id"] == str(second_dentist["id"])
    assert response.json()["staff_ids"] == [str(second_dentist["id"])]

    fetched = await client.get(f"{URL}{created.json()['id']}", headers=admin_headers)
    assert fetched.json()["staff_ids"] == [str(second_dentist["id"])]


@pytest.mark.asyncio
async def test_staff_rows_locked_in_id_order(
    db_session: AsyncSession,
    clinic: dict,
    dentist: dict,
    assistant: dict,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test staff rows are locked in a fixed order whatever order they were listed in."""
    executed = []
    execute = db_session.execute

    async def recording_execute(statement, *args, **kwargs):
        executed.append(statement)
        return await execute(statement, *args, **kwargs)

    monkeypatch.setattr(db_session, "execute", recording_execute)

    locked = await AppointmentService(db_session)._lock_staff(
        clinic["id"], [assistant["id"], dentist["id"]]
    )

    assert locked == {dentist["id"], assistant["id"]}
    sql = str(executed[0])
    assert "ORDER BY users.id" in sql
    assert sql.index("ORDER BY") < sql.index("FOR UPDATE")


@pytest.mark.asyncio
async def test_mark_done(client: AsyncClient, admin_headers: dict, booking) -> None:
    """Test is_done completes the appointment, after which it is closed."""
    created = await client.post(URL, json=booking(540), headers=admin_headers)
    url = f"{URL}{created.json()['id']}"

    done = await client.put(
        url, json={"is_done": True, "actual_cost": 150000}, headers=admin_headers
    )
    assert done.status_code == 200
    assert done.json()["status"] == "completed"
    assert done.json()["actual_cost"] == 150000

    again = await client.put(url, json={"notes": "late note"}, headers=admin_headers)
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_cancel_frees_slot(client: AsyncClient, admin_headers: dict, booking) -> None:
    """Test a cancelled appointment no longer blocks its slot."""
    created = await client.post(URL, json=booking(540), headers=admin_headers)
    appointment_id = created.json()["id"]

    cancelled = await client.post(
        f"{URL}{appointment_id}/cancel",
        json={"reason": "Patient rescheduled"},
        headers=admin_headers,
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["cancellation_reason"] == "Patient rescheduled"

    rebooked = await client.post(URL, json=booking(540), headers=admin_headers)
    assert rebooked.status_code == 201

    twice = await client.post(f"{URL}{appointment_id}/cancel", headers=admin_headers)
    assert twice.status_code == 400


@pytest.mark.asyncio
async def test_status_change(client: AsyncClient, admin_headers: dict, booking) -> None:
    """Test moving an appointment through its statuses."""
    created = await client.post(URL, json=booking(540), headers=admin_headers)
    url = f"{URL}{created.json()['id']}/status"

    confirmed = await client.patch(url, json={"status": "confirmed"}, headers=admin_headers)
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"

    cancelled = await client.patch(
        url, json={"status": "cancelled", "notes": "No longer needed"}, headers=admin_headers
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["cancellation_reason"] == "No longer needed"

    reopened = await client.patch(url, json={"status": "scheduled"}, headers=admin_headers)
    assert reopened.status_code == 400


@pytest.mark.asyncio
async def test_update_cannot_cancel(
    client: AsyncClient, admin_headers: dict, booking, db_session: AsyncSession
) -> None:
    """Test a general update cannot cancel, so the slot stays held."""
    created = await client.post(URL, json=booking(540), headers=admin_headers)
    appointment_id = created.json()["id"]

    response = await client.put(
        f"{URL}{appointment_id}", json={"status": "cancelled"}, headers=admin_headers
    )
    assert response.status_code == 400
    assert "status" in response.json()["field_errors"]

    fetched = await client.get(f"{URL}{appointment_id}", headers=admin_headers)
    assert fetched.json()["status"] == "scheduled"

    clash = await client.post(URL, json=booking(540), headers=admin_headers)
    assert clash.status_code == 409

    logged = await db_session.execute(
        select(activity_logs.c.action).where(activity_logs.c.resource_id == UUID(appointment_id))
    )
    assert "cancel" not in logged.scalars().all()


@pytest.mark.asyncio
async def test_conflict_check_endpoint(
    client: AsyncClient, admin_headers: dict, booking, dentist: dict, db_session: AsyncSession
) -> None:
    """Test checking a slot reports conflicts without booking."""
    created = await client.post(URL, json=booking(540), headers=admin_headers)

    response = await client.post(
        f"{URL}conflicts",
        json={
            "staff_ids": [str(dentist["id"])],
            "appointment_date": "2024-06-01",
            "start_minute": 570,
            "duration_minutes": 30,
        },
        headers=admin_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["has_conflict"] is True
    assert (data["start_time"], data["end_time"]) == ("09:30", "10:00")
    assert data["conflicts"][0]["appointment_id"] == created.json()["id"]
    assert await _count(db_session, appointments) == 1


@pytest.mark.asyncio
async def test_dentist_can_check_conflicts(
    client: AsyncClient, dentist: dict, headers_for
) -> None:
    """Test read access is enough to check a slot."""
    response = await client.post(
        f"{URL}conflicts",
        json={
            "staff_ids": [str(dentist["id"])],
            "appointment_date": "2024-06-01",
            "start_minute": 540,
        },
        headers=headers_for(dentist),
    )
    assert response.status_code == 200
    assert response.json()["has_conflict"] is False


@pytest.mark.asyncio
async def test_list_appointments_by_range(
    client: AsyncClient,
    admin_headers: dict,
    booking,
    second_dentist: dict,
) -> None:
    """Test listing by date range and dentist, ordered by start time."""
    await client.post(URL, json=booking(600), headers=admin_headers)
    await client.post(URL, json=booking(540), headers=admin_headers)
    await client.post(
        URL, json=booking(540, staff_ids=[str(second_dentist["id"])]), headers=admin_headers
    )
    await client.post(URL, json=booking(540, appointment_date="2024-06-05"), headers=admin_headers)

    response = await client.get(
        URL, params={"from_date": "2024-06-01", "to_date": "2024-06-01"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["total"] == 3

    response = await client.get(
        URL,
        params={
            "from_date": "2024-06-01",
            "to_date": "2024-06-30",
            "dentist_id": str(second_dentist["id"]),
        },
        headers=admin_headers,
    )
    items = response.json()["items"]
    assert len(items) == 1
    assert items[0]["dentist_id"] == str(second_dentist["id"])
    assert items[0]["is_paid"] is True  # nothing estimated, nothing owed

    response = await client.get(
        URL, params={"from_date": "2024-06-30", "to_date": "2024-06-01"}, headers=admin_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_failed_cascade_rolls_back_everything(
    db_session: AsyncSession,
    clinic: dict,
    admin: dict,
    patient: dict,
    dentist: dict,
    assistant: dict,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test a failing audit write leaves no appointment or staff rows behind."""

    async def broken_log(*args, **kwargs) -> None:
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(appointment_module, "log_activity", broken_log)

    tenant = TenantContext(
        clinic_id=clinic["id"],
        user_id=admin["id"],
        role=StaffRole.CLINIC_ADMIN,
        permissions=permissions_for_role(StaffRole.CLINIC_ADMIN),
    )
    data = AppointmentCreate(
        patient_id=patient["id"],
        staff_ids=[dentist["id"], assistant["id"]],
        appointment_date="2024-06-01",
        start_minute=540,
        prescriptions=[{"text": "Chlorhexidine rinse"}],
    )

    with pytest.raises(RuntimeError):
        await AppointmentService(db_session).create_appointment(tenant, data)

    assert await _count(db_session, appointments) == 0
    assert await _count(db_session, appointment_staff) == 0
    assert await _count(db_session, prescriptions) == 0

    monkeypatch.undo()
    created = await AppointmentService(db_session).create_appointment(tenant, data)
    with pytest.raises(ConflictException):
        await AppointmentService(db_session).create_appointment(tenant, data)
    assert created.staff_ids == [dentist["id"], assistant["id"]]
