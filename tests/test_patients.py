"""Tests for patient endpoints."""

from datetime import date, timedelta

import pytest
from httpx import AsyncClient

URL = "/api/v1/patients/"


@pytest.mark.asyncio
async def test_create_patient(client: AsyncClient, admin_headers: dict, clinic: dict) -> None:
    """Test registering the first patient of a clinic."""
    response = await client.post(
        URL,
        json={
            "first_name": "Juan",
            "last_name": "Bautista",
            "date_of_birth": "1990-04-12",
            "gender": "male",
            "mobile_phone": "+639181112222",
            "allergies": ["Penicillin"],
        },
        headers=admin_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["patient_number"] == "000001"
    assert data["clinic_id"] == str(clinic["id"])
    assert data["allergies"] == ["Penicillin"]
    assert data["is_active"] is True


@pytest.mark.asyncio
async def test_patient_numbers_continue_sequence(
    client: AsyncClient, admin_headers: dict, patient: dict, second_patient: dict
) -> None:
    """Test new patients get the next number after the highest one."""
    response = await client.post(
        URL, json={"first_name": "Carmen", "last_name": "Villanueva"}, headers=admin_headers
    )
    assert response.json()["patient_number"] == "000003"


@pytest.mark.asyncio
async def test_duplicate_name_conflicts(
    client: AsyncClient, admin_headers: dict, patient: dict
) -> None:
    """Test a patient with the same name cannot be registered twice."""
    response = await client.post(
        URL, json={"first_name": "pedro", "last_name": "DELA CRUZ"}, headers=admin_headers
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_future_birth_date_rejected(client: AsyncClient, admin_headers: dict) -> None:
    """Test date of birth must not be in the future."""
    response = await client.post(
        URL,
        json={
            "first_name": "Baby",
            "last_name": "Reyes",
            "date_of_birth": (date.today() + timedelta(days=1)).isoformat(),
        },
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert "date_of_birth" in response.json()["field_errors"]


@pytest.mark.asyncio
async def test_list_and_search_patients(
    client: AsyncClient,
    admin_headers: dict,
    patient: dict,
    second_patient: dict,
    other_patient: dict,
) -> None:
    """Test listing is scoped to the clinic and searchable."""
    response = await client.get(URL, headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [p["last_name"] for p in data["items"]] == ["Dela Cruz", "Mendoza"]

    response = await client.get(URL, params={"search": "rosa"}, headers=admin_headers)
    assert [p["id"] for p in response.json()["items"]] == [str(second_patient["id"])]

    response = await client.get(URL, params={"search": "000001"}, headers=admin_headers)
    assert [p["id"] for p in response.json()["items"]] == [str(patient["id"])]

    response = await client.get(URL, params={"page": 2, "page_size": 1}, headers=admin_headers)
    assert response.json()["total"] == 2
    assert [p["id"] for p in response.json()["items"]] == [str(second_patient["id"])]


@pytest.mark.asyncio
async def test_update_patient(client: AsyncClient, admin_headers: dict, patient: dict) -> None:
    """Test partial updates and deactivation."""
    response = await client.patch(
        f"{URL}{patient['id']}",
        json={"mobile_phone": "+639170000000", "date_of_birth": "1985-01-30"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["mobile_phone"] == "+639170000000"
    assert response.json()["date_of_birth"] == "1985-01-30"
    assert response.json()["first_name"] == "Pedro"

    await client.patch(f"{URL}{patient['id']}", json={"is_active": False}, headers=admin_headers)
    listing = await client.get(URL, headers=admin_headers)
    assert listing.json()["total"] == 0

    listing = await client.get(URL, params={"include_inactive": True}, headers=admin_headers)
    assert listing.json()["total"] == 1


@pytest.mark.asyncio
async def test_patient_of_other_clinic_not_found(
    client: AsyncClient, admin_headers: dict, other_patient: dict
) -> None:
    """Test patients of another clinic are invisible."""
    response = await client.get(f"{URL}{other_patient['id']}", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_dentist_reads_but_cannot_register(
    client: AsyncClient, dentist: dict, patient: dict, headers_for
) -> None:
    """Test dentists have read-only access to patients."""
    headers = headers_for(dentist)

    response = await client.get(f"{URL}{patient['id']}", headers=headers)
    assert response.status_code == 200

    response = await client.post(
        URL, json={"first_name": "New", "last_name": "Patient"}, headers=headers
    )
    assert response.status_code == 403
