import uuid

import pytest

from src.core.security import create_access_token


@pytest.mark.asyncio
async def test_admin_service_crud(client, clinic, auth_headers):
    headers = auth_headers(clinic["admin"])

    created = await client.post(
        "/api/v1/admin/services",
        headers=headers,
        json={"name": "Physiotherapy", "duration_minutes": 45, "price": "750.00", "currency": "inr"},
    )
    assert created.status_code == 201
    service = created.json()["data"]
    assert service["currency"] == "INR"
    assert service["duration_minutes"] == 45

    updated = await client.patch(
        f"/api/v1/admin/services/{service['id']}",
        headers=headers,
        json={"price": "800.00", "is_active": False},
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["price"] == "800.00"

    public = await client.get("/api/v1/services")
    assert [item["name"] for item in public.json()["data"]] == ["General Consultation"]
    everything = await client.get("/api/v1/services", params={"include_inactive": True})
    assert len(everything.json()["data"]) == 2

    deleted = await client.delete(f"/api/v1/admin/services/{service['id']}", headers=headers)
    assert deleted.status_code == 200
    missing = await client.get(f"/api/v1/services/{service['id']}")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_service_with_appointments_cannot_be_deleted(client, clinic, auth_headers, make_appointment):
    await make_appointment()

    response = await client.delete(
        f"/api/v1/admin/services/{clinic['service'].service_id}",
        headers=auth_headers(clinic["admin"]),
    )
    assert response.status_code == 409
    assert response.json() == {"error": "Service has appointments; deactivate it instead"}


@pytest.mark.asyncio
async def test_staff_cannot_manage_services(client, clinic, auth_headers):
    response = await client.post(
        "/api/v1/admin/services",
        headers=auth_headers(clinic["staff"]),
        json={"name": "Massage", "duration_minutes": 30, "price": "300"},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_signup_creates_patient_profile(client, clinic):
    user_id = str(uuid.uuid4())
    headers = {"Authorization": f"Bearer {create_access_token(user_id)}"}

    created = await client.post(
        "/api/v1/profile",
        headers=headers,
        json={"id": user_id, "email": "New.Patient@Example.com", "full_name": " New Patient "},
    )
    assert created.status_code == 201
    data = created.json()["data"]
    assert data["id"] == user_id
    assert data["email"] == "new.patient@example.com"
    assert data["full_name"] == "New Patient"
    assert data["role"] == "patient"

    again = await client.post(
        "/api/v1/profile",
        headers=headers,
        json={"id": user_id, "email": "other@example.com", "full_name": "Dup"},
    )
    assert again.status_code == 409

    me = await client.get("/api/v1/profile", headers=headers)
    assert me.json()["data"]["id"] == user_id


@pytest.mark.asyncio
async def test_signup_rejects_foreign_id_and_elevated_role(client, clinic):
    user_id = str(uuid.uuid4())
    headers = {"Authorization": f"Bearer {create_access_token(user_id)}"}

    foreign = await client.post(
        "/api/v1/profile",
        headers=headers,
        json={"id": str(uuid.uuid4()), "email": "a@example.com", "full_name": "A"},
    )
    assert foreign.status_code == 403

    elevated = await client.post(
        "/api/v1/profile",
        headers=headers,
        json={"id": user_id, "email": "a@example.com", "full_name": "A", "role": "admin"},
    )
    assert elevated.status_code == 403


@pytest.mark.asyncio
async def test_profile_update_and_directory(client, clinic, auth_headers):
    headers = auth_headers(clinic["patient"])

    updated = await client.patch("/api/v1/profile", headers=headers, json={"phone": "+91 98765 43210"})
    assert updated.status_code == 200
    assert updated.json()["data"]["phone"] == "+91 98765 43210"

    blank = await client.patch("/api/v1/profile", headers=headers, json={"full_name": "   "})
    assert blank.status_code == 400

    staff = await client.get("/api/v1/users", headers=headers, params={"role": "staff"})
    assert [item["full_name"] for item in staff.json()["data"]] == ["Dr Mehta", "Dr Rao"]


@pytest.mark.asyncio
async def test_token_for_unknown_profile_is_rejected(client):
    headers = {"Authorization": f"Bearer {create_access_token(str(uuid.uuid4()))}"}
    response = await client.get("/api/v1/profile", headers=headers)
    assert response.status_code == 401
