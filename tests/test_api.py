"""End-to-end tests through the HTTP API."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from app.models.slot import Slot
from app.models.user import User
from app.services import auth_service

from factories import auth_headers, make_slot, make_user, utc_now

SIGNUP = {
    "email": "provider@example.com",
    "password": "secret123",
    "name": "Provider",
    "timezone": "+00:00",
}


async def _signup(client, **overrides) -> dict:
    resp = await client.post("/api/v1/auth/signup", json={**SIGNUP, **overrides})
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _next_week_slots(client, sharable_id: str) -> list[dict]:
    resp = await client.get("/api/v1/slots/available", params={"sharable_id": sharable_id, "week_offset": 1})
    assert resp.status_code == 200
    return [slot for day in resp.json() for slot in day["slots"]]


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_signup_generates_initial_slots(client, db):
    body = await _signup(client)
    assert body["user"]["timezone"] == "+00:00"
    assert body["access_token"]

    result = await db.execute(select(func.count()).select_from(Slot).where(Slot.user_id == body["user"]["id"]))
    assert result.scalar_one() > 0

    days = (
        await client.get(
            "/api/v1/slots/available", params={"sharable_id": body["user"]["sharable_id"], "week_offset": 1}
        )
    ).json()
    assert [d["day_id"] for d in days] == [1, 2, 3, 4, 5]
    assert all(len(d["slots"]) == 16 for d in days)


@pytest.mark.asyncio
async def test_signup_survives_slot_generation_failure(client, db, monkeypatch):
    async def boom(*args, **kwargs):
        raise RuntimeError("generation down")

    monkeypatch.setattr(auth_service, "generate_initial_slots", boom)
    body = await _signup(client)

    user = (await db.execute(select(User).where(User.id == body["user"]["id"]))).scalar_one()
    assert user.email == SIGNUP["email"]
    result = await db.execute(select(func.count()).select_from(Slot))
    assert result.scalar_one() == 0


@pytest.mark.asyncio
async def test_signup_stores_canonical_offset(client):
    body = await _signup(client, timezone="-00:00")
    assert body["user"]["timezone"] == "+00:00"


@pytest.mark.asyncio
async def test_signup_validation(client):
    resp = await client.post("/api/v1/auth/signup", json={**SIGNUP, "timezone": "0530"})
    assert resp.status_code == 422
    resp = await client.post("/api/v1/auth/signup", json={**SIGNUP, "timezone": "+15:00"})
    assert resp.status_code == 400
    assert "out of range" in resp.json()["detail"]

    await _signup(client)
    resp = await client.post("/api/v1/auth/signup", json=SIGNUP)
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_login_and_me(client):
    await _signup(client)
    resp = await client.post("/api/v1/auth/login", json={"email": SIGNUP["email"], "password": "wrong"})
    assert resp.status_code == 401

    resp = await client.post("/api/v1/auth/login", json={"email": SIGNUP["email"], "password": SIGNUP["password"]})
    assert resp.status_code == 200
    token = resp.json()["access_token"]
    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["email"] == SIGNUP["email"]

    assert (await client.get("/api/v1/users/me")).status_code == 401


@pytest.mark.asyncio
async def test_regenerated_sharable_id_invalidates_old_link(client):
    body = await _signup(client)
    headers = {"Authorization": f"Bearer {body['access_token']}"}
    old = body["user"]["sharable_id"]

    resp = await client.post("/api/v1/users/me/regenerate-sharable-id", headers=headers)
    assert resp.status_code == 200
    new = resp.json()["sharable_id"]
    assert new != old

    assert (await client.get("/api/v1/slots/available", params={"sharable_id": old})).status_code == 404
    assert (await client.get("/api/v1/slots/available", params={"sharable_id": new})).status_code == 200


@pytest.mark.asyncio
async def test_booking_lifecycle(client):
    body = await _signup(client)
    sharable_id = body["user"]["sharable_id"]
    headers = {"Authorization": f"Bearer {body['access_token']}"}
    slots = await _next_week_slots(client, sharable_id)
    first, second = slots[0], slots[1]

    booking = {
        "sharable_id": sharable_id,
        "slot_id": first["id"],
        "name": "Guest",
        "email": "guest@example.com",
        "guests": ["friend@example.com"],
        "reason": "Kick-off",
    }
    resp = await client.post("/api/v1/appointments", json=booking)
    assert resp.status_code == 201, resp.text
    appointment = resp.json()
    assert appointment["status"] == "pending"
    assert appointment["slot"]["is_booked"] is True

    resp = await client.post("/api/v1/appointments", json={**booking, "email": "late@example.com"})
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Slot is already booked"

    listing = await client.get("/api/v1/appointments", params={"sharable_id": sharable_id, "type": "future"})
    assert listing.json()["pagination"]["total"] == 1

    resp = await client.patch(f"/api/v1/appointments/{appointment['id']}", json={"name": "Renamed"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Appointment updated successfully"

    resp = await client.patch(
        f"/api/v1/appointments/{appointment['id']}", json={"new_slot_id": second["id"]}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json()["message"] == "Appointment rescheduled successfully"
    assert resp.json()["appointment"]["slot_id"] == second["id"]

    resp = await client.patch(f"/api/v1/appointments/{appointment['id']}", json={}, headers=headers)
    assert resp.status_code == 400

    resp = await client.delete(f"/api/v1/appointments/{appointment['id']}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["appointment"]["is_deleted"] is True
    assert resp.json()["appointment"]["slot"]["is_booked"] is False

    resp = await client.delete(f"/api/v1/appointments/{appointment['id']}", headers=headers)
    assert resp.status_code == 409

    listing = await client.get("/api/v1/appointments", params={"sharable_id": sharable_id, "type": "future"})
    assert listing.json()["appointments"] == []


@pytest.mark.asyncio
async def test_patch_without_login_fails_on_auth_before_field_check(client):
    resp = await client.patch("/api/v1/appointments/1", json={"name": "x"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_booking_through_wrong_provider_link_conflicts(client, db):
    owner = await make_user(db)
    other = await make_user(db, email="other@example.com")
    slot = await make_slot(db, other, utc_now().replace(microsecond=0) + timedelta(days=3))
    resp = await client.post(
        "/api/v1/appointments",
        json={"sharable_id": owner.sharable_id, "slot_id": slot.id, "name": "G", "email": "g@example.com"},
    )
    assert resp.status_code == 409

    resp = await client.post(
        "/api/v1/appointments",
        json={"sharable_id": "missing", "slot_id": slot.id, "name": "G", "email": "g@example.com"},
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_other_provider_cannot_cancel(client, db):
    owner = await make_user(db)
    other = await make_user(db, email="other@example.com")
    slot = await make_slot(db, owner, utc_now().replace(microsecond=0) + timedelta(days=3))
    resp = await client.post(
        "/api/v1/appointments",
        json={"sharable_id": owner.sharable_id, "slot_id": slot.id, "name": "G", "email": "g@example.com"},
    )
    appointment_id = resp.json()["id"]

    resp = await client.delete(f"/api/v1/appointments/{appointment_id}", headers=auth_headers(other))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_list_requires_valid_type(client, db):
    owner = await make_user(db)
    resp = await client.get("/api/v1/appointments", params={"sharable_id": owner.sharable_id, "type": "all"})
    assert resp.status_code == 422
