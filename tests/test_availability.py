"""Tests for availability rule endpoints and slot listing."""

from datetime import datetime

import pytest
from sqlalchemy import func, select

from app.core.config import settings
from app.models.appointment import Appointment, AppointmentStatus
from app.models.availability import AvailabilityRule
from tests.helpers import MONDAY, TUESDAY, add_appointment, add_rule, auth_headers


RULE_PAYLOAD = {
    "day_of_week": 1,
    "start_time": "09:00",
    "end_time": "12:00",
    "timezone": "UTC",
    "slot_duration": 30,
}


async def count_rules(db, provider) -> int:
    result = await db.execute(
        select(func.count()).select_from(AvailabilityRule).where(AvailabilityRule.provider_id == provider.id)
    )
    return result.scalar_one()


def slots_url(provider, start=MONDAY, end=MONDAY) -> str:
    return f"/api/v1/availability/{provider.id}/slots?start_date={start.isoformat()}&end_date={end.isoformat()}"


class TestRuleManagement:
    @pytest.mark.asyncio
    async def test_create_rule(self, client, provider):
        response = await client.post("/api/v1/availability/", json=RULE_PAYLOAD, headers=auth_headers(provider))
        assert response.status_code == 201
        data = response.json()
        assert data["provider_id"] == str(provider.id)
        assert data["start_time"] == "09:00"
        assert data["slot_duration"] == 30
        assert data["is_recurring"] is True

    @pytest.mark.asyncio
    async def test_create_rule_uses_default_timezone(self, client, provider):
        payload = {k: v for k, v in RULE_PAYLOAD.items() if k != "timezone"}
        response = await client.post("/api/v1/availability/", json=payload, headers=auth_headers(provider))
        assert response.status_code == 201
        assert response.json()["timezone"] == "America/Sao_Paulo"

    @pytest.mark.asyncio
    async def test_client_cannot_create_rule(self, client, customer):
        response = await client.post("/api/v1/availability/", json=RULE_PAYLOAD, headers=auth_headers(customer))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_requires_auth(self, client):
        response = await client.post("/api/v1/availability/", json=RULE_PAYLOAD)
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field,value", [
        ("start_time", "9:00"),
        ("end_time", "25:00"),
        ("end_time", "08:00"),
        ("day_of_week", 7),
        ("timezone", "Mars/Olympus"),
        ("slot_duration", 0),
    ])
    async def test_invalid_rule_rejected(self, client, provider, field, value):
        payload = {**RULE_PAYLOAD, field: value}
        response = await client.post("/api/v1/availability/", json=payload, headers=auth_headers(provider))
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_duplicate_active_day_conflicts(self, client, provider, monday_rule):
        response = await client.post("/api/v1/availability/", json=RULE_PAYLOAD, headers=auth_headers(provider))
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_list_my_rules(self, client, db, provider, other_provider, monday_rule):
        await add_rule(db, other_provider, day_of_week=2)
        await add_rule(db, provider, day_of_week=3)

        response = await client.get("/api/v1/availability/me", headers=auth_headers(provider))
        assert response.status_code == 200
        days = [rule["day_of_week"] for rule in response.json()]
        assert days == [1, 3]

    @pytest.mark.asyncio
    async def test_update_rule(self, client, provider, monday_rule):
        response = await client.put(
            f"/api/v1/availability/{monday_rule.id}",
            json={"end_time": "13:00", "buffer_time": 10},
            headers=auth_headers(provider),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["end_time"] == "13:00"
        assert data["buffer_time"] == 10
        assert data["start_time"] == "09:00"

    @pytest.mark.asyncio
    async def test_update_checks_merged_times(self, client, provider, monday_rule):
        response = await client.put(
            f"/api/v1/availability/{monday_rule.id}",
            json={"start_time": "12:30"},
            headers=auth_headers(provider),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_input"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", [
        "start_time", "end_time", "slot_duration", "buffer_time", "is_active", "timezone", "day_of_week",
    ])
    async def test_update_rejects_null_for_required_field(self, client, provider, monday_rule, field):
        response = await client.put(
            f"/api/v1/availability/{monday_rule.id}",
            json={field: None},
            headers=auth_headers(provider),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_update_can_clear_date_bounds(self, client, db, provider):
        rule = await add_rule(db, provider, is_recurring=False, start_date=MONDAY, end_date=MONDAY)
        response = await client.put(
            f"/api/v1/availability/{rule.id}",
            json={"start_date": None, "end_date": None},
            headers=auth_headers(provider),
        )
        assert response.status_code == 200
        assert response.json()["start_date"] is None
        assert response.json()["end_date"] is None

    @pytest.mark.asyncio
    async def test_update_onto_busy_day_conflicts(self, client, db, provider, monday_rule):
        tuesday_rule = await add_rule(db, provider, day_of_week=2)
        response = await client.put(
            f"/api/v1/availability/{tuesday_rule.id}",
            json={"day_of_week": 1},
            headers=auth_headers(provider),
        )
        assert response.status_code == 409

        # the rule may keep its own day
        response = await client.put(
            f"/api/v1/availability/{monday_rule.id}",
            json={"day_of_week": 1, "is_active": True},
            headers=auth_headers(provider),
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_update_other_providers_rule_forbidden(self, client, other_provider, monday_rule):
        response = await client.put(
            f"/api/v1/availability/{monday_rule.id}",
            json={"end_time": "13:00"},
            headers=auth_headers(other_provider),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_can_update_any_rule(self, client, admin, monday_rule):
        response = await client.put(
            f"/api/v1/availability/{monday_rule.id}",
            json={"is_active": False},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False

    @pytest.mark.asyncio
    async def test_delete_rule(self, client, db, provider, monday_rule):
        response = await client.delete(f"/api/v1/availability/{monday_rule.id}", headers=auth_headers(provider))
        assert response.status_code == 204
        assert await count_rules(db, provider) == 0

        response = await client.delete(f"/api/v1/availability/{monday_rule.id}", headers=auth_headers(provider))
        assert response.status_code == 404


class TestSlots:
    @pytest.mark.asyncio
    async def test_monday_slots(self, client, customer, provider, monday_rule):
        response = await client.get(slots_url(provider), headers=auth_headers(customer))
        assert response.status_code == 200
        data = response.json()
        assert data["provider_id"] == str(provider.id)
        assert [s["time"] for s in data["slots"]] == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]
        assert all(s["available"] for s in data["slots"])
        assert all(s["date"] == "2030-01-07" for s in data["slots"])

    @pytest.mark.asyncio
    async def test_day_without_rule_is_empty(self, client, customer, provider, monday_rule):
        response = await client.get(slots_url(provider, TUESDAY, TUESDAY), headers=auth_headers(customer))
        assert response.status_code == 200
        assert response.json()["slots"] == []

    @pytest.mark.asyncio
    async def test_booked_slot_marked_unavailable(self, client, db, customer, provider, monday_rule):
        db.add(Appointment(
            provider_id=provider.id,
            client_id=customer.id,
            start_time=datetime(2030, 1, 7, 10, 0),
            end_time=datetime(2030, 1, 7, 11, 0),
            duration=60,
            status=AppointmentStatus.CONFIRMED,
        ))
        await db.commit()

        response = await client.get(slots_url(provider), headers=auth_headers(customer))
        available = {s["time"]: s["available"] for s in response.json()["slots"]}
        assert available == {
            "09:00": True, "09:30": True,
            "10:00": False, "10:30": False,
            "11:00": True, "11:30": True,
        }

    @pytest.mark.asyncio
    async def test_cancelled_appointment_frees_slot(self, client, db, customer, provider, monday_rule):
        db.add(Appointment(
            provider_id=provider.id,
            client_id=customer.id,
            start_time=datetime(2030, 1, 7, 10, 0),
            end_time=datetime(2030, 1, 7, 10, 30),
            duration=30,
            status=AppointmentStatus.CANCELLED,
        ))
        await db.commit()

        response = await client.get(slots_url(provider), headers=auth_headers(customer))
        assert all(s["available"] for s in response.json()["slots"])

    @pytest.mark.asyncio
    async def test_non_recurring_rule_bounds(self, client, db, customer, provider):
        await add_rule(db, provider, is_recurring=False, start_date=MONDAY, end_date=MONDAY)

        this_week = await client.get(slots_url(provider), headers=auth_headers(customer))
        assert len(this_week.json()["slots"]) == 6

        next_monday = MONDAY.replace(day=14)
        next_week = await client.get(slots_url(provider, next_monday, next_monday), headers=auth_headers(customer))
        assert next_week.json()["slots"] == []

    @pytest.mark.asyncio
    async def test_reversed_range_rejected(self, client, customer, provider, monday_rule):
        response = await client.get(slots_url(provider, TUESDAY, MONDAY), headers=auth_headers(customer))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_range_too_long_rejected(self, client, customer, provider, monday_rule):
        response = await client.get(
            slots_url(provider, MONDAY, MONDAY.replace(month=6)), headers=auth_headers(customer)
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_provider(self, client, customer):
        response = await client.get(
            "/api/v1/availability/00000000-0000-0000-0000-000000000000/slots"
            f"?start_date={MONDAY}&end_date={MONDAY}",
            headers=auth_headers(customer),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_non_provider(self, client, customer, stranger):
        response = await client.get(slots_url(stranger), headers=auth_headers(customer))
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_state"

    @pytest.mark.asyncio
    async def test_repeated_listing_is_identical(self, client, db, customer, provider, monday_rule):
        await add_appointment(db, provider, customer, datetime(2030, 1, 7, 10, 0))

        first = await client.get(slots_url(provider, MONDAY, TUESDAY), headers=auth_headers(customer))
        second = await client.get(slots_url(provider, MONDAY, TUESDAY), headers=auth_headers(customer))
        assert first.status_code == second.status_code == 200
        assert first.json() == second.json()

    @pytest.mark.asyncio
    async def test_listing_does_not_write_when_rules_exist(self, client, db, customer, provider, monday_rule):
        await client.get(slots_url(provider), headers=auth_headers(customer))
        assert await count_rules(db, provider) == 1


class TestDefaultProvisioning:
    @pytest.mark.asyncio
    async def test_first_slot_request_provisions_defaults(self, client, db, customer, provider):
        response = await client.get(slots_url(provider), headers=auth_headers(customer))
        assert response.status_code == 200
        slots = response.json()["slots"]
        # 09:00-17:00 hourly, local time
        assert [s["time"] for s in slots] == [f"{h:02d}:00" for h in range(9, 17)]
        assert slots[0]["start"].startswith("2030-01-07T12:00")

        again = await client.get(slots_url(provider), headers=auth_headers(customer))
        assert again.json() == response.json()
        assert await count_rules(db, provider) == 5

    @pytest.mark.asyncio
    async def test_weekend_has_no_default_slots(self, client, customer, provider):
        saturday = MONDAY.replace(day=12)
        response = await client.get(slots_url(provider, saturday, saturday), headers=auth_headers(customer))
        assert response.json()["slots"] == []

    @pytest.mark.asyncio
    async def test_provision_endpoint_is_idempotent(self, client, db, provider):
        first = await client.post("/api/v1/availability/provision", headers=auth_headers(provider))
        assert first.status_code == 200
        assert sorted(r["day_of_week"] for r in first.json()) == [1, 2, 3, 4, 5]

        second = await client.post("/api/v1/availability/provision", headers=auth_headers(provider))
        assert sorted(r["id"] for r in second.json()) == sorted(r["id"] for r in first.json())
        assert await count_rules(db, provider) == 5

    @pytest.mark.asyncio
    async def test_provider_with_inactive_rule_is_not_reprovisioned(self, client, db, customer, provider):
        await add_rule(db, provider, is_active=False)
        response = await client.get(slots_url(provider), headers=auth_headers(customer))
        assert response.json()["slots"] == []
        assert await count_rules(db, provider) == 1

    @pytest.mark.asyncio
    async def test_first_booking_provisions_defaults(self, client, db, customer, provider):
        response = await client.post(
            "/api/v1/appointments/",
            json={"provider_id": str(provider.id), "start_time": "2030-01-07T12:00:00Z", "duration": 60},
            headers=auth_headers(customer),
        )
        assert response.status_code == 201
        assert response.json()["end_time"] == "2030-01-07T13:00:00"
        assert await count_rules(db, provider) == 5

    @pytest.mark.asyncio
    async def test_booking_without_rules_when_provisioning_disabled(self, client, db, customer, provider, monkeypatch):
        monkeypatch.setattr(settings, "AUTO_PROVISION_DEFAULT_AVAILABILITY", False)
        response = await client.post(
            "/api/v1/appointments/",
            json={"provider_id": str(provider.id), "start_time": "2030-01-07T12:00:00Z", "duration": 60},
            headers=auth_headers(customer),
        )
        assert response.status_code == 409
        assert response.json()["error"] == "slot_unavailable"
        assert await count_rules(db, provider) == 0
