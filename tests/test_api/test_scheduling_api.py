"""DB-backed integration tests for the availability and booking endpoints."""

import uuid

import pytest
from httpx import ASGITransport, AsyncClient

from medbookings.api.app import create_app
from medbookings.api.dependencies import get_app_settings, get_clock
from medbookings.core.database import get_db
from tests.conftest import at


@pytest.fixture
async def seed(session, organization, provider, consult, follow_up):
    """Commit the seed rows so request sessions can see them."""
    await session.commit()
    return {
        "organization": str(organization.id),
        "provider": str(provider.id),
        "consult": str(consult.id),
        "follow_up": str(follow_up.id),
    }


@pytest.fixture
async def client(session_factory, settings, clock, seed):
    """AsyncClient bound to the app using the test database."""

    async def _override_get_db():
        async with session_factory() as sess:
            try:
                yield sess
                await sess.commit()
            except Exception:
                await sess.rollback()
                raise

    app = create_app()
    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_clock] = lambda: clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def _window_body(seed: dict, start_hour: int = 9, end_hour: int = 12, day: int = 0, **extra) -> dict:
    body = {
        "provider_id": seed["provider"],
        "start_time": at(day, start_hour).isoformat(),
        "end_time": at(day, end_hour).isoformat(),
        "services": [{"service_id": seed["consult"], "duration": 60}],
    }
    body.update(extra)
    return body


async def _create(client: AsyncClient, seed: dict, **kwargs) -> dict:
    resp = await client.post("/api/v1/availability", json=_window_body(seed, **kwargs))
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _slots(client: AsyncClient, availability_id: str) -> list[dict]:
    resp = await client.get(f"/api/v1/availability/{availability_id}/slots")
    assert resp.status_code == 200
    return resp.json()


async def _claim(client: AsyncClient, slot_id: str, **claimant):
    body = {"slot_id": slot_id, **(claimant or {"user_id": str(uuid.uuid4())})}
    return await client.post("/api/v1/bookings", json=body)


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------

class TestPreview:
    async def test_preview_counts_without_storing(self, client: AsyncClient, seed):
        resp = await client.post("/api/v1/availability/preview", json={
            "start_time": at(0, 9).isoformat(),
            "end_time": at(0, 12).isoformat(),
            "recurrence_pattern": {
                "type": "WEEKLY", "days_of_week": [1], "count": 3, "exceptions": ["2030-01-14"],
            },
            "services": [{"service_id": seed["consult"], "duration": 30}],
            "timezone": "UTC",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["description"] == "Weekly on Monday, 3 times (except 1 date)"
        assert [o["is_exception"] for o in data["occurrences"]] == [False, True, False, False]
        assert data["slot_count"] == 18
        assert data["next_occurrence"]["start_time"].startswith("2030-01-07T09:00")
        assert data["aligned_start"] is True
        assert data["efficiency"] == [{
            "service_id": seed["consult"],
            "duration": 30,
            "max_possible_slots": 6,
            "actual_slots": 6,
            "utilization_rate": 1.0,
            "average_gap_minutes": 0.0,
        }]

        listed = await client.get("/api/v1/availability")
        assert listed.json() == []

    async def test_preview_flags_misaligned_start(self, client: AsyncClient, seed):
        resp = await client.post("/api/v1/availability/preview", json={
            "start_time": at(0, 9, 15).isoformat(),
            "end_time": at(0, 12).isoformat(),
            "scheduling_rule": "ON_THE_HOUR",
            "services": [{"service_id": seed["consult"], "duration": 45}],
            "timezone": "UTC",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["aligned_start"] is False
        assert data["slot_count"] == 2

    async def test_preview_invalid_pattern(self, client: AsyncClient):
        resp = await client.post("/api/v1/availability/preview", json={
            "start_time": at(0, 9).isoformat(),
            "end_time": at(0, 12).isoformat(),
            "recurrence_pattern": {"type": "MONTHLY", "day_of_month": 32},
        })
        assert resp.status_code == 422
        assert resp.json()["errors"] == ["Day of month must be between 1 and 31"]


# ---------------------------------------------------------------------------
# Availability CRUD
# ---------------------------------------------------------------------------

class TestAvailabilityCRUD:
    async def test_create(self, client: AsyncClient, seed):
        resp = await client.post(
            "/api/v1/availability", json=_window_body(seed), headers={"X-Actor-Id": "admin-1"}
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["slots_created"] == 3
        assert data["availability"]["status"] == "ACCEPTED"
        assert data["availability"]["version"] == 1
        assert data["availability"]["service_configs"][0]["duration"] == 60

    async def test_get_and_list_slots(self, client: AsyncClient, seed):
        created = await _create(client, seed)
        availability_id = created["availability"]["id"]

        resp = await client.get(f"/api/v1/availability/{availability_id}")
        assert resp.status_code == 200
        assert resp.json()["provider_id"] == seed["provider"]

        slots = await _slots(client, availability_id)
        assert len(slots) == 3
        assert all(s["service_id"] == seed["consult"] for s in slots)

    async def test_list_by_provider(self, client: AsyncClient, seed):
        await _create(client, seed, day=0)
        await _create(client, seed, day=1)
        resp = await client.get("/api/v1/availability", params={
            "owner_kind": "provider", "owner_id": seed["provider"],
        })
        assert resp.status_code == 200
        assert len(resp.json()) == 2

    async def test_recurring_series(self, client: AsyncClient, seed):
        created = await _create(client, seed, recurrence_pattern={"type": "DAILY", "count": 4})
        series_id = created["availability"]["series_id"]
        assert created["slots_created"] == 12

        resp = await client.get(f"/api/v1/availability/series/{series_id}")
        assert [a["id"] for a in resp.json()] == [created["availability"]["id"]]

    async def test_validation_errors_are_422(self, client: AsyncClient, seed):
        resp = await client.post("/api/v1/availability", json=_window_body(seed, start_hour=12, end_hour=9))
        assert resp.status_code == 422
        assert resp.json()["error"] == "validation_error"
        assert "End time must be after start time" in resp.json()["errors"]

    async def test_overlap_is_422(self, client: AsyncClient, seed):
        await _create(client, seed)
        resp = await client.post("/api/v1/availability", json=_window_body(seed, start_hour=11, end_hour=13))
        assert resp.status_code == 422
        assert "overlaps" in resp.json()["detail"]

    async def test_missing_services_rejected(self, client: AsyncClient, seed):
        body = _window_body(seed)
        body["services"] = []
        resp = await client.post("/api/v1/availability", json=body)
        assert resp.status_code == 422

    async def test_unknown_provider_is_404(self, client: AsyncClient, seed):
        body = _window_body(seed)
        body["provider_id"] = str(uuid.uuid4())
        resp = await client.post("/api/v1/availability", json=body)
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    async def test_occurs_on(self, client: AsyncClient, seed):
        created = await _create(
            client, seed, recurrence_pattern={"type": "WEEKLY", "days_of_week": [1], "count": 2}
        )
        url = f"/api/v1/availability/{created['availability']['id']}/occurs-on"

        resp = await client.get(url, params={"date": "2030-01-14"})
        assert resp.status_code == 200
        assert resp.json() == {"day": "2030-01-14", "occurs": True}

        resp = await client.get(url, params={"date": "2030-01-15"})
        assert resp.json()["occurs"] is False

        resp = await client.get(url)
        assert resp.status_code == 422

    async def test_get_unknown_is_404(self, client: AsyncClient):
        resp = await client.get(f"/api/v1/availability/{uuid.uuid4()}")
        assert resp.status_code == 404

    async def test_delete(self, client: AsyncClient, seed):
        created = await _create(client, seed)
        availability_id = created["availability"]["id"]
        resp = await client.delete(f"/api/v1/availability/{availability_id}", params={"expected_version": 1})
        assert resp.status_code == 200
        assert resp.json() == {"deleted": True, "slots_deleted": 3}
        assert (await client.get(f"/api/v1/availability/{availability_id}")).status_code == 404


# ---------------------------------------------------------------------------
# Edits against bookings
# ---------------------------------------------------------------------------

class TestMutationsWithBookings:
    async def test_delete_with_booking_is_409(self, client: AsyncClient, seed):
        created = await _create(client, seed)
        availability_id = created["availability"]["id"]
        slot = (await _slots(client, availability_id))[0]
        assert (await _claim(client, slot["id"])).status_code == 201

        resp = await client.delete(f"/api/v1/availability/{availability_id}")
        assert resp.status_code == 409
        assert resp.json()["error"] == "has_active_bookings"
        assert resp.json()["statuses"] == ["CONFIRMED"]
        assert len(await _slots(client, availability_id)) == 3

    async def test_shrink_past_booking_is_409(self, client: AsyncClient, seed):
        created = await _create(client, seed)
        availability_id = created["availability"]["id"]
        last = (await _slots(client, availability_id))[-1]
        await _claim(client, last["id"])

        resp = await client.patch(f"/api/v1/availability/{availability_id}", json={
            "end_time": at(0, 11).isoformat(),
        })
        assert resp.status_code == 409
        data = resp.json()
        assert data["error"] == "would_exclude_booking"
        assert len(data["bookings"]) == 1
        assert len(await _slots(client, availability_id)) == 3

    async def test_extend_keeps_booking(self, client: AsyncClient, seed):
        created = await _create(client, seed)
        availability_id = created["availability"]["id"]
        first = (await _slots(client, availability_id))[0]
        await _claim(client, first["id"])

        resp = await client.patch(f"/api/v1/availability/{availability_id}", json={
            "end_time": at(0, 13).isoformat(),
            "expected_version": 1,
        })
        assert resp.status_code == 200
        data = resp.json()
        assert (data["slots_deleted"], data["slots_created"], data["slots_retained"]) == (2, 3, 1)
        assert data["availability"]["version"] == 2
        assert first["id"] in [s["id"] for s in await _slots(client, availability_id)]

    async def test_stale_version_is_409(self, client: AsyncClient, seed):
        created = await _create(client, seed)
        availability_id = created["availability"]["id"]
        resp = await client.patch(f"/api/v1/availability/{availability_id}", json={
            "end_time": at(0, 13).isoformat(),
            "expected_version": 4,
        })
        assert resp.status_code == 409
        assert resp.json()["error"] == "concurrent_modification"

    async def test_cancel_window(self, client: AsyncClient, seed):
        created = await _create(client, seed)
        availability_id = created["availability"]["id"]
        first = (await _slots(client, availability_id))[0]
        await _claim(client, first["id"])

        resp = await client.post(f"/api/v1/availability/{availability_id}/cancel")
        assert resp.status_code == 200
        assert resp.json()["status"] == "CANCELLED"
        assert [s["id"] for s in await _slots(client, availability_id)] == [first["id"]]


# ---------------------------------------------------------------------------
# Proposal workflow
# ---------------------------------------------------------------------------

class TestProposals:
    async def test_accept_materializes(self, client: AsyncClient, seed):
        owner = {"kind": "organization", "id": seed["organization"]}
        created = await _create(client, seed, owner=owner)
        availability_id = created["availability"]["id"]
        assert created["availability"]["status"] == "PENDING"
        assert created["slots_created"] == 0

        resp = await client.post(f"/api/v1/availability/{availability_id}/accept")
        assert resp.status_code == 200
        assert resp.json()["slots_created"] == 3
        assert resp.json()["availability"]["status"] == "ACCEPTED"

        again = await client.post(f"/api/v1/availability/{availability_id}/accept")
        assert again.status_code == 409
        assert again.json()["error"] == "invalid_status_transition"

    async def test_reject(self, client: AsyncClient, seed):
        owner = {"kind": "organization", "id": seed["organization"]}
        created = await _create(client, seed, owner=owner)
        resp = await client.post(f"/api/v1/availability/{created['availability']['id']}/reject")
        assert resp.status_code == 200
        assert resp.json()["status"] == "REJECTED"


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------

class TestBookings:
    async def test_claim_and_lifecycle(self, client: AsyncClient, seed):
        created = await _create(client, seed, requires_confirmation=True)
        slot = (await _slots(client, created["availability"]["id"]))[0]

        resp = await _claim(client, slot["id"], guest_name="Lerato Mokoena", guest_email="lerato@example.com")
        assert resp.status_code == 201
        booking = resp.json()
        assert booking["status"] == "PENDING"
        assert booking["duration"] == 60
        assert booking["price"] == 450.0

        resp = await client.post(f"/api/v1/bookings/{booking['id']}/confirm")
        assert resp.json()["status"] == "CONFIRMED"
        resp = await client.post(f"/api/v1/bookings/{booking['id']}/complete")
        assert resp.json()["status"] == "COMPLETED"

        resp = await client.post(f"/api/v1/bookings/{booking['id']}/cancel")
        assert resp.status_code == 409
        assert resp.json()["error"] == "invalid_status_transition"

    async def test_double_claim_is_409(self, client: AsyncClient, seed):
        created = await _create(client, seed)
        slot = (await _slots(client, created["availability"]["id"]))[1]
        assert (await _claim(client, slot["id"])).status_code == 201

        resp = await _claim(client, slot["id"])
        assert resp.status_code == 409
        assert resp.json()["error"] == "slot_already_booked"
        assert resp.json()["slot_id"] == slot["id"]

    async def test_claim_requires_claimant(self, client: AsyncClient, seed):
        created = await _create(client, seed)
        slot = (await _slots(client, created["availability"]["id"]))[0]
        resp = await client.post("/api/v1/bookings", json={"slot_id": slot["id"]})
        assert resp.status_code == 422

    async def test_claim_unknown_slot_is_404(self, client: AsyncClient, seed):
        resp = await _claim(client, str(uuid.uuid4()))
        assert resp.status_code == 404

    async def test_get_booking(self, client: AsyncClient, seed):
        created = await _create(client, seed)
        slot = (await _slots(client, created["availability"]["id"]))[0]
        booking = (await _claim(client, slot["id"])).json()

        resp = await client.get(f"/api/v1/bookings/{booking['id']}")
        assert resp.status_code == 200
        assert resp.json()["slot_id"] == slot["id"]
        assert (await client.get(f"/api/v1/bookings/{uuid.uuid4()}")).status_code == 404

    async def test_search_bookable_slots(self, client: AsyncClient, seed):
        created = await _create(client, seed)
        slot = (await _slots(client, created["availability"]["id"]))[0]
        await _claim(client, slot["id"])

        resp = await client.get("/api/v1/availability/slots", params={
            "provider_id": seed["provider"],
            "start": at(0, 0).isoformat(),
            "end": at(1, 0).isoformat(),
        })
        assert resp.status_code == 200
        assert len(resp.json()) == 2
        assert slot["id"] not in [s["id"] for s in resp.json()]
