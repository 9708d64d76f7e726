"""DB-backed integration tests for protocol, patient and timeline endpoints."""

from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from recovery_os.api.app import create_app
from recovery_os.api.dependencies import get_phase_registry
from recovery_os.config import get_settings
from recovery_os.core.database import get_db
from recovery_os.core.models import Base
from recovery_os.timeline.clock import today_in
from recovery_os.timeline.models import RecurrenceFrequency
from tests.conftest import make_task


# ---------------------------------------------------------------------------
# Fixtures: in-memory SQLite engine + session override
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def client(engine):
    """AsyncClient bound to the full app using the test DB session."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def _override_get_db():
        async with factory() as sess:
            try:
                yield sess
                await sess.commit()
            except Exception:
                await sess.rollback()
                raise

    app = create_app()
    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def protocol_id(client: AsyncClient, protocol_json) -> str:
    resp = await client.post("/api/v1/protocols", json=protocol_json)
    assert resp.status_code == 201
    return resp.json()["id"]


@pytest_asyncio.fixture
async def patient_id(client: AsyncClient, protocol_id) -> str:
    """A patient on recovery day 10 of the knee protocol."""
    surgery = today_in("UTC") - timedelta(days=10)
    resp = await client.post("/api/v1/patients", json={
        "first_name": "Ada",
        "last_name": "Lovelace",
        "surgery_date": surgery.isoformat(),
        "surgery_type": "TKA",
        "protocol_id": protocol_id,
    })
    assert resp.status_code == 201
    return resp.json()["id"]


@pytest.fixture
def fine_knee_phases(monkeypatch):
    """Knee replacements use the fine phase table; everything else the standard one."""
    monkeypatch.setenv("SURGERY_PHASE_GRANULARITY", '{"TKA": "fine"}')
    get_settings.cache_clear()
    get_phase_registry.cache_clear()
    yield
    get_settings.cache_clear()
    get_phase_registry.cache_clear()


def _status_url(patient_id: str, task_id: str, day: int) -> str:
    return f"/api/v1/patients/{patient_id}/tasks/{task_id}/days/{day}/status"


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

class TestProtocols:
    async def test_create_and_get(self, client: AsyncClient, protocol_id, protocol_json):
        resp = await client.get(f"/api/v1/protocols/{protocol_id}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["surgery_type"] == "TKA"
        assert [t["id"] for t in data["tasks"]] == [t["id"] for t in protocol_json["tasks"]]

    async def test_list_by_surgery_type(self, client: AsyncClient, protocol_id):
        resp = await client.get("/api/v1/protocols", params={"surgery_type": "TKA"})
        assert [p["id"] for p in resp.json()] == [protocol_id]
        resp = await client.get("/api/v1/protocols", params={"surgery_type": "THA"})
        assert resp.json() == []

    async def test_invalid_rule_rejected(self, client: AsyncClient):
        bad = make_task("walk", 10, frequency=RecurrenceFrequency.DAILY, end_day=2)
        body = {"name": "Bad", "surgery_type": "TKA", "tasks": [bad.model_dump(mode="json")]}

        resp = await client.post("/api/v1/protocols", json=body)
        assert resp.status_code == 422
        assert "walk" in resp.json()["detail"]

        resp = await client.post("/api/v1/protocols/validate", json=body)
        assert resp.status_code == 200
        assert resp.json()["valid"] is False
        assert resp.json()["task_id"] == "walk"

    async def test_validate_ok(self, client: AsyncClient, protocol_json):
        resp = await client.post("/api/v1/protocols/validate", json=protocol_json)
        assert resp.json() == {"valid": True, "error": None, "task_id": None}

    async def test_not_found(self, client: AsyncClient):
        resp = await client.get("/api/v1/protocols/00000000-0000-0000-0000-000000000000")
        assert resp.status_code == 404

    async def test_bad_id(self, client: AsyncClient):
        resp = await client.get("/api/v1/protocols/not-a-uuid")
        assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Patients
# ---------------------------------------------------------------------------

class TestPatients:
    async def test_current_day(self, client: AsyncClient, patient_id):
        resp = await client.get(f"/api/v1/patients/{patient_id}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["current_day"] == 10
        assert data["current_day_label"] == "Post-Op 10"
        assert data["current_phase"] == "early_recovery"

    async def test_list(self, client: AsyncClient, patient_id):
        resp = await client.get("/api/v1/patients")
        assert [p["id"] for p in resp.json()] == [patient_id]

    async def test_unknown_patient(self, client: AsyncClient):
        resp = await client.get("/api/v1/patients/00000000-0000-0000-0000-000000000000")
        assert resp.status_code == 404

    async def test_assign_unknown_protocol(self, client: AsyncClient, patient_id):
        resp = await client.put(
            f"/api/v1/patients/{patient_id}/protocol",
            json={"protocol_id": "00000000-0000-0000-0000-000000000000"},
        )
        assert resp.status_code == 404

    async def test_reassign_protocol(self, client: AsyncClient, patient_id):
        resp = await client.post("/api/v1/protocols", json={
            "name": "Knee Minimal", "surgery_type": "TKA",
            "tasks": [make_task("checkin", 0).model_dump(mode="json")],
        })
        new_id = resp.json()["id"]

        resp = await client.put(f"/api/v1/patients/{patient_id}/protocol", json={"protocol_id": new_id})
        assert resp.status_code == 200
        assert resp.json()["protocol_id"] == new_id

        resp = await client.get(f"/api/v1/patients/{patient_id}/days/0")
        assert [t["task_definition_id"] for t in resp.json()["tasks"]] == ["checkin"]

    async def test_surgery_type_phase_table(self, client: AsyncClient, protocol_id, fine_knee_phases):
        surgery = today_in("UTC") - timedelta(days=5)
        ids = {}
        for surgery_type in ("TKA", "THA"):
            resp = await client.post("/api/v1/patients", json={
                "first_name": "Ada", "last_name": surgery_type,
                "surgery_date": surgery.isoformat(), "surgery_type": surgery_type,
                "protocol_id": protocol_id,
            })
            ids[surgery_type] = resp.json()["id"]
            assert resp.json()["current_day"] == 5

        resp = await client.get(f"/api/v1/patients/{ids['TKA']}")
        assert resp.json()["current_phase"] == "early_recovery"
        resp = await client.get(f"/api/v1/patients/{ids['THA']}")
        assert resp.json()["current_phase"] == "immediate_post_op"

        resp = await client.get(f"/api/v1/patients/{ids['TKA']}/days/5")
        assert "early-video" in [t["task_definition_id"] for t in resp.json()["tasks"]]
        resp = await client.get(f"/api/v1/patients/{ids['THA']}/days/5")
        assert "early-video" not in [t["task_definition_id"] for t in resp.json()["tasks"]]

    async def test_patient_without_protocol(self, client: AsyncClient):
        resp = await client.post("/api/v1/patients", json={
            "first_name": "Grace", "last_name": "Hopper",
            "surgery_date": today_in("UTC").isoformat(), "surgery_type": "THA",
        })
        pid = resp.json()["id"]

        resp = await client.get(f"/api/v1/patients/{pid}/timeline", params={"start": -2, "end": 2})
        assert resp.status_code == 200
        assert all(d["day_status"] == "none" for d in resp.json()["days"])


# ---------------------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------------------

class TestTimeline:
    async def test_range(self, client: AsyncClient, patient_id):
        resp = await client.get(
            f"/api/v1/patients/{patient_id}/timeline", params={"start": -5, "end": 20}
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["current_day"] == 10
        assert [d["day"] for d in data["days"]] == list(range(-5, 21))
        assert data["current_week_number"] is not None
        week_days = [d["day"] for w in data["weeks"] for d in w["days"]]
        assert week_days == list(range(-5, 21))

    async def test_default_range(self, client: AsyncClient, patient_id):
        resp = await client.get(f"/api/v1/patients/{patient_id}/timeline")
        days = resp.json()["days"]
        assert days[0]["day"] == -45
        assert days[-1]["day"] == 200

    async def test_start_after_end(self, client: AsyncClient, patient_id):
        resp = await client.get(
            f"/api/v1/patients/{patient_id}/timeline", params={"start": 5, "end": 1}
        )
        assert resp.status_code == 400

    async def test_week_lookup(self, client: AsyncClient, patient_id):
        resp = await client.get(f"/api/v1/patients/{patient_id}/timeline/weeks/3")
        assert resp.status_code == 200
        assert resp.json()["label"] == "Week 1"

        resp = await client.get(f"/api/v1/patients/{patient_id}/timeline/weeks/500")
        assert resp.status_code == 404

    async def test_day_detail(self, client: AsyncClient, patient_id):
        resp = await client.get(f"/api/v1/patients/{patient_id}/days/2")
        assert resp.status_code == 200
        data = resp.json()
        assert data["summary"]["day_status"] == "missed"
        assert data["summary"]["missed_task_titles"] == ["Daily Exercises"]
        assert [t["task_definition_id"] for t in data["tasks"]] == ["daily-exercises", "pain-diary"]

    async def test_catch_up(self, client: AsyncClient, patient_id):
        resp = await client.get(f"/api/v1/patients/{patient_id}/catch-up")
        assert resp.status_code == 200
        assert [d["day"] for d in resp.json()] == [-14, 0, 1, 2, 3, 4, 5, 6, 7, 8, 9]

    async def test_conversation_flag(self, client: AsyncClient, patient_id):
        resp = await client.post(
            f"/api/v1/patients/{patient_id}/messages", json={"content": "Swelling is down"}
        )
        assert resp.status_code == 201
        assert resp.json()["recovery_day"] == 10

        resp = await client.get(f"/api/v1/patients/{patient_id}/days/10")
        assert resp.json()["summary"]["has_conversation"] is True
        resp = await client.get(f"/api/v1/patients/{patient_id}/days/9")
        assert resp.json()["summary"]["has_conversation"] is False


# ---------------------------------------------------------------------------
# Task status
# ---------------------------------------------------------------------------

class TestTaskStatus:
    async def test_complete_missed_task(self, client: AsyncClient, patient_id):
        resp = await client.post(
            _status_url(patient_id, "daily-exercises", 2),
            json={"status": "completed", "completion_data": {"reps": 10}},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "completed"
        assert data["changed"] is True
        assert data["completed_at"] is not None

        resp = await client.get(f"/api/v1/patients/{patient_id}/days/2")
        summary = resp.json()["summary"]
        assert summary["task_counts"]["completed"] == 1
        assert summary["task_counts"]["missed"] == 0
        assert summary["day_status"] == "pending"

    async def test_repeat_completion_is_noop(self, client: AsyncClient, patient_id):
        url = _status_url(patient_id, "surgery-checkin", 0)
        first = await client.post(url, json={"status": "completed"})
        second = await client.post(url, json={"status": "completed"})
        assert second.status_code == 200
        assert second.json()["changed"] is False
        assert second.json()["status"] == first.json()["status"] == "completed"

    async def test_conflicting_change(self, client: AsyncClient, patient_id):
        url = _status_url(patient_id, "surgery-checkin", 0)
        await client.post(url, json={"status": "skipped"})
        resp = await client.post(url, json={"status": "completed"})
        assert resp.status_code == 409

    async def test_future_day_rejected(self, client: AsyncClient, patient_id):
        resp = await client.post(
            _status_url(patient_id, "daily-exercises", 25), json={"status": "completed"}
        )
        assert resp.status_code == 409

        resp = await client.get(f"/api/v1/patients/{patient_id}/days/25")
        data = resp.json()
        assert data["summary"]["is_future"] is True
        assert data["summary"]["task_counts"]["completed"] == 0
        assert {t["status"] for t in data["tasks"]} == {"upcoming"}

    async def test_unscheduled_day(self, client: AsyncClient, patient_id):
        resp = await client.post(
            _status_url(patient_id, "daily-exercises", 45), json={"status": "completed"}
        )
        assert resp.status_code == 404

    async def test_unknown_task(self, client: AsyncClient, patient_id):
        resp = await client.post(_status_url(patient_id, "nope", 2), json={"status": "completed"})
        assert resp.status_code == 404

    async def test_pending_is_not_a_valid_request(self, client: AsyncClient, patient_id):
        resp = await client.post(
            _status_url(patient_id, "daily-exercises", 2), json={"status": "pending"}
        )
        assert resp.status_code == 422
