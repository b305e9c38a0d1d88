import pytest
from httpx import ASGITransport, AsyncClient

from school_earnings.main import app

from tests.conftest import MONTH


CONFIG_BODY = {
    "mainBaseRate": 50,
    "referralBaseRate": 40,
    "leavePenaltyMultiplier": 3,
    "leaveThreshold": 5,
    "unpaidPenaltyMultiplier": 2,
    "referralBonusMultiplier": 4,
    "targetEarnings": 3000,
}


@pytest.fixture
async def client(seeded):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def test_controller_earnings_report(client):
    response = await client.get(f"/api/v1/schools/al-noor/controller-earnings?month={MONTH}")
    assert response.status_code == 200

    body = response.json()
    assert body["message"] == "Controller earnings retrieved successfully"
    assert [e["controllerId"] for e in body["earnings"]] == ["C1", "C2"]

    c1 = body["earnings"][0]
    assert c1["activeStudents"] == 6
    assert c1["unpaidActiveThisMonth"] == 1
    assert c1["referencedActiveStudents"] == 2
    assert c1["totalEarnings"] == 480
    assert c1["previousMonthEarnings"] == 160
    assert c1["teamName"] == "Default Team"

    assert body["summary"]["totalControllers"] == 2
    assert body["summary"]["totalEarnings"] == 640
    assert body["summary"]["averageEarnings"] == 320
    assert len(body["teamStats"]) == 1
    assert body["teamStats"][0]["totalActiveStudents"] == 12


async def test_controller_filter(client):
    response = await client.get(
        "/api/v1/schools/al-noor/controller-earnings",
        params={"month": MONTH, "controllerId": "c2"},
    )
    assert response.status_code == 200
    assert [e["controllerId"] for e in response.json()["earnings"]] == ["C2"]


async def test_invalid_month(client):
    response = await client.get("/api/v1/schools/al-noor/controller-earnings?month=2026-13")
    assert response.status_code == 400


async def test_unknown_school(client):
    response = await client.get(f"/api/v1/schools/nowhere/controller-earnings?month={MONTH}")
    assert response.status_code == 404


async def test_calculation_failure_body(client, monkeypatch):
    from school_earnings.services.earnings.ledger_reader import LedgerReader

    async def broken_aggregates(self, window, school_id=None, controller_id=None):
        raise RuntimeError("boom")

    monkeypatch.setattr(LedgerReader, "load_aggregates", broken_aggregates)

    response = await client.get(f"/api/v1/schools/al-noor/controller-earnings?month={MONTH}")
    assert response.status_code == 500
    assert response.json() == {
        "message": "Error calculating earnings",
        "error": "Failed to calculate controller earnings: boom",
    }


async def test_config_lifecycle(client):
    response = await client.get("/api/v1/schools/al-noor/controller-earnings-config")
    assert response.status_code == 200
    assert response.json() == {"current": None, "history": []}

    response = await client.post(
        "/api/v1/schools/al-noor/controller-earnings-config",
        json=CONFIG_BODY,
        headers={"X-Admin-Id": "admin-1"},
    )
    assert response.status_code == 201
    created = response.json()
    assert created["mainBaseRate"] == 50
    assert created["isActive"] is True
    assert created["adminId"] == "admin-1"
    assert created["schoolId"] == "school-1"

    response = await client.get("/api/v1/schools/al-noor/controller-earnings-config")
    body = response.json()
    assert body["current"]["id"] == created["id"]
    assert len(body["history"]) == 1

    response = await client.get(f"/api/v1/schools/al-noor/controller-earnings?month={MONTH}")
    c1 = response.json()["earnings"][0]
    assert c1["baseEarnings"] == 300
    assert c1["unpaidPenalty"] == 100


async def test_config_update(client):
    response = await client.post(
        "/api/v1/schools/al-noor/controller-earnings-config", json=CONFIG_BODY
    )
    config_id = response.json()["id"]

    response = await client.put(
        f"/api/v1/schools/al-noor/controller-earnings-config/{config_id}",
        json={**CONFIG_BODY, "targetEarnings": 4000},
    )
    assert response.status_code == 200
    assert response.json()["targetEarnings"] == 4000

    response = await client.put(
        "/api/v1/schools/other/controller-earnings-config/{}".format(config_id),
        json=CONFIG_BODY,
    )
    assert response.status_code == 404


async def test_config_validation(client):
    response = await client.post(
        "/api/v1/schools/al-noor/controller-earnings-config",
        json={**CONFIG_BODY, "leaveThreshold": 50},
    )
    assert response.status_code == 422


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "connected"
