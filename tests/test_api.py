import pytest
from fastapi.testclient import TestClient

from database import build_engine, build_sessionmaker, init_db
from main import app, get_db


@pytest.fixture()
def client():
    engine = build_engine("sqlite://")
    init_db(engine)
    TestingSession = build_sessionmaker(engine)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _payload(**overrides):
    data = {
        "type": "expense",
        "amount": "89.90",
        "category": "Utilities",
        "description": "Internet",
        "anchor_date": "2024-01-10",
        "status": "paid",
        "recurrence_kind": "monthly",
        "recurrence_end_date": "2024-03-10",
    }
    data.update(overrides)
    return data


def test_create_and_read_transaction(client) -> None:
    created = client.post("/api/transactions", json=_payload())
    assert created.status_code == 201
    body = created.json()
    assert body["amount_cents"] == 8_990
    assert body["recurrence_kind"] == "monthly"

    fetched = client.get(f"/api/transactions/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["description"] == "Internet"

    assert client.get("/api/transactions/999").status_code == 404


def test_invalid_payloads_are_rejected(client) -> None:
    assert client.post("/api/transactions", json=_payload(amount="0")).status_code == 400
    assert (
        client.post(
            "/api/transactions", json=_payload(recurrence_end_date="2023-01-01")
        ).status_code
        == 400
    )
    assert client.post("/api/transactions", json=_payload(type="gift")).status_code == 400


def test_occurrences_and_summary_for_custom_period(client) -> None:
    client.post("/api/transactions", json=_payload())
    client.post(
        "/api/transactions",
        json=_payload(
            type="income",
            amount="500",
            category="Salary",
            description="Salary",
            anchor_date="2024-02-05",
            recurrence_kind="none",
            recurrence_end_date=None,
        ),
    )

    params = {"period": "custom", "start": "2024-02-01", "end": "2024-02-29"}
    occurrences = client.get("/api/occurrences", params=params).json()
    assert [item["occurrence_date"] for item in occurrences["items"]] == [
        "2024-02-10",
        "2024-02-05",
    ]

    summary = client.get("/api/summary", params=params).json()
    assert summary["total_income"] == 50_000
    assert summary["total_expense"] == 8_990
    assert summary["balance"] == 41_010

    bad = client.get(
        "/api/summary",
        params={"period": "custom", "start": "2024-03-01", "end": "2024-02-01"},
    )
    assert bad.status_code == 400


def test_toggle_and_delete(client) -> None:
    created = client.post("/api/transactions", json=_payload()).json()

    toggled = client.post(f"/api/transactions/{created['id']}/toggle-status")
    assert toggled.json()["status"] == "pending"

    patched = client.patch(
        f"/api/transactions/{created['id']}", json={"recurrence_kind": "none"}
    )
    assert patched.status_code == 200
    assert patched.json()["recurrence_end_date"] is None

    deleted = client.delete(f"/api/transactions/{created['id']}")
    assert deleted.json() == {"removed": 1}
    assert client.get("/api/transactions").json()["items"] == []


def test_cumulative_and_settings(client) -> None:
    assert client.put("/api/settings", json={"emergency_fund": "1000"}).status_code == 200
    assert client.get("/api/settings").json() == {
        "emergency_fund_cents": 100_000,
        "currency_code": "BRL",
    }
    client.post(
        "/api/transactions",
        json=_payload(
            amount="250",
            anchor_date="2024-01-15",
            recurrence_kind="none",
            recurrence_end_date=None,
        ),
    )

    result = client.get("/api/cumulative", params={"up_to": "2024-01-31"}).json()
    assert result["emergency_fund_used"] == 25_000
    assert result["emergency_fund_remaining"] == 75_000


def test_calendar_and_categories(client) -> None:
    assert client.get("/api/calendar/2024/13").status_code == 400
    days = client.get("/api/calendar/2024/2").json()["days"]
    assert len(days) == 35

    categories = client.get("/api/categories", params={"type": "income"}).json()
    assert "Salary" in [item["name"] for item in categories["items"]]
    suggestions = client.get(
        "/api/categories/suggest", params={"type": "expense", "q": "Fod"}
    ).json()
    assert suggestions["items"] == ["Food"]
