from decimal import Decimal
from pathlib import Path

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from investtrack.api.deps import get_repository
from investtrack.core.config import Settings
from investtrack.db.base import Base
from investtrack.main import app, create_app
from investtrack.services.repository import CollectionCache, PortfolioRepository


def _session() -> Session:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)()


def _client() -> TestClient:
    repo = PortfolioRepository(_session(), CollectionCache())
    app.dependency_overrides[get_repository] = lambda: repo
    return TestClient(app)


def _seed(client: TestClient) -> dict[str, str]:
    etf = client.post("/api/v1/assets", json={"name": "World ETF", "category": "fund"}).json()
    bond = client.post("/api/v1/assets", json={"name": "Deposit", "category": "fixed"}).json()
    policy = client.post(
        "/api/v1/policies",
        json={
            "name": "Core",
            "start_date": "2024-01-01",
            "layers": [
                {
                    "name": "Growth",
                    "weight_pct": "60",
                    "targets": [{"asset_id": etf["id"], "intra_layer_weight_pct": "100"}],
                },
                {
                    "name": "Defensive",
                    "weight_pct": "40",
                    "targets": [{"asset_id": bond["id"]}],
                },
            ],
        },
    )
    assert policy.status_code == 201
    for month, price, quantity, principal, deposit in (
        ("2024-01", "10", "60", "600", "400"),
        ("2024-02", "12", "0", "0", "0"),
    ):
        response = client.post(
            "/api/v1/snapshots",
            json={
                "month": month,
                "holdings": [
                    {
                        "asset_id": etf["id"],
                        "unit_price": price,
                        "quantity_change": quantity,
                        "principal_change": principal,
                    },
                    {"asset_id": bond["id"], "quantity_change": deposit, "principal_change": deposit},
                ],
            },
        )
        assert response.status_code == 201
    return {"etf": etf["id"], "bond": bond["id"], "policy": policy.json()["id"], "growth": policy.json()["layers"][0]["id"]}


def test_health() -> None:
    client = _client()
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    app.dependency_overrides.clear()


def test_dashboard_endpoints_report_latest_snapshot() -> None:
    client = _client()
    ids = _seed(client)

    snapshots = client.get("/api/v1/snapshots").json()
    assert [item["month"] for item in snapshots] == ["2024-02", "2024-01"]

    metrics = client.get("/api/v1/dashboard/metrics", params={"scope": "total", "time_range": "all"}).json()
    assert Decimal(metrics["end_value"]) == Decimal("1120")
    assert Decimal(metrics["profit"]) == Decimal("120")
    assert Decimal(metrics["return_rate"]) == Decimal("12")

    allocation = client.get("/api/v1/dashboard/allocation", params={"scope": "policy"}).json()
    assert [item["name"] for item in allocation] == ["Growth", "Defensive"]
    assert Decimal(allocation[0]["deviation"]) == Decimal("4.285714")

    drilled = client.get("/api/v1/dashboard/allocation", params={"layer_id": ids["growth"]}).json()
    assert [Decimal(item["percent"]) for item in drilled] == [Decimal("100")]

    trend = client.get("/api/v1/dashboard/trend", params={"scope": "policy", "start_month": "2024-02"}).json()
    assert [point["month"] for point in trend] == ["2024-02"]

    breakdown = client.get("/api/v1/dashboard/breakdown", params={"scope": "total"}).json()
    assert [row["id"] for row in breakdown["rows"]] == ["equity", "cash_fixed_income"]
    assert Decimal(breakdown["totals"]["profit"]) == Decimal("120")
    app.dependency_overrides.clear()


def test_error_statuses() -> None:
    client = _client()
    ids = _seed(client)

    assert client.get("/api/v1/snapshots/missing").status_code == 404
    assert client.post("/api/v1/snapshots", json={"month": "2024-13"}).status_code == 422
    assert client.get("/api/v1/dashboard/metrics", params={"time_range": "5y"}).status_code == 422

    clone = client.post("/api/v1/policies/clone", json={"start_date": "2024-06-01"})
    assert clone.status_code == 201
    archived = client.put(
        f"/api/v1/policies/{ids['policy']}",
        json={"name": "Edit", "start_date": "2024-01-01", "layers": []},
    )
    assert archived.status_code == 409

    resolved = client.get("/api/v1/policies/resolve", params={"on": "2024-03"}).json()
    assert resolved["id"] == ids["policy"]
    assert client.get("/api/v1/policies/resolve", params={"on": "2024-06"}).json()["id"] == clone.json()["id"]
    app.dependency_overrides.clear()


def test_app_factory_serves_the_configured_database(tmp_path: Path) -> None:
    url = f"sqlite+pysqlite:///{tmp_path / 'custom.db'}"
    custom = create_app(Settings(database_url=url, seed_demo_data=False))
    with TestClient(custom) as client:
        created = client.post("/api/v1/assets", json={"name": "Gold", "category": "gold"})
        assert created.status_code == 201
        assert [item["name"] for item in client.get("/api/v1/assets").json()] == ["Gold"]

    engine = create_engine(url, future=True)
    with engine.connect() as connection:
        assert connection.execute(text("SELECT name FROM assets")).scalars().all() == ["Gold"]
    engine.dispose()
