"""Tests for the calculation API routes."""

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.api.main import app
from src.db.postgres import Base, get_db
from src.models import Forecast, ForecastEdge, ForecastNode


def graph_payload(**overrides):
    payload = {
        "forecast_id": "fc-api",
        "nodes": [
            {"id": "units", "kind": "DATA", "attributes": {"variable_id": "v-units"}},
            {"id": "price", "kind": "CONSTANT", "attributes": {"value": 4}},
            {"id": "mult", "kind": "OPERATOR", "attributes": {"op": "*"}},
            {"id": "sales", "kind": "METRIC", "attributes": {"label": "Sales"}},
        ],
        "edges": [
            {"id": "e1", "source_node_id": "units", "target_node_id": "mult", "input_order": 0},
            {"id": "e2", "source_node_id": "price", "target_node_id": "mult", "input_order": 1},
            {"id": "e3", "source_node_id": "mult", "target_node_id": "sales"},
        ],
        "variables": [
            {
                "id": "v-units",
                "type": "ACTUAL",
                "time_series": [
                    {"date": "2025-01-01", "value": 5},
                    {"date": "2025-02-01", "value": None},
                ],
            },
        ],
        "forecast_start_date": "2025-01-01",
        "forecast_end_date": "2025-02-28",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db_client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    session = SessionLocal()
    forecast = Forecast(
        id="fc-db",
        name="Stored",
        organization_id="org-1",
        forecast_start_date=date(2025, 1, 1),
        forecast_end_date=date(2025, 2, 1),
    )
    forecast.nodes = [
        ForecastNode(id="c", kind="CONSTANT", attributes={"value": "1.5"}),
        ForecastNode(id="m", kind="METRIC", attributes={"label": "Constant metric"}),
    ]
    forecast.edges = [ForecastEdge(id="e", source_node_id="c", target_node_id="m")]
    session.add(forecast)
    session.commit()
    session.close()

    def override_get_db():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        engine.dispose()


class TestStatelessCalculation:
    """Tests for POST /api/calculations."""

    def test_calculates_graph(self, client):
        """Posted graph is calculated with nulls kept and dates as ISO strings."""
        response = client.post("/api/calculations", json=graph_payload())

        assert response.status_code == 200
        data = response.json()
        assert data["forecast_id"] == "fc-api"
        values = data["metrics"][0]["values"]
        assert values[0] == {"date": "2025-01-01", "forecast": 20.0, "budget": None, "historical": None}
        assert values[1]["date"] == "2025-02-01"
        assert values[1]["forecast"] is None
        assert "forecast" in values[1]

    def test_all_nodes(self, client):
        """include_all_nodes adds per-node rows with their calculated value."""
        response = client.post("/api/calculations", json=graph_payload(include_all_nodes=True))

        nodes = {n["node_id"]: n for n in response.json()["all_nodes"]}
        assert nodes["mult"]["node_type"] == "OPERATOR"
        assert nodes["units"]["values"][0]["calculated"] == 5.0

    def test_cycle_is_rejected(self, client):
        """A cyclic graph is a 400 listing the cycle."""
        payload = graph_payload()
        payload["edges"].append({"id": "e4", "source_node_id": "sales", "target_node_id": "mult"})

        response = client.post("/api/calculations", json=payload)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert any("cycle" in e for e in detail["errors"])

    def test_range_too_long(self, client):
        """A horizon over the month limit is a 400."""
        response = client.post(
            "/api/calculations",
            json=graph_payload(forecast_end_date="2100-01-01"),
        )

        assert response.status_code == 400

    def test_bad_request_body(self, client):
        """A body without dates fails request validation."""
        response = client.post("/api/calculations", json={"nodes": []})

        assert response.status_code == 422


class TestValidateGraph:
    """Tests for POST /api/graphs/validate."""

    def test_valid(self, client):
        """A well-formed graph validates with no errors or warnings."""
        payload = graph_payload()
        response = client.post(
            "/api/graphs/validate",
            json={"nodes": payload["nodes"], "edges": payload["edges"]},
        )

        assert response.status_code == 200
        assert response.json() == {"is_valid": True, "errors": [], "warnings": []}

    def test_dangling_edge(self, client):
        """An edge to a missing node is reported by id."""
        response = client.post(
            "/api/graphs/validate",
            json={
                "nodes": [{"id": "m", "kind": "METRIC", "attributes": {"label": "M"}}],
                "edges": [{"id": "e1", "source_node_id": "ghost", "target_node_id": "m"}],
            },
        )

        data = response.json()
        assert data["is_valid"] is False
        assert data["errors"] == ["Edge e1 references non-existent source node: ghost"]


class TestStoredForecasts:
    """Tests for stored forecast routes."""

    def test_calculate_and_fetch(self, db_client):
        """A stored calculation is returned by latest and history."""
        response = db_client.post("/api/forecasts/fc-db/calculate")

        assert response.status_code == 200
        stored = response.json()
        assert stored["id"]
        assert [v["forecast"] for v in stored["metrics"][0]["values"]] == [1.5, 1.5]

        latest = db_client.get("/api/forecasts/fc-db/calculations/latest")
        assert latest.status_code == 200
        assert latest.json()["id"] == stored["id"]

        history = db_client.get("/api/forecasts/fc-db/calculations")
        assert [r["id"] for r in history.json()] == [stored["id"]]

    def test_latest_without_results(self, db_client):
        """Latest is a 404 before any calculation."""
        response = db_client.get("/api/forecasts/fc-db/calculations/latest")

        assert response.status_code == 404

    def test_unknown_forecast(self, db_client):
        """Calculating a missing forecast is a 404."""
        response = db_client.post("/api/forecasts/missing/calculate")

        assert response.status_code == 404


class TestRoot:
    """Tests for the service root."""

    def test_status(self, client):
        """Root reports ok."""
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
