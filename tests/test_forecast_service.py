"""Tests for stored-forecast calculation against an in-memory database."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.db.postgres import Base
from src.engine.errors import ForecastNotFoundError, GraphValidationError
from src.engine.forecast_service import (
    calculate_stored_forecast,
    get_calculation_history,
    get_latest_result,
    load_forecast_graph,
)
from src.engine.types import VariableType
from src.models import Forecast, ForecastEdge, ForecastNode, Variable, VariableValue


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def seed_forecast(db, organization_id="org-1"):
    """Store cost = fuel * 3 for Jan-Mar 2025, with a budget variable."""
    forecast = Forecast(
        id="fc-1",
        name="Fuel cost",
        organization_id=organization_id,
        forecast_start_date=date(2025, 1, 1),
        forecast_end_date=date(2025, 3, 31),
    )
    fuel = Variable(id="v-fuel", organization_id=organization_id, name="Fuel", type=VariableType.ACTUAL)
    fuel.values = [
        VariableValue(date=date(2025, 1, 1), value=Decimal("10")),
        VariableValue(date=date(2025, 2, 1), value=Decimal("12")),
        VariableValue(date=date(2025, 3, 1), value=None),
    ]
    budget = Variable(id="v-budget", organization_id=organization_id, name="Budget", type=VariableType.BUDGET)
    budget.values = [VariableValue(date=date(2025, 1, 1), value=Decimal("25"))]
    other_org = Variable(id="v-other", organization_id="org-2", name="Other", type=VariableType.ACTUAL)

    forecast.nodes = [
        ForecastNode(id="n-fuel", kind="DATA", attributes={"variableId": "v-fuel"}),
        ForecastNode(id="n-rate", kind="CONSTANT", attributes={"value": 3}),
        ForecastNode(id="n-mult", kind="OPERATOR", attributes={"op": "*"}),
        ForecastNode(id="n-cost", kind="METRIC", attributes={"label": "Cost", "budgetVariableId": "v-budget"}),
    ]
    forecast.edges = [
        ForecastEdge(id="e1", source_node_id="n-fuel", target_node_id="n-mult", input_order=0),
        ForecastEdge(id="e2", source_node_id="n-rate", target_node_id="n-mult", input_order=1),
        ForecastEdge(id="e3", source_node_id="n-mult", target_node_id="n-cost"),
    ]
    db.add_all([forecast, fuel, budget, other_org])
    db.commit()
    return forecast


class TestLoadForecastGraph:
    """Tests for load_forecast_graph."""

    def test_loads_engine_records(self, db):
        """Nodes, edges and organization variables load as engine records."""
        seed_forecast(db)

        data = load_forecast_graph(db, "fc-1")

        assert [n.id for n in data.nodes] == ["n-cost", "n-fuel", "n-mult", "n-rate"]
        assert [e.id for e in data.edges] == ["e1", "e2", "e3"]
        assert [v.id for v in data.variables] == ["v-budget", "v-fuel"]
        fuel = next(v for v in data.variables if v.id == "v-fuel")
        assert fuel.type == VariableType.ACTUAL
        assert [p.value for p in fuel.time_series] == [Decimal("10"), Decimal("12"), None]

    def test_missing_forecast(self, db):
        """Loading an unknown forecast raises ForecastNotFoundError."""
        with pytest.raises(ForecastNotFoundError):
            load_forecast_graph(db, "nope")


class TestCalculateStoredForecast:
    """Tests for calculate_stored_forecast and result history."""

    def test_stores_snapshot(self, db):
        """The calculation is stored as a JSON snapshot."""
        seed_forecast(db)

        record = calculate_stored_forecast(db, "fc-1")

        assert record.id is not None
        assert record.forecast_id == "fc-1"
        metric = record.metrics[0]
        assert metric["metric_node_id"] == "n-cost"
        assert [v["date"] for v in metric["values"]] == ["2025-01-01", "2025-02-01", "2025-03-01"]
        assert [v["forecast"] for v in metric["values"]] == [30.0, 36.0, None]
        assert [v["budget"] for v in metric["values"]] == [25.0, None, None]
        assert record.all_nodes is None

    def test_stores_all_nodes(self, db):
        """Per-node results are stored on request."""
        seed_forecast(db)

        record = calculate_stored_forecast(db, "fc-1", include_all_nodes=True)

        assert {n["node_id"] for n in record.all_nodes} == {"n-cost", "n-fuel", "n-mult", "n-rate"}
        assert "all_nodes" in record.to_dict()

    def test_graph_is_not_modified(self, db):
        """Calculation never writes nodes, edges or variables."""
        seed_forecast(db)

        calculate_stored_forecast(db, "fc-1")

        assert db.query(ForecastNode).count() == 4
        assert db.query(ForecastEdge).count() == 3
        assert db.query(VariableValue).count() == 4

    def test_invalid_graph_stores_nothing(self, db):
        """A cyclic stored graph raises and stores no result."""
        forecast = seed_forecast(db)
        db.add(ForecastEdge(id="e4", forecast_id=forecast.id, source_node_id="n-cost", target_node_id="n-mult"))
        db.commit()

        with pytest.raises(GraphValidationError):
            calculate_stored_forecast(db, "fc-1")

        assert get_latest_result(db, "fc-1") is None

    def test_history_newest_first(self, db):
        """History lists every run, newest first."""
        seed_forecast(db)

        first = calculate_stored_forecast(db, "fc-1")
        second = calculate_stored_forecast(db, "fc-1")

        history = get_calculation_history(db, "fc-1")
        assert len(history) == 2
        assert {r.id for r in history} == {first.id, second.id}
        assert history[0].calculated_at >= history[1].calculated_at
        assert get_latest_result(db, "fc-1").calculated_at == history[0].calculated_at

    def test_history_for_missing_forecast(self, db):
        """History of an unknown forecast raises ForecastNotFoundError."""
        with pytest.raises(ForecastNotFoundError):
            get_calculation_history(db, "nope")
