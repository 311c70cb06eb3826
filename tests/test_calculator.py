"""Tests for the forecast calculation orchestrator."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from src.engine.calculator import ForecastCalculator, calculate_forecast
from src.engine.errors import CalculationRangeError, GraphValidationError
from src.engine.types import (
    ForecastEdge,
    ForecastNode,
    NodeKind,
    TimeSeriesPoint,
    Variable,
    VariableType,
)


def node(node_id, kind, **attributes):
    return ForecastNode(id=node_id, kind=kind, attributes=attributes)


def edge(source, target, input_order=None):
    return ForecastEdge(
        id=f"{source}->{target}",
        source_node_id=source,
        target_node_id=target,
        input_order=input_order,
    )


def monthly(variable_id, start_year, start_month, values, variable_type=VariableType.ACTUAL):
    points = []
    for i, value in enumerate(values):
        index = start_year * 12 + start_month - 1 + i
        points.append(TimeSeriesPoint(
            date=date(index // 12, index % 12 + 1, 15),
            value=None if value is None else Decimal(str(value)),
        ))
    return Variable(id=variable_id, type=variable_type, time_series=points)


def revenue_graph():
    """revenue = volume * price, budget from a BUDGET variable."""
    nodes = [
        node("volume", "DATA", variable_id="v-volume"),
        node("price", "CONSTANT", value="2.5"),
        node("mult", "OPERATOR", op="*"),
        node("revenue", "METRIC", label="Revenue", budget_variable_id="v-budget"),
    ]
    edges = [edge("volume", "mult", 0), edge("price", "mult", 1), edge("mult", "revenue")]
    variables = [
        monthly("v-volume", 2025, 1, [100, 120, None, 90]),
        monthly("v-budget", 2025, 1, [260, 260, 260, 260], VariableType.BUDGET),
    ]
    return nodes, edges, variables


def calculator():
    return ForecastCalculator(max_months=120)


class TestForecastCalculator:
    """Tests for ForecastCalculator.calculate."""

    def test_one_row_per_month(self):
        """Each metric gets one first-of-month row per month in the range."""
        nodes, edges, variables = revenue_graph()

        result = calculator().calculate(
            "fc-1", nodes, edges, variables, date(2025, 1, 20), date(2025, 4, 3)
        )

        values = result.get_metric("revenue").values
        assert [v.date for v in values] == [date(2025, m, 1) for m in range(1, 5)]
        assert [v.forecast for v in values] == [Decimal(250), Decimal(300), None, Decimal(225)]
        assert all(v.budget == Decimal(260) for v in values)
        assert all(v.historical is None for v in values)

    def test_result_metadata(self):
        """Result carries the forecast id and a UTC timestamp."""
        nodes, edges, variables = revenue_graph()

        result = calculator().calculate("fc-1", nodes, edges, variables, date(2025, 1, 1), date(2025, 1, 1))

        assert result.forecast_id == "fc-1"
        assert isinstance(result.calculated_at, datetime)
        assert result.calculated_at.tzinfo is not None
        assert [m.metric_node_id for m in result.metrics] == ["revenue"]
        assert result.all_nodes is None

    def test_empty_range(self):
        """An inverted range gives empty series."""
        nodes, edges, variables = revenue_graph()

        result = calculator().calculate("fc-1", nodes, edges, variables, date(2025, 4, 1), date(2025, 1, 1))

        assert result.get_metric("revenue").values == []

    def test_deterministic(self):
        """Repeated runs give identical metric values."""
        nodes, edges, variables = revenue_graph()
        calc = calculator()

        first = calc.calculate("fc-1", nodes, edges, variables, date(2025, 1, 1), date(2025, 4, 1))
        second = calc.calculate("fc-1", nodes, edges, variables, date(2025, 1, 1), date(2025, 4, 1))

        assert first.metrics == second.metrics
        assert first.warnings == second.warnings

    def test_cycle_raises_before_evaluation(self):
        """A cycle aborts the run with the cycle's node ids."""
        nodes = [
            node("A", "OPERATOR", op="+"),
            node("B", "OPERATOR", op="+"),
            node("C", "OPERATOR", op="+"),
            node("m", "METRIC", label="M"),
        ]
        edges = [edge("A", "B"), edge("B", "C"), edge("C", "A"), edge("C", "m")]

        with pytest.raises(GraphValidationError) as exc_info:
            calculator().calculate("fc-1", nodes, edges, [], date(2025, 1, 1), date(2025, 12, 1))

        assert any("A" in e and "B" in e and "C" in e for e in exc_info.value.errors)

    def test_range_limit(self):
        """A range longer than max_months is rejected."""
        nodes, edges, variables = revenue_graph()

        with pytest.raises(CalculationRangeError):
            ForecastCalculator(max_months=12).calculate(
                "fc-1", nodes, edges, variables, date(2025, 1, 1), date(2026, 1, 1)
            )

    def test_every_metric_calculated(self):
        """Metrics feeding other metrics get their own rows."""
        nodes, edges, variables = revenue_graph()
        nodes += [
            node("two", "CONSTANT", value=2),
            node("double", "OPERATOR", op="*"),
            node("doubled", "METRIC", label="Doubled revenue"),
        ]
        edges += [edge("revenue", "double", 0), edge("two", "double", 1), edge("double", "doubled")]

        result = calculator().calculate("fc-1", nodes, edges, variables, date(2025, 1, 1), date(2025, 2, 1))

        assert [m.metric_node_id for m in result.metrics] == ["revenue", "doubled"]
        assert [v.forecast for v in result.get_metric("doubled").values] == [Decimal(500), Decimal(600)]

    def test_seed_growth_across_months(self):
        """SEED values compound month over month."""
        nodes = [node("s", "SEED", base_value=100, growth_rate=10), node("m", "METRIC", label="Seeded")]

        result = calculator().calculate("fc-1", nodes, [edge("s", "m")], [], date(2025, 1, 1), date(2025, 3, 1))

        assert [v.forecast for v in result.get_metric("m").values] == [Decimal(100), Decimal(110), Decimal(121)]

    def test_seed_from_source_metric(self):
        """A SEED continues from its source metric's previous month."""
        nodes = [
            node("s", "SEED", source_metric_id="sales"),
            node("growth", "CONSTANT", value=2),
            node("add", "OPERATOR", op="+"),
            node("sales", "METRIC", label="Sales", historical_variable_id="v-actual"),
        ]
        edges = [edge("s", "add"), edge("growth", "add"), edge("add", "sales")]
        variables = [monthly("v-actual", 2024, 11, [8, 10])]

        result = calculator().calculate("fc-1", nodes, edges, variables, date(2025, 1, 1), date(2025, 3, 1))

        values = result.get_metric("sales").values
        assert [v.forecast for v in values] == [Decimal(12), Decimal(14), Decimal(16)]
        assert [v.historical for v in values] == [None, None, None]

    def test_all_nodes(self):
        """Per-node rows cover reachable nodes in declaration order."""
        nodes, edges, variables = revenue_graph()
        nodes.append(node("orphan", "CONSTANT", value=1))

        result = calculator().calculate(
            "fc-1", nodes, edges, variables, date(2025, 1, 1), date(2025, 2, 1), include_all_nodes=True
        )

        by_id = {n.node_id: n for n in result.all_nodes}
        assert list(by_id) == ["volume", "price", "mult", "revenue"]
        assert by_id["mult"].node_type == NodeKind.OPERATOR
        assert [v.calculated for v in by_id["volume"].values] == [Decimal(100), Decimal(120)]
        assert [v.calculated for v in by_id["revenue"].values] == [Decimal(250), Decimal(300)]

    def test_warnings_collected(self):
        """Validation and evaluation warnings end up in the result."""
        nodes = [
            node("num", "CONSTANT", value=10),
            node("den", "DATA", variable_id="v-den"),
            node("div", "OPERATOR", op="/"),
            node("m", "METRIC", label="Ratio"),
            node("lonely", "METRIC", label="Lonely"),
        ]
        edges = [edge("num", "div", 0), edge("den", "div", 1), edge("div", "m")]
        variables = [monthly("v-den", 2025, 1, [5, 0])]

        result = calculator().calculate("fc-1", nodes, edges, variables, date(2025, 1, 1), date(2025, 2, 1))

        assert [v.forecast for v in result.get_metric("m").values] == [Decimal(2), None]
        assert [v.forecast for v in result.get_metric("lonely").values] == [None, None]
        assert "Division by zero at node div in 2025-02" in result.warnings
        assert any("lonely" in w for w in result.warnings)

    def test_to_dict_is_json_ready(self):
        """to_dict gives ISO dates, float numbers and explicit nulls."""
        nodes, edges, variables = revenue_graph()

        data = calculator().calculate(
            "fc-1", nodes, edges, variables, date(2025, 3, 1), date(2025, 3, 1)
        ).to_dict()

        row = data["metrics"][0]["values"][0]
        assert row == {"date": "2025-03-01", "forecast": None, "budget": 260.0, "historical": None}
        assert "all_nodes" not in data

    def test_float_variable_values_mix_with_constants(self):
        """Plain float points combine with Decimal constants instead of aborting the run."""
        nodes = [
            node("v", "DATA", variable_id="v-float"),
            node("five", "CONSTANT", value=5),
            node("add", "OPERATOR", op="+"),
            node("m", "METRIC", label="Float input"),
        ]
        edges = [edge("v", "add", 0), edge("five", "add", 1), edge("add", "m")]
        variables = [Variable(id="v-float", time_series=[TimeSeriesPoint(date=date(2025, 1, 1), value=10.5)])]

        result = calculator().calculate("fc-1", nodes, edges, variables, date(2025, 1, 1), date(2025, 1, 1))

        assert result.get_metric("m").values[0].forecast == Decimal("15.5")


class TestCalculateForecast:
    """Tests for the calculate_forecast convenience function."""

    def test_uses_defaults(self):
        """calculate_forecast runs with the configured defaults."""
        nodes, edges, variables = revenue_graph()

        result = calculate_forecast("fc-2", nodes, edges, variables, date(2025, 1, 1), date(2025, 2, 1))

        assert result.forecast_id == "fc-2"
        assert len(result.get_metric("revenue").values) == 2
