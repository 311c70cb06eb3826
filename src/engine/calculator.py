"""Forecast calculation orchestrator.

Runs a full calculation for one forecast:
1. Validate the graph (structural errors abort before any month is evaluated)
2. Generate the month sequence for the forecast horizon
3. Build one calculation tree per METRIC node
4. Evaluate every metric for every month, months in ascending order
5. Assemble forecast/budget/historical rows per metric (and optionally per node)

All mutable state lives in a CalculationContext created per call, so
concurrent calls for different forecasts do not interact.
"""

import logging
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Sequence

from src.config import Config
from src.engine.errors import CalculationError, CalculationRangeError, GraphValidationError
from src.engine.evaluator import CalculationContext, NodeEvaluator
from src.engine.graph import ForecastGraph
from src.engine.tree_builder import CalculationTreeBuilder
from src.engine.types import (
    CalculationTree,
    CalculationTreeNode,
    Channel,
    ForecastCalculationResult,
    ForecastEdge,
    ForecastNode,
    GrowthMode,
    MetricCalculationResult,
    MonthlyForecastValue,
    MonthlyNodeValue,
    NodeCalculationResult,
    ValueSourcePolicy,
    Variable,
)
from src.engine.validation import GraphValidator
from src.engine.variable_data import VariableDataAccessor, month_range

logger = logging.getLogger(__name__)


class ForecastCalculator:
    """Drives evaluation of a forecast graph across its month range.

    Args:
        value_source_policy: Where metric budget/historical values come from
            (defaults to Config.VALUE_SOURCE_POLICY)
        default_growth_mode: SEED growth rule when a node declares none
            (defaults to Config.SEED_GROWTH_MODE)
        max_months: Longest accepted horizon (defaults to Config.FORECAST_MAX_MONTHS)
    """

    def __init__(
        self,
        value_source_policy: Optional[ValueSourcePolicy] = None,
        default_growth_mode: Optional[GrowthMode] = None,
        max_months: Optional[int] = None,
        validator: Optional[GraphValidator] = None,
        tree_builder: Optional[CalculationTreeBuilder] = None,
    ):
        self.value_source_policy = ValueSourcePolicy(value_source_policy or Config.VALUE_SOURCE_POLICY)
        self.default_growth_mode = GrowthMode(default_growth_mode or Config.SEED_GROWTH_MODE)
        self.max_months = max_months if max_months is not None else Config.FORECAST_MAX_MONTHS
        self.validator = validator or GraphValidator()
        self.tree_builder = tree_builder or CalculationTreeBuilder()

    def calculate(
        self,
        forecast_id: Optional[str],
        nodes: Sequence[ForecastNode],
        edges: Sequence[ForecastEdge],
        variables: Sequence[Variable],
        forecast_start_date,
        forecast_end_date,
        include_all_nodes: Optional[bool] = None,
    ) -> ForecastCalculationResult:
        """Calculate every metric of a forecast over its month range.

        Args:
            forecast_id: Forecast identifier echoed into the result
            nodes: Graph nodes of the forecast
            edges: Graph edges of the forecast
            variables: Variables with their time series
            forecast_start_date: First month of the horizon (any day)
            forecast_end_date: Last month of the horizon (any day), inclusive
            include_all_nodes: Also return per-node results
                (defaults to Config.INCLUDE_ALL_NODES)

        Returns:
            ForecastCalculationResult stamped with the calculation time

        Raises:
            GraphValidationError: If the graph is structurally invalid
            CalculationRangeError: If the horizon exceeds max_months
            CalculationError: On internal faults during evaluation
        """
        if include_all_nodes is None:
            include_all_nodes = Config.INCLUDE_ALL_NODES

        logger.info(
            f"Starting calculation for forecast {forecast_id}: {len(nodes)} nodes, "
            f"{len(edges)} edges, {len(variables)} variables"
        )

        graph = ForecastGraph(nodes, edges)
        validation = self.validator.validate_graph(graph)
        if not validation.is_valid:
            logger.error(f"Graph validation failed for forecast {forecast_id}: {list(validation.errors)}")
            raise GraphValidationError(list(validation.errors), list(validation.warnings))
        for warning in validation.warnings:
            logger.warning(f"Forecast {forecast_id}: {warning}")

        months = month_range(forecast_start_date, forecast_end_date)
        if len(months) > self.max_months:
            raise CalculationRangeError(
                f"Forecast range spans {len(months)} months; the maximum is {self.max_months}"
            )
        logger.info(f"Forecast period: {forecast_start_date} to {forecast_end_date} ({len(months)} months)")

        try:
            trees = self.tree_builder.build_all(nodes, edges, graph=graph)
            context = CalculationContext(
                variables=variables,
                forecast_start=months[0] if months else forecast_start_date,
                metric_trees={tree.root_metric_node_id: tree for tree in trees},
                value_source_policy=self.value_source_policy,
                default_growth_mode=self.default_growth_mode,
            )
            evaluator = NodeEvaluator(VariableDataAccessor())

            rows: Dict[str, List[MonthlyForecastValue]] = {tree.root_metric_node_id: [] for tree in trees}
            for month in months:
                for tree in trees:
                    values = {
                        channel: evaluator.evaluate(tree.tree, month, context, channel)
                        for channel in Channel
                    }
                    rows[tree.root_metric_node_id].append(MonthlyForecastValue(
                        date=month,
                        forecast=values[Channel.FORECAST],
                        budget=values[Channel.BUDGET],
                        historical=values[Channel.HISTORICAL],
                    ))

            all_nodes = None
            if include_all_nodes:
                all_nodes = self._node_results(graph, trees, months, evaluator, context)
        except CalculationError:
            logger.exception(f"Calculation failed for forecast {forecast_id}")
            raise
        except Exception as e:
            logger.exception(f"Calculation failed for forecast {forecast_id}")
            raise CalculationError(f"Forecast calculation failed: {e}") from e

        result = ForecastCalculationResult(
            forecast_id=forecast_id,
            calculated_at=datetime.now(timezone.utc),
            metrics=[
                MetricCalculationResult(metric_node_id=metric_id, values=values)
                for metric_id, values in rows.items()
            ],
            all_nodes=all_nodes,
            warnings=list(validation.warnings) + context.warnings,
        )
        logger.info(f"Calculation complete for forecast {forecast_id}: {len(result.metrics)} metrics")
        return result

    def _node_results(
        self,
        graph: ForecastGraph,
        trees: List[CalculationTree],
        months: List[date],
        evaluator: NodeEvaluator,
        context: CalculationContext,
    ) -> List[NodeCalculationResult]:
        """Per-node monthly values for every node reachable from a metric."""
        reachable: Dict[str, CalculationTreeNode] = {}
        for tree in trees:
            for tree_node in tree.tree.walk():
                reachable.setdefault(tree_node.node_id, tree_node)

        results = []
        for node in graph.by_id.values():
            tree_node = reachable.get(node.id)
            if tree_node is None:
                continue
            values = []
            for month in months:
                forecast = evaluator.evaluate(tree_node, month, context, Channel.FORECAST)
                budget = evaluator.evaluate(tree_node, month, context, Channel.BUDGET)
                historical = evaluator.evaluate(tree_node, month, context, Channel.HISTORICAL)
                values.append(MonthlyNodeValue(
                    date=month,
                    forecast=forecast,
                    budget=budget,
                    historical=historical,
                    calculated=forecast,
                ))
            results.append(NodeCalculationResult(
                node_id=node.id,
                node_type=tree_node.node_type,
                values=values,
            ))
        return results


def calculate_forecast(
    forecast_id: Optional[str],
    nodes: Sequence[ForecastNode],
    edges: Sequence[ForecastEdge],
    variables: Sequence[Variable],
    forecast_start_date,
    forecast_end_date,
    include_all_nodes: bool = False,
) -> ForecastCalculationResult:
    """Calculate a forecast with the configured defaults."""
    return ForecastCalculator().calculate(
        forecast_id,
        nodes,
        edges,
        variables,
        forecast_start_date,
        forecast_end_date,
        include_all_nodes=include_all_nodes,
    )
