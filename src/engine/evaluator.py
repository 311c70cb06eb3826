"""Node evaluation for forecast calculation trees.

Every node is evaluated for one month and one channel (forecast, budget or
historical). Only METRIC and SEED nodes behave differently per channel; the
other kinds give the same value in all three.

Null rules:
- Missing variable data evaluates to None
- An OPERATOR with any None input evaluates to None
- Division by zero evaluates to None and is recorded as a warning
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from src.engine.errors import CalculationError, NodeEvaluationError
from src.engine.types import (
    CalculationTree,
    CalculationTreeNode,
    Channel,
    ConstantAttributes,
    DataAttributes,
    GrowthMode,
    MetricAttributes,
    NodeKind,
    OperatorAttributes,
    OperatorSymbol,
    SeedAttributes,
    ValueSourcePolicy,
    Variable,
    VariableType,
)
from src.engine.variable_data import (
    VariableDataAccessor,
    add_months,
    describe_months,
    normalize_to_first_of_month,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Arithmetic
# =============================================================================

def apply_operator(op: OperatorSymbol, values: Sequence[Optional[Decimal]]) -> Optional[Decimal]:
    """Combine input values in declared order.

    add: sum. subtract: first minus the rest. multiply: product.
    divide: left-to-right division.

    Returns:
        The result, or None if any input is None, there are no inputs,
        or a divisor is zero
    """
    if not values or any(v is None for v in values):
        return None

    if op == OperatorSymbol.ADD:
        return sum(values[1:], values[0])
    if op == OperatorSymbol.SUBTRACT:
        return values[0] - sum(values[1:], Decimal("0"))
    if op == OperatorSymbol.MULTIPLY:
        result = values[0]
        for value in values[1:]:
            result *= value
        return result
    if op == OperatorSymbol.DIVIDE:
        result = values[0]
        for value in values[1:]:
            if value == 0:
                return None
            result /= value
        return result
    raise ValueError(f"unhandled operator {op}")


def apply_growth(previous: Optional[Decimal], rate: Decimal, mode: GrowthMode) -> Optional[Decimal]:
    """Grow a SEED value by one month.

    Args:
        previous: Prior month's value
        rate: Percent per month for PERCENTAGE (10 = 10%), amount per month for ABSOLUTE
        mode: Growth rule
    """
    if previous is None:
        return None
    if mode == GrowthMode.PERCENTAGE:
        return previous * (Decimal("1") + rate / Decimal("100"))
    return previous + rate


# =============================================================================
# Run state
# =============================================================================

class SeedAccumulator:
    """Month-by-month SEED values for one calculation run, keyed by node id.

    The orchestrator walks months in ascending order, so each SEED month
    finds its predecessor here.
    """

    def __init__(self):
        self._values: Dict[Tuple[str, Channel], Dict[date, Optional[Decimal]]] = {}

    def has(self, node_id: str, channel: Channel, month: date) -> bool:
        return month in self._values.get((node_id, channel), {})

    def get(self, node_id: str, channel: Channel, month: date) -> Optional[Decimal]:
        return self._values.get((node_id, channel), {}).get(month)

    def record(self, node_id: str, channel: Channel, month: date, value: Optional[Decimal]) -> None:
        self._values.setdefault((node_id, channel), {})[month] = value

    def history(self, node_id: str, channel: Channel = Channel.FORECAST) -> Dict[date, Optional[Decimal]]:
        return dict(sorted(self._values.get((node_id, channel), {}).items()))


@dataclass
class CalculationContext:
    """Mutable state scoped to a single calculation run."""
    variables: Sequence[Variable]
    forecast_start: date
    metric_trees: Dict[str, CalculationTree] = field(default_factory=dict)
    value_source_policy: ValueSourcePolicy = ValueSourcePolicy.BOUND_DATA
    default_growth_mode: GrowthMode = GrowthMode.PERCENTAGE
    seeds: SeedAccumulator = field(default_factory=SeedAccumulator)
    memo: Dict[Tuple[str, date, Channel], Optional[Decimal]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    bound_leaves: Dict[Tuple[str, VariableType], Optional[CalculationTreeNode]] = field(default_factory=dict)

    def __post_init__(self):
        self.forecast_start = normalize_to_first_of_month(self.forecast_start)

    def warn(self, message: str) -> None:
        if message not in self.warnings:
            logger.warning(message)
            self.warnings.append(message)


# =============================================================================
# Evaluator
# =============================================================================

class NodeEvaluator:
    """Evaluates calculation tree nodes for a target month."""

    def __init__(self, accessor: Optional[VariableDataAccessor] = None):
        self.accessor = accessor or VariableDataAccessor()

    def evaluate(
        self,
        node: CalculationTreeNode,
        target_month,
        context: CalculationContext,
        channel: Channel = Channel.FORECAST,
    ) -> Optional[Decimal]:
        """Evaluate a node for the month containing `target_month`.

        Results are memoized per (node id, month, channel) in the context.

        Raises:
            NodeEvaluationError: On internal faults (wrapping the cause)
            VariableDataError: If variable data is malformed
        """
        month = normalize_to_first_of_month(target_month)
        key = (node.node_id, month, channel)
        if key in context.memo:
            return context.memo[key]

        try:
            if node.node_type == NodeKind.DATA:
                result = self._evaluate_data(node, month, context)
            elif node.node_type == NodeKind.CONSTANT:
                result = self._evaluate_constant(node)
            elif node.node_type == NodeKind.OPERATOR:
                result = self._evaluate_operator(node, month, context, channel)
            elif node.node_type == NodeKind.METRIC:
                result = self._evaluate_metric(node, month, context, channel)
            elif node.node_type == NodeKind.SEED:
                result = self._evaluate_seed(node, month, context, channel)
            else:
                raise ValueError(f"unhandled node kind {node.node_type!r}")
        except CalculationError:
            raise
        except Exception as e:
            raise NodeEvaluationError(node.node_id, e) from e

        context.memo[key] = result
        return result

    def _evaluate_data(self, node: CalculationTreeNode, month: date, context: CalculationContext) -> Optional[Decimal]:
        attributes: DataAttributes = node.node_data
        return self.accessor.value_with_offset(
            attributes.variable_id,
            month,
            attributes.offset_months,
            context.variables,
        )

    def _evaluate_constant(self, node: CalculationTreeNode) -> Optional[Decimal]:
        attributes: ConstantAttributes = node.node_data
        return attributes.value

    def _evaluate_operator(
        self,
        node: CalculationTreeNode,
        month: date,
        context: CalculationContext,
        channel: Channel,
    ) -> Optional[Decimal]:
        attributes: OperatorAttributes = node.node_data
        if not node.children:
            raise ValueError(f"OPERATOR node {node.node_id} has no inputs")

        values = [self.evaluate(child, month, context, channel) for child in node.children]
        if any(v is None for v in values):
            logger.debug(f"OPERATOR {node.node_id} is null for {month} (null input)")
            return None

        if attributes.op == OperatorSymbol.DIVIDE and any(v == 0 for v in values[1:]):
            context.warn(f"Division by zero at node {node.node_id} in {month:%Y-%m}")
            return None

        return apply_operator(attributes.op, values)

    def _evaluate_metric(
        self,
        node: CalculationTreeNode,
        month: date,
        context: CalculationContext,
        channel: Channel,
    ) -> Optional[Decimal]:
        attributes: MetricAttributes = node.node_data
        if len(node.children) > 1:
            raise ValueError(f"METRIC node {node.node_id} cannot have more than one input")
        child = node.children[0] if node.children else None

        if channel == Channel.FORECAST:
            if child is None:
                return None
            return self.evaluate(child, month, context, channel)

        if attributes.use_calculated and child is not None:
            return self.evaluate(child, month, context, channel)

        if channel == Channel.BUDGET:
            variable_id, variable_type = attributes.budget_variable_id, VariableType.BUDGET
        else:
            variable_id, variable_type = attributes.historical_variable_id, VariableType.ACTUAL

        if variable_id:
            return self.accessor.value_for_month(variable_id, month, context.variables)

        if context.value_source_policy == ValueSourcePolicy.BOUND_DATA:
            leaf = self._bound_leaf(node, variable_type, context)
            if leaf is not None:
                return self._evaluate_data(leaf, month, context)

        return None

    def _bound_leaf(
        self,
        node: CalculationTreeNode,
        variable_type: VariableType,
        context: CalculationContext,
    ) -> Optional[CalculationTreeNode]:
        """First DATA leaf under `node` bound to a variable of `variable_type`."""
        key = (node.node_id, variable_type)
        if key not in context.bound_leaves:
            found = None
            for descendant in node.walk():
                if descendant.node_type != NodeKind.DATA:
                    continue
                variable = self.accessor.get_variable(descendant.node_data.variable_id, context.variables)
                if variable is not None and variable.type == variable_type:
                    found = descendant
                    break
            context.bound_leaves[key] = found
        return context.bound_leaves[key]

    def _evaluate_seed(
        self,
        node: CalculationTreeNode,
        month: date,
        context: CalculationContext,
        channel: Channel,
    ) -> Optional[Decimal]:
        attributes: SeedAttributes = node.node_data
        mode = attributes.growth_mode or context.default_growth_mode

        if month <= context.forecast_start:
            value = self._seed_first_value(node, attributes, context)
        else:
            previous_month = add_months(month, -1)
            previous = self._seed_previous_value(node, attributes, previous_month, context, channel)
            value = apply_growth(previous, attributes.growth_rate, mode)

        context.seeds.record(node.node_id, channel, month, value)
        return value

    def _seed_first_value(
        self,
        node: CalculationTreeNode,
        attributes: SeedAttributes,
        context: CalculationContext,
    ) -> Optional[Decimal]:
        if attributes.base_value is not None:
            return attributes.base_value

        if attributes.source_metric_id is None:
            context.warn(f"SEED node {node.node_id} has no base value - using null")
            return None

        # Start from the source metric's last actual before the horizon
        source = self._source_metric(node, attributes, context)
        variable_id = source.tree.node_data.historical_variable_id
        if not variable_id:
            context.warn(
                f"SEED node {node.node_id}: metric {attributes.source_metric_id} has no "
                f"historical variable configured - using null"
            )
            return None

        prior_month = add_months(context.forecast_start, -1)
        value = self.accessor.value_for_month(variable_id, prior_month, context.variables)
        if value is None:
            available = self.accessor.available_months(variable_id, context.variables)
            context.warn(
                f"SEED node {node.node_id}: no historical data for {prior_month.isoformat()} in "
                f"variable {variable_id} (available: {describe_months(available)}) - using null"
            )
        return value

    def _seed_previous_value(
        self,
        node: CalculationTreeNode,
        attributes: SeedAttributes,
        previous_month: date,
        context: CalculationContext,
        channel: Channel,
    ) -> Optional[Decimal]:
        if attributes.source_metric_id is not None:
            source = self._source_metric(node, attributes, context)
            return self.evaluate(source.tree, previous_month, context, channel)

        if context.seeds.has(node.node_id, channel, previous_month):
            return context.seeds.get(node.node_id, channel, previous_month)

        # Months were skipped; catch up from the horizon start
        return self.evaluate(node, previous_month, context, channel)

    def _source_metric(
        self,
        node: CalculationTreeNode,
        attributes: SeedAttributes,
        context: CalculationContext,
    ) -> CalculationTree:
        source = context.metric_trees.get(attributes.source_metric_id)
        if source is None:
            raise ValueError(
                f"referenced metric node {attributes.source_metric_id} not found in calculation trees"
            )
        return source
