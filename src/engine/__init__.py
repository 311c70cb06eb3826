# Forecast graph calculation engine

from src.engine.types import (
    NodeKind,
    VariableType,
    OperatorSymbol,
    GrowthMode,
    ValueSourcePolicy,
    Channel,
    TimeSeriesPoint,
    Variable,
    ForecastNode,
    ForecastEdge,
    CalculationTree,
    CalculationTreeNode,
    GraphValidationResult,
    MonthlyForecastValue,
    MonthlyNodeValue,
    MetricCalculationResult,
    NodeCalculationResult,
    ForecastCalculationResult,
)

from src.engine.errors import (
    CalculationError,
    GraphValidationError,
    TreeBuildError,
    VariableDataError,
    NodeEvaluationError,
    CalculationRangeError,
    ForecastNotFoundError,
)

from src.engine.variable_data import (
    VariableDataAccessor,
    normalize_to_first_of_month,
    add_months,
    month_range,
)

from src.engine.validation import GraphValidator, validate_graph
from src.engine.tree_builder import CalculationTreeBuilder, build_calculation_tree
from src.engine.evaluator import (
    CalculationContext,
    NodeEvaluator,
    SeedAccumulator,
    apply_operator,
    apply_growth,
)
from src.engine.calculator import ForecastCalculator, calculate_forecast

__all__ = [
    # Types
    "NodeKind",
    "VariableType",
    "OperatorSymbol",
    "GrowthMode",
    "ValueSourcePolicy",
    "Channel",
    "TimeSeriesPoint",
    "Variable",
    "ForecastNode",
    "ForecastEdge",
    "CalculationTree",
    "CalculationTreeNode",
    "GraphValidationResult",
    "MonthlyForecastValue",
    "MonthlyNodeValue",
    "MetricCalculationResult",
    "NodeCalculationResult",
    "ForecastCalculationResult",
    # Errors
    "CalculationError",
    "GraphValidationError",
    "TreeBuildError",
    "VariableDataError",
    "NodeEvaluationError",
    "CalculationRangeError",
    "ForecastNotFoundError",
    # Variable data
    "VariableDataAccessor",
    "normalize_to_first_of_month",
    "add_months",
    "month_range",
    # Validation and trees
    "GraphValidator",
    "validate_graph",
    "CalculationTreeBuilder",
    "build_calculation_tree",
    # Evaluation
    "CalculationContext",
    "NodeEvaluator",
    "SeedAccumulator",
    "apply_operator",
    "apply_growth",
    "ForecastCalculator",
    "calculate_forecast",
]
