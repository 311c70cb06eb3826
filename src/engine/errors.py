"""Exceptions raised by the forecast calculation engine.

Structural problems and internal faults abort a calculation. Missing data
and arithmetic edge cases never raise; they surface as None values.
"""

from typing import List, Optional


class CalculationError(Exception):
    """Base class for calculation engine failures."""


class GraphValidationError(CalculationError):
    """The node/edge graph is structurally invalid (cycles, dangling edges, ...)."""

    def __init__(self, errors: List[str], warnings: Optional[List[str]] = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        super().__init__(f"Invalid forecast graph: {'; '.join(self.errors)}")


class TreeBuildError(CalculationError):
    """Tree construction hit a graph that did not pass validation."""


class VariableDataError(CalculationError):
    """Variable lookup failed on malformed data."""

    def __init__(self, operation: str, variable_id: str, cause: Exception):
        self.operation = operation
        self.variable_id = variable_id
        self.cause = cause
        super().__init__(f"{operation} failed for variable {variable_id}: {cause}")


class NodeEvaluationError(CalculationError):
    """Evaluation of a single node failed with an internal fault."""

    def __init__(self, node_id: str, cause: Exception):
        self.node_id = node_id
        self.cause = cause
        super().__init__(f"Node evaluation failed for {node_id}: {cause}")


class CalculationRangeError(CalculationError):
    """Requested month range is longer than the configured maximum."""


class ForecastNotFoundError(CalculationError):
    """No stored forecast with the requested id."""
