"""
Pydantic schemas for the calculation API.

Null monthly values are always serialized as JSON null so that every
series keeps one entry per month.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from src.engine import types as engine_types


# =============================================================================
# Requests
# =============================================================================

class TimeSeriesPointIn(BaseModel):
    """One monthly point of a variable."""
    date: date
    value: Optional[Decimal] = None


class VariableIn(BaseModel):
    """Variable with its time series."""
    id: str
    name: str = ""
    type: str = "UNKNOWN"
    time_series: List[TimeSeriesPointIn] = []

    def to_engine(self) -> engine_types.Variable:
        return engine_types.Variable(
            id=self.id,
            name=self.name,
            type=engine_types.VariableType.parse(self.type),
            time_series=[
                engine_types.TimeSeriesPoint(date=p.date, value=p.value)
                for p in self.time_series
            ],
        )


class NodeIn(BaseModel):
    """Graph node as stored by the editor."""
    id: str
    kind: str
    attributes: Dict[str, Any] = Field(default_factory=dict)
    position: Optional[Dict[str, Any]] = None

    def to_engine(self) -> engine_types.ForecastNode:
        return engine_types.ForecastNode(
            id=self.id,
            kind=self.kind,
            attributes=dict(self.attributes),
            position=self.position,
        )


class EdgeIn(BaseModel):
    """Graph edge: source feeds target."""
    id: str
    source_node_id: str
    target_node_id: str
    input_order: Optional[int] = None

    def to_engine(self) -> engine_types.ForecastEdge:
        return engine_types.ForecastEdge(
            id=self.id,
            source_node_id=self.source_node_id,
            target_node_id=self.target_node_id,
            input_order=self.input_order,
        )


class GraphIn(BaseModel):
    """Nodes and edges of one forecast."""
    nodes: List[NodeIn] = []
    edges: List[EdgeIn] = []


class CalculationRequest(GraphIn):
    """Stateless calculation over a graph supplied in the request."""
    forecast_id: Optional[str] = None
    variables: List[VariableIn] = []
    forecast_start_date: date
    forecast_end_date: date
    include_all_nodes: bool = False


# =============================================================================
# Responses
# =============================================================================

class MonthlyForecastValueOut(BaseModel):
    """Metric values for one month."""
    date: date
    forecast: Optional[float] = None
    budget: Optional[float] = None
    historical: Optional[float] = None


class MonthlyNodeValueOut(MonthlyForecastValueOut):
    """Node values for one month, including the node's own result."""
    calculated: Optional[float] = None


class MetricCalculationResultOut(BaseModel):
    metric_node_id: str
    values: List[MonthlyForecastValueOut]


class NodeCalculationResultOut(BaseModel):
    node_id: str
    node_type: str
    values: List[MonthlyNodeValueOut]


class ForecastCalculationResultOut(BaseModel):
    """Calculation snapshot. `id` is set for stored results only."""
    id: Optional[str] = None
    forecast_id: Optional[str] = None
    calculated_at: datetime
    metrics: List[MetricCalculationResultOut]
    all_nodes: Optional[List[NodeCalculationResultOut]] = None
    warnings: List[str] = []


class GraphValidationOut(BaseModel):
    is_valid: bool
    errors: List[str]
    warnings: List[str]
