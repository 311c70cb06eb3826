"""Data types shared by the forecast calculation engine.

Input records (nodes, edges, variables) arrive from the persistence layer
already fetched. Calculation trees and results are built fresh for every
calculation run and discarded afterwards.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from src.utils.json_encoder import serialize_for_json


class NodeKind(str, Enum):
    """Kinds of nodes in a forecast graph."""
    DATA = "DATA"            # Bound to a variable's time series
    CONSTANT = "CONSTANT"    # Fixed literal
    OPERATOR = "OPERATOR"    # Arithmetic over ordered inputs
    METRIC = "METRIC"        # Named output
    SEED = "SEED"            # Grows from its own previous month

    @classmethod
    def parse(cls, raw: Any) -> Optional["NodeKind"]:
        """Return the kind for a raw value, or None if it is not a known kind."""
        if isinstance(raw, NodeKind):
            return raw
        try:
            return cls(str(raw).upper())
        except ValueError:
            return None


class VariableType(str, Enum):
    """Types of externally managed variables."""
    ACTUAL = "ACTUAL"
    BUDGET = "BUDGET"
    INPUT = "INPUT"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw: Any) -> "VariableType":
        if isinstance(raw, VariableType):
            return raw
        try:
            return cls(str(raw).upper())
        except ValueError:
            return cls.UNKNOWN


class OperatorSymbol(Enum):
    """Arithmetic operators an OPERATOR node may declare."""
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"

    @classmethod
    def parse(cls, raw: Any) -> "OperatorSymbol":
        """Accept either the symbol ('+') or the name ('add')."""
        if isinstance(raw, OperatorSymbol):
            return raw
        text = str(raw).strip() if raw is not None else ""
        for op in cls:
            if text == op.value or text.upper() == op.name:
                return op
        raise ValueError(f"unknown operator '{raw}'")


class GrowthMode(str, Enum):
    """How a SEED node grows from one month to the next."""
    PERCENTAGE = "percentage"    # prev * (1 + rate / 100)
    ABSOLUTE = "absolute"        # prev + rate


class ValueSourcePolicy(str, Enum):
    """Where a metric's budget and historical values come from."""
    EXPLICIT = "explicit"        # Only the metric's configured variables
    BOUND_DATA = "bound_data"    # Fall back to DATA leaves bound to BUDGET/ACTUAL variables


class Channel(str, Enum):
    """Value series computed for every metric."""
    FORECAST = "forecast"
    BUDGET = "budget"
    HISTORICAL = "historical"


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce a numeric input to Decimal, keeping None as None.

    Raises:
        ValueError: If the value is not numeric
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"expected a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValueError(f"expected a number, got {value!r}")
    if not result.is_finite():
        raise ValueError(f"expected a finite number, got {value!r}")
    return result


# =============================================================================
# Input records
# =============================================================================

@dataclass(frozen=True)
class TimeSeriesPoint:
    """One (date, value) point of a variable. Value may be None."""
    date: Union[date, datetime]
    value: Optional[Decimal] = None

    def __post_init__(self):
        # Callers may build points with int or float values
        object.__setattr__(self, "value", to_decimal(self.value))


@dataclass
class Variable:
    """Named monthly time series owned by the data-intake subsystem."""
    id: str
    type: VariableType = VariableType.UNKNOWN
    time_series: List[TimeSeriesPoint] = field(default_factory=list)
    name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Variable":
        points = data.get("time_series", data.get("timeSeries", data.get("values", []))) or []
        return cls(
            id=str(data["id"]),
            type=VariableType.parse(data.get("type")),
            name=data.get("name", ""),
            time_series=[
                TimeSeriesPoint(date=_parse_date(p["date"]), value=to_decimal(p.get("value")))
                for p in points
            ],
        )


@dataclass
class ForecastNode:
    """Persisted graph node. `kind` is kept raw so validation can reject unknown kinds."""
    id: str
    kind: Any
    attributes: Dict[str, Any] = field(default_factory=dict)
    forecast_id: Optional[str] = None
    position: Optional[Dict[str, Any]] = None

    @property
    def node_kind(self) -> Optional[NodeKind]:
        return NodeKind.parse(self.kind)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ForecastNode":
        return cls(
            id=str(data["id"]),
            kind=data.get("kind", data.get("type")),
            attributes=dict(data.get("attributes", data.get("data")) or {}),
            forecast_id=data.get("forecast_id", data.get("forecastId")),
            position=data.get("position"),
        )


@dataclass
class ForecastEdge:
    """Directed edge: source feeds target as an input."""
    id: str
    source_node_id: str
    target_node_id: str
    input_order: Optional[int] = None
    forecast_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ForecastEdge":
        return cls(
            id=str(data["id"]),
            source_node_id=str(data.get("source_node_id", data.get("source"))),
            target_node_id=str(data.get("target_node_id", data.get("target"))),
            input_order=data.get("input_order", data.get("inputOrder")),
            forecast_id=data.get("forecast_id", data.get("forecastId")),
        )


def _parse_date(value: Any) -> Any:
    """Parse ISO strings; leave date objects (or anything malformed) as given."""
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value


# =============================================================================
# Node attributes
# =============================================================================

def _pick(raw: Dict[str, Any], *keys: str) -> Any:
    """First present key; attributes come in snake_case or editor camelCase."""
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


@dataclass(frozen=True)
class DataAttributes:
    variable_id: str
    offset_months: int = 0
    name: str = ""


@dataclass(frozen=True)
class ConstantAttributes:
    value: Decimal
    name: str = ""

    def __post_init__(self):
        object.__setattr__(self, "value", to_decimal(self.value))


@dataclass(frozen=True)
class OperatorAttributes:
    op: OperatorSymbol
    input_order: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MetricAttributes:
    label: str = ""
    budget_variable_id: Optional[str] = None
    historical_variable_id: Optional[str] = None
    use_calculated: bool = False


@dataclass(frozen=True)
class SeedAttributes:
    base_value: Optional[Decimal] = None
    growth_rate: Decimal = Decimal("0")
    growth_mode: Optional[GrowthMode] = None    # None means the configured default
    source_metric_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "base_value", to_decimal(self.base_value))
        object.__setattr__(self, "growth_rate", to_decimal(self.growth_rate) or Decimal("0"))


NodeAttributes = Union[
    DataAttributes,
    ConstantAttributes,
    OperatorAttributes,
    MetricAttributes,
    SeedAttributes,
]


def parse_attributes(kind: NodeKind, raw: Optional[Dict[str, Any]]) -> NodeAttributes:
    """Build the typed attribute payload for a node kind.

    Raises:
        ValueError: If a required attribute is missing or malformed
    """
    raw = raw or {}

    if kind == NodeKind.DATA:
        variable_id = _pick(raw, "variable_id", "variableId")
        if not variable_id or not str(variable_id).strip():
            raise ValueError("missing variable_id")
        offset = _pick(raw, "offset_months", "offsetMonths") or 0
        try:
            offset = int(offset)
        except (TypeError, ValueError):
            raise ValueError(f"offset_months must be an integer, got {offset!r}")
        return DataAttributes(variable_id=str(variable_id), offset_months=offset, name=raw.get("name", ""))

    if kind == NodeKind.CONSTANT:
        value = to_decimal(raw.get("value"))
        if value is None:
            raise ValueError("missing value")
        return ConstantAttributes(value=value, name=raw.get("name", ""))

    if kind == NodeKind.OPERATOR:
        op = OperatorSymbol.parse(_pick(raw, "op", "operator"))
        order = _pick(raw, "input_order", "inputOrder") or ()
        return OperatorAttributes(op=op, input_order=tuple(str(i) for i in order))

    if kind == NodeKind.METRIC:
        return MetricAttributes(
            label=raw.get("label", "") or "",
            budget_variable_id=_blank_to_none(_pick(raw, "budget_variable_id", "budgetVariableId")),
            historical_variable_id=_blank_to_none(_pick(raw, "historical_variable_id", "historicalVariableId")),
            use_calculated=bool(_pick(raw, "use_calculated", "useCalculated")),
        )

    if kind == NodeKind.SEED:
        mode = _pick(raw, "growth_mode", "growthMode")
        if mode is not None:
            try:
                mode = GrowthMode(str(mode).lower())
            except ValueError:
                raise ValueError(f"unknown growth_mode '{mode}'")
        return SeedAttributes(
            base_value=to_decimal(_pick(raw, "base_value", "baseValue")),
            growth_rate=to_decimal(_pick(raw, "growth_rate", "growthRate")) or Decimal("0"),
            growth_mode=mode,
            source_metric_id=_blank_to_none(_pick(raw, "source_metric_id", "sourceMetricId")),
        )

    raise ValueError(f"unknown node kind {kind!r}")


def _blank_to_none(value: Any) -> Optional[str]:
    if value is None or not str(value).strip():
        return None
    return str(value)


# =============================================================================
# Calculation tree
# =============================================================================

@dataclass(frozen=True)
class CalculationTreeNode:
    """Node of a per-metric evaluation tree. Children are in declared input order."""
    node_id: str
    node_type: NodeKind
    node_data: NodeAttributes
    children: Tuple["CalculationTreeNode", ...] = ()

    def walk(self):
        """Yield this node and its descendants depth-first, children in order."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class CalculationTree:
    root_metric_node_id: str
    tree: CalculationTreeNode


@dataclass(frozen=True)
class GraphValidationResult:
    is_valid: bool
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class MonthlyForecastValue:
    """Values of one metric for one calendar month (date is first-of-month)."""
    date: date
    forecast: Optional[Decimal] = None
    budget: Optional[Decimal] = None
    historical: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        return serialize_for_json({
            "date": self.date,
            "forecast": self.forecast,
            "budget": self.budget,
            "historical": self.historical,
        })


@dataclass(frozen=True)
class MonthlyNodeValue(MonthlyForecastValue):
    """Monthly value for any node, including its forecast-channel result."""
    calculated: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["calculated"] = serialize_for_json(self.calculated)
        return data


@dataclass
class MetricCalculationResult:
    metric_node_id: str
    values: List[MonthlyForecastValue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric_node_id": self.metric_node_id,
            "values": [v.to_dict() for v in self.values],
        }


@dataclass
class NodeCalculationResult:
    node_id: str
    node_type: NodeKind
    values: List[MonthlyNodeValue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_id": self.node_id,
            "node_type": self.node_type.value,
            "values": [v.to_dict() for v in self.values],
        }


@dataclass
class ForecastCalculationResult:
    """Snapshot of one calculation run."""
    forecast_id: Optional[str]
    calculated_at: datetime
    metrics: List[MetricCalculationResult] = field(default_factory=list)
    all_nodes: Optional[List[NodeCalculationResult]] = None
    warnings: List[str] = field(default_factory=list)

    def get_metric(self, metric_node_id: str) -> MetricCalculationResult:
        for metric in self.metrics:
            if metric.metric_node_id == metric_node_id:
                return metric
        raise KeyError(metric_node_id)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "forecast_id": self.forecast_id,
            "calculated_at": self.calculated_at.isoformat(),
            "metrics": [m.to_dict() for m in self.metrics],
            "warnings": list(self.warnings),
        }
        if self.all_nodes is not None:
            data["all_nodes"] = [n.to_dict() for n in self.all_nodes]
        return data
