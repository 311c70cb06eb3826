"""SQLAlchemy models."""

from .forecast import Forecast, ForecastNode, ForecastEdge
from .variable import Variable, VariableValue
from .calculation_result import ForecastCalculationRecord

__all__ = [
    'Forecast',
    'ForecastNode',
    'ForecastEdge',
    'Variable',
    'VariableValue',
    'ForecastCalculationRecord',
]
