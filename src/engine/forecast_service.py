"""Stored-forecast calculation.

Loads a forecast's graph and its organization's variables from the
database, runs the calculator and stores the result as a JSON snapshot.
Nodes, edges and variables are only read here, never written.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from src.engine import types as engine_types
from src.engine.calculator import ForecastCalculator
from src.engine.errors import ForecastNotFoundError
from src.models.calculation_result import ForecastCalculationRecord
from src.models.forecast import Forecast, ForecastEdge, ForecastNode
from src.models.variable import Variable

logger = logging.getLogger(__name__)


@dataclass
class ForecastGraphData:
    """Everything the calculator needs for one stored forecast."""
    forecast: Forecast
    nodes: List[engine_types.ForecastNode] = field(default_factory=list)
    edges: List[engine_types.ForecastEdge] = field(default_factory=list)
    variables: List[engine_types.Variable] = field(default_factory=list)


def get_forecast(db: Session, forecast_id: str) -> Forecast:
    """Fetch a forecast row.

    Raises:
        ForecastNotFoundError: If no forecast has that id
    """
    forecast = db.query(Forecast).filter(Forecast.id == forecast_id).first()
    if forecast is None:
        raise ForecastNotFoundError(f"Forecast {forecast_id} not found")
    return forecast


def load_forecast_graph(db: Session, forecast_id: str) -> ForecastGraphData:
    """Load nodes, edges and organization variables for a forecast."""
    forecast = get_forecast(db, forecast_id)

    nodes = (
        db.query(ForecastNode)
        .filter(ForecastNode.forecast_id == forecast_id)
        .order_by(ForecastNode.id)
        .all()
    )
    edges = (
        db.query(ForecastEdge)
        .filter(ForecastEdge.forecast_id == forecast_id)
        .order_by(ForecastEdge.id)
        .all()
    )
    variables = (
        db.query(Variable)
        .filter(Variable.organization_id == forecast.organization_id)
        .order_by(Variable.id)
        .all()
    )

    logger.info(
        f"Loaded forecast {forecast_id}: {len(nodes)} nodes, {len(edges)} edges, "
        f"{len(variables)} variables"
    )

    return ForecastGraphData(
        forecast=forecast,
        nodes=[n.to_engine() for n in nodes],
        edges=[e.to_engine() for e in edges],
        variables=[v.to_engine() for v in variables],
    )


def calculate_stored_forecast(
    db: Session,
    forecast_id: str,
    include_all_nodes: bool = False,
    calculator: Optional[ForecastCalculator] = None,
) -> ForecastCalculationRecord:
    """Calculate a stored forecast and save the result snapshot.

    Args:
        db: Database session (committed on success)
        forecast_id: Forecast to calculate
        include_all_nodes: Also store per-node results
        calculator: Calculator to use (defaults to a configured ForecastCalculator)

    Returns:
        The stored ForecastCalculationRecord
    """
    data = load_forecast_graph(db, forecast_id)
    calculator = calculator or ForecastCalculator()

    result = calculator.calculate(
        forecast_id,
        data.nodes,
        data.edges,
        data.variables,
        data.forecast.forecast_start_date,
        data.forecast.forecast_end_date,
        include_all_nodes=include_all_nodes,
    )

    payload = result.to_dict()
    record = ForecastCalculationRecord(
        forecast_id=forecast_id,
        calculated_at=result.calculated_at,
        metrics=payload["metrics"],
        all_nodes=payload.get("all_nodes"),
        warnings=payload["warnings"],
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    logger.info(f"Stored calculation {record.id} for forecast {forecast_id}")
    return record


def get_latest_result(db: Session, forecast_id: str) -> Optional[ForecastCalculationRecord]:
    """Most recent stored calculation for a forecast, or None."""
    get_forecast(db, forecast_id)
    return (
        db.query(ForecastCalculationRecord)
        .filter(ForecastCalculationRecord.forecast_id == forecast_id)
        .order_by(ForecastCalculationRecord.calculated_at.desc())
        .first()
    )


def get_calculation_history(db: Session, forecast_id: str) -> List[ForecastCalculationRecord]:
    """All stored calculations for a forecast, newest first."""
    get_forecast(db, forecast_id)
    return (
        db.query(ForecastCalculationRecord)
        .filter(ForecastCalculationRecord.forecast_id == forecast_id)
        .order_by(ForecastCalculationRecord.calculated_at.desc())
        .all()
    )
