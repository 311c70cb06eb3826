"""Forecast calculation API.

Stateless calculation and validation of a posted graph, plus calculation
of stored forecasts with their result history.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from src.api.schemas import (
    CalculationRequest,
    ForecastCalculationResultOut,
    GraphIn,
    GraphValidationOut,
)
from src.db.postgres import get_db
from src.engine.calculator import ForecastCalculator
from src.engine.errors import (
    CalculationError,
    CalculationRangeError,
    ForecastNotFoundError,
    GraphValidationError,
)
from src.engine.forecast_service import (
    calculate_stored_forecast,
    get_calculation_history,
    get_latest_result,
)
from src.engine.validation import GraphValidator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Calculations"])


def _to_http_error(error: CalculationError) -> HTTPException:
    """Map engine errors to HTTP status codes."""
    if isinstance(error, ForecastNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, GraphValidationError):
        return HTTPException(
            status_code=400,
            detail={"message": str(error), "errors": error.errors, "warnings": error.warnings},
        )
    if isinstance(error, CalculationRangeError):
        return HTTPException(status_code=400, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


# =============================================================================
# Stateless
# =============================================================================

@router.post("/calculations", response_model=ForecastCalculationResultOut)
async def calculate(request: CalculationRequest):
    """Calculate a graph posted in the request body."""
    try:
        result = ForecastCalculator().calculate(
            request.forecast_id,
            [n.to_engine() for n in request.nodes],
            [e.to_engine() for e in request.edges],
            [v.to_engine() for v in request.variables],
            request.forecast_start_date,
            request.forecast_end_date,
            include_all_nodes=request.include_all_nodes,
        )
    except CalculationError as e:
        raise _to_http_error(e)
    return result.to_dict()


@router.post("/graphs/validate", response_model=GraphValidationOut)
async def validate(graph: GraphIn):
    """Validate a graph without calculating it."""
    result = GraphValidator().validate(
        [n.to_engine() for n in graph.nodes],
        [e.to_engine() for e in graph.edges],
    )
    return result.to_dict()


# =============================================================================
# Stored forecasts
# =============================================================================

@router.post("/forecasts/{forecast_id}/calculate", response_model=ForecastCalculationResultOut)
def calculate_forecast(
    forecast_id: str,
    include_all_nodes: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    """Calculate a stored forecast and save the snapshot."""
    try:
        record = calculate_stored_forecast(db, forecast_id, include_all_nodes=include_all_nodes)
    except CalculationError as e:
        db.rollback()
        raise _to_http_error(e)
    return record.to_dict()


@router.get("/forecasts/{forecast_id}/calculations/latest", response_model=ForecastCalculationResultOut)
def latest_calculation(forecast_id: str, db: Session = Depends(get_db)):
    """Most recent stored calculation."""
    try:
        record = get_latest_result(db, forecast_id)
    except CalculationError as e:
        raise _to_http_error(e)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No calculation results for forecast {forecast_id}")
    return record.to_dict()


@router.get("/forecasts/{forecast_id}/calculations", response_model=List[ForecastCalculationResultOut])
def calculation_history(forecast_id: str, db: Session = Depends(get_db)):
    """All stored calculations, newest first."""
    try:
        records = get_calculation_history(db, forecast_id)
    except CalculationError as e:
        raise _to_http_error(e)
    return [r.to_dict() for r in records]
