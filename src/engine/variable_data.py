"""Variable data access for the calculation engine.

Resolves a variable's value for a calendar month. All dates are compared
at month granularity: day-of-month and time-of-day are ignored.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from src.engine.errors import VariableDataError
from src.engine.types import Variable

logger = logging.getLogger(__name__)


# =============================================================================
# Month arithmetic
# =============================================================================

def normalize_to_first_of_month(value) -> date:
    """Return the first day of the month containing `value` (date or datetime)."""
    return date(value.year, value.month, 1)


def add_months(value, months: int) -> date:
    """Shift a date by whole calendar months. The result is always day 1."""
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def months_between(start, end) -> int:
    """Number of months in [start, end] inclusive; zero for an inverted range."""
    count = (end.year - start.year) * 12 + (end.month - start.month) + 1
    return max(count, 0)


def month_range(start, end) -> List[date]:
    """Ordered first-of-month dates from start to end inclusive.

    An inverted range yields an empty list.
    """
    first = normalize_to_first_of_month(start)
    return [add_months(first, i) for i in range(months_between(start, end))]


# =============================================================================
# Accessor
# =============================================================================

class VariableDataAccessor:
    """Month-granular lookups into in-memory variable time series.

    Each variable's series is indexed by month on first use. The index is
    private to the accessor instance, so an accessor must not outlive the
    calculation run it was created for.
    """

    def __init__(self):
        self._variables_ref: Optional[Sequence[Variable]] = None
        self._by_id: Dict[str, Variable] = {}
        self._series: Dict[str, Dict[date, Optional[Decimal]]] = {}

    def value_for_month(
        self,
        variable_id: str,
        target_month,
        variables: Sequence[Variable],
    ) -> Optional[Decimal]:
        """Get a variable's value for the month containing `target_month`.

        Returns:
            The value, or None if the variable is unknown or has no point
            (or a null point) for that month

        Raises:
            VariableDataError: If a date cannot be interpreted
        """
        try:
            month = normalize_to_first_of_month(target_month)
            series = self._get_series(variable_id, variables)
            if series is None:
                return None
            return series.get(month)
        except VariableDataError:
            raise
        except Exception as e:
            raise VariableDataError("value_for_month", variable_id, e) from e

    def value_with_offset(
        self,
        variable_id: str,
        target_month,
        offset_months: int,
        variables: Sequence[Variable],
    ) -> Optional[Decimal]:
        """Get a variable's value `offset_months` away from `target_month`.

        Positive offsets look into the future, negative ones into the past.
        """
        try:
            shifted = add_months(target_month, offset_months)
        except Exception as e:
            raise VariableDataError("value_with_offset", variable_id, e) from e
        return self.value_for_month(variable_id, shifted, variables)

    def get_variable(self, variable_id: str, variables: Sequence[Variable]) -> Optional[Variable]:
        """Look up a variable record by id."""
        self._bind(variables)
        return self._by_id.get(variable_id)

    def available_months(self, variable_id: str, variables: Sequence[Variable]) -> List[date]:
        """Sorted months for which the variable has a point (for diagnostics)."""
        series = self._get_series(variable_id, variables)
        return sorted(series) if series else []

    def _bind(self, variables: Sequence[Variable]) -> None:
        if variables is not self._variables_ref:
            self._variables_ref = variables
            self._by_id = {}
            for variable in variables:
                self._by_id.setdefault(variable.id, variable)
            self._series = {}

    def _get_series(
        self,
        variable_id: str,
        variables: Sequence[Variable],
    ) -> Optional[Dict[date, Optional[Decimal]]]:
        self._bind(variables)
        if variable_id in self._series:
            return self._series[variable_id]

        variable = self._by_id.get(variable_id)
        if variable is None:
            logger.debug(f"Variable {variable_id} not found")
            return None

        try:
            series: Dict[date, Optional[Decimal]] = {}
            for point in variable.time_series:
                # First point wins if a month is duplicated
                series.setdefault(normalize_to_first_of_month(point.date), point.value)
        except Exception as e:
            raise VariableDataError("index time series", variable_id, e) from e

        self._series[variable_id] = series
        return series


def describe_months(months: List[date], limit: int = 10) -> str:
    """Short human-readable list of months for log messages."""
    if not months:
        return "no dates"
    shown = ", ".join(m.isoformat() for m in months[:limit])
    if len(months) > limit:
        shown += f" (and {len(months) - limit} more)"
    return shown
