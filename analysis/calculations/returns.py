"""
Returns calculation utilities.
Pure functions for simple period returns between two as-of points.
"""

import logging
from datetime import date
from typing import Dict, Optional

from series.lookup import as_of
from series.models import DataPoint, TimeSeries, DateLike, to_day

logger = logging.getLogger(__name__)


class ReturnsError(Exception):
    """Raised when a return cannot be computed from two points."""
    pass


def simple_return(start: DataPoint, end: DataPoint) -> float:
    """
    Calculate the simple (non-annualized) return between two points.

    Formula: R = (V_end - V_start) / V_start

    Args:
        start: Point at the start of the period
        end: Point at the end of the period

    Returns:
        Return as decimal (0.05 = 5%)

    Raises:
        ReturnsError: If start value is zero or the window is degenerate
    """
    if start.value == 0:
        raise ReturnsError("Start value is zero")

    # Same point (or an earlier one) on both ends means the series is too
    # short for the window
    if end.date <= start.date:
        raise ReturnsError(
            f"Degenerate window: end {end.date.isoformat()} not after start {start.date.isoformat()}"
        )

    return (end.value - start.value) / start.value


def period_return(
    series: TimeSeries,
    start_date: DateLike,
    end_date: DateLike
) -> Optional[float]:
    """
    Calculate the return of a series between two as-of dates.

    Args:
        series: Date-ordered series
        start_date: Period start (as-of lookup)
        end_date: Period end (as-of lookup)

    Returns:
        Simple return, or None if either lookup fails, the start value is
        zero, or the end point is not strictly after the start point
    """
    start = as_of(series, start_date)
    end = as_of(series, end_date)

    if start is None or end is None:
        missing = to_day(start_date if start is None else end_date)
        logger.debug(f"{series.name}: no point on or before {missing.isoformat()}")
        return None

    try:
        return simple_return(start, end)
    except ReturnsError as e:
        logger.debug(f"{series.name}: {e}")
        return None


def calculate_period_returns(
    series: TimeSeries,
    start_dates: Dict[str, date],
    end_date: DateLike
) -> Dict[str, Optional[float]]:
    """
    Calculate returns for several named windows sharing one end date.

    Args:
        series: Date-ordered series
        start_dates: Mapping of window name to window start date
        end_date: Common period end

    Returns:
        Dictionary mapping window names to returns (or None if unavailable)
    """
    return {
        window: period_return(series, start, end_date)
        for window, start in start_dates.items()
    }
