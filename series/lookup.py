"""
As-of point lookup.
Backward-looking join over a date-sorted series: never interpolates and never
returns a point dated after the target.
"""

from datetime import date
from typing import Optional, Sequence

from series.models import DataPoint, TimeSeries, DateLike, to_day


def as_of(series: TimeSeries, target_date: DateLike) -> Optional[DataPoint]:
    """
    Find the latest point dated on or before target_date.

    Args:
        series: Series with points in non-decreasing date order
        target_date: Lookup date (truncated to day)

    Returns:
        Matching DataPoint, or None if the series is empty or every point
        postdates target_date. With duplicate dates the last one wins.
    """
    return as_of_points(series.points, to_day(target_date))


def as_of_points(points: Sequence[DataPoint], target_date: date) -> Optional[DataPoint]:
    """as_of over a bare point sequence."""
    # Scan from the end: recent targets are the common case
    for point in reversed(points):
        if point.date <= target_date:
            return point
    return None
