"""
Multi-series alignment for comparison charts.
Merges series onto a shared date axis, rebases each to 1.0 and forward-fills gaps.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from itertools import accumulate
from typing import Dict, Any, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from dateutil.relativedelta import relativedelta

from series.models import DataPoint, SeriesKind, TimeSeries, DateLike, to_day

logger = logging.getLogger(__name__)


class AlignmentError(Exception):
    """Raised when alignment parameters are invalid."""
    pass


class TimeRange(str, Enum):
    """Chart time ranges, valued by their display label."""
    ITD = 'Since Inception'
    Y5 = '5 Years'
    Y3 = '3 Years'
    Y1 = '1 Year'
    YTD = 'YTD'
    M1 = '1 Month'

    @classmethod
    def parse(cls, value: Union['TimeRange', str]) -> 'TimeRange':
        """Accept a TimeRange, its member name ('Y1') or its label ('1 Year')."""
        if isinstance(value, cls):
            return value
        if value in cls.__members__:
            return cls[value]
        try:
            return cls(value)
        except ValueError:
            raise AlignmentError(f"Unknown time range: {value!r}")


_YEARS_BACK = {TimeRange.Y1: 1, TimeRange.Y3: 3, TimeRange.Y5: 5}


@dataclass(frozen=True)
class AlignedSeriesSet:
    """Rebased, forward-filled values on a shared date axis."""
    time_range: TimeRange
    start_date: date
    latest_date: date
    dates: Tuple[date, ...]
    values: Dict[str, Tuple[Optional[float], ...]] = field(default_factory=dict)
    kinds: Dict[str, SeriesKind] = field(default_factory=dict)

    @property
    def names(self) -> List[str]:
        return list(self.values.keys())

    def value_at(self, name: str, day: DateLike) -> Optional[float]:
        """Rebased value of a series on an axis date (None if absent)."""
        day = to_day(day)
        try:
            idx = self.dates.index(day)
        except ValueError:
            raise KeyError(f"{day.isoformat()} is not on the axis")
        return self.values[name][idx]

    def rows(self) -> List[Dict[str, Optional[float]]]:
        """Per-date mapping from series name to value, in axis order."""
        return [
            {name: column[i] for name, column in self.values.items()}
            for i in range(len(self.dates))
        ]

    def to_records(self) -> List[Dict[str, Any]]:
        """Chart rows: {'date': date, <name>: value or None, ...}."""
        return [{'date': d, **row} for d, row in zip(self.dates, self.rows())]

    def to_frame(self) -> pd.DataFrame:
        """DataFrame indexed by date, one float column per series (NaN = absent)."""
        frame = pd.DataFrame(
            {name: [np.nan if v is None else v for v in column] for name, column in self.values.items()},
            index=pd.Index(self.dates, name='date'),
            columns=self.names,
            dtype=float
        )
        return frame


def resolve_start_date(
    time_range: Union[TimeRange, str],
    latest_date: date,
    range_start_override: Optional[DateLike] = None,
    earliest_date: Optional[date] = None
) -> date:
    """
    Window start for a time range, relative to the latest axis date.

    Args:
        time_range: Named range
        latest_date: Last date on the axis
        range_start_override: Start used for ITD (earliest inception of the
            entities in view)
        earliest_date: Fallback ITD start when no override is given

    Returns:
        First date included in the window
    """
    time_range = TimeRange.parse(time_range)

    if time_range == TimeRange.M1:
        return latest_date - relativedelta(months=1)
    if time_range == TimeRange.YTD:
        return date(latest_date.year, 1, 1)
    if time_range in _YEARS_BACK:
        return latest_date - relativedelta(years=_YEARS_BACK[time_range])

    if range_start_override is not None:
        return to_day(range_start_override)
    return earliest_date if earliest_date is not None else latest_date


def rebase_anchor(points: Sequence[DataPoint], start_date: date) -> float:
    """Value of the first point on or after start_date, or 1.0 if none."""
    for point in points:
        if point.date >= start_date:
            return point.value
    return 1.0


def forward_fill(values: Sequence[Optional[float]]) -> List[Optional[float]]:
    """
    Carry the last defined value into later gaps.

    Leading gaps stay None: nothing is filled before a series starts.
    """
    return list(accumulate(values, lambda prev, curr: prev if curr is None else curr))


def _rebased_column(series: TimeSeries, start_date: date, axis: Sequence[date]) -> List[Optional[float]]:
    in_window = [p for p in series.points if p.date >= start_date]
    if not in_window:
        return [None] * len(axis)

    anchor = rebase_anchor(in_window, start_date)
    if anchor == 0:
        logger.warning(f"{series.name}: first in-range value is zero, series cannot be rebased")
        return [None] * len(axis)

    rebased = np.asarray([p.value for p in in_window], dtype=float) / anchor

    # Later duplicates on the same date overwrite earlier ones
    by_date = {}
    for point, value in zip(in_window, rebased):
        by_date[point.date] = float(value)

    return [by_date.get(d) for d in axis]


def align(
    entities: Sequence[TimeSeries],
    time_range: Union[TimeRange, str] = TimeRange.ITD,
    range_start_override: Optional[DateLike] = None
) -> AlignedSeriesSet:
    """
    Align series on a shared date axis for a comparison chart.

    Steps:
    1. Axis = sorted union of every date in every series
    2. Resolve the window start from time_range; keep axis dates >= start
    3. Divide each series by its first in-window value
    4. Forward-fill each series across axis dates once it has started

    Args:
        entities: Series in view
        time_range: Named window
        range_start_override: ITD window start (earliest inception among
            the entities in view); ignored for other ranges

    Returns:
        AlignedSeriesSet
    """
    time_range = TimeRange.parse(time_range)

    axis = sorted({p.date for series in entities for p in series.points})
    latest = axis[-1] if axis else datetime.now(timezone.utc).date()
    earliest = axis[0] if axis else latest

    start = resolve_start_date(time_range, latest, range_start_override, earliest_date=earliest)
    window_axis = [d for d in axis if d >= start]

    logger.debug(
        f"Aligning {len(entities)} series for {time_range.name}: "
        f"{start.isoformat()} to {latest.isoformat()}, {len(window_axis)} dates"
    )

    values = {}
    kinds = {}
    for series in entities:
        column = _rebased_column(series, start, window_axis)
        values[series.name] = tuple(forward_fill(column))
        kinds[series.name] = series.kind

    return AlignedSeriesSet(
        time_range=time_range,
        start_date=start,
        latest_date=latest,
        dates=tuple(window_axis),
        values=values,
        kinds=kinds
    )
