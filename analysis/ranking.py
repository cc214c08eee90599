"""
Ordering for metric tables.
Enumerated sort keys over Metrics records; unavailable values always sort last.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple, Union

from analysis.metrics_engine import Metrics


class RankingError(Exception):
    """Raised when a sort key cannot be applied to a row."""
    pass


class MetricsSortKey(str, Enum):
    """Sortable metric table columns."""
    NAME = 'name'
    INCEPTION_DATE = 'inception_date'
    LATEST_VALUE = 'latest_value'
    CHANGE_1W = 'change_1w'
    CHANGE_1M = 'change_1m'
    CHANGE_YTD = 'change_ytd'
    CHANGE_ITD = 'change_itd'


@dataclass(frozen=True)
class ExcessSortKey:
    """Sort by excess return against a named benchmark for one window."""
    benchmark: str
    window: str = '1W'


SortKey = Union[MetricsSortKey, ExcessSortKey]
Row = Tuple[str, Metrics]

DEFAULT_SORT_KEY = MetricsSortKey.CHANGE_1W


def sort_value(row: Row, key: SortKey) -> Optional[Any]:
    """
    Extract the value a row is ordered by.

    Args:
        row: (entity name, metrics)
        key: Column to sort by

    Returns:
        Comparable value, or None if unavailable

    Raises:
        RankingError: If an excess key names a benchmark the row lacks
    """
    name, metrics = row

    if isinstance(key, ExcessSortKey):
        excess = metrics.excess_vs(key.benchmark)
        if excess is None:
            raise RankingError(f"No excess returns vs {key.benchmark} for {name}")
        return excess.get(key.window)

    if key == MetricsSortKey.NAME:
        return name
    return getattr(metrics, MetricsSortKey(key).value)


def sort_rows(rows: Sequence[Row], key: SortKey = DEFAULT_SORT_KEY, descending: bool = True) -> List[Row]:
    """
    Order metric table rows by a column.

    Rows whose value is None are placed last in either direction; ties keep
    their input order.

    Args:
        rows: (entity name, metrics) pairs
        key: Column to sort by
        descending: Largest first when True

    Returns:
        New sorted list
    """
    keyed = [(sort_value(row, key), row) for row in rows]
    present = [item for item in keyed if item[0] is not None]
    missing = [row for value, row in keyed if value is None]

    present.sort(key=lambda item: item[0], reverse=descending)
    return [row for _, row in present] + missing
