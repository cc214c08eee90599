"""
Time series data model.
Immutable NAV series for products and benchmarks at day granularity.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Iterable, List, Tuple, Any, Union

from dateutil import parser as date_parser


class DataError(Exception):
    """Raised when a series cannot support the requested computation."""
    pass


class SeriesKind(str, Enum):
    """Discriminant for the two kinds of series."""
    PRODUCT = 'product'
    BENCHMARK = 'benchmark'


DateLike = Union[date, datetime, str]


def to_day(value: DateLike) -> date:
    """
    Truncate a date-like value to a UTC calendar day.

    Aware datetimes are converted to UTC before truncation; naive datetimes
    are taken to already be UTC. ISO strings are parsed first.

    Args:
        value: date, datetime or ISO-8601 string

    Returns:
        datetime.date for the day

    Raises:
        TypeError: If value is not date-like
    """
    if isinstance(value, str):
        value = date_parser.isoparse(value)

    # datetime is a subclass of date, so check it first
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()

    if isinstance(value, date):
        return value

    raise TypeError(f"Expected date-like value, got {type(value)}")


@dataclass(frozen=True)
class DataPoint:
    """One NAV observation."""
    date: date
    value: float

    def __post_init__(self):
        # datetime subclasses date but does not compare with it
        object.__setattr__(self, 'date', to_day(self.date))


@dataclass(frozen=True)
class TimeSeries:
    """
    Ordered NAV history for one product or benchmark.

    Points are ordered by non-decreasing date. Duplicate dates are allowed
    and kept in input order.
    """
    name: str
    kind: SeriesKind
    points: Tuple[DataPoint, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Accept any iterable but store a tuple so the series stays immutable
        if not isinstance(self.points, tuple):
            object.__setattr__(self, 'points', tuple(self.points))

        from series.validators import check_date_order
        out_of_order = check_date_order(list(self.points))
        if out_of_order:
            raise DataError(
                f"Points for {self.name} are not in date order: "
                f"first violation at {out_of_order[0].isoformat()}"
            )

    @classmethod
    def from_pairs(
        cls,
        name: str,
        kind: SeriesKind,
        pairs: Iterable[Tuple[Any, Any]]
    ) -> 'TimeSeries':
        """Build a series from raw (date, value) pairs, dropping malformed ones."""
        # Local import keeps validators free to import the model
        from series.validators import sanitize_points
        return cls(name=name, kind=SeriesKind(kind), points=tuple(sanitize_points(pairs, name=name)))

    @property
    def is_product(self) -> bool:
        return self.kind == SeriesKind.PRODUCT

    @property
    def is_empty(self) -> bool:
        return len(self.points) == 0

    @property
    def dates(self) -> List[date]:
        return [p.date for p in self.points]

    @property
    def values(self) -> List[float]:
        return [p.value for p in self.points]

    def first(self) -> DataPoint:
        """First (inception) point. Raises DataError if empty."""
        if self.is_empty:
            raise DataError(f"No data for {self.name}")
        return self.points[0]

    def last(self) -> DataPoint:
        """Latest point. Raises DataError if empty."""
        if self.is_empty:
            raise DataError(f"No data for {self.name}")
        return self.points[-1]

    def __len__(self) -> int:
        return len(self.points)


def product(name: str, pairs: Iterable[Tuple[Any, Any]]) -> TimeSeries:
    """Shorthand for a product series built from raw pairs."""
    return TimeSeries.from_pairs(name, SeriesKind.PRODUCT, pairs)


def benchmark(name: str, pairs: Iterable[Tuple[Any, Any]]) -> TimeSeries:
    """Shorthand for a benchmark series built from raw pairs."""
    return TimeSeries.from_pairs(name, SeriesKind.BENCHMARK, pairs)
