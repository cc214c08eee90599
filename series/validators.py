"""
Validators for raw NAV points.
Pure functions - no IO, network, or side effects beyond logging dropped rows.
"""

import logging
import math
import numbers
import os
from datetime import date
from typing import Any, Iterable, List, Optional, Tuple

from dotenv import load_dotenv

from series.models import DataPoint, to_day

load_dotenv()

logger = logging.getLogger(__name__)


class ValidationError(ValueError):
    """Raised when point validation fails."""
    pass


def _strict_positive_default() -> bool:
    return os.getenv('NAV_STRICT_POSITIVE_VALUES', 'false').strip().lower() in ('1', 'true', 'yes')


def validate_point(raw_date: Any, raw_value: Any, strict_positive: bool = False) -> DataPoint:
    """
    Validate one raw (date, value) pair and convert it to a DataPoint.

    Args:
        raw_date: date, datetime or ISO string
        raw_value: int, float or numeric string
        strict_positive: Also reject zero and negative values

    Returns:
        DataPoint at day granularity

    Raises:
        ValidationError: If date or value is malformed
    """
    if raw_date is None:
        raise ValidationError("date is required")

    try:
        day = to_day(raw_date)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"invalid date {raw_date!r}: {e}")

    if isinstance(raw_value, bool) or raw_value is None:
        raise ValidationError(f"value must be numeric, got {type(raw_value)}")

    if isinstance(raw_value, str):
        try:
            raw_value = float(raw_value.strip())
        except ValueError:
            raise ValidationError(f"value must be numeric, got {raw_value!r}")

    if not isinstance(raw_value, numbers.Real):
        raise ValidationError(f"value must be numeric, got {type(raw_value)}")

    value = float(raw_value)
    if not math.isfinite(value):
        raise ValidationError(f"value must be finite, got {value}")

    if strict_positive and value <= 0:
        raise ValidationError(f"value must be positive, got {value}")

    return DataPoint(date=day, value=value)


def sanitize_points(
    pairs: Iterable[Tuple[Any, Any]],
    name: str = '<unnamed>',
    strict_positive: Optional[bool] = None
) -> List[DataPoint]:
    """
    Convert raw pairs to date-ordered DataPoints, dropping malformed pairs.

    Sorting is stable, so points sharing a date keep their input order.

    Args:
        pairs: Iterable of (date, value)
        name: Series name used in log messages
        strict_positive: Drop non-positive values (defaults to
            NAV_STRICT_POSITIVE_VALUES)

    Returns:
        List of valid DataPoints sorted by date
    """
    if strict_positive is None:
        strict_positive = _strict_positive_default()

    points = []
    dropped = 0
    for i, pair in enumerate(pairs):
        try:
            raw_date, raw_value = pair
            points.append(validate_point(raw_date, raw_value, strict_positive=strict_positive))
        except (ValidationError, TypeError, ValueError) as e:
            dropped += 1
            logger.warning(f"Dropping point {i} of {name}: {e}")

    if dropped:
        logger.info(f"Kept {len(points)} points for {name}, dropped {dropped}")

    return sorted(points, key=lambda p: p.date)


def check_date_order(points: List[DataPoint]) -> List[date]:
    """
    Find points that break non-decreasing date order.

    Args:
        points: Points in series order

    Returns:
        Dates of points that precede their predecessor (empty if ordered)
    """
    violations = []
    for prev, curr in zip(points, points[1:]):
        if curr.date < prev.date:
            violations.append(curr.date)
    return violations
