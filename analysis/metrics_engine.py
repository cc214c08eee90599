"""
Metrics engine - composes period returns into a per-entity Metrics record.
Pure function over an entity series and an optional benchmark set.
"""

import logging
import os
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Dict, Any, Optional, List, Sequence, Tuple

from dateutil.relativedelta import relativedelta
from dotenv import load_dotenv

from analysis.calculations.returns import calculate_period_returns, period_return
from series.models import DataError, TimeSeries

load_dotenv()

logger = logging.getLogger(__name__)

WINDOWS = ('1W', '1M', 'YTD', 'ITD')


@dataclass(frozen=True)
class MonthlyChange:
    """Return for one calendar month of the trailing breakdown."""
    month: str
    change: float
    anchor_date: date


@dataclass(frozen=True)
class ExcessReturn:
    """Product return minus benchmark return, per window."""
    vs: str
    change_1w: Optional[float]
    change_1m: Optional[float]
    change_ytd: Optional[float]
    change_itd: Optional[float]

    def get(self, window: str) -> Optional[float]:
        return _window_value(self, window)


@dataclass(frozen=True)
class Metrics:
    """Derived performance metrics for one product or benchmark."""
    inception_date: date
    latest_date: date
    latest_value: float
    change_1w: Optional[float]
    change_1m: Optional[float]
    change_ytd: Optional[float]
    change_itd: Optional[float]
    monthly_changes: Tuple[MonthlyChange, ...] = ()
    excess_returns: Optional[Tuple[ExcessReturn, ...]] = None

    def get(self, window: str) -> Optional[float]:
        """Return for a window name ('1W', '1M', 'YTD', 'ITD')."""
        return _window_value(self, window)

    def excess_vs(self, benchmark_name: str) -> Optional[ExcessReturn]:
        """Excess-return record against the named benchmark, if computed."""
        for excess in self.excess_returns or ():
            if excess.vs == benchmark_name:
                return excess
        return None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation with ISO dates and raw fractions."""
        result = {
            'inception_date': self.inception_date.isoformat(),
            'latest_date': self.latest_date.isoformat(),
            'latest_value': self.latest_value,
            'change_1w': self.change_1w,
            'change_1m': self.change_1m,
            'change_ytd': self.change_ytd,
            'change_itd': self.change_itd,
            'monthly_changes': [
                {'month': m.month, 'change': m.change} for m in self.monthly_changes
            ],
        }
        if self.excess_returns is not None:
            result['excess_returns'] = [
                {
                    'vs': e.vs,
                    'change_1w': e.change_1w,
                    'change_1m': e.change_1m,
                    'change_ytd': e.change_ytd,
                    'change_itd': e.change_itd,
                }
                for e in self.excess_returns
            ]
        return result


def _window_value(record: Any, window: str) -> Optional[float]:
    field_name = f"change_{window.lower()}"
    if window.upper() not in WINDOWS:
        raise KeyError(f"Unknown window: {window}")
    return getattr(record, field_name)


def reference_dates(latest_date: date) -> Dict[str, date]:
    """
    Trailing window start dates relative to the latest observation.

    Args:
        latest_date: Date of the entity's latest point

    Returns:
        Dictionary with '1W' (7 days back), '1M' (one calendar month back,
        clamped to month end) and 'YTD' (Jan 1 of the same year)
    """
    return {
        '1W': latest_date - timedelta(days=7),
        '1M': latest_date - relativedelta(months=1),
        'YTD': date(latest_date.year, 1, 1),
    }


def monthly_changes(
    series: TimeSeries,
    latest_date: date,
    months: Optional[int] = None
) -> List[MonthlyChange]:
    """
    Calculate returns for the trailing calendar months, oldest first.

    For each anchor month the period runs from the first day of the
    preceding month to the last day of the anchor month. Months without
    enough data are omitted rather than reported as None.

    Args:
        series: Entity series
        latest_date: Date of the entity's latest point
        months: Number of trailing months (defaults to
            NAV_MONTHLY_BREAKDOWN_MONTHS, 6)

    Returns:
        List of MonthlyChange ordered oldest to newest
    """
    if months is None:
        months = int(os.getenv('NAV_MONTHLY_BREAKDOWN_MONTHS', '6'))

    changes = []
    first_of_latest_month = latest_date.replace(day=1)

    for i in range(months):
        anchor = first_of_latest_month - relativedelta(months=i)
        month_end = anchor + relativedelta(months=1) - timedelta(days=1)
        month_start = anchor - relativedelta(months=1)

        change = period_return(series, month_start, month_end)
        if change is None:
            logger.debug(f"{series.name}: no monthly change for {anchor.strftime('%b %Y')}")
            continue

        changes.append(MonthlyChange(
            month=anchor.strftime('%b %Y'),
            change=change,
            anchor_date=anchor
        ))

    changes.reverse()
    return changes


def excess_return(product_change: Optional[float], benchmark_change: Optional[float]) -> Optional[float]:
    """Difference of two returns, or None if either side is unavailable."""
    if product_change is None or benchmark_change is None:
        return None
    return product_change - benchmark_change


def compute_excess_returns(
    metrics: Metrics,
    benchmarks: Sequence[TimeSeries]
) -> Tuple[ExcessReturn, ...]:
    """
    Compare a product's returns against each benchmark over the same windows.

    Benchmark 1W/1M/YTD returns use the product's reference dates. The
    benchmark ITD return starts at the product's inception date, not the
    benchmark's own, so ITD excess reflects performance since the product
    began.

    Args:
        metrics: Product metrics (supplies dates and product returns)
        benchmarks: Benchmark series

    Returns:
        One ExcessReturn per benchmark, in benchmark order
    """
    refs = reference_dates(metrics.latest_date)
    results = []

    for bench in benchmarks:
        # ITD starts at the product inception, not the benchmark's own
        bench_changes = calculate_period_returns(
            bench,
            {**refs, 'ITD': metrics.inception_date},
            metrics.latest_date
        )

        results.append(ExcessReturn(
            vs=bench.name,
            change_1w=excess_return(metrics.change_1w, bench_changes['1W']),
            change_1m=excess_return(metrics.change_1m, bench_changes['1M']),
            change_ytd=excess_return(metrics.change_ytd, bench_changes['YTD']),
            change_itd=excess_return(metrics.change_itd, bench_changes['ITD']),
        ))

    return tuple(results)


def compute_metrics(
    entity: TimeSeries,
    benchmarks: Optional[Sequence[TimeSeries]] = None,
    months: Optional[int] = None
) -> Metrics:
    """
    Compute the full metrics record for a product or benchmark.

    Only an empty series is a hard failure; every other data gap leaves the
    affected field as None.

    Args:
        entity: Product or benchmark series
        benchmarks: Benchmark set for excess returns (products only)
        months: Trailing months in the monthly breakdown

    Returns:
        Metrics record

    Raises:
        DataError: If the entity has no points
    """
    if entity.is_empty:
        raise DataError(f"No data for {entity.name}")

    inception_date = entity.first().date
    latest = entity.last()

    changes = calculate_period_returns(
        entity,
        {**reference_dates(latest.date), 'ITD': inception_date},
        latest.date
    )

    metrics = Metrics(
        inception_date=inception_date,
        latest_date=latest.date,
        latest_value=latest.value,
        change_1w=changes['1W'],
        change_1m=changes['1M'],
        change_ytd=changes['YTD'],
        change_itd=changes['ITD'],
        monthly_changes=tuple(monthly_changes(entity, latest.date, months=months)),
    )

    if entity.is_product and benchmarks:
        excess = compute_excess_returns(metrics, benchmarks)
        metrics = replace(metrics, excess_returns=excess)

    return metrics
