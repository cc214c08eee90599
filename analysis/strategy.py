"""
Strategy batch computation.
Computes benchmark metrics first, then product metrics with excess returns
against every benchmark in the same strategy.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from analysis.metrics_engine import Metrics, compute_metrics
from series.models import DataError, SeriesKind, TimeSeries

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Strategy:
    """Named group of product series plus the benchmarks they are compared to."""
    name: str
    products: Tuple[TimeSeries, ...] = ()
    benchmarks: Tuple[TimeSeries, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'products', tuple(self.products))
        object.__setattr__(self, 'benchmarks', tuple(self.benchmarks))

        for series in self.products:
            if series.kind != SeriesKind.PRODUCT:
                raise ValueError(f"{series.name} is not a product series")
        for series in self.benchmarks:
            if series.kind != SeriesKind.BENCHMARK:
                raise ValueError(f"{series.name} is not a benchmark series")


@dataclass(frozen=True)
class StrategyReport:
    """Metrics for every entity of one strategy."""
    strategy: Strategy
    product_metrics: Dict[str, Metrics] = field(default_factory=dict)
    benchmark_metrics: Dict[str, Metrics] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.strategy.name

    @property
    def inception_date(self) -> Optional[date]:
        """Earliest product inception, used as the ITD chart start."""
        dates = [m.inception_date for m in self.product_metrics.values()]
        return min(dates) if dates else None


def calculate_strategy_metrics(strategy: Strategy, months: Optional[int] = None) -> StrategyReport:
    """
    Compute metrics for all benchmarks and products of a strategy.

    An entity with no points is recorded in ``errors`` and skipped; the
    rest of the strategy is still computed.

    Args:
        strategy: Strategy to compute
        months: Trailing months in each monthly breakdown

    Returns:
        StrategyReport keyed by entity name
    """
    logger.info(
        f"Computing metrics for strategy {strategy.name}: "
        f"{len(strategy.products)} products, {len(strategy.benchmarks)} benchmarks"
    )

    errors = {}

    benchmark_metrics = {}
    for bench in strategy.benchmarks:
        try:
            benchmark_metrics[bench.name] = compute_metrics(bench, months=months)
        except DataError as e:
            logger.warning(f"Skipping benchmark {bench.name} in {strategy.name}: {e}")
            errors[bench.name] = str(e)

    product_metrics = {}
    for prod in strategy.products:
        try:
            product_metrics[prod.name] = compute_metrics(prod, strategy.benchmarks, months=months)
        except DataError as e:
            logger.warning(f"Skipping product {prod.name} in {strategy.name}: {e}")
            errors[prod.name] = str(e)

    return StrategyReport(
        strategy=strategy,
        product_metrics=product_metrics,
        benchmark_metrics=benchmark_metrics,
        errors=errors
    )


def calculate_all_metrics(strategies: Sequence[Strategy], months: Optional[int] = None) -> List[StrategyReport]:
    """Compute a StrategyReport for each strategy, in input order."""
    return [calculate_strategy_metrics(s, months=months) for s in strategies]


def replace_benchmarks(
    strategies: Sequence[Strategy],
    strategy_name: str,
    benchmarks: Sequence[TimeSeries]
) -> List[Strategy]:
    """
    Swap in a new benchmark set for one strategy.

    The named strategy's benchmarks are replaced wholesale; other
    strategies are returned unchanged.
    """
    return [
        Strategy(name=s.name, products=s.products, benchmarks=tuple(benchmarks))
        if s.name == strategy_name else s
        for s in strategies
    ]


def strategy_inception_date(products: Sequence[TimeSeries]) -> Optional[date]:
    """Earliest inception date among non-empty products, or None."""
    dates = [p.first().date for p in products if not p.is_empty]
    return min(dates) if dates else None


def latest_date(products: Sequence[TimeSeries]) -> Optional[date]:
    """Latest observation date among non-empty products, or None."""
    dates = [p.last().date for p in products if not p.is_empty]
    return max(dates) if dates else None
