"""
Tests for the metrics engine.
Small irregular NAV series with hand-computed returns.
"""

import pytest
from datetime import date, datetime

from analysis.metrics_engine import (
    ExcessReturn,
    Metrics,
    compute_excess_returns,
    compute_metrics,
    excess_return,
    monthly_changes,
    reference_dates
)
from series.models import DataError, DataPoint, SeriesKind, TimeSeries


def make_series(points, name='Fund A', kind=SeriesKind.PRODUCT):
    return TimeSeries(
        name=name,
        kind=kind,
        points=[DataPoint(date=d, value=v) for d, v in points]
    )


@pytest.fixture
def product_series():
    return make_series([
        (date(2024, 1, 1), 100.0),
        (date(2024, 1, 8), 102.0),
        (date(2024, 2, 1), 105.0),
    ])


@pytest.fixture
def month_end_series():
    # +10% per month-end observation
    return make_series([
        (date(2023, 12, 31), 100.0),
        (date(2024, 1, 31), 110.0),
        (date(2024, 2, 29), 121.0),
        (date(2024, 3, 31), 133.1),
    ])


class TestReferenceDates:
    """Tests for reference_dates function."""

    def test_basic(self):
        refs = reference_dates(date(2024, 2, 1))

        assert refs == {
            '1W': date(2024, 1, 25),
            '1M': date(2024, 1, 1),
            'YTD': date(2024, 1, 1),
        }

    def test_month_back_is_calendar_aware(self):
        """One month before Mar 31 clamps to the end of February."""
        refs = reference_dates(date(2024, 3, 31))

        assert refs['1M'] == date(2024, 2, 29)

    def test_week_back_crosses_year(self):
        refs = reference_dates(date(2024, 1, 3))

        assert refs['1W'] == date(2023, 12, 27)
        assert refs['YTD'] == date(2024, 1, 1)


class TestComputeMetrics:
    """Tests for compute_metrics function."""

    def test_trailing_windows(self, product_series):
        metrics = compute_metrics(product_series)

        assert metrics.inception_date == date(2024, 1, 1)
        assert metrics.latest_date == date(2024, 2, 1)
        assert metrics.latest_value == 105.0

        # 1W start 2024-01-25 resolves to the 2024-01-08 point
        assert abs(metrics.change_1w - (105.0 - 102.0) / 102.0) < 1e-12
        assert abs(metrics.change_1m - 0.05) < 1e-12
        assert abs(metrics.change_ytd - 0.05) < 1e-12
        assert metrics.change_itd == 0.05

    def test_no_excess_without_benchmarks(self, product_series):
        assert compute_metrics(product_series).excess_returns is None
        assert compute_metrics(product_series, []).excess_returns is None

    def test_empty_series_is_hard_failure(self):
        with pytest.raises(DataError, match="No data for Empty"):
            compute_metrics(make_series([], name='Empty'))

    def test_single_point_degrades_gracefully(self):
        """A brand-new product still gets a record with every window absent."""
        metrics = compute_metrics(make_series([(date(2024, 5, 6), 1.0)]))

        assert metrics.latest_value == 1.0
        assert metrics.change_1w is None
        assert metrics.change_1m is None
        assert metrics.change_ytd is None
        assert metrics.change_itd is None
        assert metrics.monthly_changes == ()

    def test_young_product(self):
        """Product younger than a week has ITD but no 1W return."""
        metrics = compute_metrics(make_series([
            (date(2024, 5, 6), 1.0),
            (date(2024, 5, 8), 1.02),
        ]))

        assert metrics.change_1w is None
        assert abs(metrics.change_itd - 0.02) < 1e-12

    def test_ytd_uses_prior_year_close(self, month_end_series):
        """YTD starts from the last point on or before Jan 1."""
        metrics = compute_metrics(month_end_series)

        assert abs(metrics.change_ytd - (133.1 / 100.0 - 1)) < 1e-9

    def test_get_by_window_name(self, product_series):
        metrics = compute_metrics(product_series)

        assert metrics.get('ITD') == metrics.change_itd
        assert metrics.get('ytd') == metrics.change_ytd
        with pytest.raises(KeyError):
            metrics.get('3Y')

    def test_idempotent(self, product_series):
        assert compute_metrics(product_series) == compute_metrics(product_series)

    def test_datetime_dated_points(self):
        """Points dated with midnight datetimes are treated as days."""
        series = make_series([
            (datetime(2024, 1, 1), 100.0),
            (datetime(2024, 2, 1), 105.0),
        ])

        metrics = compute_metrics(series)

        assert metrics.inception_date == date(2024, 1, 1)
        assert metrics.latest_date == date(2024, 2, 1)
        assert metrics.change_itd == 0.05

    def test_duplicate_dates(self):
        """Duplicate dates do not raise; the later point is used."""
        series = make_series([
            (date(2024, 1, 1), 100.0),
            (date(2024, 1, 8), 101.0),
            (date(2024, 1, 8), 102.0),
            (date(2024, 2, 1), 105.0),
        ])

        metrics = compute_metrics(series)

        assert abs(metrics.change_1w - (105.0 - 102.0) / 102.0) < 1e-12
        assert metrics.change_itd == 0.05

    def test_to_dict(self, product_series):
        result = compute_metrics(product_series).to_dict()

        assert result['inception_date'] == '2024-01-01'
        assert result['latest_date'] == '2024-02-01'
        assert result['change_itd'] == 0.05
        assert result['monthly_changes'] == [{'month': 'Feb 2024', 'change': 0.05}]
        assert 'excess_returns' not in result


class TestMonthlyChanges:
    """Tests for monthly_changes function."""

    def test_oldest_first_and_gaps_omitted(self, month_end_series):
        changes = monthly_changes(month_end_series, date(2024, 3, 31), months=6)

        # January needs a point on or before Dec 1 2023, which does not exist
        assert [c.month for c in changes] == ['Feb 2024', 'Mar 2024']
        assert abs(changes[0].change - (121.0 / 100.0 - 1)) < 1e-9
        assert abs(changes[1].change - (133.1 / 110.0 - 1)) < 1e-9
        assert changes[1].anchor_date == date(2024, 3, 1)

    def test_month_count_from_environment(self, month_end_series, monkeypatch):
        monkeypatch.setenv('NAV_MONTHLY_BREAKDOWN_MONTHS', '1')

        changes = monthly_changes(month_end_series, date(2024, 3, 31))

        assert [c.month for c in changes] == ['Mar 2024']

    def test_spans_year_boundary(self):
        series = make_series([
            (date(2023, 10, 31), 1.00),
            (date(2023, 11, 30), 1.01),
            (date(2023, 12, 29), 1.03),
            (date(2024, 1, 31), 1.02),
        ])

        changes = monthly_changes(series, date(2024, 1, 31), months=6)

        assert [c.month for c in changes] == ['Dec 2023', 'Jan 2024']
        assert abs(changes[0].change - (1.03 / 1.00 - 1)) < 1e-9
        assert abs(changes[1].change - (1.02 / 1.01 - 1)) < 1e-9

    def test_at_most_six_by_default(self, monkeypatch):
        monkeypatch.delenv('NAV_MONTHLY_BREAKDOWN_MONTHS', raising=False)
        points = [(date(2023, m, 1), 100.0 + m) for m in range(1, 13)]
        series = make_series(points)

        changes = monthly_changes(series, date(2023, 12, 1))

        assert len(changes) == 6
        assert changes[-1].month == 'Dec 2023'
        assert changes[0].month == 'Jul 2023'


class TestExcessReturns:
    """Tests for excess returns against benchmarks."""

    def test_excess_return_helper(self):
        assert abs(excess_return(0.05, 0.02) - 0.03) < 1e-12
        assert excess_return(None, 0.02) is None
        assert excess_return(0.05, None) is None

    def test_benchmark_younger_than_product(self, product_series):
        """Benchmark ITD starts at product inception, before the benchmark exists."""
        bench = make_series([
            (date(2024, 1, 15), 1000.0),
            (date(2024, 1, 22), 1010.0),
            (date(2024, 2, 1), 1030.0),
        ], name='Index', kind=SeriesKind.BENCHMARK)

        metrics = compute_metrics(product_series, [bench])

        assert len(metrics.excess_returns) == 1
        excess = metrics.excess_returns[0]
        assert excess.vs == 'Index'
        expected_1w = (105.0 - 102.0) / 102.0 - (1030.0 - 1010.0) / 1010.0
        assert abs(excess.change_1w - expected_1w) < 1e-12
        assert excess.change_itd is None

    def test_itd_anchored_to_product_inception(self, product_series):
        """Benchmark's own history before the product began is irrelevant."""
        short = make_series([
            (date(2024, 1, 1), 1000.0),
            (date(2024, 2, 1), 1020.0),
        ], name='Index', kind=SeriesKind.BENCHMARK)
        long = make_series([
            (date(2020, 6, 1), 400.0),
            (date(2024, 1, 1), 1000.0),
            (date(2024, 2, 1), 1020.0),
        ], name='Index', kind=SeriesKind.BENCHMARK)

        itd_short = compute_metrics(product_series, [short]).excess_returns[0].change_itd
        itd_long = compute_metrics(product_series, [long]).excess_returns[0].change_itd

        assert itd_short == itd_long
        assert abs(itd_short - (0.05 - 0.02)) < 1e-12

    def test_one_record_per_benchmark(self, product_series):
        benches = [
            make_series([(date(2024, 1, 1), 10.0), (date(2024, 2, 1), 11.0)], name='A', kind=SeriesKind.BENCHMARK),
            make_series([(date(2024, 1, 1), 10.0), (date(2024, 2, 1), 9.0)], name='B', kind=SeriesKind.BENCHMARK),
        ]

        metrics = compute_metrics(product_series, benches)

        assert [e.vs for e in metrics.excess_returns] == ['A', 'B']
        assert abs(metrics.excess_vs('A').change_itd - (0.05 - 0.10)) < 1e-12
        assert abs(metrics.excess_vs('B').change_itd - (0.05 + 0.10)) < 1e-12
        assert metrics.excess_vs('C') is None

    def test_benchmark_entity_gets_no_excess(self):
        bench = make_series([(date(2024, 1, 1), 1.0), (date(2024, 2, 1), 1.1)], name='A', kind=SeriesKind.BENCHMARK)
        other = make_series([(date(2024, 1, 1), 1.0), (date(2024, 2, 1), 1.2)], name='B', kind=SeriesKind.BENCHMARK)

        assert compute_metrics(bench, [other]).excess_returns is None

    def test_empty_benchmark_series(self, product_series):
        """An empty benchmark yields absent excess fields, not an error."""
        empty = make_series([], name='Empty', kind=SeriesKind.BENCHMARK)

        excess = compute_metrics(product_series, [empty]).excess_returns[0]

        assert excess == ExcessReturn('Empty', None, None, None, None)

    def test_compute_excess_returns_directly(self):
        metrics = Metrics(
            inception_date=date(2024, 1, 1),
            latest_date=date(2024, 2, 1),
            latest_value=105.0,
            change_1w=None,
            change_1m=0.05,
            change_ytd=0.05,
            change_itd=0.05,
        )
        bench = make_series([(date(2024, 1, 1), 10.0), (date(2024, 2, 1), 10.5)], name='A', kind=SeriesKind.BENCHMARK)

        (excess,) = compute_excess_returns(metrics, [bench])

        assert excess.change_1w is None
        assert abs(excess.change_1m) < 1e-12
        assert excess.get('ITD') == excess.change_itd
