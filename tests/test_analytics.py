from datetime import date, datetime

import pytest

from ebay_orders.analytics.filters import (
    OTHER_ROWS_LIMIT,
    category_options,
    filter_base,
    filter_by_date,
    group_options,
    other_rows,
    paginate,
    paid_at,
    payout_at,
    sort_rows,
    status_options,
    total_pages,
)
from ebay_orders.analytics.series import compute_kpi, daily_series, top_n_by_group
from ebay_orders.analytics.stats import median, money, pct_change, percentile, top_counts, window_sums
from ebay_orders.models import ALL, FilterState
from ebay_orders.service import AnalyticsService


class TestFilters:

    def test_base_filter_all_passes_everything(self, scenario_rows):
        assert filter_base(scenario_rows, ALL, ALL, ALL, "") == scenario_rows
        assert filter_base(scenario_rows, None, None, None, None) == scenario_rows

    def test_base_filter_by_status_and_group(self, scenario_rows):
        assert [r.sku for r in filter_base(scenario_rows, status="待回款")] == ["B2"]
        assert [r.sku for r in filter_base(scenario_rows, group="Other")] == ["C3"]

    def test_keyword_matches_sku_or_title_case_insensitive(self, scenario_rows):
        assert [r.sku for r in filter_base(scenario_rows, q="master")] == ["A1"]
        assert [r.sku for r in filter_base(scenario_rows, q="  c3 ")] == ["C3"]
        assert filter_base(scenario_rows, q="nothing-like-this") == []

    def test_missing_status_counts_as_unknown(self, row_factory):
        r = row_factory("x", payout_status="  ")
        assert filter_base([r], status="未知") == [r]

    def test_date_filter_without_bounds_keeps_undated_rows(self, scenario_rows):
        assert filter_by_date(scenario_rows, payout_at) == scenario_rows

    def test_date_filter_with_bound_drops_undated_rows(self, scenario_rows):
        kept = filter_by_date(scenario_rows, payout_at, start=date(2024, 1, 1))
        assert [r.sku for r in kept] == ["A1", "C3"]

    def test_end_date_is_inclusive_of_whole_day(self, row_factory):
        late = row_factory("x", paid_at=datetime(2024, 5, 3, 23, 59, 30))
        next_day = row_factory("y", paid_at=datetime(2024, 5, 4, 0, 0, 0))
        assert filter_by_date([late, next_day], paid_at, end=date(2024, 5, 3)) == [late]

    def test_start_date_is_inclusive(self, row_factory):
        midnight = row_factory("x", paid_at=datetime(2024, 5, 3))
        assert filter_by_date([midnight], paid_at, start=date(2024, 5, 3)) == [midnight]

    def test_other_rows_capped(self, row_factory):
        rows = [row_factory(f"mystery {i}", sku=str(i)) for i in range(OTHER_ROWS_LIMIT + 5)]
        rows.append(row_factory("Master Ball"))
        out = other_rows(rows)
        assert len(out) == OTHER_ROWS_LIMIT
        assert all(r.title_group == "Other" for r in out)

    def test_options_lists(self, scenario_rows, row_factory):
        rows = scenario_rows + [row_factory("x", category="")]
        assert status_options(rows) == [ALL, "已回款", "待回款"]
        assert category_options(rows) == [ALL, "Pokemon"]
        assert group_options(rows) == [ALL, "Master Ball", "Other", "RR Only"]


class TestSortAndPaging:

    def test_sort_by_profit_desc(self, scenario_rows, ctx):
        assert [r.sku for r in sort_rows(scenario_rows, ctx, "profit", "desc")] == ["A1", "C3", "B2"]

    def test_sort_by_gmv_asc(self, scenario_rows, ctx):
        assert [r.sku for r in sort_rows(scenario_rows, ctx, "gmv", "asc")] == ["C3", "B2", "A1"]

    def test_sort_by_lot(self, scenario_rows, ctx):
        assert sort_rows(scenario_rows, ctx, "lot", "desc")[0].sku == "A1"

    def test_total_pages(self):
        assert total_pages(0, 50) == 1
        assert total_pages(50, 50) == 1
        assert total_pages(51, 50) == 2

    def test_paginate_clamps_page(self):
        rows = list(range(45))
        assert paginate(rows, 1, 20) == list(range(20))
        assert paginate(rows, 3, 20) == list(range(40, 45))
        assert paginate(rows, 99, 20) == list(range(40, 45))
        assert paginate(rows, 0, 20) == list(range(20))
        assert paginate([], 5, 20) == []


class TestDailySeries:

    def test_dense_series_fills_gaps_with_zero(self, row_factory):
        rows = [
            row_factory("a", gmv_usd=10, paid_at=datetime(2024, 5, 1, 10)),
            row_factory("b", gmv_usd=5, paid_at=datetime(2024, 5, 3, 9)),
            row_factory("c", gmv_usd=2.5, paid_at=datetime(2024, 5, 3, 22)),
        ]
        series = daily_series(rows, paid_at, lambda r: r.gmv_usd)
        assert [(p.date, p.value) for p in series] == [
            ("2024-05-01", 10.0),
            ("2024-05-02", 0.0),
            ("2024-05-03", 7.5),
        ]

    def test_explicit_bounds_extend_series(self, row_factory):
        rows = [row_factory("a", gmv_usd=1, paid_at=datetime(2024, 5, 2))]
        series = daily_series(rows, paid_at, lambda r: r.gmv_usd, date(2024, 4, 30), date(2024, 5, 4))
        assert [p.date for p in series] == [
            "2024-04-30", "2024-05-01", "2024-05-02", "2024-05-03", "2024-05-04",
        ]
        assert sum(p.value for p in series) == 1

    def test_values_rounded_to_cents(self, row_factory):
        rows = [row_factory("a", gmv_usd=0.1, paid_at=datetime(2024, 5, 1)) for _ in range(3)]
        [point] = daily_series(rows, paid_at, lambda r: r.gmv_usd)
        assert point.value == 0.3

    def test_empty_input(self, row_factory):
        assert daily_series([], paid_at, lambda r: r.gmv_usd) == []
        undated = [row_factory("a", gmv_usd=3)]
        assert daily_series(undated, paid_at, lambda r: r.gmv_usd) == []


class TestTopN:

    def test_bounded_and_descending(self, row_factory):
        rows = [row_factory(name, payout_cny=v) for name, v in [
            ("Master Ball", 5), ("OCD", 50), ("Mix", 20), ("Mix again", 40), ("Sealed", 1),
        ]]
        top = top_n_by_group(rows, lambda r: r.payout_cny, n=3)
        assert [(t.group, t.value) for t in top] == [("Mix", 60), ("OCD", 50), ("Master Ball", 5)]

    def test_ties_are_alphabetical(self, row_factory):
        rows = [row_factory(name, payout_cny=10) for name in ["OCD", "Mix", "Master Ball"]]
        top = top_n_by_group(rows, lambda r: r.payout_cny)
        assert [t.group for t in top] == ["Master Ball", "Mix", "OCD"]

    def test_never_exceeds_ten_by_default(self, row_factory):
        names = [
            "KFC", "Sealed", "Tag Team", "Trainer", "OCD", "Master Ball", "Logo Reverse",
            "Ball Holo", "Mix", "AR", "SR", "Japanese", "RR",
        ]
        rows = [row_factory(n, payout_cny=i + 1) for i, n in enumerate(names)]
        top = top_n_by_group(rows, lambda r: r.payout_cny)
        assert len(top) == 10
        assert top[0].group == "RR Only"


class TestKpiAndWindows:

    def test_scenario_kpi(self, scenario_rows, ctx):
        kpi = compute_kpi(scenario_rows, scenario_rows, scenario_rows, scenario_rows, ctx)
        assert kpi.gmv_usd == pytest.approx(112)
        assert kpi.payout_cny == pytest.approx(560)
        assert kpi.total_cost == pytest.approx(70)
        assert kpi.total_profit == pytest.approx(490)
        assert kpi.margin == pytest.approx(490 / 560)

    def test_margin_zero_without_payout(self, row_factory, ctx):
        rows = [row_factory("Lot 5 Mix", gmv_usd=3)]
        kpi = compute_kpi(rows, rows, rows, rows, ctx)
        assert kpi.margin == 0.0
        assert kpi.total_profit == 0.0

    def test_refund_rows_add_neither_cost_nor_profit(self, row_factory, ctx):
        refund = row_factory("100 Lot Master Ball Holo", payout_cny=-50, payout_at=datetime(2024, 5, 2))
        paid = row_factory("100 Lot Master Ball Holo", sku="A2", payout_cny=500, payout_at=datetime(2024, 5, 2))
        kpi = compute_kpi([refund, paid], [refund, paid], [], [refund, paid], ctx)
        assert kpi.total_cost == pytest.approx(70)
        assert kpi.total_profit == pytest.approx(430)
        assert kpi.payout_cny == pytest.approx(450)

    def test_windows_are_independent(self, scenario_rows, ctx):
        # 付款窗口只留下 B2，回款窗口仍包含 A1 / C3
        filters = FilterState(
            paid_start=date(2024, 5, 2), paid_end=date(2024, 5, 2),
            payout_start=date(2024, 5, 1), payout_end=date(2024, 5, 31),
        )
        view = AnalyticsService().build_view(scenario_rows, filters, ctx)
        assert [r.sku for r in view.paid_rows] == ["B2"]
        assert [r.sku for r in view.payout_rows] == ["A1", "C3"]
        assert view.kpi.gmv_usd == pytest.approx(20)
        assert view.kpi.payout_cny == pytest.approx(560)
        assert view.kpi.total_profit == pytest.approx(490)
        # 明细同时应用两套范围
        assert view.list_rows == []
        assert view.kpi.base_count == 3
        assert view.kpi.list_count == 0

    def test_payout_window_does_not_touch_gmv(self, scenario_rows, ctx):
        narrow = FilterState(payout_start=date(2030, 1, 1))
        view = AnalyticsService().build_view(scenario_rows, narrow, ctx)
        assert view.kpi.gmv_usd == pytest.approx(112)
        assert view.kpi.payout_cny == 0
        assert view.payout_series == []
        assert [p.date for p in view.gmv_series] == ["2024-05-01", "2024-05-02", "2024-05-03"]


class TestStats:

    def test_median(self):
        assert median([3, 1, 2]) == 2
        assert median([4, 1, 3, 2]) == 2.5
        assert median([]) == 0

    def test_percentile_rank_based(self):
        values = list(range(10, 0, -1))
        assert percentile(values, 0.1) == 1
        assert percentile(values, 0.5) == 5
        assert percentile(values, 0.9) == 9
        assert percentile(values, 1.0) == 10
        assert percentile(values, 2.0) == 10
        assert percentile(values, -1) == 1
        assert percentile([], 0.5) == 0
        assert percentile([7], 0.9) == 7

    def test_top_counts(self):
        assert top_counts(["a", "b", "a", "c", "b", "a"], 2) == [("a", 3), ("b", 2)]
        assert top_counts([], 3) == []

    def test_window_sums_and_change(self):
        values = [1] * 7 + [2] * 7
        assert window_sums(values, 7) == (14, 7)
        assert pct_change(14, 7) == 1.0
        assert pct_change(5, 0) == 0.0

    def test_money(self):
        assert money(1234567.891) == "1,234,567.89"
        assert money(0) == "0.00"
        assert money(float("nan")) == "0"
