"""
业务服务层，遵循单一职责原则拆分为独立服务。
"""
from typing import Any, Dict, List, Optional, Tuple

from ebay_orders.analytics.filters import (
    filter_base, filter_by_date, filter_list, other_rows, paginate, paid_at, payout_at, sort_rows,
)
from ebay_orders.analytics.report import build_report
from ebay_orders.analytics.series import compute_kpi, daily_series, top_n_by_group
from ebay_orders.importer import parse_excel_to_rows
from ebay_orders.models import DashboardView, FilterState, OrderRow, ReportPayload
from ebay_orders.pricing.engine import (
    PricingContext, clear_overrides, price_rows, profit, set_group_cost, set_override, to_finite,
)
from ebay_orders.pricing.identity import row_id
from ebay_orders.storage import CostStateStore


class ImportService:
    """
    导入服务：专门负责将外部数据导入为内部模型。
    纯内存操作。
    """
    def import_from_excel(self, file_content: bytes, filename: str = "") -> List[OrderRow]:
        """从 Excel / CSV 字节流导入订单数据"""
        return parse_excel_to_rows(file_content, filename)


class CostService:
    """
    成本服务：维护分类成本与单条覆盖两张表，每次修改都生成新字典并持久化。
    """
    def __init__(self, store: Optional[CostStateStore] = None):
        self.store = store or CostStateStore()
        self.cost_map: Dict[str, float] = self.store.load_cost_map()
        self.overrides: Dict[str, float] = self.store.load_overrides()

    @property
    def context(self) -> PricingContext:
        return PricingContext(cost_map=dict(self.cost_map), overrides=dict(self.overrides))

    def set_group_cost(self, group: str, value: Any) -> None:
        self.cost_map = set_group_cost(self.cost_map, group, value)
        self.store.save_cost_map(self.cost_map)

    def set_row_override(self, row: OrderRow, value: Any) -> str:
        """设置（或在输入为空时清除）某行的单条成本，返回行 ID。"""
        rid = row_id(row)
        self.set_override_for_id(rid, value)
        return rid

    def set_override_for_id(self, rid: str, value: Any) -> None:
        self.overrides = set_override(self.overrides, rid, value)
        self.store.save_overrides(self.overrides)

    def sync_dataframe_overrides(self, original_df: Any, edited_df: Any) -> int:
        """
        将订单明细表中编辑过的“单条成本”回写到覆盖表。
        两张表需包含 cost_override 列，original_df 还需包含 row_id 列。
        行 ID 可能撞车，不能当索引用，这里按行位置逐一比较。
        返回: 实际变更的行数
        """
        if edited_df.empty:
            return 0

        count = 0
        for rid, old_value, new_value in zip(
            original_df["row_id"].tolist(),
            original_df["cost_override"].tolist(),
            edited_df["cost_override"].tolist(),
        ):
            # 空值 / NaN 都视为“未设置”
            if to_finite(old_value) == to_finite(new_value):
                continue
            self.set_override_for_id(rid, new_value)
            count += 1
        return count

    def clear_row_override(self, row: OrderRow) -> None:
        self.set_row_override(row, None)

    def clear_all_overrides(self) -> int:
        count = len(self.overrides)
        self.overrides = clear_overrides()
        self.store.save_overrides(self.overrides)
        return count


class AnalyticsService:
    """
    分析服务：筛选、聚合与报告。纯内存操作，每次从头计算。
    """
    def build_view(self, rows: List[OrderRow], filters: FilterState, ctx: PricingContext) -> DashboardView:
        base = filter_base(rows, filters.status, filters.category, filters.group, filters.q)
        # GMV 只看付款时间，回款/利润只看回款时间
        paid = filter_by_date(base, paid_at, filters.paid_start, filters.paid_end)
        payout = filter_by_date(base, payout_at, filters.payout_start, filters.payout_end)
        listed = filter_list(rows, filters)

        profit_of = lambda r: profit(ctx, r)
        return DashboardView(
            base_rows=base,
            paid_rows=paid,
            payout_rows=payout,
            list_rows=listed,
            kpi=compute_kpi(base, listed, paid, payout, ctx),
            top_gmv=top_n_by_group(paid, lambda r: r.gmv_usd),
            top_payout=top_n_by_group(payout, lambda r: r.payout_cny),
            top_profit=top_n_by_group(payout, profit_of),
            gmv_series=daily_series(paid, paid_at, lambda r: r.gmv_usd, filters.paid_start, filters.paid_end),
            payout_series=daily_series(
                payout, payout_at, lambda r: r.payout_cny, filters.payout_start, filters.payout_end
            ),
            profit_series=daily_series(payout, payout_at, profit_of, filters.payout_start, filters.payout_end),
            other_rows=other_rows(base),
        )

    def build_report(self, view: DashboardView, ctx: PricingContext) -> ReportPayload:
        return build_report(view, ctx)

    def order_table(
        self, view: DashboardView, filters: FilterState, ctx: PricingContext
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        明细表：排序 + 分页后计算成本利润。
        返回: (当前页的扁平化数据, 筛选后总行数)
        """
        ordered = sort_rows(view.list_rows, ctx, filters.sort_key, filters.sort_dir)
        page_rows = paginate(ordered, filters.page, filters.page_size)
        return price_rows(page_rows, ctx), len(ordered)
