"""
聚合模块：按天趋势、分类 TopN 与 KPI。
"""
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional

from ebay_orders.analytics.filters import DateGetter, group_of
from ebay_orders.models import DailyPoint, Kpi, OrderRow, TopItem
from ebay_orders.pricing.engine import PricingContext, profit, total_cost

ValueGetter = Callable[[OrderRow], float]

TOP_N = 10


def day_key(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def _as_day(d) -> date:
    return d.date() if isinstance(d, datetime) else d


def daily_series(
    rows: List[OrderRow],
    get_dt: DateGetter,
    get_val: ValueGetter,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[DailyPoint]:
    """
    按天求和，生成连续的日序列（没有订单的日期补 0，不跳天）。
    start / end 未设置时取数据中的最早 / 最晚日期。
    """
    if not rows:
        return []

    sums: Dict[date, float] = defaultdict(float)
    min_d: Optional[date] = None
    max_d: Optional[date] = None
    for r in rows:
        dt = get_dt(r)
        if dt is None:
            continue
        d0 = dt.date()
        if min_d is None or d0 < min_d:
            min_d = d0
        if max_d is None or d0 > max_d:
            max_d = d0
        sums[d0] += get_val(r) or 0.0

    first = _as_day(start) if start is not None else min_d
    last = _as_day(end) if end is not None else max_d
    if first is None or last is None:
        return []

    out = []
    d = first
    while d <= last:
        out.append(DailyPoint(date=day_key(d), value=round(sums.get(d, 0.0), 2)))
        d += timedelta(days=1)
    return out


def top_n_by_group(rows: List[OrderRow], get_val: ValueGetter, n: int = TOP_N) -> List[TopItem]:
    """
    按标题分类汇总并取前 n 名，按汇总值降序。
    汇总值相同时按分类名字母序排列，保证结果稳定。
    """
    sums: Dict[str, float] = defaultdict(float)
    for r in rows:
        sums[group_of(r)] += get_val(r) or 0.0

    items = [TopItem(group=g, value=round(v, 2)) for g, v in sums.items()]
    items.sort(key=lambda it: (-it.value, it.group))
    return items[:max(0, n)]


def compute_kpi(
    base_rows: List[OrderRow],
    list_rows: List[OrderRow],
    paid_rows: List[OrderRow],
    payout_rows: List[OrderRow],
    ctx: PricingContext,
) -> Kpi:
    gmv_usd = sum(r.gmv_usd or 0.0 for r in paid_rows)
    payout_cny = sum(r.payout_cny or 0.0 for r in payout_rows)
    # 与 profit() 口径一致：只有回款为正的订单计成本（退款/负回款不计）
    cost = sum(total_cost(ctx, r) for r in payout_rows if (r.payout_cny or 0.0) > 0)
    total_profit = sum(profit(ctx, r) for r in payout_rows)
    return Kpi(
        base_count=len(base_rows),
        list_count=len(list_rows),
        gmv_usd=gmv_usd,
        payout_cny=payout_cny,
        total_cost=cost,
        total_profit=total_profit,
        margin=total_profit / payout_cny if payout_cny > 0 else 0.0,
    )
