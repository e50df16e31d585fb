"""
筛选、排序与分页模块。

口径：GMV 按【付款时间】筛选；回款/利润按【回款时间】筛选，两套时间范围互不影响。
只有订单明细列表会同时应用两套范围。
"""
import math
from datetime import date, datetime, time
from typing import Callable, List, Optional

from ebay_orders.models import ALL, OTHER_GROUP, UNKNOWN_STATUS, FilterState, OrderRow
from ebay_orders.pricing.engine import PricingContext, lot_count_of, profit

DateGetter = Callable[[OrderRow], Optional[datetime]]

OTHER_ROWS_LIMIT = 200
PAGE_SIZE_OPTIONS = (20, 50, 100, 200)
SORT_KEYS = ("profit", "payout", "gmv", "lot")


def paid_at(row: OrderRow) -> Optional[datetime]:
    return row.paid_at


def payout_at(row: OrderRow) -> Optional[datetime]:
    return row.payout_at


def status_of(row: OrderRow) -> str:
    return (row.payout_status or UNKNOWN_STATUS).strip() or UNKNOWN_STATUS


def group_of(row: OrderRow) -> str:
    return (row.title_group or OTHER_GROUP).strip() or OTHER_GROUP


def _is_all(value: Optional[str]) -> bool:
    return value is None or value == ALL


def filter_base(
    rows: List[OrderRow],
    status: Optional[str] = ALL,
    category: Optional[str] = ALL,
    group: Optional[str] = ALL,
    q: str = "",
) -> List[OrderRow]:
    """基础筛选（不含日期）：回款状态 / 类目 / 标题分类 / 关键词 (SKU 或标题)。"""
    qq = (q or "").strip().lower()
    out = []
    for r in rows:
        if not _is_all(status) and status_of(r) != status:
            continue
        if not _is_all(category) and (r.category or "") != category:
            continue
        if not _is_all(group) and group_of(r) != group:
            continue
        if qq and qq not in (r.sku or "").lower() and qq not in (r.name or "").lower():
            continue
        out.append(r)
    return out


def _as_start(d: Optional[date]) -> Optional[datetime]:
    if d is None:
        return None
    if isinstance(d, datetime):
        return d
    return datetime.combine(d, time.min)


def _as_end(d: Optional[date]) -> Optional[datetime]:
    # 结束日期扩展到当天 23:59:59.999999
    if d is None:
        return None
    if isinstance(d, datetime):
        d = d.date()
    return datetime.combine(d, time.max)


def filter_by_date(
    rows: List[OrderRow],
    get_dt: DateGetter,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[OrderRow]:
    """按某一个日期维度筛选；设置了任一边界时，该维度缺失日期的行会被排除。"""
    start_dt = _as_start(start)
    end_dt = _as_end(end)
    if start_dt is None and end_dt is None:
        return list(rows)

    out = []
    for r in rows:
        dt = get_dt(r)
        if dt is None:
            continue
        if start_dt is not None and dt < start_dt:
            continue
        if end_dt is not None and dt > end_dt:
            continue
        out.append(r)
    return out


def filter_list(rows: List[OrderRow], filters: FilterState) -> List[OrderRow]:
    """明细列表：基础筛选后同时应用两套日期范围。"""
    out = filter_base(rows, filters.status, filters.category, filters.group, filters.q)
    out = filter_by_date(out, paid_at, filters.paid_start, filters.paid_end)
    return filter_by_date(out, payout_at, filters.payout_start, filters.payout_end)


def other_rows(rows: List[OrderRow], limit: int = OTHER_ROWS_LIMIT) -> List[OrderRow]:
    """未命中分类规则的行（最多 limit 行）。"""
    return [r for r in rows if group_of(r) == OTHER_GROUP][:limit]


def sort_rows(
    rows: List[OrderRow],
    ctx: PricingContext,
    key: str = "profit",
    direction: str = "desc",
) -> List[OrderRow]:
    if key == "profit":
        val = lambda r: profit(ctx, r)
    elif key == "payout":
        val = lambda r: r.payout_cny or 0.0
    elif key == "gmv":
        val = lambda r: r.gmv_usd or 0.0
    else:
        val = lot_count_of
    return sorted(rows, key=val, reverse=(direction != "asc"))


def total_pages(total_rows: int, page_size: int) -> int:
    return max(1, math.ceil(total_rows / max(1, page_size)))


def paginate(rows: List[OrderRow], page: int, page_size: int) -> List[OrderRow]:
    """分页，页码超出范围时夹到 [1, 总页数]。"""
    page_size = max(1, page_size)
    page = min(max(1, page), total_pages(len(rows), page_size))
    start = (page - 1) * page_size
    return rows[start:start + page_size]


def status_options(rows: List[OrderRow]) -> List[str]:
    return [ALL] + sorted({status_of(r) for r in rows})


def category_options(rows: List[OrderRow]) -> List[str]:
    return [ALL] + sorted({(r.category or "").strip() for r in rows} - {""})


def group_options(rows: List[OrderRow]) -> List[str]:
    return [ALL] + sorted({group_of(r) for r in rows})
