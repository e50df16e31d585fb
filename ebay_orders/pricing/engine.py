"""
成本与利润计算引擎模块。
成本优先使用“单条覆盖”，否则使用“分类默认成本”，两张成本表都通过 PricingContext 显式传入。
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ebay_orders.classify.lot import parse_lot_count
from ebay_orders.models import OrderRow
from ebay_orders.pricing.identity import iso_or_empty, row_id

# 默认成本（每 1 lot 成本，人民币）
COST_DEFAULTS: Dict[str, float] = {
    "AR/CHR": 2,
    "Ball Holo": 0.2,
    "Japanese": 0.5,
    "KFC Pack": 3,
    "Logo Reverse Holo": 1,
    "Master Ball": 0.7,
    "Mix": 0.2,
    "OCD": 14,
    "RR Only": 0.4,
    "RR+RRR": 0.6,
    "RRR+VMAX": 0.7,
    "SR/HR": 3,
    "Sealed": 0,
    "TAG TEAM": 0,
    "Trainer Item / Supporter": 0,
    "V/VMAX/VSTAR": 0,
    "VSTAR Universe": 0,
    "VSTAR Universe (Sealed)": 0,
    "VSTAR Universe (Singles)": 0,
    "VSTAR Universe (Lots)": 0,
    "VSTAR Universe (Master Ball)": 0.7,
    "VSTAR Universe (AR/CHR)": 2,
    "VSTAR Universe (SR/HR)": 3,
    "Other": 0,
}


def to_finite(value: Any) -> Optional[float]:
    """转换为有限浮点数，失败返回 None。"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        n = float(value)
    except (ValueError, TypeError):
        return None
    return n if math.isfinite(n) else None


@dataclass(frozen=True)
class PricingContext:
    """
    定价上下文。
    - cost_map: 分类 -> 每 lot 成本
    - overrides: 行 ID -> 每 lot 成本 (稀疏，缺省即使用分类默认)
    """
    cost_map: Mapping[str, float] = field(default_factory=lambda: dict(COST_DEFAULTS))
    overrides: Mapping[str, float] = field(default_factory=dict)


def lot_count_of(row: OrderRow) -> int:
    return parse_lot_count(row.name)


def cost_per_lot_of_group(ctx: PricingContext, group: str) -> float:
    v = to_finite(ctx.cost_map.get(group))
    return v if v is not None else 0.0


def override_of(ctx: PricingContext, row: OrderRow) -> Optional[float]:
    """该行的单条覆盖成本，没有（或不是有效数字）返回 None。"""
    return to_finite(ctx.overrides.get(row_id(row)))


def effective_unit_cost(ctx: PricingContext, row: OrderRow) -> float:
    v = override_of(ctx, row)
    return v if v is not None else cost_per_lot_of_group(ctx, row.title_group)


def total_cost(ctx: PricingContext, row: OrderRow) -> float:
    return effective_unit_cost(ctx, row) * lot_count_of(row)


def total_cost_default(ctx: PricingContext, row: OrderRow) -> float:
    return cost_per_lot_of_group(ctx, row.title_group) * lot_count_of(row)


def profit(ctx: PricingContext, row: OrderRow) -> float:
    """没有回款的订单利润记为 0（尚未实现），而不是负成本。"""
    if not row.payout_cny or row.payout_cny <= 0:
        return 0.0
    return row.payout_cny - total_cost(ctx, row)


def default_profit(ctx: PricingContext, row: OrderRow) -> float:
    """忽略单条覆盖、只用分类默认成本的利润，用于衡量覆盖带来的差额。"""
    if not row.payout_cny or row.payout_cny <= 0:
        return 0.0
    return row.payout_cny - total_cost_default(ctx, row)


# ==========================================
# 成本表编辑 (返回新字典，不原地修改)
# ==========================================

def merge_cost_map(stored: Optional[Mapping[str, Any]] = None) -> Dict[str, float]:
    """把用户保存的成本合并到默认成本之上，非法值按 0 处理。"""
    merged = dict(COST_DEFAULTS)
    for group, value in (stored or {}).items():
        v = to_finite(value)
        merged[str(group)] = v if v is not None else 0.0
    return merged


def set_group_cost(cost_map: Mapping[str, float], group: str, value: Any) -> Dict[str, float]:
    v = to_finite(value)
    updated = dict(cost_map)
    updated[group] = v if v is not None else 0.0
    return updated


def set_override(overrides: Mapping[str, float], rid: str, value: Any) -> Dict[str, float]:
    """设置单条覆盖；输入为空或不是数字时视为清除。"""
    v = to_finite(value)
    updated = dict(overrides)
    if v is None:
        updated.pop(rid, None)
    else:
        updated[rid] = v
    return updated


def clear_override(overrides: Mapping[str, float], rid: str) -> Dict[str, float]:
    return set_override(overrides, rid, None)


def clear_overrides() -> Dict[str, float]:
    return {}


def price_rows(rows: List[OrderRow], ctx: PricingContext) -> List[Dict[str, Any]]:
    """
    批量计算成本与利润，返回扁平化的字典列表（用于表格展示）。
    """
    priced = []
    for row in rows:
        rid = row_id(row)
        lot = lot_count_of(row)
        cpl = effective_unit_cost(ctx, row)
        priced.append({
            "row_id": rid,
            "title_group": row.title_group,
            "sku": row.sku,
            "name": row.name,
            "category": row.category,
            "payout_status": row.payout_status,
            "sold_qty": row.sold_qty,
            "lot_count": lot,
            "gmv_usd": row.gmv_usd,
            "payout_cny": row.payout_cny,
            "cost_per_lot_cny": cpl,
            "cost_override": override_of(ctx, row),
            "total_cost_cny": round(cpl * lot, 2),
            "profit_cny": round(profit(ctx, row), 2),
            "paid_at": iso_or_empty(row.paid_at),
            "payout_at": iso_or_empty(row.payout_at),
        })
    return priced
