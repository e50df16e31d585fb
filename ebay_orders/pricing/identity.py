"""
稳定行 ID 模块。
单条成本覆盖以行 ID 为键保存，重新导入同一份 Excel 时需要算出相同的 ID，
所以这里只用“相对稳定”的字段：SKU + 标题 + 付款时间 + 回款时间。

注意：这是非加密的 32 位哈希，不同订单可能撞到同一个 ID，
撞上时两条订单共用一条覆盖。不要改用行号等不稳定的键。
"""
from datetime import datetime
from typing import Optional

from ebay_orders.models import OrderRow

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
_MASK32 = 0xFFFFFFFF
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, r = divmod(n, 36)
        digits.append(_BASE36[r])
    return "".join(reversed(digits))


def hash_str(s: str) -> str:
    """
    FNV-1a 32 位哈希，输出无符号 36 进制字符串。
    按 UTF-16 码元逐个参与运算，与浏览器版本生成的 ID 保持一致。
    """
    h = FNV_OFFSET_BASIS
    data = s.encode("utf-16-le")
    for i in range(0, len(data), 2):
        h ^= data[i] | (data[i + 1] << 8)
        h = (h * FNV_PRIME) & _MASK32
    return _to_base36(h)


def iso_or_empty(dt: Optional[datetime]) -> str:
    """毫秒精度的 ISO 时间字符串，空值返回空串。"""
    if dt is None:
        return ""
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def row_id(row: OrderRow) -> str:
    return hash_str(
        "|".join([
            row.sku or "",
            row.name or "",
            iso_or_empty(row.paid_at),
            iso_or_empty(row.payout_at),
        ])
    )
