"""
Lot 数量解析模块。
从商品标题中解析“一单包含多少张”：100 Lot / Lot 100 / 1.50 Lot -> 150 容错。
"""
import math
import re
from typing import Optional

from ebay_orders.classify.normalize import normalize_title

# 数字前不能紧跟字母数字（等价于单词边界），允许负号以便识别并拒绝负数
_LOT_LEADING_RE = re.compile(r"(?<!\w)(-?\d+(?:\.\d{1,2})?)\s*lot\b", re.IGNORECASE | re.ASCII)
_LOT_TRAILING_RE = re.compile(r"\blot\s*(-?\d+(?:\.\d{1,2})?)\b", re.IGNORECASE | re.ASCII)

# 小数笔误修正 (1.50 -> 150) 的合理区间
TYPO_SCALE = 100
TYPO_MIN_LOT = 10
TYPO_MAX_LOT = 5000


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def find_lot_numeral(title: Optional[str]) -> Optional[str]:
    """返回标题中匹配到的 lot 数字原文，没有则返回 None。"""
    t = normalize_title(title)
    m = _LOT_LEADING_RE.search(t) or _LOT_TRAILING_RE.search(t)
    return m.group(1) if m else None


def parse_lot_count(title: Optional[str]) -> int:
    """
    解析标题中的 Lot 数量，解析不到时返回 1。

    规则:
    1. 先找 "<数字> Lot"，找不到再找 "Lot <数字>"。
    2. 数字非有限值或 <= 0 时返回 1。
    3. 带小数点且小于 10 的数字视为小数点笔误 (1.50 Lot 实为 150)，
       放大 100 倍后落在 [10, 5000] 内才采用。
    4. 其余情况四舍五入取整。
    """
    raw = find_lot_numeral(title)
    if raw is None:
        return 1

    try:
        n = float(raw)
    except ValueError:
        return 1
    if not math.isfinite(n) or n <= 0:
        return 1

    if "." in raw and n < 10:
        scaled = _round_half_up(n * TYPO_SCALE)
        if TYPO_MIN_LOT <= scaled <= TYPO_MAX_LOT:
            return scaled

    return max(1, _round_half_up(n))
