"""
报告用的统计工具。
分位数按排名取值（不插值）：排序后取下标 floor((n-1)*p)，并夹在 [0, n-1]。
"""
import math
from collections import Counter
from typing import Iterable, List, Sequence, Tuple


def median(values: Iterable[float]) -> float:
    a = sorted(values)
    if not a:
        return 0.0
    mid = len(a) // 2
    if len(a) % 2 == 0:
        return (a[mid - 1] + a[mid]) / 2
    return a[mid]


def percentile(values: Iterable[float], p: float) -> float:
    a = sorted(values)
    if not a:
        return 0.0
    idx = min(len(a) - 1, max(0, math.floor((len(a) - 1) * p)))
    return a[idx]


def top_counts(values: Iterable[str], n: int = 3) -> List[Tuple[str, int]]:
    """按出现次数降序取前 n 个；次数相同时保持首次出现的顺序。"""
    return Counter(values).most_common(n)


def share(part: float, whole: float) -> float:
    return part / whole if whole > 0 else 0.0


def pct_change(current: float, previous: float) -> float:
    """环比变化率；上期为 0 时返回 0。"""
    if previous == 0:
        return 0.0
    return (current - previous) / abs(previous)


def window_sums(values: Sequence[float], window: int) -> Tuple[float, float]:
    """最近 window 个值之和，以及再往前 window 个值之和。"""
    recent = sum(values[-window:])
    previous = sum(values[-2 * window:-window])
    return recent, previous


def money(n: float, digits: int = 2) -> str:
    """千分位 + 固定小数位，非有限值显示为 0。"""
    if n is None or not math.isfinite(n):
        return "0"
    return f"{n:,.{digits}f}"
