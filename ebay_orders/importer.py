"""
数据导入模块。
负责解析上传的 Excel / CSV 文件，将其转换为内部的 OrderRow 模型。
支持智能表头识别（表头不一定在第一行）和列名模糊匹配。
"""
import csv
import math
import numbers
import re
from datetime import date, datetime, timedelta, timezone
from io import BytesIO, StringIO
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from ebay_orders.classify.rules import classify_title
from ebay_orders.models import UNKNOWN_STATUS, OrderRow

RawRow = Mapping[str, Any]

# 列名映射字典 (目标字段 -> 可能的 Excel 列名列表，按优先级)
COLUMN_MAPPING: Dict[str, List[str]] = {
    "sku": ["库存sku", "SKU", "sku", "Custom label (SKU)", "Custom label"],
    "name": ["商品名称", "标题", "名称", "Item title", "Title"],
    "category": ["卡片类目", "类目", "Category"],
    "payout_status": ["回款状态", "Payout status"],
    "sold_qty": ["售出数量", "数量", "Quantity", "Qty"],
    "gmv_usd": ["成交金额($)", "成交金额USD", "成交金额", "GMV", "Sold for", "Total price"],
    "payout_cny": ["回款金额(¥)", "回款金额CNY", "回款金额", "Payout amount", "Payout"],
    "paid_at": ["eBay用户付款时间", "付款时间", "Paid on date", "Paid at", "Paid date"],
    "payout_at": ["回款时间", "Payout date", "Payout at"],
}

# Excel 序列日期的起点 (1900 日期系统，已包含 1900-02-29 的历史偏差)
EXCEL_EPOCH = datetime(1899, 12, 30)
# 合理的序列日期范围：1900-01-01 ~ 9999-12-31
EXCEL_SERIAL_MIN = 1
EXCEL_SERIAL_MAX = 2958465

_NUMBER_JUNK_RE = re.compile(r"[,\s$¥￥€£]|USD|CNY|RMB", re.IGNORECASE)


class IngestionError(ValueError):
    """文件无法读取或格式不对时抛出，由调用方展示给用户。"""


def parse_excel_to_rows(file_content: bytes, filename: str = "") -> List[OrderRow]:
    """
    解析 Excel (首个工作表) 或 CSV 文件内容为 OrderRow 列表。
    支持自动探测表头行（不一定在第一行）。
    """
    try:
        if filename.lower().endswith(".csv"):
            df_raw = _read_csv_raw(file_content)
        else:
            df_raw = pd.read_excel(BytesIO(file_content), header=None, dtype=object)
    except Exception as e:
        raise IngestionError(f"无法读取文件 {filename or ''}: {e}") from e

    if df_raw.empty:
        return []

    # 1. 探测表头行，没找到明显表头时默认第一行
    header_row_index = _detect_header_row(df_raw)
    if header_row_index is None:
        header_row_index = 0

    df = df_raw.iloc[header_row_index + 1:].copy()
    df.columns = [_cell_to_header(v, i) for i, v in enumerate(df_raw.iloc[header_row_index])]
    df = df.dropna(how="all").reset_index(drop=True)

    # 2. 转成原始记录 (列名 -> 单元格)，空单元格统一为 ""
    raw = [
        {col: ("" if _is_missing(v) else v) for col, v in rec.items()}
        for rec in df.to_dict(orient="records")
    ]
    return map_raw_rows(raw)


def map_raw_rows(raw: List[RawRow]) -> List[OrderRow]:
    """
    原始记录 -> OrderRow。
    只对第一行做一次表头匹配，然后复用，避免每行都扫描。
    """
    if not raw:
        return []

    col_map = build_column_map(list(raw[0].keys()))

    def _get(r: RawRow, key: str) -> Any:
        col = col_map.get(key)
        return r.get(col) if col is not None else None

    rows = []
    for r in raw:
        name = _as_str(_get(r, "name"))
        rows.append(OrderRow(
            sku=_as_str(_get(r, "sku")),
            name=name,
            category=_as_str(_get(r, "category")),
            payout_status=_as_str(_get(r, "payout_status")) or UNKNOWN_STATUS,
            sold_qty=to_number(_get(r, "sold_qty")),
            gmv_usd=to_number(_get(r, "gmv_usd")),
            payout_cny=to_number(_get(r, "payout_cny")),
            paid_at=to_datetime(_get(r, "paid_at")),
            payout_at=to_datetime(_get(r, "payout_at")),
            title_group=classify_title(name),
        ))
    return rows


def norm_header(h: Any) -> str:
    """表头标准化：去空白和括号，$ -> USD，¥ -> CNY，统一小写。"""
    s = "" if h is None else str(h)
    s = re.sub(r"\s+", "", s.strip())
    s = re.sub(r"[()（）\[\]【】]", "", s)
    s = s.replace("$", "USD").replace("¥", "CNY").replace("￥", "CNY")
    return s.lower()


def build_column_map(columns: List[Any]) -> Dict[str, Any]:
    """
    根据预定义的映射表，找到实际列名。
    先对所有字段做精确匹配，剩下的字段再做包含匹配；
    包含匹配不会再选中已被其它字段占用的列（例如 "Payout status" 不能同时当作回款金额）。
    返回: { "internal_key": "Actual Column Name" }
    """
    normed = [(norm_header(c), c) for c in columns]
    exact = {}
    for n, c in normed:
        exact.setdefault(n, c)

    result = {}
    used = set()
    for key, candidates in COLUMN_MAPPING.items():
        found = next((exact[cn] for cn in map(norm_header, candidates) if cn in exact), None)
        if found is not None and found not in used:
            result[key] = found
            used.add(found)

    for key, candidates in COLUMN_MAPPING.items():
        if key in result:
            continue
        found = next(
            (c for cn in map(norm_header, candidates) for n, c in normed if cn and cn in n and c not in used),
            None,
        )
        if found is not None:
            result[key] = found
            used.add(found)
    return result


def to_number(v: Any) -> float:
    """安全解析数值：去掉千分位与货币符号，无法解析时返回 0。"""
    if v is None or isinstance(v, bool):
        return 0.0
    if isinstance(v, numbers.Real):
        n = float(v)
        return n if math.isfinite(n) else 0.0
    s = _NUMBER_JUNK_RE.sub("", str(v).strip())
    if not s:
        return 0.0
    try:
        n = float(s)
    except ValueError:
        return 0.0
    return n if math.isfinite(n) else 0.0


def to_datetime(v: Any) -> Optional[datetime]:
    """
    安全解析日期：支持 datetime / Excel 序列日期 / 文本日期。
    无法解析时返回 None（不报错）。带时区的时间统一转为 UTC 再去掉时区，
    保证同一份文件在任何机器上算出的行 ID 都相同。
    """
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, datetime):
        # pd.Timestamp / NaT 都是 datetime 的子类
        if pd.isna(v):
            return None
        if isinstance(v, pd.Timestamp):
            v = v.to_pydatetime()
        return _naive(v)
    if isinstance(v, date):
        return datetime(v.year, v.month, v.day)
    if isinstance(v, numbers.Real):
        if not math.isfinite(v) or not (EXCEL_SERIAL_MIN <= v <= EXCEL_SERIAL_MAX):
            return None
        # 精确到秒，避免浮点误差带来的毫秒抖动（行 ID 依赖时间字符串）
        return EXCEL_EPOCH + timedelta(seconds=round(float(v) * 86400))
    s = str(v).strip()
    if not s:
        return None
    ts = pd.to_datetime(s, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    return _naive(ts.to_pydatetime())


# ==========================================
# 内部辅助函数
# ==========================================

def _naive(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _read_csv_raw(file_content: bytes) -> pd.DataFrame:
    """
    按最宽的一行确定列数再读取 CSV。
    表头上方的标题行往往逗号更少，直接交给 pandas 会按第一行推断列数而报错。
    """
    text = file_content.decode("utf-8-sig")
    width = max((len(r) for r in csv.reader(StringIO(text))), default=0)
    if width == 0:
        return pd.DataFrame()
    return pd.read_csv(StringIO(text), header=None, names=list(range(width)), dtype=object)


def _is_missing(v: Any) -> bool:
    try:
        return bool(pd.isna(v))
    except (TypeError, ValueError):
        return False


def _as_str(v: Any) -> str:
    if v is None or _is_missing(v):
        return ""
    if isinstance(v, float) and v.is_integer():
        # SKU 等纯数字列被读成 1234.0 时还原为 1234
        return str(int(v))
    return str(v).strip()


def _cell_to_header(v: Any, index: int) -> str:
    if _is_missing(v) or str(v).strip() == "":
        return f"__EMPTY_{index}"
    return str(v).strip()


def _detect_header_row(df: pd.DataFrame, max_scan_rows: int = 20) -> Optional[int]:
    """
    探测哪一行是表头。
    返回行索引，如果没找到返回 None。
    """
    keywords = {norm_header(k) for keys in COLUMN_MAPPING.values() for k in keys}

    best_row_idx = None
    max_matches = 0

    scan_limit = min(len(df), max_scan_rows)
    for i in range(scan_limit):
        row_values = [norm_header(v) for v in df.iloc[i] if not _is_missing(v)]
        matches = sum(1 for v in row_values if v in keywords)
        if matches > max_matches:
            max_matches = matches
            best_row_idx = i

    # 至少要匹配到 2 个列名才算找到 (例如 "SKU" 和 "回款金额")
    if max_matches >= 2:
        return best_row_idx
    return None
