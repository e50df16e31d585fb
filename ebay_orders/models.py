"""
数据模型定义模块。
定义了项目中使用的核心数据结构：订单行 OrderRow，以及聚合/报告用的结果结构。
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

# 下拉筛选里的“全部”选项
ALL = "全部"

UNKNOWN_STATUS = "未知"
OTHER_GROUP = "Other"


@dataclass(frozen=True)
class OrderRow:
    """
    代表 Excel 中的一条订单记录（已标准化）。
    title_group 在导入时由标题分类得出，之后不再修改。
    """
    sku: str = ""
    name: str = ""                       # 商品标题
    category: str = ""                   # 卡片类目 (来自表格)
    payout_status: str = UNKNOWN_STATUS  # 回款状态

    sold_qty: float = 0.0
    gmv_usd: float = 0.0                 # 成交金额 ($)
    payout_cny: float = 0.0              # 回款金额 (¥)

    paid_at: Optional[datetime] = None   # eBay用户付款时间
    payout_at: Optional[datetime] = None # 回款时间

    title_group: str = OTHER_GROUP       # 标题分类


@dataclass(frozen=True)
class TopItem:
    group: str
    value: float


@dataclass(frozen=True)
class DailyPoint:
    date: str   # YYYY-MM-DD
    value: float


@dataclass
class Kpi:
    """顶部 KPI：GMV 按付款口径，回款/成本/利润按回款口径。"""
    base_count: int = 0
    list_count: int = 0
    gmv_usd: float = 0.0
    payout_cny: float = 0.0
    total_cost: float = 0.0
    total_profit: float = 0.0
    margin: float = 0.0


@dataclass
class FilterState:
    """
    筛选/排序/分页状态。
    两套日期范围互相独立：paid_* 只影响 GMV，payout_* 只影响回款与利润。
    """
    status: str = ALL
    category: str = ALL
    group: str = ALL
    q: str = ""
    paid_start: Optional[date] = None
    paid_end: Optional[date] = None
    payout_start: Optional[date] = None
    payout_end: Optional[date] = None
    sort_key: str = "profit"   # profit / payout / gmv / lot
    sort_dir: str = "desc"     # desc / asc
    page: int = 1
    page_size: int = 50


@dataclass
class DashboardView:
    """
    一次完整计算得到的视图数据，供报告、CLI 和 Web 页面使用。
    """
    base_rows: List[OrderRow] = field(default_factory=list)     # 基础筛选（不含日期）
    paid_rows: List[OrderRow] = field(default_factory=list)     # 付款时间窗口（GMV 口径）
    payout_rows: List[OrderRow] = field(default_factory=list)   # 回款时间窗口（回款/利润口径）
    list_rows: List[OrderRow] = field(default_factory=list)     # 明细：两套日期同时生效
    kpi: Kpi = field(default_factory=Kpi)
    top_gmv: List[TopItem] = field(default_factory=list)
    top_payout: List[TopItem] = field(default_factory=list)
    top_profit: List[TopItem] = field(default_factory=list)
    gmv_series: List[DailyPoint] = field(default_factory=list)
    payout_series: List[DailyPoint] = field(default_factory=list)
    profit_series: List[DailyPoint] = field(default_factory=list)
    other_rows: List[OrderRow] = field(default_factory=list)


@dataclass
class ReportPayload:
    summary: str = ""
    status_line: str = ""
    highlights: List[str] = field(default_factory=list)
    risks: List[str] = field(default_factory=list)
    actions: List[str] = field(default_factory=list)
    note: str = ""
    copy_text: str = ""
