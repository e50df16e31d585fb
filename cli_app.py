"""
简单的命令行入口：读取订单 Excel，分类、计算成本利润并输出自动分析报告。
用法示例：
    python cli_app.py --input orders.xlsx
    python cli_app.py --input orders.xlsx --payout-start 2024-05-01 --payout-end 2024-05-31
    python cli_app.py --input orders.xlsx --set-cost "Master Ball=0.8"
"""
import argparse
import sys
import time
from datetime import date, datetime
from typing import List, Optional

from ebay_orders.analytics.stats import money
from ebay_orders.importer import IngestionError
from ebay_orders.models import ALL, FilterState, TopItem
from ebay_orders.service import AnalyticsService, CostService, ImportService
from ebay_orders.storage import CostStateStore


def parse_ymd(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"日期格式应为 YYYY-MM-DD: {value}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="eBay 订单 Excel 分析：分类 / 成本利润 / 自动报告")
    parser.add_argument("--input", required=True, help="订单 Excel (.xlsx/.xls) 或 CSV 文件")
    parser.add_argument(
        "--state-dir", dest="state_dir", default=None,
        help="成本配置保存目录 (默认读取环境变量 EBAY_ORDERS_STATE_DIR，否则为 .ebay_orders)"
    )

    # 基础筛选
    parser.add_argument("--status", default=ALL, help="回款状态")
    parser.add_argument("--category", default=ALL, help="卡片类目")
    parser.add_argument("--group", default=ALL, help="标题分类")
    parser.add_argument("--q", default="", help="关键词 (SKU/标题)")

    # 两套日期范围
    parser.add_argument("--paid-start", dest="paid_start", type=parse_ymd, help="付款时间起 (GMV 口径)")
    parser.add_argument("--paid-end", dest="paid_end", type=parse_ymd, help="付款时间止 (GMV 口径)")
    parser.add_argument("--payout-start", dest="payout_start", type=parse_ymd, help="回款时间起 (回款/利润口径)")
    parser.add_argument("--payout-end", dest="payout_end", type=parse_ymd, help="回款时间止 (回款/利润口径)")

    # 成本配置
    parser.add_argument(
        "--set-cost", dest="set_cost", action="append", default=[],
        metavar="分类=成本", help="修改分类默认成本 (每 lot, 人民币)，可重复"
    )
    parser.add_argument("--clear-overrides", action="store_true", help="清空所有单条成本覆盖")

    parser.add_argument("--top", type=int, default=10, help="Top 分类展示数量")
    return parser


def print_top(title: str, items: List[TopItem], symbol: str, limit: int) -> None:
    print(f"\n{title}")
    if not items:
        print("  (无数据)")
        return
    for i, it in enumerate(items[:limit], 1):
        print(f"  {i:>2}. {it.group:32s} {symbol}{money(it.value)}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    start = time.time()

    # 1. 导入 (使用 ImportService)
    print(f"正在解析: {args.input}")
    try:
        with open(args.input, "rb") as f:
            content = f.read()
        rows = ImportService().import_from_excel(content, args.input)
    except (OSError, IngestionError) as e:
        print(f"解析失败: {e}")
        return 1

    if not rows:
        print("未读取到任何订单数据。")
        return 1
    print(f"已加载 {len(rows)} 行数据")

    # 2. 成本配置 (使用 CostService)
    cost_service = CostService(CostStateStore(args.state_dir))
    for item in args.set_cost:
        group, sep, value = item.partition("=")
        if not sep or not group.strip():
            print(f"忽略无效的成本设置: {item}")
            continue
        cost_service.set_group_cost(group.strip(), value)
        print(f"已设置 {group.strip()} 成本为 ¥{cost_service.cost_map[group.strip()]}/lot")
    if args.clear_overrides:
        n = cost_service.clear_all_overrides()
        print(f"已清空 {n} 条单条成本覆盖")
    ctx = cost_service.context

    # 3. 计算 (使用 AnalyticsService)
    filters = FilterState(
        status=args.status,
        category=args.category,
        group=args.group,
        q=args.q,
        paid_start=args.paid_start,
        paid_end=args.paid_end,
        payout_start=args.payout_start,
        payout_end=args.payout_end,
    )
    analytics = AnalyticsService()
    view = analytics.build_view(rows, filters, ctx)
    kpi = view.kpi

    print("\n" + "=" * 60)
    print(f"订单行数（筛选/基础）: {kpi.list_count} / {kpi.base_count}")
    print(f"GMV（付款口径）: ${money(kpi.gmv_usd)}")
    print(f"回款（回款口径）: ¥{money(kpi.payout_cny)}")
    print(f"成本: ¥{money(kpi.total_cost)}")
    print(f"利润 / 利润率: ¥{money(kpi.total_profit)} / {kpi.margin * 100:.1f}%")
    print("=" * 60)

    print_top("利润 Top（回款口径）", view.top_profit, "¥", args.top)
    print_top("回款 Top（回款口径）", view.top_payout, "¥", args.top)
    print_top("GMV Top（付款口径）", view.top_gmv, "$", args.top)

    # 4. 报告
    report = analytics.build_report(view, ctx)
    print("\n" + report.copy_text)

    duration = time.time() - start
    print(f"\n总耗时: {duration:.2f} 秒")
    return 0


if __name__ == "__main__":
    sys.exit(main())
