"""
自动分析报告模块。
基于当前筛选结果、成本/利润口径与 Top10 聚合生成结构化文字报告：
摘要、回款状态 Top3、亮点、风险、建议动作。所有阈值均为固定常量。
"""
from collections import defaultdict
from typing import Dict, List, Tuple

from ebay_orders.analytics.filters import group_of, status_of
from ebay_orders.analytics.stats import (
    median, money, pct_change, percentile, share, top_counts, window_sums,
)
from ebay_orders.models import OTHER_GROUP, DashboardView, OrderRow, ReportPayload
from ebay_orders.pricing.engine import PricingContext, default_profit, override_of, profit

LOW_MARGIN_RISK = 0.10          # 整体利润率低于此值记为风险
LOW_MARGIN_ACTION = 0.15        # 整体利润率低于此值给出调整建议
DISTRIBUTION_MIN_SAMPLES = 10   # 分布统计的最少样本数
MARGIN_LEADER_MIN_ORDERS = 3    # 参与毛利率排名的分类最少回款订单数
MARGIN_LEADER_COUNT = 3
TREND_WINDOW_DAYS = 7           # 近 7 天 vs 前 7 天
UNCLASSIFIED_ACTION_RATE = 0.05 # Other 占比达到此值建议补充规则
NEGATIVE_ORDER_SAMPLES = 3
PAYOUT_DELAY_RISK_DAYS = 21     # 付款到回款 P90 超过此天数记为风险
CONCENTRATION_RISK_SHARE = 0.5  # 单一分类回款占比达到此值记为集中度风险

NOTE = "口径说明：GMV 按【付款时间】筛选聚合；回款/利润按【回款时间】筛选聚合（两套时间范围互不影响）。"
EMPTY = "暂无"


def _pct(x: float) -> str:
    return f"{x * 100:.1f}%"


def _signed_pct(x: float) -> str:
    return f"{'+' if x >= 0 else ''}{x * 100:.1f}%"


def _short(text: str, limit: int = 30) -> str:
    text = text or ""
    return text if len(text) <= limit else text[:limit] + "…"


def margin_leaders(rows: List[OrderRow], ctx: PricingContext) -> List[Tuple[str, float]]:
    """按分类计算毛利率 (利润/回款)，只统计回款订单数足够的分类。"""
    payout: Dict[str, float] = defaultdict(float)
    prof: Dict[str, float] = defaultdict(float)
    count: Dict[str, int] = defaultdict(int)
    for r in rows:
        if not r.payout_cny or r.payout_cny <= 0:
            continue
        g = group_of(r)
        payout[g] += r.payout_cny
        prof[g] += profit(ctx, r)
        count[g] += 1

    leaders = [
        (g, prof[g] / payout[g])
        for g in payout
        if count[g] >= MARGIN_LEADER_MIN_ORDERS and payout[g] > 0
    ]
    leaders.sort(key=lambda x: (-x[1], x[0]))
    return leaders[:MARGIN_LEADER_COUNT]


def payout_delays(rows: List[OrderRow]) -> List[float]:
    """付款到回款的天数（两者都有且回款不早于付款）。"""
    delays = []
    for r in rows:
        if r.paid_at is None or r.payout_at is None or r.payout_at < r.paid_at:
            continue
        delays.append((r.payout_at - r.paid_at).total_seconds() / 86400)
    return delays


def data_quality_issues(rows: List[OrderRow]) -> List[Tuple[str, int]]:
    checks = [
        ("有回款金额但缺回款时间", lambda r: r.payout_cny > 0 and r.payout_at is None),
        ("有回款时间但回款金额为0", lambda r: r.payout_at is not None and not r.payout_cny),
        ("回款时间早于付款时间", lambda r: r.paid_at is not None and r.payout_at is not None and r.payout_at < r.paid_at),
        ("缺付款时间", lambda r: r.paid_at is None),
        ("标题为空", lambda r: not (r.name or "").strip()),
    ]
    issues = []
    for label, check in checks:
        n = sum(1 for r in rows if check(r))
        if n:
            issues.append((label, n))
    return issues


def _trend_line(label: str, symbol: str, values: List[float]) -> str:
    recent, previous = window_sums(values, TREND_WINDOW_DAYS)
    change = pct_change(recent, previous)
    return f"近{TREND_WINDOW_DAYS}天{label} {symbol}{money(recent)}，较前{TREND_WINDOW_DAYS}天 {_signed_pct(change)}"


def build_report(view: DashboardView, ctx: PricingContext) -> ReportPayload:
    kpi = view.kpi
    top_profit = view.top_profit[0] if view.top_profit else None
    top_payout = view.top_payout[0] if view.top_payout else None
    top_gmv = view.top_gmv[0] if view.top_gmv else None

    payout_vals = [r.payout_cny or 0.0 for r in view.payout_rows if (r.payout_cny or 0.0) > 0]
    profit_vals = [p for p in (profit(ctx, r) for r in view.payout_rows) if p != 0]

    # 回款状态 Top3
    status_top = top_counts((status_of(r) for r in view.base_rows), 3)

    # 单条覆盖统计
    override_count_all = len(ctx.overrides)
    override_count_in_view = 0
    profit_delta_sum = 0.0
    for r in view.payout_rows:
        if override_of(ctx, r) is not None:
            override_count_in_view += 1
            profit_delta_sum += profit(ctx, r) - default_profit(ctx, r)

    other_count = sum(1 for r in view.base_rows if group_of(r) == OTHER_GROUP)
    other_rate = share(other_count, len(view.base_rows))

    negative_rows = sorted(
        (r for r in view.payout_rows if profit(ctx, r) < 0),
        key=lambda r: profit(ctx, r),
    )
    delays = payout_delays(view.base_rows)
    quality = data_quality_issues(view.base_rows)
    concentration = share(top_payout.value, kpi.payout_cny) if top_payout else 0.0

    summary = (
        f"当前筛选：GMV(付款口径) ${money(kpi.gmv_usd)}；回款(回款口径) ¥{money(kpi.payout_cny)}；"
        f"成本 ¥{money(kpi.total_cost)}；利润 ¥{money(kpi.total_profit)}（利润率 {_pct(kpi.margin)}）。"
    )

    # 亮点
    highlights: List[str] = []
    if top_profit:
        highlights.append(f"利润Top1：{top_profit.group}（¥{money(top_profit.value)}）")
    if top_payout:
        highlights.append(f"回款Top1：{top_payout.group}（¥{money(top_payout.value)}）")
    if top_gmv:
        highlights.append(f"GMV Top1：{top_gmv.group}（${money(top_gmv.value)}）")
    leaders = margin_leaders(view.payout_rows, ctx)
    if leaders:
        highlights.append("毛利率领先：" + "、".join(f"{g} {_pct(m)}" for g, m in leaders))
    if len(payout_vals) >= DISTRIBUTION_MIN_SAMPLES:
        highlights.append(
            f"回款分布：P10=¥{money(percentile(payout_vals, 0.1))} / 中位=¥{money(median(payout_vals))}"
            f" / P90=¥{money(percentile(payout_vals, 0.9))}"
        )
    if len(profit_vals) >= DISTRIBUTION_MIN_SAMPLES:
        highlights.append(
            f"利润分布：P10=¥{money(percentile(profit_vals, 0.1))} / 中位=¥{money(median(profit_vals))}"
            f" / P90=¥{money(percentile(profit_vals, 0.9))}"
        )
    if len(view.payout_series) >= 2 * TREND_WINDOW_DAYS:
        highlights.append(_trend_line("回款", "¥", [p.value for p in view.payout_series]))
    if len(view.gmv_series) >= 2 * TREND_WINDOW_DAYS:
        highlights.append(_trend_line("GMV", "$", [p.value for p in view.gmv_series]))
    slow_payout = bool(delays) and percentile(delays, 0.9) > PAYOUT_DELAY_RISK_DAYS
    if delays and not slow_payout:
        highlights.append(
            f"回款周期：中位 {median(delays):.1f} 天 / P90 {percentile(delays, 0.9):.1f} 天（{len(delays)} 单）"
        )

    # 风险
    risks: List[str] = []
    if kpi.payout_cny > 0 and kpi.margin < LOW_MARGIN_RISK:
        risks.append(f"整体利润率偏低（<{_pct(LOW_MARGIN_RISK)}），注意成本或低价出货风险。")
    if kpi.total_profit < 0:
        risks.append("当前筛选利润为负，请优先排查异常成本/低价订单。")
    if negative_rows:
        worst = "、".join(
            f"{r.sku or '-'} {_short(r.name)}（¥{money(profit(ctx, r))}）"
            for r in negative_rows[:NEGATIVE_ORDER_SAMPLES]
        )
        risks.append(f"亏损订单 {len(negative_rows)} 单，亏损最多：{worst}")
    if other_count > 0:
        risks.append(
            f"存在未命中分类规则的“Other”订单（{other_count} 行，占 {_pct(other_rate)}），建议补充分类规则。"
        )
    if quality:
        risks.append("数据质量：" + "、".join(f"{label} {n} 行" for label, n in quality))
    if slow_payout:
        risks.append(
            f"回款周期偏长：中位 {median(delays):.1f} 天 / P90 {percentile(delays, 0.9):.1f} 天"
            f"（P90 超过 {PAYOUT_DELAY_RISK_DAYS} 天）。"
        )
    if top_payout and kpi.payout_cny > 0 and concentration >= CONCENTRATION_RISK_SHARE:
        risks.append(f"回款集中度偏高：{top_payout.group} 占回款 {_pct(concentration)}。")
    if override_count_in_view > 0:
        risks.append(
            f"本筛选视图内有 {override_count_in_view} 条单条成本覆盖，利润合计变化 ¥{money(profit_delta_sum)}。"
        )

    # 建议动作
    actions: List[str] = []
    if top_profit:
        actions.append(f"加大高利润组：优先复盘【{top_profit.group}】的供货与定价策略。")
    if kpi.payout_cny > 0 and kpi.margin < LOW_MARGIN_ACTION:
        actions.append("尝试：提高高毛利品占比 / 复查成本默认值 / 对低毛利组做限价。")
    if negative_rows:
        actions.append("逐单核对亏损订单的 lot 数量与成本，必要时用单条成本覆盖修正。")
    if other_rate >= UNCLASSIFIED_ACTION_RATE:
        actions.append("把 Other 清单中高频关键词沉淀为规则（在有序规则表中按优先级补充）。")
    if top_payout and kpi.payout_cny > 0 and concentration >= CONCENTRATION_RISK_SHARE:
        actions.append(f"分散品类：降低对【{top_payout.group}】的依赖，扩充次级分类的上架量。")
    if slow_payout:
        actions.append("跟进长周期未回款订单，核对平台回款状态。")
    if override_count_all == 0:
        actions.append("如遇特殊成本：可在订单明细里用“单条成本¥/lot”覆盖，不影响分类默认成本。")
    else:
        actions.append("单条成本覆盖：建议定期清理（清空后重新按分类默认成本口径回算）。")

    if status_top:
        status_line = "回款状态Top3：" + "、".join(f"{s}({c})" for s, c in status_top)
    else:
        status_line = "回款状态Top3：无"

    def _block(items: List[str]) -> str:
        return "- " + ("\n- ".join(items) if items else EMPTY)

    copy_text = (
        "【自动分析报告】\n"
        f"{summary}\n"
        f"{status_line}\n"
        "\n"
        f"【亮点】\n{_block(highlights)}\n\n"
        f"【风险】\n{_block(risks)}\n\n"
        f"【建议动作】\n{_block(actions)}\n\n"
        f"{NOTE}\n"
        "\n"
        f"单条成本覆盖：全局共 {override_count_all} 条（本筛选视图内影响已统计）。"
    )

    return ReportPayload(
        summary=summary,
        status_line=status_line,
        highlights=highlights,
        risks=risks,
        actions=actions,
        note=NOTE,
        copy_text=copy_text,
    )
