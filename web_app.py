"""
Streamlit Web 应用程序入口。
负责 UI 渲染和用户交互，调用底层服务进行业务处理。
"""
from typing import List

import pandas as pd
import streamlit as st

from ebay_orders.analytics.filters import (
    PAGE_SIZE_OPTIONS, category_options, group_options, status_options, total_pages,
)
from ebay_orders.analytics.stats import money
from ebay_orders.importer import IngestionError
from ebay_orders.models import DailyPoint, FilterState, TopItem
from ebay_orders.pricing.engine import COST_DEFAULTS
from ebay_orders.service import AnalyticsService, CostService, ImportService

# ==========================================
# UI 辅助函数
# ==========================================

def init_session_state():
    """初始化 Session State 变量。"""
    if 'rows' not in st.session_state:
        st.session_state.rows = []
    if 'cost_service' not in st.session_state:
        st.session_state.cost_service = CostService()
    if 'import_filename' not in st.session_state:
        st.session_state.import_filename = ""


def render_sidebar() -> FilterState:
    """渲染侧边栏（上传 + 筛选）并返回筛选状态。"""
    rows = st.session_state.rows
    with st.sidebar:
        st.header("📂 控制台")
        uploaded_file = st.file_uploader("上传 Excel", type=["xlsx", "xls", "csv"])
        if uploaded_file is not None and uploaded_file.name != st.session_state.import_filename:
            _handle_upload(uploaded_file)
            rows = st.session_state.rows

        st.markdown("---")
        status = st.selectbox("回款状态", status_options(rows))
        category = st.selectbox("类目", category_options(rows))
        group = st.selectbox("标题分类", group_options(rows))
        q = st.text_input("搜索（SKU/标题）", placeholder="输入关键词…")

        st.markdown("---")
        st.caption("付款时间范围（GMV）")
        paid_start = st.date_input("付款起", value=None, key="paid_start")
        paid_end = st.date_input("付款止", value=None, key="paid_end")
        st.caption("回款时间范围（回款/利润）")
        payout_start = st.date_input("回款起", value=None, key="payout_start")
        payout_end = st.date_input("回款止", value=None, key="payout_end")

        st.caption("口径：GMV 按【付款时间】；回款/利润按【回款时间】（两套时间范围互不影响）。")

    return FilterState(
        status=status,
        category=category,
        group=group,
        q=q,
        paid_start=paid_start,
        paid_end=paid_end,
        payout_start=payout_start,
        payout_end=payout_end,
    )


def _handle_upload(uploaded_file):
    """处理导入逻辑。"""
    try:
        rows = ImportService().import_from_excel(uploaded_file.getvalue(), uploaded_file.name)
    except IngestionError as e:
        st.error(f"解析失败：{e}")
        return
    st.session_state.rows = rows
    st.session_state.import_filename = uploaded_file.name
    st.toast(f"已加载 {len(rows)} 行数据")


def _top_df(items: List[TopItem]) -> pd.DataFrame:
    return pd.DataFrame([{"分类": it.group, "值": it.value} for it in items]).set_index("分类")


def _series_df(points: List[DailyPoint]) -> pd.DataFrame:
    return pd.DataFrame([{"日期": p.date, "值": p.value} for p in points]).set_index("日期")


def render_kpis(view):
    kpi = view.kpi
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("订单行数（筛选/基础）", f"{kpi.list_count} / {kpi.base_count}")
    c2.metric("GMV（付款口径）", f"${money(kpi.gmv_usd)}")
    c3.metric("回款（回款口径）", f"¥{money(kpi.payout_cny)}")
    c4.metric("利润 / 利润率", f"¥{money(kpi.total_profit)}", f"{kpi.margin * 100:.1f}%")


def render_report(report):
    st.subheader("🧾 自动分析报告")
    st.write(report.summary)
    st.caption(report.status_line)
    st.caption(report.note)
    cols = st.columns(3)
    for col, title, items in zip(cols, ("亮点", "风险", "建议动作"), (report.highlights, report.risks, report.actions)):
        with col:
            st.markdown(f"**{title}**")
            st.markdown("\n".join(f"- {x}" for x in items) if items else "暂无")
    with st.expander("复制报告"):
        st.code(report.copy_text, language=None)


def render_overview(view):
    """渲染 Top10、趋势与 Other 清单。"""
    tabs = st.tabs(["Top10 利润", "Top10 回款", "Top10 GMV", "趋势：利润", "趋势：回款", "趋势：GMV", "Other 清单"])
    charts = [
        (view.top_profit, _top_df, st.bar_chart),
        (view.top_payout, _top_df, st.bar_chart),
        (view.top_gmv, _top_df, st.bar_chart),
        (view.profit_series, _series_df, st.line_chart),
        (view.payout_series, _series_df, st.line_chart),
        (view.gmv_series, _series_df, st.line_chart),
    ]
    for tab, (data, to_df, chart) in zip(tabs, charts):
        with tab:
            if data:
                chart(to_df(data))
            else:
                st.info("暂无数据")
    with tabs[-1]:
        st.caption("Other（最多展示 200 行）")
        st.dataframe(
            pd.DataFrame([{"SKU": r.sku, "标题": r.name, "类目": r.category} for r in view.other_rows]),
            use_container_width=True,
            hide_index=True,
        )


def render_orders(view, filters: FilterState, analytics: AnalyticsService):
    """渲染订单明细，支持单条成本覆盖编辑。"""
    cost_service: CostService = st.session_state.cost_service
    ctx = cost_service.context

    c1, c2, c3, c4 = st.columns(4)
    filters.sort_key = c1.selectbox(
        "排序", ("profit", "payout", "gmv", "lot"),
        format_func=lambda x: {"profit": "利润", "payout": "回款", "gmv": "GMV", "lot": "Lot"}[x],
    )
    filters.sort_dir = c2.selectbox("方向", ("desc", "asc"), format_func=lambda x: "降序" if x == "desc" else "升序")
    filters.page_size = c3.selectbox("每页", PAGE_SIZE_OPTIONS, index=1)
    pages = total_pages(len(view.list_rows), filters.page_size)
    filters.page = c4.number_input(f"页码 (共 {pages} 页)", min_value=1, max_value=pages, value=1)

    priced, _ = analytics.order_table(view, filters, ctx)
    if not priced:
        st.info("暂无数据")
        return

    # 行 ID 可能撞车，保留位置索引，row_id 只留在 df 里用于回写
    df = pd.DataFrame(priced)
    column_config = {
        "title_group": "分类",
        "sku": "SKU",
        "name": "标题",
        "payout_status": "回款状态",
        "lot_count": st.column_config.NumberColumn("Lot", format="%d"),
        "gmv_usd": st.column_config.NumberColumn("GMV($)", format="%.2f"),
        "payout_cny": st.column_config.NumberColumn("回款(¥)", format="%.2f"),
        "cost_per_lot_cny": st.column_config.NumberColumn("成本¥/lot", format="%.2f"),
        "cost_override": st.column_config.NumberColumn(
            "★单条成本¥/lot", format="%.2f", step=0.1, help="留空则使用分类默认成本"
        ),
        "total_cost_cny": st.column_config.NumberColumn("总成本(¥)", format="%.2f"),
        "profit_cny": st.column_config.NumberColumn("利润(¥)", format="%.2f"),
    }
    shown = list(column_config.keys())
    edited_df = st.data_editor(
        df[shown],
        column_config=column_config,
        disabled=[c for c in shown if c != "cost_override"],
        use_container_width=True,
        hide_index=True,
        key="orders_editor",
    )

    if st.button("💾 保存单条成本覆盖", type="primary"):
        _sync_overrides(df, edited_df)

    st.caption("提示：成本优先使用“单条覆盖”，否则使用“分类默认成本”。覆盖会自动持久化到本地。")


def _sync_overrides(original_df: pd.DataFrame, edited_df: pd.DataFrame):
    """将编辑后的单条成本回写到覆盖表。"""
    cost_service: CostService = st.session_state.cost_service
    count = cost_service.sync_dataframe_overrides(original_df, edited_df)
    st.toast(f"已更新 {count} 条覆盖")
    st.rerun()


def render_costs():
    """渲染分类默认成本编辑与覆盖管理。"""
    cost_service: CostService = st.session_state.cost_service
    groups = sorted(set(COST_DEFAULTS) | set(cost_service.cost_map) | set(group_options(st.session_state.rows)[1:]))
    df = pd.DataFrame([{"分类": g, "成本¥/lot": float(cost_service.cost_map.get(g, 0.0))} for g in groups])
    edited = st.data_editor(
        df,
        column_config={"成本¥/lot": st.column_config.NumberColumn(format="%.2f", step=0.1)},
        disabled=["分类"],
        use_container_width=True,
        hide_index=True,
        key="cost_editor",
    )
    if st.button("💾 保存分类成本", type="primary"):
        for g, v in zip(edited["分类"], edited["成本¥/lot"]):
            if float(cost_service.cost_map.get(g, 0.0)) != (0.0 if pd.isna(v) else float(v)):
                cost_service.set_group_cost(g, v)
        st.toast("分类成本已保存")
        st.rerun()

    st.markdown("---")
    override_count = len(cost_service.overrides)
    st.caption(f"当前有 {override_count} 条覆盖。覆盖用于处理“同分类但成本特殊”的订单。")
    if st.button("🗑️ 清空所有覆盖", disabled=not override_count):
        cost_service.clear_all_overrides()
        st.rerun()
    st.caption("说明：覆盖不会改变分类规则，只影响成本与利润口径。重新导入同一份 Excel 也能尽量对上覆盖。")


# ==========================================
# 主程序
# ==========================================

def main():
    st.set_page_config(page_title="eBay 订单分析", page_icon="📊", layout="wide")
    init_session_state()

    st.title("📊 eBay 订单 Excel 分析")

    filters = render_sidebar()
    rows = st.session_state.rows
    if not rows:
        st.info("👈 请先在左侧上传订单 Excel。")
        return

    analytics = AnalyticsService()
    ctx = st.session_state.cost_service.context
    view = analytics.build_view(rows, filters, ctx)

    render_kpis(view)
    tab_overview, tab_orders, tab_costs = st.tabs(["Overview", "Orders", "Costs"])
    with tab_overview:
        render_report(analytics.build_report(view, ctx))
        render_overview(view)
    with tab_orders:
        render_orders(view, filters, analytics)
    with tab_costs:
        render_costs()


if __name__ == "__main__":
    main()
