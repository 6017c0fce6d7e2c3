import sys
import os
from dataclasses import replace
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import streamlit as st
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from finplan.classification import NEEDS, SAVINGS, WANTS
from finplan.config import DEFAULT_COLLAPSED, configure_logging, load_settings
from finplan.events import CATEGORY_UPDATED, RETURN_RATE_CHANGED, SELECTION_CHANGED, event_bus
from finplan.lazy import lazy_top_categories
from finplan.projection import projection_frame
from finplan.report import (
    MONTH_LABELS, budget_items, collapsible_ids, format_currency, monthly_comparison, rows_to_frame,
)
from finplan.rollup import RollupEngine
from finplan.services import PlanService
from finplan.transforms import load_seed, set_monthly_budget
from finplan.tree import try_build_tree
from finplan.visibility import initial_selection

SEED_PATH = os.getenv("FINPLAN_SEED", "data/seed.json")

configure_logging()
st.set_page_config(page_title="Personal Finance Planner", layout="wide")

accounts, categories, transactions = load_seed(SEED_PATH)
settings = load_settings(SEED_PATH)

if "categories" not in st.session_state:
    st.session_state.categories = categories
if "collapsed" not in st.session_state:
    st.session_state.collapsed = set(DEFAULT_COLLAPSED)
if "return_rate" not in st.session_state:
    st.session_state.return_rate = settings.annual_return_rate

built = try_build_tree(st.session_state.categories)
if built.is_left():
    st.error(f"Cannot load the category plan: {built.get_error()['message']}")
    st.stop()
tree = built.get_or_else(None)

if "selected" not in st.session_state:
    st.session_state.selected = initial_selection(tree)


def refresh_budget_summary(month: int) -> None:
    out = event_bus.publish(CATEGORY_UPDATED, {"categories": st.session_state.categories, "month": month})
    if out:
        st.session_state.budget_summary = out[0]


menu = st.sidebar.radio(
    "Menu",
    ["💰 Budgets", "📄 Personal Statement", "❤️ Financial Health", "📈 Projection", "📑 Reports"]
)

service = PlanService()
report = service.plan_report(
    st.session_state.categories,
    accounts,
    transactions,
    settings=replace(settings, annual_return_rate=st.session_state.return_rate),
    collapsed=st.session_state.collapsed,
)
result = report["result"]
cur = settings.currency

if menu == "💰 Budgets":
    st.title("💰 Monthly Budget Setup")
    month = st.selectbox("Month", options=range(12), format_func=lambda m: MONTH_LABELS[m])
    if st.session_state.get("budget_summary", {}).get("month") != month:
        refresh_budget_summary(month)
    summary = st.session_state.budget_summary
    k1, k2, k3 = st.columns(3)
    k1.metric("Total Monthly Income", format_currency(summary["total_income"], cur))
    k2.metric("Total Monthly Expenses", format_currency(summary["total_expense"], cur))
    k3.metric("Projected Net Flow", format_currency(summary["net_flow"], cur))

    leaves = [c.id for c in tree if tree.is_leaf(c.id)]
    names = {c.id: c.name for c in tree}
    chosen = st.multiselect(
        "Categories in use",
        options=leaves,
        default=sorted(st.session_state.selected),
        format_func=lambda cid: names.get(cid, cid),
    )
    if set(chosen) != set(st.session_state.selected):
        out = event_bus.publish(SELECTION_CHANGED, {
            "categories": st.session_state.categories,
            "previous": st.session_state.selected,
            "current": chosen,
        })
        if out:
            st.session_state.categories = out[0]["categories"]
        st.session_state.selected = frozenset(chosen)
        refresh_budget_summary(month)
        st.rerun()

    for item in budget_items(RollupEngine(tree), st.session_state.selected, month=month):
        label = (" " * item.level) + item.name
        if item.is_leaf:
            value = st.number_input(label, value=float(item.budget), step=100.0, key=f"budget-{item.id}-{month}")
            if value != item.budget:
                st.session_state.categories = set_monthly_budget(st.session_state.categories, item.id, value)
                refresh_budget_summary(month)
                st.rerun()
        else:
            st.markdown(f"**{label}**: {format_currency(item.budget, cur)}")

elif menu == "📄 Personal Statement":
    st.title("📄 Yearly Budget Statement")
    st.caption("Read-only view of the plan. Edit amounts on the Budgets page.")
    parents = collapsible_ids(tree)
    names = {c.id: c.name for c in tree}
    collapsed = st.multiselect(
        "Collapsed rows",
        options=parents,
        default=sorted(st.session_state.collapsed & set(parents)),
        format_func=lambda cid: names.get(cid, cid),
    )
    if set(collapsed) != (st.session_state.collapsed & set(parents)):
        st.session_state.collapsed = set(collapsed)
        st.rerun()
    df = rows_to_frame(result["statement"])
    df["Category"] = [(" " * lvl) + name for lvl, name in zip(df["level"], df["Category"])]
    st.dataframe(df.drop(columns=["id", "level", "is_parent"]), use_container_width=True, hide_index=True)

elif menu == "❤️ Financial Health":
    st.title("❤️ Financial Health Dashboard")
    health = result["health"]
    c1, c2 = st.columns([1, 2])
    with c1:
        st.metric("Overall Score", f"{health.score} / 100", health.status)
        st.caption(health.summary)
    with c2:
        st.table(pd.DataFrame([
            {"Metric": r.label, "Value": f"{r.value:,.1f}", "Status": r.tier} for r in health.ratios
        ]))
    st.subheader("Spending Breakdown (50/30/20)")
    pct = result["spending_split"].percentages()
    s1, s2, s3 = st.columns(3)
    s1.metric("Needs", f"{pct[NEEDS]:.1f}%")
    s2.metric("Wants", f"{pct[WANTS]:.1f}%")
    s3.metric("Savings", f"{pct[SAVINGS]:.1f}%")
    if result["spending_split"].total > 0:
        fig_split = px.pie(
            values=[pct[NEEDS], pct[WANTS], pct[SAVINGS]],
            names=["Needs", "Wants", "Savings"],
            title="50/30/20 Breakdown"
        )
        fig_split.update_layout(height=300)
        st.plotly_chart(fig_split, use_container_width=True)
    st.write(f"Target net worth: {format_currency(health.target_net_worth, cur)}")

elif menu == "📈 Projection":
    st.title("📈 Net Worth Projection")
    rate_pct = st.number_input("Annual return (%)", value=st.session_state.return_rate * 100, step=0.1)
    if abs(rate_pct / 100 - st.session_state.return_rate) > 1e-9:
        out = event_bus.publish(RETURN_RATE_CHANGED, {"annual_return_rate": rate_pct / 100})
        if out and "alert" in out[0]:
            st.warning(out[0]["alert"])
        st.session_state.return_rate = out[0]["annual_return_rate"] if out else rate_pct / 100
        st.rerun()
    st.metric("Annual savings (plan)", format_currency(result["annual_savings"], cur))
    df_proj = projection_frame(result["projection"])
    fig_proj = px.line(
        df_proj,
        x="age",
        y="net_worth",
        labels={"age": "Age", "net_worth": f"Net worth ({cur})"},
        title="Projected Net Worth",
        template="plotly_dark"
    )
    st.plotly_chart(fig_proj, use_container_width=True)
    st.dataframe(df_proj, use_container_width=True, hide_index=True)

elif menu == "📑 Reports":
    st.title("📑 Reports")
    st.subheader("Expense Breakdown")
    st.table(pd.DataFrame(list(lazy_top_categories(transactions, tree, 10)), columns=["Category", "Amount"]))
    st.subheader("Monthly Comparison")
    df_cmp = monthly_comparison(transactions, pd.Timestamp.today().date())
    labels = [m.strftime("%b %y") for m in df_cmp["month"]]
    fig_ts = go.Figure()
    fig_ts.add_trace(go.Scatter(x=labels, y=df_cmp["income"], mode="lines+markers", name="Income"))
    fig_ts.add_trace(go.Scatter(x=labels, y=df_cmp["expense"], mode="lines+markers", name="Expense"))
    fig_ts.update_layout(template="plotly_dark", margin=dict(t=30, b=10, l=10, r=10))
    st.plotly_chart(fig_ts, use_container_width=True)
    with st.expander("Validation", expanded=False):
        for v in report["validation"]:
            st.write(v["validator"], v["messages"])
