"""Tabular views over the category tree.

``flatten`` walks the tree in pre-order and emits one row per category,
skipping the subtree of any collapsed row. ``build_statement`` lays out the
personal statement and inserts the synthetic After Tax Income and Net
Monthly Cash Flow rows.
"""

import calendar
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Iterator, Optional

import pandas as pd

from finplan.config import DEFAULT_COLLAPSED
from finplan.domain import EXPENSE, INCOME, SUMMARY_ID_PREFIX, Transaction
from finplan.rollup import ZERO_VECTOR, RollupEngine, Vector, vector_total
from finplan.transforms import coerce_amount, parse_date
from finplan.tree import CategoryTree
from finplan.visibility import visible

MONTH_LABELS = tuple(calendar.month_abbr[m] for m in range(1, 13))

SUMMARY = "summary"
AFTER_TAX_ROW_ID = SUMMARY_ID_PREFIX + "after-tax"
NET_CASH_FLOW_ROW_ID = SUMMARY_ID_PREFIX + "net-cash-flow"


@dataclass(frozen=True)
class ReportRow:
    id: str
    name: str
    level: int
    is_parent: bool
    monthly: Vector
    total: float
    kind: str = EXPENSE    # "income" | "expense" | "summary"


@dataclass(frozen=True)
class BudgetItem:
    id: str
    name: str
    level: int
    is_parent: bool
    budget: float

    @property
    def is_leaf(self) -> bool:
        return not self.is_parent


def format_currency(amount: float, currency: str = "THB", decimals: int = 2) -> str:
    return f"{amount:,.{decimals}f} {currency}"


def summary_row(row_id: str, name: str, monthly: Vector) -> ReportRow:
    return ReportRow(
        id=row_id,
        name=name,
        level=0,
        is_parent=False,
        monthly=monthly,
        total=vector_total(monthly),
        kind=SUMMARY,
    )


def flatten(
    tree: CategoryTree,
    table: dict[str, Vector],
    roots: Optional[Iterable[str]] = None,
    collapsed: Iterable[str] = frozenset(),
) -> Iterator[ReportRow]:
    """Pre-order rows for ``roots`` (all roots by default).

    ``table`` maps category ids to rolled-up vectors, as returned by
    :meth:`RollupEngine.rollup_many`.
    """
    collapsed = frozenset(collapsed)

    def walk(cat_id: str, level: int) -> Iterator[ReportRow]:
        if cat_id not in tree:
            return
        cat = tree.node(cat_id).category
        monthly = table.get(cat_id, ZERO_VECTOR)
        children = tree.children_of(cat_id)
        yield ReportRow(
            id=cat.id,
            name=cat.name,
            level=level,
            is_parent=bool(children),
            monthly=monthly,
            total=vector_total(monthly),
            kind=cat.type,
        )
        if cat_id in collapsed:
            return
        for child in children:
            yield from walk(child, level + 1)

    for root in tree.roots() if roots is None else roots:
        yield from walk(root, 0)


def collapsible_ids(tree: CategoryTree) -> list[str]:
    """Every category with children, including ones hidden under a collapsed row."""
    return [cat.id for cat in tree if not tree.is_leaf(cat.id)]


def build_statement(engine: RollupEngine, collapsed: Iterable[str] = DEFAULT_COLLAPSED) -> list[ReportRow]:
    layout = engine.layout
    tree = engine.tree
    table = engine.rollup_many()

    rows = list(flatten(tree, table, (layout.income, layout.taxes), collapsed))
    rows.append(summary_row(AFTER_TAX_ROW_ID, "3. After Tax Income", engine.after_tax_income()))
    rows.extend(flatten(tree, table, (layout.saving, layout.investing, layout.expenses), collapsed))
    rows.append(summary_row(NET_CASH_FLOW_ROW_ID, "Net Monthly Cash Flow", engine.net_cash_flow()))
    return rows


def budget_items(engine: RollupEngine, selected: Iterable[str], month: int = 0) -> list[BudgetItem]:
    """Rows of the budget editor: selected categories and the parents above them."""
    shown = visible(selected, engine.tree)
    table = engine.rollup_many()
    return [
        BudgetItem(
            id=row.id,
            name=row.name,
            level=row.level,
            is_parent=row.is_parent,
            budget=row.monthly[month],
        )
        for row in flatten(engine.tree, table)
        if row.id in shown
    ]


def rows_to_frame(rows: Iterable[ReportRow]) -> pd.DataFrame:
    records = []
    for row in rows:
        record = {"id": row.id, "Category": row.name, "level": row.level, "is_parent": row.is_parent}
        record.update(zip(MONTH_LABELS, row.monthly))
        record["Total"] = row.total
        records.append(record)
    columns = ["id", "Category", "level", "is_parent", *MONTH_LABELS, "Total"]
    return pd.DataFrame(records, columns=columns)


def monthly_comparison(trans: Iterable[Transaction], today: date, months: int = 6) -> pd.DataFrame:
    """Income and expense totals for the last ``months`` calendar months."""
    periods = pd.period_range(end=pd.Period(pd.Timestamp(today), freq="M"), periods=months, freq="M")
    rows = []
    for t in trans:
        d = parse_date(t.ts)
        if d is None:
            continue
        rows.append({"period": pd.Period(pd.Timestamp(d), freq="M"), "type": t.type, "amount": coerce_amount(t.amount)})
    df = pd.DataFrame(rows, columns=["period", "type", "amount"])

    result = pd.DataFrame(index=periods)
    for kind in (INCOME, EXPENSE):
        sums = df[df["type"] == kind].groupby("period")["amount"].sum()
        result[kind] = sums.reindex(periods, fill_value=0.0).astype(float)
    result.index.name = "month"
    return result.reset_index()
