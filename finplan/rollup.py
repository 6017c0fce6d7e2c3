"""Bottom-up aggregation of monthly budget vectors.

A leaf contributes its own twelve amounts, a group the element-wise sum of
its children. Results are cached in a memo table that lives for exactly
one top-level call, so the input categories are never mutated and every
call sees the current data.
"""

import logging
from typing import Iterable, Optional

import numpy as np

from finplan.config import DEFAULT_LAYOUT, StatementLayout
from finplan.domain import MONTHS, AnnualAggregate, BudgetSummary, LeafNode
from finplan.tree import CategoryTree

logger = logging.getLogger(__name__)

Vector = tuple[float, ...]

ZERO_VECTOR: Vector = (0.0,) * MONTHS


def subtract(a: Vector, b: Vector) -> Vector:
    return tuple(x - y for x, y in zip(a, b))


def vector_total(v: Vector) -> float:
    return sum(v)


class RollupEngine:
    def __init__(self, tree: CategoryTree, layout: StatementLayout = DEFAULT_LAYOUT):
        self.tree = tree
        self.layout = layout

    def _rollup(self, cat_id: str, memo: dict[str, Vector]) -> Vector:
        if cat_id in memo:
            return memo[cat_id]
        if cat_id not in self.tree:
            logger.debug("Rollup of unknown category %s is zero", cat_id)
            return ZERO_VECTOR

        node = self.tree.node(cat_id)
        if isinstance(node, LeafNode):
            result = node.monthly_budgets
        else:
            total = np.zeros(MONTHS)
            for child in node.children:
                total += np.asarray(self._rollup(child, memo), dtype=float)
            result = tuple(float(v) for v in total)
        memo[cat_id] = result
        return result

    def rollup(self, cat_id: str) -> Vector:
        return self._rollup(cat_id, {})

    def rollup_many(self, cat_ids: Optional[Iterable[str]] = None) -> dict[str, Vector]:
        """Roll up several subtrees sharing one memo table.

        Defaults to every root; the returned mapping holds every node visited.
        """
        memo: dict[str, Vector] = {}
        ids = self.tree.roots() if cat_ids is None else tuple(cat_ids)
        for cat_id in ids:
            self._rollup(cat_id, memo)
        logger.debug("Rolled up %d categories from %d starting points", len(memo), len(ids))
        return memo

    def annual_total(self, cat_id: str) -> float:
        return vector_total(self.rollup(cat_id))

    def after_tax_income(self) -> Vector:
        table = self.rollup_many((self.layout.income, self.layout.taxes))
        return subtract(
            table.get(self.layout.income, ZERO_VECTOR),
            table.get(self.layout.taxes, ZERO_VECTOR),
        )

    def net_cash_flow(self) -> Vector:
        table = self.rollup_many((self.layout.saving, self.layout.investing, self.layout.expenses))
        flow = self.after_tax_income()
        for bucket in (self.layout.saving, self.layout.investing, self.layout.expenses):
            flow = subtract(flow, table.get(bucket, ZERO_VECTOR))
        return flow

    def annual_aggregates(self) -> dict[str, AnnualAggregate]:
        layout = self.layout
        buckets = (layout.income, layout.taxes, layout.saving, layout.investing, layout.expenses)
        table = self.rollup_many(buckets)
        result = {}
        for bucket in buckets:
            monthly = table.get(bucket, ZERO_VECTOR)
            result[bucket] = AnnualAggregate(bucket=bucket, monthly=monthly, total=vector_total(monthly))
        return result

    def budget_summary(self, month: int = 0) -> BudgetSummary:
        """Income against all outflows (expenses, taxes, saving, investing) for one month."""
        if not 0 <= month < MONTHS:
            raise ValueError(f"month index must be in [0, {MONTHS}), got {month}")
        table = self.rollup_many((self.layout.income,) + self.layout.outflows)
        income = table.get(self.layout.income, ZERO_VECTOR)[month]
        expense = sum(table.get(b, ZERO_VECTOR)[month] for b in self.layout.outflows)
        return BudgetSummary(month=month, total_income=income, total_expense=expense)
