import logging
from dataclasses import dataclass
from typing import Iterable, Iterator

import pandas as pd

from finplan.rollup import RollupEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectionPoint:
    age: int
    net_worth: float


def annual_savings(annual_income: float, annual_expense: float) -> float:
    return annual_income - annual_expense


def annual_savings_from_budgets(engine: RollupEngine) -> float:
    """Planned income minus every planned outflow, over a full year."""
    table = engine.rollup_many((engine.layout.income,) + engine.layout.outflows)
    income = sum(table.get(engine.layout.income, ()))
    expense = sum(sum(table.get(b, ())) for b in engine.layout.outflows)
    return annual_savings(income, expense)


def project(
    start_net_worth: float,
    annual_savings: float,
    annual_return_rate: float,
    start_age: int = 30,
    end_age: int = 90,
    contribution_cutoff_age: int = 65,
) -> Iterator[ProjectionPoint]:
    """Yield net worth for each age from ``start_age`` to ``end_age`` inclusive.

    Each year the savings are added (until ``contribution_cutoff_age``) and
    the sum compounds at ``annual_return_rate``. Negative savings are
    compounded as they are. The generator is single use.
    """
    logger.debug(
        "Projecting from age %d to %d at %.4f, savings %.2f",
        start_age, end_age, annual_return_rate, annual_savings,
    )
    worth = start_net_worth
    for age in range(start_age, end_age + 1):
        yield ProjectionPoint(age=age, net_worth=worth)
        contribution = annual_savings if age < contribution_cutoff_age else 0.0
        worth = (worth + contribution) * (1 + annual_return_rate)


def projection_frame(points: Iterable[ProjectionPoint]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"age": p.age, "net_worth": p.net_worth} for p in points],
        columns=["age", "net_worth"],
    )
