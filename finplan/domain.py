from dataclasses import dataclass
from typing import Optional, Union

MONTHS = 12

INCOME = "income"
EXPENSE = "expense"

SAVING = "saving"
INVESTING = "investing"

UNCATEGORIZED = "Uncategorized"

# Synthetic report rows live under this prefix, real categories may not use it.
SUMMARY_ID_PREFIX = "summary:"


@dataclass(frozen=True)
class Account:
    id: str
    name: str
    balance: float   # signed: assets positive, liabilities negative
    currency: str = "THB"


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    parent_id: Optional[str]
    type: str                                   # "income" | "expense"
    group: Optional[str] = None                 # "saving" | "investing"
    monthly_budgets: Optional[tuple[float, ...]] = None


@dataclass(frozen=True)
class Transaction:
    id: str
    account_id: str
    cat_id: str
    amount: float    # always positive, direction comes from type
    ts: str          # ISO date, e.g. "2025-09-01"
    type: str = EXPENSE
    note: str = ""


# Tree nodes: only a leaf owns a budget vector, a group only owns children.
@dataclass(frozen=True)
class LeafNode:
    category: Category
    monthly_budgets: tuple[float, ...]

    @property
    def id(self) -> str:
        return self.category.id


@dataclass(frozen=True)
class GroupNode:
    category: Category
    children: tuple[str, ...]

    @property
    def id(self) -> str:
        return self.category.id


CategoryNode = Union[LeafNode, GroupNode]


@dataclass(frozen=True)
class AnnualAggregate:
    bucket: str
    monthly: tuple[float, ...]
    total: float


@dataclass(frozen=True)
class BudgetSummary:
    month: int
    total_income: float
    total_expense: float

    @property
    def net_flow(self) -> float:
        return self.total_income - self.total_expense
