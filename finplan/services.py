import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Iterable, Optional, Protocol, Sequence

from finplan.classification import (
    DEFAULT_POLICY, HealthPolicy, health_inputs_from_transactions, score_health, spending_split,
)
from finplan.config import DEFAULT_COLLAPSED, DEFAULT_LAYOUT, Settings, StatementLayout
from finplan.domain import Account, Category, Transaction
from finplan.lazy import iter_transactions, lazy_top_categories, within_last_months
from finplan.projection import annual_savings_from_budgets, project
from finplan.report import build_statement, format_currency
from finplan.rollup import RollupEngine
from finplan.transforms import expense_transactions, income_transactions, net_worth
from finplan.tree import CategoryTree

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = (
    "You are a friendly and encouraging financial assistant. Based on the following "
    "financial data, provide a concise summary (around 100-150 words) of the user's "
    "financial health. Highlight one positive achievement and suggest one potential area "
    "for improvement in a constructive way. Format your response using markdown-style "
    "bolding for key terms and use bullet points for the achievement and suggestion.\n\n"
    "Data:\n"
    "- Total Income: {total_income}\n"
    "- Total Expense: {total_expense}\n"
    "- Saving Rate: {saving_rate:.2f}%\n"
    "- Health Score: {health_score}/100 ({health_status})\n"
    "- Top Expense Categories:\n{top_expenses}"
)


class Summarizer(Protocol):
    """Text generator fed with a finished snapshot; lives outside this package."""

    def summarize(self, prompt: str, snapshot: Dict[str, Any]) -> str:
        ...


@dataclass(frozen=True)
class PlanContext:
    tree: CategoryTree
    engine: RollupEngine
    accounts: tuple[Account, ...]
    window: tuple[Transaction, ...]    # trailing twelve months
    settings: Settings
    policy: HealthPolicy
    collapsed: frozenset


# Validators take (categories, accounts, transactions) and return messages.

def validate_parent_refs(categories, accounts, transactions) -> list[str]:
    ids = {c.id for c in categories}
    return [
        f"Category {c.id} references missing parent {c.parent_id}"
        for c in categories
        if c.parent_id and c.parent_id not in ids
    ]


def validate_group_budgets(categories, accounts, transactions) -> list[str]:
    parents = {c.parent_id for c in categories if c.parent_id}
    return [
        f"Budget on group category {c.id} is ignored, its total comes from its children"
        for c in categories
        if c.id in parents and c.monthly_budgets and any(v != 0 for v in c.monthly_budgets)
    ]


def validate_transaction_categories(categories, accounts, transactions) -> list[str]:
    ids = {c.id for c in categories}
    unknown = sorted({t.cat_id for t in transactions if t.cat_id not in ids})
    return [f"Transactions in unknown category {cid} are reported as Uncategorized" for cid in unknown]


# Calculators take (context, results so far) and return a partial result.

def calc_budget_summary(ctx: PlanContext, acc: dict) -> dict:
    return {"budget_summary": ctx.engine.budget_summary(0)}


def calc_statement(ctx: PlanContext, acc: dict) -> dict:
    return {
        "statement": build_statement(ctx.engine, ctx.collapsed),
        "aggregates": ctx.engine.annual_aggregates(),
    }


def calc_spending_split(ctx: PlanContext, acc: dict) -> dict:
    return {"spending_split": spending_split(ctx.window, ctx.tree, ctx.policy)}


def calc_health(ctx: PlanContext, acc: dict) -> dict:
    inputs = health_inputs_from_transactions(
        ctx.window, ctx.tree, ctx.accounts, ctx.settings.age, ctx.policy
    )
    return {"health_inputs": inputs, "health": score_health(inputs, ctx.policy)}


def calc_projection(ctx: PlanContext, acc: dict) -> dict:
    s = ctx.settings
    savings = annual_savings_from_budgets(ctx.engine)
    points = list(project(
        net_worth(ctx.accounts),
        savings,
        s.annual_return_rate,
        start_age=s.projection_start_age,
        end_age=s.projection_end_age,
        contribution_cutoff_age=s.contribution_cutoff_age,
    ))
    return {"annual_savings": savings, "projection": points}


def calc_snapshot(ctx: PlanContext, acc: dict) -> dict:
    total_income = sum(t.amount for t in income_transactions(ctx.window))
    total_expense = sum(t.amount for t in expense_transactions(ctx.window))
    saving_rate = (total_income - total_expense) / total_income * 100 if total_income > 0 else 0.0
    health = acc.get("health")
    return {"snapshot": {
        "total_income": total_income,
        "total_expense": total_expense,
        "saving_rate": saving_rate,
        "net_worth": net_worth(ctx.accounts),
        "top_expenses": list(lazy_top_categories(ctx.window, ctx.tree, 3)),
        "health_score": health.score if health else None,
        "health_status": health.status if health else None,
    }}


DEFAULT_VALIDATORS = (validate_parent_refs, validate_group_budgets, validate_transaction_categories)
DEFAULT_CALCULATORS = (
    calc_budget_summary, calc_statement, calc_spending_split, calc_health, calc_projection, calc_snapshot,
)


def build_summary_prompt(snapshot: Dict[str, Any], currency: str = "THB") -> str:
    top = "\n".join(
        f"- {name}: {format_currency(amount, currency)}" for name, amount in snapshot["top_expenses"]
    ) or "- none"
    return SUMMARY_PROMPT.format(
        total_income=format_currency(snapshot["total_income"], currency),
        total_expense=format_currency(snapshot["total_expense"], currency),
        saving_rate=snapshot["saving_rate"],
        health_score=snapshot["health_score"],
        health_status=snapshot["health_status"],
        top_expenses=top,
    )


class PlanService:
    """Facade running validators and calculators over one data snapshot.

    validators: functions (categories, accounts, transactions) -> Sequence[str]
    calculators: functions (PlanContext, results so far) -> dict (partial results)
    """

    def __init__(
        self,
        validators: Sequence[Callable[..., Sequence[str]]] = DEFAULT_VALIDATORS,
        calculators: Sequence[Callable[[PlanContext, dict], Dict[str, Any]]] = DEFAULT_CALCULATORS,
        policy: HealthPolicy = DEFAULT_POLICY,
        layout: StatementLayout = DEFAULT_LAYOUT,
    ):
        self.validators = validators
        self.calculators = calculators
        self.policy = policy
        self.layout = layout

    def plan_report(
        self,
        categories: Iterable[Category],
        accounts: Iterable[Account],
        transactions: Iterable[Transaction],
        settings: Settings = Settings(),
        today: Optional[date] = None,
        collapsed: Iterable[str] = DEFAULT_COLLAPSED,
    ) -> Dict[str, Any]:
        """Run validators and calculators and return the plan with intermediate steps.

        A malformed tree (cycle, duplicate id) raises ``CategoryTreeError``.
        """
        categories = tuple(categories)
        accounts = tuple(accounts)
        transactions = tuple(transactions)
        today = today or date.today()

        report = {
            "as_of": today.isoformat(),
            "validation": [],
            "steps": [],
            "result": {},
        }

        for v in self.validators:
            try:
                msgs = v(categories, accounts, transactions)
            except Exception as e:
                logger.exception("Validator %s failed", getattr(v, "__name__", v))
                msgs = [f"validator_error: {e}"]
            for msg in msgs:
                logger.warning(msg)
            report["validation"].append({"validator": getattr(v, "__name__", str(v)), "messages": list(msgs)})

        tree = CategoryTree(categories)
        ctx = PlanContext(
            tree=tree,
            engine=RollupEngine(tree, self.layout),
            accounts=accounts,
            window=tuple(iter_transactions(transactions, within_last_months(today))),
            settings=settings,
            policy=self.policy,
            collapsed=frozenset(collapsed),
        )

        acc: Dict[str, Any] = {}
        for calc in self.calculators:
            out = calc(ctx, acc)
            report["steps"].append({"calculator": getattr(calc, "__name__", str(calc)), "output": out})
            if isinstance(out, dict):
                acc.update(out)

        report["result"] = acc
        return report

    def summarize(self, report: Dict[str, Any], summarizer: Summarizer, currency: str = "THB") -> str:
        snapshot = report["result"].get("snapshot")
        if snapshot is None:
            raise ValueError("Report has no snapshot; include calc_snapshot in the calculators")
        return summarizer.summarize(build_summary_prompt(snapshot, currency), snapshot)
