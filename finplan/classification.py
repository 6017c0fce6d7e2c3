"""Financial health classification.

Two passes over a trailing twelve-month window:

* a Needs / Wants / Savings split of expense transactions (50/30/20 view);
* five ratios, each mapped to a tier, averaged into a 0-100 score.

All policy knobs (which categories are essential, threshold tables, tier
points, score bands) live in :class:`HealthPolicy` so an alternate scoring
policy is a ``dataclasses.replace`` away.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from finplan.domain import (
    EXPENSE, INCOME, INVESTING, SAVING, Account, Transaction,
)
from finplan.rollup import RollupEngine
from finplan.transforms import coerce_amount, net_worth
from finplan.tree import CategoryTree

logger = logging.getLogger(__name__)

EXCELLENT = "Excellent"
GOOD = "Good"
FAIR = "Fair"
NEEDS_IMPROVEMENT = "Needs Improvement"

TIERS = (NEEDS_IMPROVEMENT, FAIR, GOOD, EXCELLENT)

SAVINGS_RATE = "savings_rate"
INVESTMENT_RATE = "investment_rate"
EMERGENCY_FUND = "emergency_fund"
DEBT_TO_INCOME = "debt_to_income"
NET_WORTH_PROGRESS = "net_worth_progress"

RATIO_LABELS = {
    SAVINGS_RATE: "Savings & Investment Rate",
    INVESTMENT_RATE: "Investment Rate",
    EMERGENCY_FUND: "Emergency Fund (months)",
    DEBT_TO_INCOME: "Debt-to-Income (%)",
    NET_WORTH_PROGRESS: "Net-Worth Progress (%)",
}

NEEDS = "needs"
WANTS = "wants"
SAVINGS = "savings"


@dataclass(frozen=True)
class Thresholds:
    """Cut points for Excellent / Good / Fair.

    Normal ratios need ``value >= cut``. Inverted ratios (lower is better)
    drop a tier each time ``value > cut``, checked from ``fair`` down.
    """
    excellent: float
    good: float
    fair: float
    inverted: bool = False

    def tier(self, value: float) -> str:
        if self.inverted:
            if value > self.fair:
                return NEEDS_IMPROVEMENT
            if value > self.good:
                return FAIR
            if value > self.excellent:
                return GOOD
            return EXCELLENT
        if value >= self.excellent:
            return EXCELLENT
        if value >= self.good:
            return GOOD
        if value >= self.fair:
            return FAIR
        return NEEDS_IMPROVEMENT


@dataclass(frozen=True)
class ScoreBand:
    minimum: int
    label: str
    summary: str


DEFAULT_THRESHOLDS = {
    SAVINGS_RATE: Thresholds(20, 15, 10),
    INVESTMENT_RATE: Thresholds(15, 10, 5),
    EMERGENCY_FUND: Thresholds(6, 3, 1),
    DEBT_TO_INCOME: Thresholds(15, 36, 43, inverted=True),
    NET_WORTH_PROGRESS: Thresholds(100, 75, 50),
}

DEFAULT_TIER_POINTS = {
    EXCELLENT: 100,
    GOOD: 75,
    FAIR: 50,
    NEEDS_IMPROVEMENT: 25,
}

DEFAULT_SCORE_BANDS = (
    ScoreBand(80, EXCELLENT,
              "You're in great financial shape! Continue to grow your investments and "
              "monitor your net worth to stay on track for long-term goals."),
    ScoreBand(60, GOOD,
              "You have a solid foundation. Consider increasing your investment rate "
              "to accelerate wealth building."),
    ScoreBand(40, FAIR,
              "You're making progress. Focus on increasing savings and paying down "
              "high-interest debt to improve your score."),
    ScoreBand(0, NEEDS_IMPROVEMENT,
              "There are key areas to focus on. Start with building an emergency fund "
              "and increasing your savings rate."),
)

ESSENTIAL_CATEGORY_IDS = frozenset({
    "expenses-housing",
    "expenses-food",
    "expenses-transportation",
    "expenses-health",
    "taxes",
})


@dataclass(frozen=True)
class HealthPolicy:
    # Emergency fund denominator: spending under these subtrees.
    essential_category_ids: frozenset = ESSENTIAL_CATEGORY_IDS
    # 50/30/20 Needs bucket.
    needs_category_ids: frozenset = ESSENTIAL_CATEGORY_IDS | {"expenses-family"}
    # Left out of the 50/30/20 split entirely.
    excluded_category_ids: frozenset = frozenset({"taxes-provident"})
    debt_category_ids: frozenset = frozenset({"expenses-debt"})
    liquid_account_keywords: tuple[str, ...] = ("cash", "bank")
    thresholds: Mapping[str, Thresholds] = field(default_factory=lambda: dict(DEFAULT_THRESHOLDS))
    tier_points: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_TIER_POINTS))
    score_bands: tuple[ScoreBand, ...] = DEFAULT_SCORE_BANDS

    def is_liquid(self, account: Account) -> bool:
        name = account.name.lower()
        return any(k in name for k in self.liquid_account_keywords)


DEFAULT_POLICY = HealthPolicy()


# ---------------------------------------------------------------- 50/30/20


@dataclass(frozen=True)
class SpendingSplit:
    needs: float = 0.0
    wants: float = 0.0
    savings: float = 0.0

    @property
    def total(self) -> float:
        return self.needs + self.wants + self.savings

    def percentages(self) -> dict[str, float]:
        total = self.total
        if total == 0:
            return {NEEDS: 0.0, WANTS: 0.0, SAVINGS: 0.0}
        return {
            NEEDS: self.needs / total * 100,
            WANTS: self.wants / total * 100,
            SAVINGS: self.savings / total * 100,
        }


def classify_spending(cat_id: str, tree: CategoryTree, policy: HealthPolicy = DEFAULT_POLICY) -> str:
    group = tree.find(cat_id).map(lambda c: c.group).get_or_else(None)
    if group in (SAVING, INVESTING):
        return SAVINGS
    if tree.is_within(cat_id, policy.needs_category_ids):
        return NEEDS
    return WANTS


def spending_split(
    trans: Iterable[Transaction], tree: CategoryTree, policy: HealthPolicy = DEFAULT_POLICY
) -> SpendingSplit:
    totals = {NEEDS: 0.0, WANTS: 0.0, SAVINGS: 0.0}
    for t in trans:
        if t.type != EXPENSE or t.cat_id in policy.excluded_category_ids:
            continue
        totals[classify_spending(t.cat_id, tree, policy)] += coerce_amount(t.amount)
    return SpendingSplit(needs=totals[NEEDS], wants=totals[WANTS], savings=totals[SAVINGS])


# ---------------------------------------------------------------- ratios


@dataclass(frozen=True)
class HealthInputs:
    """Annual figures the five ratios are computed from."""
    annual_income: float = 0.0
    annual_saving: float = 0.0
    annual_investing: float = 0.0
    annual_essential_expense: float = 0.0
    annual_debt_payments: float = 0.0
    liquid_balance: float = 0.0
    net_worth: float = 0.0
    age: int = 30


def health_inputs_from_transactions(
    trans: Iterable[Transaction],
    tree: CategoryTree,
    accounts: Iterable[Account],
    age: int,
    policy: HealthPolicy = DEFAULT_POLICY,
) -> HealthInputs:
    """Derive ratio inputs from an already windowed transaction list."""
    income = saving = investing = essential = debt = 0.0
    for t in trans:
        amount = coerce_amount(t.amount)
        if t.type == INCOME:
            income += amount
        group = tree.find(t.cat_id).map(lambda c: c.group).get_or_else(None)
        if group == SAVING:
            saving += amount
        elif group == INVESTING:
            investing += amount
        if tree.is_within(t.cat_id, policy.essential_category_ids):
            essential += amount
        if tree.is_within(t.cat_id, policy.debt_category_ids):
            debt += amount

    accounts = tuple(accounts)
    return HealthInputs(
        annual_income=income,
        annual_saving=saving,
        annual_investing=investing,
        annual_essential_expense=essential,
        annual_debt_payments=debt,
        liquid_balance=sum(a.balance for a in accounts if policy.is_liquid(a)),
        net_worth=net_worth(accounts),
        age=age,
    )


def health_inputs_from_budgets(
    engine: RollupEngine,
    accounts: Iterable[Account],
    age: int,
    policy: HealthPolicy = DEFAULT_POLICY,
) -> HealthInputs:
    """Same inputs, taken from the planned budget instead of actual spending."""
    layout = engine.layout
    table = engine.rollup_many()

    def annual(cat_id: str) -> float:
        return sum(table.get(cat_id, ()))

    def annual_under(ids: Iterable[str]) -> float:
        # Outermost matching ids only, so nested ids are not counted twice.
        ids = set(ids)
        tops = [i for i in ids if not any(a in ids for a in engine.tree.ancestors_of(i))]
        return sum(annual(i) for i in tops)

    accounts = tuple(accounts)
    return HealthInputs(
        annual_income=annual(layout.income),
        annual_saving=annual(layout.saving),
        annual_investing=annual(layout.investing),
        annual_essential_expense=annual_under(policy.essential_category_ids),
        annual_debt_payments=annual_under(policy.debt_category_ids),
        liquid_balance=sum(a.balance for a in accounts if policy.is_liquid(a)),
        net_worth=net_worth(accounts),
        age=age,
    )


def _ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator * scale


def compute_ratios(inputs: HealthInputs) -> dict[str, float]:
    income = inputs.annual_income
    target_net_worth = inputs.age * income / 10
    return {
        SAVINGS_RATE: _ratio(inputs.annual_saving + inputs.annual_investing, income, 100),
        INVESTMENT_RATE: _ratio(inputs.annual_investing, income, 100),
        EMERGENCY_FUND: _ratio(inputs.liquid_balance, inputs.annual_essential_expense / 12),
        DEBT_TO_INCOME: _ratio(inputs.annual_debt_payments / 12, income / 12, 100),
        NET_WORTH_PROGRESS: _ratio(inputs.net_worth, target_net_worth, 100),
    }


@dataclass(frozen=True)
class RatioResult:
    name: str
    label: str
    value: float
    tier: str
    points: int


@dataclass(frozen=True)
class HealthScore:
    ratios: tuple[RatioResult, ...]
    score: int
    status: str
    summary: str
    target_net_worth: float = 0.0

    def ratio(self, name: str) -> Optional[RatioResult]:
        return next((r for r in self.ratios if r.name == name), None)

    def as_dict(self) -> dict:
        return {
            "score": self.score,
            "status": self.status,
            "summary": self.summary,
            "target_net_worth": self.target_net_worth,
            "ratios": {
                r.name: {"label": r.label, "value": r.value, "tier": r.tier, "points": r.points}
                for r in self.ratios
            },
        }


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def score_band(score: int, policy: HealthPolicy = DEFAULT_POLICY) -> ScoreBand:
    for band in sorted(policy.score_bands, key=lambda b: b.minimum, reverse=True):
        if score >= band.minimum:
            return band
    return policy.score_bands[-1]


def score_health(inputs: HealthInputs, policy: HealthPolicy = DEFAULT_POLICY) -> HealthScore:
    values = compute_ratios(inputs)
    results = []
    for name, value in values.items():
        tier = policy.thresholds[name].tier(value)
        results.append(RatioResult(
            name=name,
            label=RATIO_LABELS[name],
            value=value,
            tier=tier,
            points=policy.tier_points[tier],
        ))

    score = _round_half_up(sum(r.points for r in results) / len(results))
    band = score_band(score, policy)
    logger.debug("Health score %d (%s)", score, band.label)
    return HealthScore(
        ratios=tuple(results),
        score=score,
        status=band.label,
        summary=band.summary,
        target_net_worth=inputs.age * inputs.annual_income / 10,
    )
