from dataclasses import replace

import pytest

from finplan.classification import (
    DEBT_TO_INCOME, DEFAULT_POLICY, DEFAULT_THRESHOLDS, EMERGENCY_FUND, EXCELLENT, FAIR, GOOD,
    INVESTMENT_RATE, NEEDS, NEEDS_IMPROVEMENT, NET_WORTH_PROGRESS, SAVINGS, SAVINGS_RATE, TIERS, WANTS,
    HealthInputs, SpendingSplit, Thresholds, classify_spending, compute_ratios,
    health_inputs_from_budgets, health_inputs_from_transactions, score_band, score_health,
    spending_split,
)
from finplan.domain import Account, Category, Transaction
from finplan.rollup import RollupEngine
from finplan.tree import CategoryTree


def make_tree():
    return CategoryTree((
        Category("income", "Income", None, "income"),
        Category("income-salary", "Salary", "income", "income", monthly_budgets=(10000.0,) * 12),
        Category("taxes", "Taxes", None, "expense"),
        Category("taxes-social", "Social security", "taxes", "expense", monthly_budgets=(100.0,) * 12),
        Category("taxes-provident", "Provident fund", "taxes", "expense"),
        Category("saving", "Saving", None, "expense", group="saving", monthly_budgets=(1000.0,) * 12),
        Category("investing", "Investing", None, "expense", group="investing"),
        Category("investing-etf", "ETF", "investing", "expense", group="investing",
                 monthly_budgets=(500.0,) * 12),
        Category("expenses", "Expenses", None, "expense"),
        Category("expenses-housing", "Housing", "expenses", "expense"),
        Category("expenses-housing-rent", "Rent", "expenses-housing", "expense"),
        Category("expenses-housing-rent-deposit", "Deposit", "expenses-housing-rent", "expense",
                 monthly_budgets=(500.0,) * 12),
        Category("expenses-food", "Food", "expenses", "expense", monthly_budgets=(300.0,) * 12),
        Category("expenses-family", "Family", "expenses", "expense"),
        Category("expenses-family-mom", "Mom", "expenses-family", "expense"),
        Category("expenses-fun", "Fun", "expenses", "expense"),
        Category("expenses-debt", "Debt", "expenses", "expense"),
        Category("expenses-debt-card", "Card", "expenses-debt", "expense", monthly_budgets=(50.0,) * 12),
    ))


def make_accounts():
    return (
        Account("a1", "Cash", 5000),
        Account("a2", "Main Bank Account", 75000),
        Account("a3", "Credit Card", -5000),
    )


def tx(tid, cat_id, amount, type="expense"):
    return Transaction(tid, "a2", cat_id, amount, "2026-09-01", type)


def test_classify_spending_buckets():
    tree = make_tree()
    assert classify_spending("saving", tree) == SAVINGS
    assert classify_spending("investing-etf", tree) == SAVINGS
    assert classify_spending("expenses-food", tree) == NEEDS
    assert classify_spending("expenses-family-mom", tree) == NEEDS
    assert classify_spending("taxes-social", tree) == NEEDS
    assert classify_spending("expenses-fun", tree) == WANTS
    assert classify_spending("expenses-debt-card", tree) == WANTS
    assert classify_spending("no-such-category", tree) == WANTS


def test_classify_walks_every_ancestor():
    assert classify_spending("expenses-housing-rent-deposit", make_tree()) == NEEDS


def test_group_tag_wins_over_needs_membership():
    tree = CategoryTree((
        Category("expenses-food", "Food", None, "expense"),
        Category("food-fund", "Food fund", "expenses-food", "expense", group="saving"),
    ))
    assert classify_spending("food-fund", tree) == SAVINGS


def test_spending_split_partitions_expense_spend():
    trans = (
        tx("1", "expenses-housing-rent", 1000),
        tx("2", "expenses-food", 500),
        tx("3", "expenses-family-mom", 200),
        tx("4", "expenses-fun", 300),
        tx("5", "expenses-debt-card", 100),
        tx("6", "saving", 400),
        tx("7", "investing-etf", 600),
        tx("8", "taxes-provident", 999),
        tx("9", "ghost", 50),
        tx("10", "taxes-social", 80),
        tx("11", "income-salary", 10000, "income"),
    )
    split = spending_split(trans, make_tree())
    assert split.needs == 1780
    assert split.wants == 450
    assert split.savings == 1000
    # every expense outside the excluded set lands in exactly one bucket
    assert split.total == sum(t.amount for t in trans if t.type == "expense" and t.cat_id != "taxes-provident")
    assert sum(split.percentages().values()) == pytest.approx(100)


def test_empty_split_percentages_are_zero():
    assert SpendingSplit().percentages() == {NEEDS: 0.0, WANTS: 0.0, SAVINGS: 0.0}


@pytest.mark.parametrize("value, tier", [
    (25, EXCELLENT), (20, EXCELLENT), (19.9, GOOD), (15, GOOD), (10, FAIR), (9.99, NEEDS_IMPROVEMENT),
])
def test_savings_rate_tiers(value, tier):
    assert DEFAULT_THRESHOLDS[SAVINGS_RATE].tier(value) == tier


@pytest.mark.parametrize("value, tier", [
    (0, EXCELLENT), (15, EXCELLENT), (15.1, GOOD), (36, GOOD), (36.5, FAIR), (43, FAIR),
    (43.1, NEEDS_IMPROVEMENT),
])
def test_debt_to_income_is_inverted(value, tier):
    assert DEFAULT_THRESHOLDS[DEBT_TO_INCOME].tier(value) == tier


def test_tiers_are_monotone():
    values = [x / 2 for x in range(0, 240)]
    for name, thresholds in DEFAULT_THRESHOLDS.items():
        ranks = [TIERS.index(thresholds.tier(v)) for v in values]
        if thresholds.inverted:
            assert ranks == sorted(ranks, reverse=True), name
        else:
            assert ranks == sorted(ranks), name


def test_zero_income_scores_without_error():
    result = score_health(HealthInputs(annual_income=0))
    assert result.ratio(SAVINGS_RATE).value == 0
    assert result.ratio(SAVINGS_RATE).tier == NEEDS_IMPROVEMENT
    assert result.ratio(DEBT_TO_INCOME).tier == EXCELLENT
    assert result.ratio(EMERGENCY_FUND).value == 0
    assert result.score == 40
    assert result.status == FAIR


def test_excellent_on_every_ratio():
    inputs = HealthInputs(
        annual_income=100000,
        annual_saving=10000,
        annual_investing=15000,
        annual_essential_expense=12000,
        annual_debt_payments=0,
        liquid_balance=6000,
        net_worth=300000,
        age=30,
    )
    ratios = compute_ratios(inputs)
    assert ratios[SAVINGS_RATE] == pytest.approx(25)
    assert ratios[EMERGENCY_FUND] == pytest.approx(6)
    assert ratios[NET_WORTH_PROGRESS] == pytest.approx(100)
    result = score_health(inputs)
    assert result.score == 100
    assert result.status == EXCELLENT
    assert result.target_net_worth == 300000


def test_mixed_score():
    inputs = HealthInputs(
        annual_income=100000,
        annual_saving=10000,
        annual_investing=5000,
        annual_essential_expense=12000,
        annual_debt_payments=20000,
        liquid_balance=2000,
        net_worth=150000,
        age=30,
    )
    result = score_health(inputs)
    assert [r.tier for r in result.ratios] == [GOOD, FAIR, FAIR, GOOD, FAIR]
    assert result.score == 60
    assert result.status == GOOD


def test_score_stays_in_range():
    for income in (0, 1, 50000, 10 ** 7):
        for saving in (0, 1000, 10 ** 6):
            score = score_health(HealthInputs(annual_income=income, annual_saving=saving)).score
            assert 25 <= score <= 100


def test_score_band_boundaries():
    assert score_band(80).label == EXCELLENT
    assert score_band(79).label == GOOD
    assert score_band(40).label == FAIR
    assert score_band(0).label == NEEDS_IMPROVEMENT


def test_policy_can_be_swapped():
    strict = replace(DEFAULT_POLICY, thresholds={**DEFAULT_THRESHOLDS, SAVINGS_RATE: Thresholds(30, 20, 10)})
    inputs = HealthInputs(annual_income=100, annual_saving=25)
    assert score_health(inputs).ratio(SAVINGS_RATE).tier == EXCELLENT
    assert score_health(inputs, strict).ratio(SAVINGS_RATE).tier == GOOD


def test_as_dict_exposes_every_ratio():
    data = score_health(HealthInputs()).as_dict()
    assert set(data["ratios"]) == {
        SAVINGS_RATE, INVESTMENT_RATE, EMERGENCY_FUND, DEBT_TO_INCOME, NET_WORTH_PROGRESS,
    }


def test_health_inputs_from_transactions():
    trans = (
        tx("1", "income-salary", 120000, "income"),
        tx("2", "expenses-housing-rent", 12000),
        tx("3", "expenses-food", 6000),
        tx("4", "expenses-debt-card", 2400),
        tx("5", "saving", 12000),
        tx("6", "investing-etf", 6000),
        tx("7", "taxes-social", 1200),
    )
    inputs = health_inputs_from_transactions(trans, make_tree(), make_accounts(), age=30)
    assert inputs.annual_income == 120000
    assert inputs.annual_saving == 12000
    assert inputs.annual_investing == 6000
    assert inputs.annual_essential_expense == 19200
    assert inputs.annual_debt_payments == 2400
    assert inputs.liquid_balance == 80000
    assert inputs.net_worth == 75000


def test_health_inputs_from_budgets():
    engine = RollupEngine(make_tree())
    assert engine.annual_total("expenses-housing") == 6000
    inputs = health_inputs_from_budgets(engine, make_accounts(), age=30)
    assert inputs.annual_income == 120000
    assert inputs.annual_saving == 12000
    assert inputs.annual_investing == 6000
    # housing 6000 + food 3600 + taxes 1200
    assert inputs.annual_essential_expense == 10800
    assert inputs.annual_debt_payments == 600


def test_nested_policy_ids_are_not_double_counted():
    engine = RollupEngine(make_tree())
    policy = replace(DEFAULT_POLICY, essential_category_ids=frozenset({"expenses", "expenses-food"}))
    inputs = health_inputs_from_budgets(engine, make_accounts(), age=30, policy=policy)
    assert inputs.annual_essential_expense == engine.annual_total("expenses")
