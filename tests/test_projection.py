import pytest

from finplan.domain import Category
from finplan.projection import (
    ProjectionPoint, annual_savings, annual_savings_from_budgets, project, projection_frame,
)
from finplan.rollup import RollupEngine
from finplan.tree import CategoryTree


def test_single_year_of_compounding():
    savings = annual_savings(720000, 600000)
    points = list(project(1_000_000, savings, 0.0654, start_age=30, end_age=31, contribution_cutoff_age=65))
    assert savings == 120000
    assert points[0] == ProjectionPoint(age=30, net_worth=1_000_000)
    assert points[1].age == 31
    assert round(points[1].net_worth) == 1193248


def test_one_point_per_age_inclusive():
    points = list(project(0, 0, 0.05))
    assert len(points) == 61
    assert [p.age for p in points] == list(range(30, 91))


def test_projection_is_deterministic():
    assert list(project(5000, 1200, 0.07)) == list(project(5000, 1200, 0.07))


def test_generator_is_single_use():
    gen = project(100, 10, 0.01, start_age=30, end_age=32)
    assert len(list(gen)) == 3
    assert list(gen) == []


def test_contributions_stop_at_cutoff():
    points = list(project(0, 100, 0.0, start_age=63, end_age=67, contribution_cutoff_age=65))
    assert [p.net_worth for p in points] == [0, 100, 200, 200, 200]


def test_negative_savings_compound_as_is():
    points = list(project(1000, -100, 0.1, start_age=30, end_age=31))
    assert points[1].net_worth == pytest.approx(990)


def test_end_before_start_is_empty():
    assert list(project(1000, 0, 0.05, start_age=40, end_age=39)) == []


def test_annual_savings_from_budgets():
    cats = (
        Category("income", "Income", None, "income", monthly_budgets=(1000.0,) * 12),
        Category("taxes", "Taxes", None, "expense", monthly_budgets=(100.0,) * 12),
        Category("saving", "Saving", None, "expense", group="saving", monthly_budgets=(200.0,) * 12),
        Category("expenses", "Expenses", None, "expense"),
        Category("expenses-food", "Food", "expenses", "expense", monthly_budgets=(300.0,) * 12),
    )
    engine = RollupEngine(CategoryTree(cats))
    assert annual_savings_from_budgets(engine) == 4800


def test_projection_frame():
    df = projection_frame(project(1000, 100, 0.0, start_age=30, end_age=32))
    assert list(df.columns) == ["age", "net_worth"]
    assert list(df["age"]) == [30, 31, 32]
    assert list(df["net_worth"]) == [1000, 1100, 1200]
