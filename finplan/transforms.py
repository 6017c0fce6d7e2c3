import json
import logging
import math
from datetime import date
from typing import Any, Iterable, Optional, Tuple

from finplan.domain import (
    MONTHS, INCOME, EXPENSE, Account, Category, Transaction,
)

logger = logging.getLogger(__name__)


def coerce_amount(value: Any) -> float:
    """Lenient numeric parse: anything that is not a finite number becomes 0.0."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        try:
            result = float(value.strip().replace(",", ""))
        except ValueError:
            logger.warning("Non-numeric amount %r treated as 0", value)
            return 0.0
    else:
        if value is not None:
            logger.warning("Unsupported amount %r treated as 0", value)
        return 0.0
    if not math.isfinite(result):
        logger.warning("Non-finite amount %r treated as 0", value)
        return 0.0
    return result


def normalize_budgets(values: Optional[Iterable[Any]]) -> tuple[float, ...]:
    """Turn a stored budget sequence into exactly twelve floats.

    A missing sequence is twelve zeros. Short sequences are zero-padded and
    long ones truncated.
    """
    if values is None:
        return (0.0,) * MONTHS
    amounts = [coerce_amount(v) for v in values]
    if len(amounts) != MONTHS:
        logger.warning("Budget vector of length %d normalized to %d months", len(amounts), MONTHS)
        amounts = (amounts + [0.0] * MONTHS)[:MONTHS]
    return tuple(amounts)


def fill_year(value: Any) -> tuple[float, ...]:
    return (coerce_amount(value),) * MONTHS


def category_from_record(rec: dict) -> Category:
    budgets = rec.get("monthlyBudgets")
    return Category(
        id=str(rec["id"]),
        name=rec.get("name", ""),
        parent_id=rec.get("parentCategoryId") or None,
        type=rec.get("type", EXPENSE),
        group=rec.get("group") or None,
        monthly_budgets=None if budgets is None else normalize_budgets(budgets),
    )


def account_from_record(rec: dict) -> Account:
    return Account(
        id=str(rec["id"]),
        name=rec.get("name", ""),
        balance=coerce_amount(rec.get("balance")),
        currency=rec.get("currency", "THB"),
    )


def transaction_from_record(rec: dict) -> Transaction:
    return Transaction(
        id=str(rec["id"]),
        account_id=rec.get("accountId", ""),
        cat_id=rec.get("categoryId", ""),
        amount=coerce_amount(rec.get("amount")),
        ts=str(rec.get("date", "")),
        type=rec.get("type", EXPENSE),
        note=rec.get("note", ""),
    )


def load_seed(
    path: str,
) -> Tuple[
    Tuple[Account, ...],
    Tuple[Category, ...],
    Tuple[Transaction, ...],
]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    accounts = tuple(account_from_record(a) for a in data.get("accounts", []))
    categories = tuple(category_from_record(c) for c in data.get("categories", []))
    transactions = tuple(transaction_from_record(t) for t in data.get("transactions", []))

    logger.debug(
        "Loaded %d accounts, %d categories, %d transactions from %s",
        len(accounts), len(categories), len(transactions), path,
    )
    return accounts, categories, transactions


def set_monthly_budget(
    cats: Tuple[Category, ...], cat_id: str, value: Any
) -> Tuple[Category, ...]:
    """Return a new category tuple with every month of ``cat_id`` set to ``value``."""
    budgets = fill_year(value)
    return tuple(
        Category(
            id=c.id,
            name=c.name,
            parent_id=c.parent_id,
            type=c.type,
            group=c.group,
            monthly_budgets=budgets if c.id == cat_id else c.monthly_budgets,
        )
        for c in cats
    )


def apply_selection(
    cats: Tuple[Category, ...], previous: Iterable[str], current: Iterable[str]
) -> Tuple[Category, ...]:
    """Zero the budgets of categories removed from the selection.

    Only categories that still carry a non-zero budget are touched, so a
    hidden category never keeps contributing to the totals.
    """
    removed = set(previous) - set(current)
    result = cats
    for c in cats:
        if c.id in removed and any(v != 0 for v in normalize_budgets(c.monthly_budgets)):
            logger.info("Zeroing budget of deselected category %s", c.id)
            result = set_monthly_budget(result, c.id, 0)
    return result


def net_worth(accs: Iterable[Account]) -> float:
    return sum(a.balance for a in accs)


def income_transactions(trans: Tuple[Transaction, ...]) -> Tuple[Transaction, ...]:
    return tuple(filter(lambda t: t.type == INCOME, trans))


def expense_transactions(trans: Tuple[Transaction, ...]) -> Tuple[Transaction, ...]:
    return tuple(filter(lambda t: t.type == EXPENSE, trans))


def parse_date(ts: str) -> Optional[date]:
    try:
        return date.fromisoformat(str(ts)[:10])
    except ValueError:
        return None
