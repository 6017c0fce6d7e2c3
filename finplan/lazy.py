import calendar
from collections import defaultdict
from datetime import date
from typing import Callable, Iterable, Iterator, Tuple

from finplan.domain import EXPENSE, UNCATEGORIZED, Transaction
from finplan.transforms import coerce_amount, parse_date
from finplan.tree import CategoryTree


def iter_transactions(
    trans: Iterable[Transaction], pred: Callable[[Transaction], bool]
) -> Iterator[Transaction]:
    for t in trans:
        if pred(t):
            yield t


def within_last_months(today: date, months: int = 12) -> Callable[[Transaction], bool]:
    """Predicate for transactions dated after the same day ``months`` months ago.

    The day is clamped to the length of the earlier month (Mar 31 -> Feb 28).
    """
    year, month = divmod(today.year * 12 + today.month - 1 - months, 12)
    day = min(today.day, calendar.monthrange(year, month + 1)[1])
    start = date(year, month + 1, day)

    def _filter(t: Transaction) -> bool:
        d = parse_date(t.ts)
        return d is not None and d > start

    return _filter


def lazy_top_categories(
    trans: Iterable[Transaction], tree: CategoryTree, k: int
) -> Iterator[tuple[str, float]]:
    """Yield up to ``k`` (name, total) pairs for expense categories, largest first.

    Transactions whose category is not in the tree are reported as
    "Uncategorized".
    """
    totals_by_name: dict[str, float] = defaultdict(float)

    for t in trans:
        if t.type == EXPENSE:
            name = tree.find(t.cat_id).map(lambda c: c.name).get_or_else(UNCATEGORIZED)
            totals_by_name[name] += coerce_amount(t.amount)

    ordered: list[Tuple[str, float]] = sorted(
        totals_by_name.items(),
        key=lambda item: item[1],
        reverse=True,
    )

    for name, total in ordered[: max(0, k)]:
        yield name, total
