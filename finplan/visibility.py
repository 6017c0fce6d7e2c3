from typing import Iterable

from finplan.domain import LeafNode
from finplan.tree import CategoryTree


def visible(selected_ids: Iterable[str], tree: CategoryTree) -> frozenset[str]:
    """Selected ids plus every ancestor needed to reach them from a root.

    Visibility is a display concern only: a hidden category keeps its
    budget and still counts in every rollup.
    """
    shown: set[str] = set()
    for cat_id in selected_ids:
        shown.add(cat_id)
        shown.update(tree.ancestors_of(cat_id))
    return frozenset(shown)


def initial_selection(tree: CategoryTree, month: int = 0) -> frozenset[str]:
    return frozenset(
        cat.id
        for cat in tree
        if isinstance(tree.node(cat.id), LeafNode) and tree.node(cat.id).monthly_budgets[month] != 0
    )


def deselected(previous: Iterable[str], current: Iterable[str]) -> frozenset[str]:
    return frozenset(previous) - frozenset(current)
