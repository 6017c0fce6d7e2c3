"""Category hierarchy built from the flat category list.

The tree is validated once, at construction: duplicate ids, reserved ids
and parent cycles are configuration errors and raise immediately. Parent
references to unknown ids are tolerated: the orphaned category becomes a
root of its own subtree, and ancestor walks stop at it.
"""

import logging
from collections import defaultdict
from typing import Iterable, Iterator

from finplan.domain import (
    Category, CategoryNode, GroupNode, LeafNode, SUMMARY_ID_PREFIX,
)
from finplan.functional import Either, Left, Maybe, Nothing, Right, Some
from finplan.transforms import normalize_budgets

logger = logging.getLogger(__name__)


class CategoryTreeError(ValueError):
    pass


class DuplicateCategoryError(CategoryTreeError):
    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Duplicate category id {category_id!r}")


class CategoryCycleError(CategoryTreeError):
    def __init__(self, cycle: Iterable[str]):
        self.cycle = tuple(cycle)
        super().__init__("Category cycle detected: " + " -> ".join(self.cycle))


class CategoryTree:
    def __init__(self, categories: Iterable[Category]):
        self._categories: dict[str, Category] = {}
        self._children: dict[str, list[str]] = defaultdict(list)

        for cat in categories:
            if cat.id in self._categories:
                raise DuplicateCategoryError(cat.id)
            if cat.id.startswith(SUMMARY_ID_PREFIX):
                raise CategoryTreeError(
                    f"Category id {cat.id!r} uses the reserved prefix {SUMMARY_ID_PREFIX!r}"
                )
            self._categories[cat.id] = cat
            if cat.parent_id:
                self._children[cat.parent_id].append(cat.id)

        for cat in self._categories.values():
            if cat.parent_id and cat.parent_id not in self._categories:
                logger.warning(
                    "Category %s references missing parent %s", cat.id, cat.parent_id
                )
        self._roots: list[str] = [
            cid for cid, cat in self._categories.items()
            if not cat.parent_id or cat.parent_id not in self._categories
        ]
        self._check_acyclic()
        self._nodes: dict[str, CategoryNode] = {
            cid: self._make_node(cat) for cid, cat in self._categories.items()
        }

    def _check_acyclic(self) -> None:
        reaches_root: set[str] = set()
        for start in self._categories:
            path: list[str] = []
            on_path: set[str] = set()
            current = start
            while current in self._categories and current not in reaches_root:
                if current in on_path:
                    loop = path[path.index(current):] + [current]
                    raise CategoryCycleError(loop)
                path.append(current)
                on_path.add(current)
                current = self._categories[current].parent_id
            reaches_root.update(path)

    def _make_node(self, cat: Category) -> CategoryNode:
        children = self._children.get(cat.id)
        if children:
            if cat.monthly_budgets and any(v != 0 for v in cat.monthly_budgets):
                logger.warning(
                    "Ignoring own budget of %s: group totals come from its children", cat.id
                )
            return GroupNode(category=cat, children=tuple(children))
        return LeafNode(category=cat, monthly_budgets=normalize_budgets(cat.monthly_budgets))

    def __len__(self) -> int:
        return len(self._categories)

    def __contains__(self, cat_id: str) -> bool:
        return cat_id in self._categories

    def __iter__(self) -> Iterator[Category]:
        return iter(self._categories.values())

    def find(self, cat_id: str) -> Maybe[Category]:
        cat = self._categories.get(cat_id)
        return Some(cat) if cat is not None else Nothing()

    def node(self, cat_id: str) -> CategoryNode:
        return self._nodes[cat_id]

    def children_of(self, cat_id: str) -> tuple[str, ...]:
        return tuple(self._children.get(cat_id, ()))

    def is_leaf(self, cat_id: str) -> bool:
        return not self.children_of(cat_id)

    def roots(self) -> tuple[str, ...]:
        return tuple(self._roots)

    def ancestors_of(self, cat_id: str) -> Iterator[str]:
        """Yield parent ids from the immediate parent up to the root.

        A parent id that is not in the tree is never yielded: the walk stops
        at the orphaned category, which is listed in :meth:`roots`.
        """
        cat = self._categories.get(cat_id)
        while cat is not None and cat.parent_id in self._categories:
            yield cat.parent_id
            cat = self._categories[cat.parent_id]

    def leaves_under(self, cat_id: str) -> Iterator[str]:
        if cat_id not in self:
            return
        if self.is_leaf(cat_id):
            yield cat_id
            return
        for child in self.children_of(cat_id):
            yield from self.leaves_under(child)

    def is_within(self, cat_id: str, ancestor_ids: Iterable[str]) -> bool:
        """True if ``cat_id`` or any of its ancestors is one of ``ancestor_ids``."""
        wanted = set(ancestor_ids)
        if cat_id in wanted:
            return True
        return any(a in wanted for a in self.ancestors_of(cat_id))


def try_build_tree(categories: Iterable[Category]) -> Either[dict, CategoryTree]:
    try:
        return Right(CategoryTree(categories))
    except CategoryCycleError as e:
        return Left({
            "error": "category_cycle",
            "message": str(e),
            "cycle": list(e.cycle),
        })
    except DuplicateCategoryError as e:
        return Left({
            "error": "duplicate_category",
            "message": str(e),
            "category_id": e.category_id,
        })
    except CategoryTreeError as e:
        return Left({
            "error": "invalid_category_tree",
            "message": str(e),
        })
