from typing import Callable, Dict, List, NamedTuple
from datetime import datetime

from finplan.rollup import RollupEngine
from finplan.transforms import apply_selection, coerce_amount
from finplan.tree import CategoryTree
from finplan.visibility import deselected

__all__ = [
    'event_bus', 'CATEGORY_UPDATED', 'SELECTION_CHANGED', 'RETURN_RATE_CHANGED', 'Event', 'EventBus',
]


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Event, dict], dict]]] = {}

    def subscribe(self, name: str, handler: Callable[[Event, dict], dict]) -> None:
        if name not in self._subscribers:
            self._subscribers[name] = []
        self._subscribers[name].append(handler)

    def publish(self, name: str, payload: dict) -> List[dict]:
        if name not in self._subscribers:
            return []

        event = Event(
            name=name,
            ts=datetime.now().isoformat(),
            payload=payload
        )

        results = []
        for handler in self._subscribers[name]:
            result = handler(event, payload)
            results.append(result)
        return results

    def unsubscribe(self, name: str, handler: Callable[[Event, dict], dict]) -> None:
        if name in self._subscribers:
            if handler in self._subscribers[name]:
                self._subscribers[name].remove(handler)


CATEGORY_UPDATED = "CATEGORY_UPDATED"
SELECTION_CHANGED = "SELECTION_CHANGED"
RETURN_RATE_CHANGED = "RETURN_RATE_CHANGED"

event_bus = EventBus()


def recompute_summary_handler(event: Event, payload: dict) -> dict:
    categories = payload.get("categories", ())
    month = payload.get("month", 0)
    summary = RollupEngine(CategoryTree(categories)).budget_summary(month)
    return {
        "month": summary.month,
        "total_income": summary.total_income,
        "total_expense": summary.total_expense,
        "net_flow": summary.net_flow,
    }


def zero_deselected_handler(event: Event, payload: dict) -> dict:
    categories = tuple(payload.get("categories", ()))
    previous = payload.get("previous", ())
    current = payload.get("current", ())
    removed = deselected(previous, current)
    if not removed:
        return {"deselected": [], "categories": categories}
    return {
        "deselected": sorted(removed),
        "categories": apply_selection(categories, previous, current),
    }


def return_rate_handler(event: Event, payload: dict) -> dict:
    rate = coerce_amount(payload.get("annual_return_rate"))
    if rate <= -1:
        return {"alert": f"Return rate {rate:.4f} would wipe out the portfolio", "annual_return_rate": 0.0}
    return {"annual_return_rate": rate}


def register_default_handlers(bus: EventBus = event_bus) -> None:
    bus.subscribe(CATEGORY_UPDATED, recompute_summary_handler)
    bus.subscribe(SELECTION_CHANGED, zero_deselected_handler)
    bus.subscribe(RETURN_RATE_CHANGED, return_rate_handler)


register_default_handlers()
