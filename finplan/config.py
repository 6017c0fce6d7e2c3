import json
import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - [%(levelname)s] - %(message)s'


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


@dataclass(frozen=True)
class Settings:
    annual_return_rate: float = 0.0654
    age: int = 30
    contribution_cutoff_age: int = 65
    projection_start_age: int = 30
    projection_end_age: int = 90
    currency: str = "THB"


@dataclass(frozen=True)
class StatementLayout:
    """Ids of the top-level buckets of a personal statement."""
    income: str = "income"
    taxes: str = "taxes"
    saving: str = "saving"
    investing: str = "investing"
    expenses: str = "expenses"

    @property
    def outflows(self) -> tuple[str, ...]:
        return (self.expenses, self.taxes, self.saving, self.investing)


DEFAULT_LAYOUT = StatementLayout()

DEFAULT_COLLAPSED = frozenset({
    "expenses-housing",
    "expenses-transportation",
    "expenses-health",
    "expenses-subscriptions",
    "taxes",
    "expenses",
    "investing",
    "expenses-family",
    "expenses-debt",
})

ENV_OVERRIDES = {
    "FINPLAN_RETURN_RATE": "annual_return_rate",
    "FINPLAN_AGE": "age",
    "FINPLAN_CUTOFF_AGE": "contribution_cutoff_age",
    "FINPLAN_START_AGE": "projection_start_age",
    "FINPLAN_END_AGE": "projection_end_age",
    "FINPLAN_CURRENCY": "currency",
}


def _coerce(name: str, raw, default):
    kind = type(default)
    try:
        if kind is int:
            return int(float(raw))
        return kind(raw)
    except (TypeError, ValueError, OverflowError):
        logger.warning("Invalid value %r for setting %s, using %r", raw, name, default)
        return default


def load_settings(path: Optional[str] = None) -> Settings:
    """Build settings from defaults, the seed document and the environment.

    Later sources win: the ``"settings"`` object of the JSON file at ``path``
    overrides the defaults, and ``FINPLAN_*`` variables (a ``.env`` file is
    honored) override both.
    """
    load_dotenv()
    settings = Settings()
    known = {f.name for f in fields(Settings)}

    if path and os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            stored = json.load(f).get("settings") or {}
        updates = {
            k: _coerce(k, v, getattr(settings, k)) for k, v in stored.items() if k in known
        }
        settings = replace(settings, **updates)

    for env_name, field_name in ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is not None:
            settings = replace(
                settings, **{field_name: _coerce(field_name, raw, getattr(settings, field_name))}
            )
    return settings
