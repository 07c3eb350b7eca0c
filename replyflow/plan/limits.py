"""
Plan limits.

Limits are read from `config/plans.yml`; when the file is missing the
built-in FREE/PRO values are used. A limit of -1 means unlimited.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml

from replyflow.common.utils import utc_now

logger = logging.getLogger(__name__)

PLAN_TYPES = ("free", "pro")
FEATURE_KEYS = ("reveals", "drafts", "sends", "accounts")
UNLIMITED = -1


@dataclass(frozen=True)
class PlanLimits:
    reveals: int
    drafts: int
    sends: int
    accounts: int
    history_items: int

    def for_feature(self, feature: str) -> int:
        return getattr(self, feature)

    def to_dict(self) -> dict[str, int]:
        data = asdict(self)
        data["historyItems"] = data.pop("history_items")
        return data


@dataclass(frozen=True)
class SourceLimits:
    enabled_sources: int
    enabled_ats_sources: int
    manual_syncs_per_day: int
    source_validations_per_day: int

    def to_dict(self) -> dict[str, int]:
        return {
            "enabledSources": self.enabled_sources,
            "enabledAtsSources": self.enabled_ats_sources,
            "manualSyncPerDay": self.manual_syncs_per_day,
            "sourceValidationsPerDay": self.source_validations_per_day,
        }


FREE_LIMITS = PlanLimits(reveals=50, drafts=30, sends=10, accounts=1, history_items=30)
PRO_LIMITS = PlanLimits(
    reveals=UNLIMITED, drafts=UNLIMITED, sends=UNLIMITED, accounts=UNLIMITED, history_items=UNLIMITED
)
FREE_SOURCE_LIMITS = SourceLimits(
    enabled_sources=10, enabled_ats_sources=5, manual_syncs_per_day=3, source_validations_per_day=10
)
PRO_SOURCE_LIMITS = SourceLimits(
    enabled_sources=UNLIMITED,
    enabled_ats_sources=UNLIMITED,
    manual_syncs_per_day=UNLIMITED,
    source_validations_per_day=UNLIMITED,
)


@dataclass(frozen=True)
class PlanCatalog:
    limits: dict[str, PlanLimits]
    sources: dict[str, SourceLimits]

    @classmethod
    def defaults(cls) -> "PlanCatalog":
        return cls(
            limits={"free": FREE_LIMITS, "pro": PRO_LIMITS},
            sources={"free": FREE_SOURCE_LIMITS, "pro": PRO_SOURCE_LIMITS},
        )

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "PlanCatalog":
        defaults = cls.defaults()
        plans = config_dict.get("plans") or {}
        limits: dict[str, PlanLimits] = {}
        sources: dict[str, SourceLimits] = {}

        for plan in PLAN_TYPES:
            plan_dict = plans.get(plan) or {}
            base = defaults.limits[plan]
            raw_limits = plan_dict.get("limits") or {}
            limits[plan] = PlanLimits(
                reveals=int(raw_limits.get("reveals", base.reveals)),
                drafts=int(raw_limits.get("drafts", base.drafts)),
                sends=int(raw_limits.get("sends", base.sends)),
                accounts=int(raw_limits.get("accounts", base.accounts)),
                history_items=int(raw_limits.get("history_items", base.history_items)),
            )
            base_sources = defaults.sources[plan]
            raw_sources = plan_dict.get("sources") or {}
            sources[plan] = SourceLimits(
                enabled_sources=int(raw_sources.get("enabled_sources", base_sources.enabled_sources)),
                enabled_ats_sources=int(
                    raw_sources.get("enabled_ats_sources", base_sources.enabled_ats_sources)
                ),
                manual_syncs_per_day=int(
                    raw_sources.get("manual_syncs_per_day", base_sources.manual_syncs_per_day)
                ),
                source_validations_per_day=int(
                    raw_sources.get(
                        "source_validations_per_day", base_sources.source_validations_per_day
                    )
                ),
            )

        return cls(limits=limits, sources=sources)


def load_plan_catalog(config_path: Optional[str] = None) -> PlanCatalog:
    """
    Load plan limits from YAML file.

    Args:
        config_path: Path to plans.yml. If None, uses config/plans.yml.

    Returns:
        PlanCatalog (built-in defaults when the file is missing)

    Raises:
        ValueError: If the YAML is invalid
    """
    if config_path is None:
        project_root = Path(__file__).parent.parent.parent
        config_path = str(project_root / "config" / "plans.yml")

    try:
        with open(config_path) as f:
            config_dict = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Plan configuration not found, using defaults", extra={"config_path": config_path})
        return PlanCatalog.defaults()
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML: {e}")
        raise ValueError(f"Invalid YAML in plan config: {e}") from e

    return PlanCatalog.from_dict(config_dict)


@lru_cache(maxsize=1)
def get_plan_catalog() -> PlanCatalog:
    return load_plan_catalog()


def get_limits_for_plan(plan: str) -> PlanLimits:
    return get_plan_catalog().limits["pro" if plan == "pro" else "free"]


def get_source_limits_for_plan(plan: str) -> SourceLimits:
    return get_plan_catalog().sources["pro" if plan == "pro" else "free"]


def current_period_start(now: Optional[datetime] = None) -> str:
    """First day of the current month as ``YYYY-MM-01``."""
    now = now or utc_now()
    return f"{now.year:04d}-{now.month:02d}-01"


def current_day_start(now: Optional[datetime] = None) -> str:
    """UTC calendar day as ``YYYY-MM-DD``."""
    now = now or utc_now()
    return f"{now.year:04d}-{now.month:02d}-{now.day:02d}"
