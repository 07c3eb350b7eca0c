"""Plan service.

Free/Pro limits, monthly usage counters, user bootstrap and profile
creation.
"""

from .limits import (
    PlanLimits,
    SourceLimits,
    current_period_start,
    get_limits_for_plan,
    get_source_limits_for_plan,
)
from .service import (
    PlanCheck,
    SessionUser,
    assert_within_plan,
    ensure_user_exists,
    get_effective_plan,
    get_or_create_profile,
    get_or_create_usage,
    get_plan_info,
    upgrade_required_response,
)

__all__ = [
    "PlanLimits",
    "SourceLimits",
    "current_period_start",
    "get_limits_for_plan",
    "get_source_limits_for_plan",
    "PlanCheck",
    "SessionUser",
    "assert_within_plan",
    "ensure_user_exists",
    "get_effective_plan",
    "get_or_create_profile",
    "get_or_create_usage",
    "get_plan_info",
    "upgrade_required_response",
]
__version__ = "0.1.0"
