"""
Source health scoring.

A source's health is a 0..100 score built from five components. Sources
that drift into ``warning`` or ``critical`` are throttled so that broken
boards are polled less often.
"""

from dataclasses import dataclass, field

from replyflow.common.utils import clamp, round_half_up

HEALTH_WEIGHTS = {
    "fetchReliability": 0.25,
    "freshness": 0.20,
    "parsingQuality": 0.25,
    "compliance": 0.20,
    "stability": 0.10,
}

THROTTLE_MINUTES = {"healthy": 0, "warning": 60, "critical": 180}


@dataclass
class SourceHealthResult:
    score: int
    status: str
    breakdown: dict[str, float] = field(default_factory=dict)
    throttle_minutes: int = 0


def health_status_for_score(score: float) -> str:
    if score >= 80:
        return "healthy"
    if score >= 55:
        return "warning"
    return "critical"


def compute_source_health(
    fetch_succeeded: bool,
    had_compliance_issue: bool,
    parse_success_ratio: float,
    contact_yield_ratio: float,
    latency_ms: float,
    minutes_since_success: float,
    consecutive_failures: int,
) -> SourceHealthResult:
    """
    Score a source after a sync attempt.

    Args:
        fetch_succeeded: Whether the last fetch returned data
        had_compliance_issue: Whether the provider signalled a policy problem
        parse_success_ratio: Share of fetched jobs with a usable parse (0..1)
        contact_yield_ratio: Share of fetched jobs with a contact email (0..1)
        latency_ms: Fetch latency
        minutes_since_success: Minutes since the previous successful sync
        consecutive_failures: Failures in a row before this attempt

    Returns:
        SourceHealthResult with score, status, component breakdown and
        the throttle to add to the next sync time
    """
    if fetch_succeeded:
        fetch_reliability = clamp(100 - consecutive_failures * 8)
    else:
        fetch_reliability = clamp(40 - consecutive_failures * 8)

    breakdown = {
        "fetchReliability": fetch_reliability,
        "freshness": clamp(100 - min(minutes_since_success / 18, 100)),
        "parsingQuality": clamp(parse_success_ratio * 80 + contact_yield_ratio * 20),
        "compliance": 30 if had_compliance_issue else 100,
        "stability": clamp(100 - latency_ms / 200),
    }

    weighted = sum(breakdown[name] * weight for name, weight in HEALTH_WEIGHTS.items())
    score = int(clamp(round_half_up(weighted)))
    status = health_status_for_score(score)

    return SourceHealthResult(
        score=score,
        status=status,
        breakdown=breakdown,
        throttle_minutes=THROTTLE_MINUTES[status],
    )
