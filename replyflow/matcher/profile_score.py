"""Profile completeness score shown on the settings page and used to nudge users."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from replyflow.common.utils import clamp, round_half_up

MAX_SUGGESTIONS = 6


@dataclass
class ProfileScoreResult:
    score: int
    band: str
    missing: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def score_band(score: int) -> str:
    if score >= 75:
        return "high"
    if score >= 45:
        return "medium"
    return "low"


def calculate_profile_score(profile: Mapping[str, Any]) -> ProfileScoreResult:
    """
    Score how ready a profile is for matching and outreach.

    Identity and contact links are worth 30 points, match signals 40 and
    outreach material 30.
    """
    score = 0
    missing: list[str] = []
    suggestions: list[str] = []

    def require(condition: bool, points: int, key: str, suggestion: str) -> None:
        nonlocal score
        if condition:
            score += points
        else:
            missing.append(key)
            suggestions.append(suggestion)

    skills = profile.get("skills") or []
    highlights = profile.get("highlights") or []

    # Identity and contact readiness
    require(_has_text(profile.get("name")), 8, "name", "Add your full name.")
    require(_has_text(profile.get("email")), 8, "email", "Add your preferred contact email.")
    require(
        _has_text(profile.get("linkedin_url")), 7, "linkedin",
        "Add your LinkedIn URL for recruiter trust.",
    )
    require(
        _has_text(profile.get("github_url")) or _has_text(profile.get("portfolio_url")), 7,
        "portfolio_or_github", "Add GitHub or portfolio URL.",
    )

    # Match quality signals
    if len(skills) >= 8:
        score += 16
    elif len(skills) >= 4:
        score += 10
    elif skills:
        score += 5
    else:
        missing.append("skills")
        suggestions.append("Add at least 5-8 core skills.")

    require(
        (profile.get("experience_years") or 0) > 0, 8, "experience_years",
        "Set your years of experience.",
    )
    if _has_text(profile.get("experience_level")):
        score += 8
    require(
        bool(profile.get("preferred_contract_types")), 4, "preferred_contract_types",
        "Select at least one preferred contract type.",
    )
    require(
        bool(profile.get("prefer_remote")) or bool(profile.get("preferred_locations")), 4,
        "location_preference", "Set remote preference or preferred locations.",
    )

    # Outreach readiness
    if len(highlights) >= 3:
        score += 14
    elif highlights:
        score += 8
    else:
        missing.append("highlights")
        suggestions.append("Add 2-3 concise achievement highlights.")

    require(_has_text(profile.get("bio")), 8, "bio", "Write a short professional bio.")
    require(
        _has_text(profile.get("resume_url")), 8, "resume_url",
        "Add a resume URL for outreach workflows.",
    )

    normalized = int(clamp(round_half_up(score)))
    return ProfileScoreResult(
        score=normalized,
        band=score_band(normalized),
        missing=missing,
        suggestions=suggestions[:MAX_SUGGESTIONS],
    )
