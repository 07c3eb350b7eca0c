"""
Scoring Algorithm for the Matcher Service

Scores a job posting against a user profile with a fixed-weight heuristic:
stack coverage, remote preference, contract type, seniority and location.
The result is a 0..100 score plus human-readable reasons and the job's
skills the profile is missing.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from replyflow.common.utils import round_half_up

from .config_loader import MatchingConfig

logger = logging.getLogger(__name__)

DEFAULT_LEVEL_RANK = 2


@dataclass
class MatchResult:
    score: int
    reasons: list[str] = field(default_factory=list)
    missing_skills: list[str] = field(default_factory=list)
    breakdown: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "reasons": self.reasons,
            "missingSkills": self.missing_skills,
            "breakdown": self.breakdown,
        }


def skills_match(skill: str, job_skill: str) -> bool:
    """
    Loose comparison between a lower-cased profile skill and job skill.

    Substring containment in either direction counts, plus a few aliases
    (react variants, next/nextjs, ts for typescript).
    """
    return (
        job_skill == skill
        or skill in job_skill
        or job_skill in skill
        or (skill == "react" and "react" in job_skill)
        or (skill == "next.js" and ("next" in job_skill or "nextjs" in job_skill))
        or (skill == "typescript" and ("typescript" in job_skill or "ts" in job_skill))
    )


def calculate_stack_score(
    profile_skills: Sequence[str], job_stack: Sequence[str], weight: float
) -> tuple[float, list[str], list[str]]:
    """
    Score stack overlap.

    The score averages how much of the job's stack the profile covers and
    how much of the profile the job uses.

    Returns:
        Tuple of (points, matching profile skills, job skills not covered)
    """
    if not profile_skills or not job_stack:
        return 0.0, [], []

    normalized_profile = [skill.lower() for skill in profile_skills]
    normalized_job = [skill.lower() for skill in job_stack]

    matching = [
        skill for skill in normalized_profile
        if any(skills_match(skill, job_skill) for job_skill in normalized_job)
    ]

    coverage_ratio = len(matching) / max(len(normalized_job), 1)
    user_match_ratio = len(matching) / max(len(normalized_profile), 1)
    points = min(((coverage_ratio + user_match_ratio) / 2) * weight, weight)

    matching_set = set(matching)
    missing = [
        job_skill for job_skill in normalized_job
        if not any(
            job_skill == skill or skill in job_skill or job_skill in skill
            for skill in matching_set
        )
    ]
    return points, matching, missing


def _skills_reason(matching: Sequence[str]) -> str:
    suffix = "..." if len(matching) > 3 else ""
    return f"{len(matching)} skills match: {', '.join(matching[:3])}{suffix}"


def match_job(
    job: Mapping[str, Any],
    profile: Mapping[str, Any],
    config: Optional[MatchingConfig] = None,
) -> MatchResult:
    """
    Score one job against one profile.

    Args:
        job: Job row (tech_stack, is_remote, contract_type, experience_level, location)
        profile: Profile row (skills, prefer_remote, preferred_contract_types,
                 experience_level, preferred_locations)
        config: Matching configuration (defaults to built-in weights)

    Returns:
        MatchResult with score (0..100), reasons, missing skills and a
        per-dimension breakdown in points
    """
    config = config or MatchingConfig()
    weights = config.weights
    reasons: list[str] = []
    breakdown = {"skills": 0, "remote": 0, "contract": 0, "level": 0, "location": 0}
    earned = 0.0

    stack_points, matching, missing = calculate_stack_score(
        profile.get("skills") or [], job.get("tech_stack") or [], weights.stack
    )
    earned += stack_points
    breakdown["skills"] = round_half_up(stack_points)
    if matching:
        reasons.append(_skills_reason(matching))

    prefer_remote = bool(profile.get("prefer_remote"))
    is_remote = bool(job.get("is_remote"))
    if prefer_remote and is_remote:
        earned += weights.remote
        breakdown["remote"] = round_half_up(weights.remote)
        reasons.append("Remote")

    contract_type = job.get("contract_type")
    preferred_contracts = profile.get("preferred_contract_types") or []
    if contract_type and contract_type in preferred_contracts:
        earned += weights.contract
        breakdown["contract"] = round_half_up(weights.contract)
        reasons.append(f"Contract: {contract_type}")

    job_level = job.get("experience_level")
    profile_level = profile.get("experience_level")
    if job_level and profile_level:
        diff = (
            config.level_order.get(job_level, DEFAULT_LEVEL_RANK)
            - config.level_order.get(profile_level, DEFAULT_LEVEL_RANK)
        )
        if diff <= 0:
            earned += weights.level
            breakdown["level"] = round_half_up(weights.level)
            reasons.append(f"Level: {job_level}")
        elif diff == 1:
            stretch = weights.level * config.level_stretch_factor
            earned += stretch
            breakdown["level"] = round_half_up(stretch)
            reasons.append(f"Level stretch: {job_level}")

    location = job.get("location")
    preferred_locations = profile.get("preferred_locations") or []
    if is_remote:
        if prefer_remote:
            earned += weights.location
            breakdown["location"] = round_half_up(weights.location)
    elif location and preferred_locations:
        normalized_location = location.lower()
        if any(loc.lower() in normalized_location for loc in preferred_locations):
            earned += weights.location
            breakdown["location"] = round_half_up(weights.location)
            reasons.append(f"Location: {location}")

    score = min(round_half_up(earned / weights.total() * 100), 100)
    unique_missing = list(dict.fromkeys(missing))[: config.max_missing_skills]

    logger.debug(
        "Job matched",
        extra={'job_id': job.get('id'), 'score': score, 'matching_skills': len(matching)}
    )
    return MatchResult(
        score=score,
        reasons=reasons,
        missing_skills=unique_missing,
        breakdown=breakdown,
    )
