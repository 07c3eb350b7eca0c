"""Per-user match recalculation shared by the CLI, the HTTP route and the DAG."""

import logging
from typing import Any, Optional

from .config_loader import MatchingConfig
from .scoring import match_job

logger = logging.getLogger(__name__)


def score_jobs_for_profile(
    jobs: list[dict[str, Any]], profile: dict[str, Any], config: MatchingConfig
) -> list[dict[str, Any]]:
    scores = []
    for job in jobs:
        result = match_job(job, profile, config)
        scores.append(
            {
                "job_id": job["id"],
                "score": result.score,
                "reasons": result.reasons,
                "missing_skills": result.missing_skills,
                "breakdown": result.breakdown,
            }
        )
    return scores


def calculate_match_scores_for_user(
    db, user_id: str, config: Optional[MatchingConfig] = None, dry_run: bool = False
) -> int:
    """
    Recalculate every job's match score for one user.

    Args:
        db: MatcherDB (or compatible) instance
        user_id: User whose profile drives the scores
        config: Matching configuration (defaults to built-in weights)
        dry_run: Score without writing

    Returns:
        Number of jobs scored (0 when the user has no profile)
    """
    profile = db.get_profile(user_id)
    if not profile:
        logger.info("No profile found, skipping match scores", extra={"user_id": user_id})
        return 0

    jobs = db.fetch_jobs_for_matching()
    scores = score_jobs_for_profile(jobs, profile, config or MatchingConfig())

    if dry_run:
        logger.info(f"DRY RUN: Would upsert {len(scores)} match scores", extra={"user_id": user_id})
        return len(scores)

    return db.upsert_match_scores_batch(user_id, scores)
