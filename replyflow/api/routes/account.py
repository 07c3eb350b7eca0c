"""Plan and profile endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends

from replyflow.api.deps import get_current_user_id, get_matcher_db, get_matching_config, get_plan_db
from replyflow.api.schemas import ProfileUpdate
from replyflow.common.utils import to_iso, utc_now
from replyflow.matcher import calculate_match_scores_for_user, calculate_profile_score
from replyflow.plan.service import get_or_create_profile, get_plan_info

logger = logging.getLogger(__name__)

router = APIRouter()

PROFILE_FIELDS = {
    "id": "id",
    "userId": "user_id",
    "name": "name",
    "email": "email",
    "phone": "phone",
    "linkedinUrl": "linkedin_url",
    "githubUrl": "github_url",
    "portfolioUrl": "portfolio_url",
    "resumeUrl": "resume_url",
    "skills": "skills",
    "experienceYears": "experience_years",
    "experienceLevel": "experience_level",
    "preferredContractTypes": "preferred_contract_types",
    "preferredLocations": "preferred_locations",
    "preferRemote": "prefer_remote",
    "minSalary": "min_salary",
    "maxSalary": "max_salary",
    "bio": "bio",
    "highlights": "highlights",
    "profileScore": "profile_score",
    "profileScoreBand": "profile_score_band",
    "profileScoreMissing": "profile_score_missing",
    "profileScoreSuggestions": "profile_score_suggestions",
}


def serialize_profile(profile: dict[str, Any]) -> dict[str, Any]:
    data = {key: profile.get(column) for key, column in PROFILE_FIELDS.items()}
    data["profileScoreUpdatedAt"] = to_iso(profile.get("profile_score_updated_at"))
    data["updatedAt"] = to_iso(profile.get("updated_at"))
    return data


@router.get("/api/plan")
def plan_info(user_id: str = Depends(get_current_user_id), plan_db=Depends(get_plan_db)):
    return get_plan_info(plan_db, user_id)


@router.get("/api/profile")
def get_profile(user_id: str = Depends(get_current_user_id), plan_db=Depends(get_plan_db)):
    return serialize_profile(get_or_create_profile(plan_db, user_id))


@router.put("/api/profile")
def update_profile(
    payload: ProfileUpdate,
    user_id: str = Depends(get_current_user_id),
    plan_db=Depends(get_plan_db),
    matcher_db=Depends(get_matcher_db),
    matching_config=Depends(get_matching_config),
):
    """Save the profile, refresh its completeness score and re-rank jobs."""
    get_or_create_profile(plan_db, user_id)

    fields = payload.model_dump()
    result = calculate_profile_score(fields)
    fields.update(
        {
            "profile_score": result.score,
            "profile_score_band": result.band,
            "profile_score_missing": result.missing,
            "profile_score_suggestions": result.suggestions,
            "profile_score_updated_at": utc_now(),
        }
    )
    plan_db.update_profile(user_id, fields)

    updated_count = calculate_match_scores_for_user(matcher_db, user_id, matching_config)
    logger.info(
        "Profile updated",
        extra={"user_id": user_id, "profile_score": result.score, "match_scores": updated_count},
    )
    return {
        "success": True,
        "matchScoresRecalculated": updated_count,
        "profileScore": {
            "score": result.score,
            "band": result.band,
            "missing": result.missing,
            "suggestions": result.suggestions,
        },
    }
