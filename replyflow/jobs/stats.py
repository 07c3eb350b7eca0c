"""Dashboard counters for the job board, the outreach funnel and the plan."""

from datetime import datetime, timedelta
from typing import Any, Optional

from replyflow.common.utils import to_iso, utc_now
from replyflow.plan.limits import current_day_start
from replyflow.plan.service import get_plan_info

OUTREACH_GROUPS = {
    "totalOutreachSent": ("email_sent", "followed_up", "replied", "interviewing", "accepted"),
    "totalReplies": ("replied", "interviewing", "accepted"),
    "totalInterviews": ("interviewing", "accepted"),
}

OUTREACH_STATUS_KEYS = {
    "outreachDrafted": "email_drafted",
    "outreachSentOnly": "email_sent",
    "outreachFollowedUp": "followed_up",
    "outreachReplied": "replied",
    "outreachInterviewing": "interviewing",
    "outreachAccepted": "accepted",
}

JOB_TOTAL_KEYS = {
    "totalJobs": "total_jobs",
    "newJobsToday": "new_jobs_today",
    "newJobsThisWeek": "new_jobs_this_week",
    "remoteJobs": "remote_jobs",
    "jobsWithEmail": "jobs_with_email",
    "uniqueRecruiterEmails": "unique_recruiter_emails",
    "uniqueRecruiterDomains": "unique_recruiter_domains",
    "jobsAtsOnly": "jobs_ats_only",
}

TOP_REPOS = 10


def _source_usage(plan_db, user_id: str) -> dict[str, Any]:
    day_start = current_day_start()
    usage = plan_db.get_source_usage(user_id, day_start) or {}
    return {
        "manualSyncsUsed": usage.get("manual_syncs_used", 0),
        "sourceValidationsUsed": usage.get("source_validations_used", 0),
        "dayStart": day_start,
    }


def get_dashboard_stats(db, plan_db, sources_db, user_id: str, now: Optional[datetime] = None) -> dict[str, Any]:
    """
    Collect the dashboard numbers for a user.

    Job counts cover the whole board; outreach, match scores and source
    counts are the user's own.
    """
    now = now or utc_now()
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    totals = db.get_job_totals(to_iso(today_start), to_iso(now - timedelta(days=7)))

    stats: dict[str, Any] = {key: totals.get(column, 0) for key, column in JOB_TOTAL_KEYS.items()}

    source_counts = sources_db.count_enabled_sources(user_id=user_id)
    stats["totalReposMonitored"] = source_counts["enabled_sources"]

    by_status = db.count_outreach_by_status(user_id)
    for key, statuses in OUTREACH_GROUPS.items():
        stats[key] = sum(by_status.get(status, 0) for status in statuses)
    for key, status in OUTREACH_STATUS_KEYS.items():
        stats[key] = by_status.get(status, 0)

    match_summary = db.get_match_score_summary(user_id)
    stats["jobsWithMatchScore"] = match_summary["scored_jobs"]
    stats["matchScoreLastCalculated"] = to_iso(match_summary["last_calculated_at"])

    stats["jobsByContractType"] = [
        {"type": row["value"] or "Unknown", "count": int(row["count"])}
        for row in db.count_jobs_by("contract_type")
    ]
    stats["jobsByExperienceLevel"] = [
        {"level": row["value"] or "Unknown", "count": int(row["count"])}
        for row in db.count_jobs_by("experience_level")
    ]
    stats["jobsByRepo"] = [
        {"repo": row["value"], "count": int(row["count"])}
        for row in db.count_jobs_by("repo_full_name", limit=TOP_REPOS)
    ]

    plan_info = get_plan_info(plan_db, user_id)
    stats.update(
        {
            "plan": plan_info["plan"],
            "usage": plan_info["usage"],
            "limits": plan_info["limits"],
            "sourceLimits": plan_info["sourceLimits"],
            "sourceUsage": _source_usage(plan_db, user_id),
            "enabledSources": source_counts["enabled_sources"],
            "enabledAtsSources": source_counts["enabled_ats_sources"],
        }
    )
    return stats
