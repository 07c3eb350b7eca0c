"""
Source sync.

Fetches every enabled source through its connector, parses the postings,
stores new jobs, refreshes known ones, pushes posting contacts into the
users' CRMs and keeps per-source health up to date. A ``__global__`` row in
``source_sync_runs`` acts as a lock so that two syncs never overlap.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from replyflow.common.utils import add_minutes, generate_id, parse_iso, utc_now
from replyflow.contacts.email_quality import is_direct_contact_email
from replyflow.contacts.upsert import upsert_contact_from_job_for_user
from replyflow.parser.job_parser import has_parsed_signal, parse_job_body

from .base import SourceConnector, SourceRecord
from .connectors import get_source_connector
from .db_operations import GLOBAL_LOCK_ID
from .discovery import run_source_discovery
from .health import compute_source_health
from .source_config import SourceCatalog, SyncSettings

logger = logging.getLogger(__name__)

FETCH_FAILED = "FETCH_FAILED"
GLOBAL_SYNC_FAILED = "GLOBAL_SYNC_FAILED"
NEVER_SUCCEEDED_MINUTES = 9999
FAILED_FETCH_LATENCY_MS = 10000


class SyncAlreadyRunningError(RuntimeError):
    """Raised when another sync holds the global lock."""


@dataclass
class SyncOptions:
    source_id: Optional[str] = None
    source_full_name: Optional[str] = None
    reparse_existing: bool = False
    user_id: Optional[str] = None
    enforce_schedule: bool = False
    run_discovery: bool = False


@dataclass
class SyncResultItem:
    source: str
    status: str
    new_jobs: int = 0
    total_fetched: int = 0
    duplicates: int = 0
    parse_success_ratio: float = 0.0
    contact_yield_ratio: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "source": self.source,
            "status": self.status,
            "newJobs": self.new_jobs,
            "totalFetched": self.total_fetched,
            "duplicates": self.duplicates,
            "parseSuccessRatio": self.parse_success_ratio,
            "contactYieldRatio": self.contact_yield_ratio,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class SyncRunResult:
    success: bool
    results: list[SyncResultItem] = field(default_factory=list)
    total_new_jobs: int = 0
    discovery: Optional[dict[str, int]] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "results": [item.to_dict() for item in self.results],
            "totalNewJobs": self.total_new_jobs,
        }
        if self.discovery is not None:
            data["discovery"] = self.discovery
        return data


def minutes_since(value: Any, now: Optional[datetime] = None) -> float:
    """Minutes elapsed since ``value``; 9999 when it is missing or invalid."""
    parsed = parse_iso(value)
    if parsed is None:
        return NEVER_SUCCEEDED_MINUTES
    return max(0.0, ((now or utc_now()) - parsed).total_seconds() / 60)


def should_run_now(source: SourceRecord, now: Optional[datetime] = None) -> bool:
    """False while ``last_scraped_at + sync_interval_minutes`` is still in the future."""
    if source.last_scraped_at is None or source.sync_interval_minutes <= 0:
        return True
    return add_minutes(source.last_scraped_at, source.sync_interval_minutes) <= (now or utc_now())


class ContactSync:
    """Pushes posting contact emails into the CRM of the target users."""

    def __init__(self, contacts_db, user_id: Optional[str] = None):
        self.contacts_db = contacts_db
        self.user_id = user_id
        self._user_ids: Optional[list[str]] = None

    def target_user_ids(self) -> list[str]:
        if self.user_id:
            return [self.user_id]
        if self._user_ids is None:
            self._user_ids = self.contacts_db.list_user_ids()
        return self._user_ids

    def sync(
        self,
        email: Optional[str],
        company: Optional[str] = None,
        role: Optional[str] = None,
        source_ref: Optional[str] = None,
    ) -> int:
        if not email or not is_direct_contact_email(email):
            return 0
        user_ids = self.target_user_ids()
        for user_id in user_ids:
            upsert_contact_from_job_for_user(
                self.contacts_db,
                user_id,
                email,
                company=company,
                position=role,
                source_ref=source_ref,
            )
        return len(user_ids)


def _repo_owner_and_name(source: SourceRecord) -> tuple[str, str]:
    if source.source_type == "github_repo":
        return source.owner, source.repo
    return source.source_type, source.external_key or source.repo


def run_single_source_sync(
    db,
    source_row: dict[str, Any],
    contact_sync: ContactSync,
    connector_factory: Callable[[str], SourceConnector] = get_source_connector,
) -> SyncResultItem:
    """
    Sync one source and record the run.

    Fetch or storage errors never escape: the run is marked failed, the
    source's failure counter and health are updated and a failed item is
    returned so the remaining sources can still sync.
    """
    source = SourceRecord.from_row(source_row)
    run_id = generate_id("run")
    db.insert_sync_run(run_id, source.id)
    interval = int(source_row.get("sync_interval_minutes") or 0)

    try:
        connector = connector_factory(source.source_type)
        fetched = connector.fetch_jobs(source, since=source.last_scraped_at)

        new_jobs = 0
        duplicates = 0
        parse_success = 0
        contacts_found = 0
        repo_owner, repo_name = _repo_owner_and_name(source)

        for item in fetched.jobs:
            existing = db.find_job_by_issue_url(item.issue_url)
            if not existing and item.external_job_id:
                existing = db.find_job_by_external_id(source.id, item.external_job_id)

            parsed = parse_job_body(
                item.title, item.body or "", item.labels, source_type_hint=source.source_type
            )
            apply_url = parsed.apply_url or item.apply_url
            if has_parsed_signal(parsed, apply_url):
                parse_success += 1
            if parsed.contact_email:
                contacts_found += 1

            now = utc_now()
            if not existing:
                db.insert_job(
                    {
                        "id": generate_id("job"),
                        "issue_url": item.issue_url,
                        "issue_number": item.issue_number,
                        "repo_owner": repo_owner,
                        "repo_name": repo_name,
                        "repo_full_name": source.full_name,
                        "title": item.title,
                        "body": item.body or "",
                        "labels": list(item.labels or []),
                        "created_at": item.created_at,
                        "updated_at": item.updated_at,
                        "poster_username": item.poster_username or source.source_type,
                        "poster_avatar_url": item.poster_avatar_url,
                        "comments_count": item.comments_count,
                        "company": parsed.company,
                        "role": parsed.role,
                        "salary": parsed.salary,
                        "location": parsed.location,
                        "contract_type": parsed.contract_type,
                        "experience_level": parsed.experience_level,
                        "tech_stack": list(parsed.tech_stack),
                        "benefits": parsed.benefits,
                        "apply_url": apply_url,
                        "contact_email": parsed.contact_email,
                        "contact_linkedin": parsed.contact_linkedin,
                        "contact_whatsapp": parsed.contact_whatsapp,
                        "is_remote": parsed.is_remote,
                        "source_id": source.id,
                        "source_type": source.source_type,
                        "external_job_id": item.external_job_id,
                        "outreach_status": "none",
                        "fetched_at": now,
                        "parsed_at": now,
                    }
                )
                contact_sync.sync(parsed.contact_email, parsed.company, parsed.role, item.issue_url)
                new_jobs += 1
            else:
                db.update_job(
                    existing["id"],
                    {
                        "updated_at": item.updated_at,
                        "comments_count": item.comments_count,
                        "apply_url": apply_url or existing.get("apply_url"),
                        "contact_email": parsed.contact_email or existing.get("contact_email"),
                        "contact_linkedin": parsed.contact_linkedin or existing.get("contact_linkedin"),
                        "contact_whatsapp": parsed.contact_whatsapp or existing.get("contact_whatsapp"),
                        "source_id": existing.get("source_id") or source.id,
                        "source_type": source.source_type,
                        "external_job_id": existing.get("external_job_id") or item.external_job_id,
                        "parsed_at": now,
                    },
                )
                contact_sync.sync(
                    parsed.contact_email or existing.get("contact_email"),
                    parsed.company,
                    parsed.role,
                    item.issue_url,
                )
                duplicates += 1

        total_fetched = len(fetched.jobs)
        parse_success_ratio = parse_success / total_fetched if total_fetched else 0.0
        contact_yield_ratio = contacts_found / total_fetched if total_fetched else 0.0
        health = compute_source_health(
            fetch_succeeded=True,
            had_compliance_issue=False,
            parse_success_ratio=parse_success_ratio,
            contact_yield_ratio=contact_yield_ratio,
            latency_ms=fetched.latency_ms,
            minutes_since_success=minutes_since(source_row.get("last_success_at")),
            consecutive_failures=0,
        )

        now = utc_now()
        db.update_sync_run(
            run_id,
            {
                "completed_at": now,
                "status": "completed",
                "http_status": fetched.http_status,
                "latency_ms": fetched.latency_ms,
                "total_fetched": total_fetched,
                "new_jobs": new_jobs,
                "duplicates": duplicates,
                "parse_success_ratio": parse_success_ratio,
                "contact_yield_ratio": contact_yield_ratio,
            },
        )
        db.update_source(
            source.id,
            {
                "last_scraped_at": now,
                "total_jobs_fetched": int(source_row.get("total_jobs_fetched") or 0) + new_jobs,
                "health_score": health.score,
                "health_status": health.status,
                "health_breakdown": health.breakdown,
                "consecutive_failures": 0,
                "last_success_at": now,
                "last_error_at": None,
                "last_error_code": None,
                "last_error_message": None,
                "next_sync_at": add_minutes(now, interval + health.throttle_minutes),
                "throttled_until": (
                    add_minutes(now, health.throttle_minutes) if health.throttle_minutes > 0 else None
                ),
            },
        )

        logger.info(
            "Source sync completed",
            extra={
                "source": source.full_name,
                "total_fetched": total_fetched,
                "new_jobs": new_jobs,
                "duplicates": duplicates,
                "health_score": health.score,
            },
        )
        return SyncResultItem(
            source=source.full_name,
            status="completed",
            new_jobs=new_jobs,
            total_fetched=total_fetched,
            duplicates=duplicates,
            parse_success_ratio=parse_success_ratio,
            contact_yield_ratio=contact_yield_ratio,
        )

    except Exception as e:
        error_message = str(e) or "Unknown source sync error"
        now = utc_now()
        failures = int(source_row.get("consecutive_failures") or 0) + 1
        health = compute_source_health(
            fetch_succeeded=False,
            had_compliance_issue=False,
            parse_success_ratio=0,
            contact_yield_ratio=0,
            latency_ms=FAILED_FETCH_LATENCY_MS,
            minutes_since_success=minutes_since(source_row.get("last_success_at")),
            consecutive_failures=failures,
        )

        logger.error(
            f"Source sync failed: {error_message}",
            extra={
                "source": source.full_name,
                "consecutive_failures": failures,
                "error_type": type(e).__name__,
            },
        )

        db.update_sync_run(
            run_id,
            {
                "completed_at": now,
                "status": "failed",
                "error_code": FETCH_FAILED,
                "error_message": error_message,
            },
        )
        db.update_source(
            source.id,
            {
                "health_score": health.score,
                "health_status": health.status,
                "health_breakdown": health.breakdown,
                "consecutive_failures": failures,
                "last_error_at": now,
                "last_error_code": FETCH_FAILED,
                "last_error_message": error_message,
                "next_sync_at": add_minutes(now, interval + health.throttle_minutes),
                "throttled_until": (
                    add_minutes(now, health.throttle_minutes) if health.throttle_minutes > 0 else None
                ),
            },
        )
        return SyncResultItem(source=source.full_name, status="failed", error=error_message)


def reparse_existing_jobs(db, contact_sync: ContactSync) -> SyncRunResult:
    """Re-run the parser over every stored job and refresh changed contact fields."""
    jobs = db.list_all_jobs()
    updated = 0

    for job in jobs:
        parsed = parse_job_body(
            job.get("title") or "",
            job.get("body") or "",
            job.get("labels") or [],
            source_type_hint=job.get("source_type"),
        )
        if (
            parsed.contact_email != job.get("contact_email")
            or parsed.apply_url != job.get("apply_url")
            or parsed.contact_linkedin != job.get("contact_linkedin")
            or parsed.contact_whatsapp != job.get("contact_whatsapp")
        ):
            db.update_job(
                job["id"],
                {
                    "contact_email": parsed.contact_email,
                    "contact_linkedin": parsed.contact_linkedin,
                    "contact_whatsapp": parsed.contact_whatsapp,
                    "apply_url": parsed.apply_url,
                    "parsed_at": utc_now(),
                },
            )
            updated += 1

        contact_sync.sync(
            parsed.contact_email or job.get("contact_email"),
            parsed.company,
            parsed.role,
            job.get("issue_url"),
        )

    total = len(jobs)
    logger.info("Re-parsed stored jobs", extra={"total": total, "updated": updated})
    return SyncRunResult(
        success=True,
        results=[
            SyncResultItem(
                source="reparse_existing",
                status="completed",
                total_fetched=total,
                duplicates=total - updated,
                parse_success_ratio=updated / total if total else 0.0,
            )
        ],
        total_new_jobs=0,
    )


def run_source_sync(
    db,
    contacts_db,
    options: Optional[SyncOptions] = None,
    catalog: Optional[SourceCatalog] = None,
    plan_db=None,
    connector_factory: Callable[[str], SourceConnector] = get_source_connector,
) -> SyncRunResult:
    """
    Run a sync over the enabled sources.

    Args:
        db: SourcesDB instance
        contacts_db: ContactsDB instance used for contact upserts
        options: Filters and switches (see SyncOptions)
        catalog: Source catalog; needed when options.run_discovery is set
        plan_db: PlanDB passed to discovery for plan-aware auto-enabling
        connector_factory: Builds a connector for a source type

    Returns:
        SyncRunResult with one item per synced source

    Raises:
        SyncAlreadyRunningError: If another sync started less than
            ``lock_timeout_minutes`` ago and is still running
    """
    options = options or SyncOptions()
    contact_sync = ContactSync(contacts_db, options.user_id)

    if options.reparse_existing:
        return reparse_existing_jobs(db, contact_sync)

    settings = catalog.sync if catalog else SyncSettings()
    running_lock = db.get_running_lock()
    if running_lock:
        started_at = parse_iso(running_lock.get("started_at"))
        age_minutes = minutes_since(started_at) if started_at else 0
        if age_minutes < settings.lock_timeout_minutes:
            raise SyncAlreadyRunningError("Sync already running")
        logger.warning(
            "Ignoring stale sync lock",
            extra={"lock_id": running_lock.get("id"), "age_minutes": round(age_minutes, 1)},
        )

    lock_run_id = generate_id("lock")
    db.insert_sync_run(lock_run_id, GLOBAL_LOCK_ID)

    try:
        discovery = None
        if options.run_discovery:
            discovery = run_source_discovery(
                db, catalog or SourceCatalog(), user_id=options.user_id, plan_db=plan_db
            ).to_dict()

        sources = db.list_enabled_sources()
        if options.source_id:
            sources = [row for row in sources if row["id"] == options.source_id]
        if options.source_full_name:
            sources = [row for row in sources if row.get("full_name") == options.source_full_name]
        if options.enforce_schedule:
            sources = [row for row in sources if should_run_now(SourceRecord.from_row(row))]

        logger.info("Starting source sync", extra={"sources": len(sources)})

        results = [
            run_single_source_sync(db, row, contact_sync, connector_factory) for row in sources
        ]
        total_new_jobs = sum(item.new_jobs for item in results)

        db.update_sync_run(
            lock_run_id,
            {
                "completed_at": utc_now(),
                "status": "completed",
                "total_fetched": sum(item.total_fetched for item in results),
                "new_jobs": total_new_jobs,
                "duplicates": sum(item.duplicates for item in results),
            },
        )
        return SyncRunResult(
            success=True, results=results, total_new_jobs=total_new_jobs, discovery=discovery
        )

    except Exception as e:
        db.update_sync_run(
            lock_run_id,
            {
                "completed_at": utc_now(),
                "status": "failed",
                "error_code": GLOBAL_SYNC_FAILED,
                "error_message": str(e) or "Unknown sync error",
            },
        )
        raise
