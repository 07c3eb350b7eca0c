"""Ashby job board connector (https://developers.ashbyhq.com/docs/public-job-posting-api)."""

from typing import Any
from urllib.parse import quote

from replyflow.common.utils import parse_iso

from ..base import NormalizedSourceJob, SourceConnector, SourceFetchResult, SourceRecord


class AshbyBoardConnector(SourceConnector):
    """Reads a public Ashby job board, including compensation summaries."""

    source_type = "ashby_board"
    provider_name = "Ashby"
    key_prefix = "ashby"

    def fetch_jobs(self, source: SourceRecord, since: Any = None) -> SourceFetchResult:
        board_name = self.resolve_key(source)
        url = (
            f"https://api.ashbyhq.com/posting-api/job-board/{quote(board_name, safe='')}"
            "?includeCompensation=true"
        )
        status, payload, latency_ms = self.get_json(url, board_name)
        since_dt = parse_iso(since)

        jobs = []
        for job in (payload or {}).get("jobs") or []:
            published_at = self.iso_or_now(job.get("publishedAt"))
            if not self.is_since(published_at, since_dt):
                continue

            location_parts = []
            if job.get("location"):
                location_parts.append(job["location"])
            if job.get("isRemote") or job.get("workplaceType") == "Remote":
                location_parts.append("Remote")

            labels = [
                job[key]
                for key in ("department", "team", "employmentType", "workplaceType")
                if job.get(key)
            ]

            body_parts = []
            if location_parts:
                body_parts.append(f"Location: {', '.join(location_parts)}")
            summary = (job.get("compensation") or {}).get("compensationTierSummary")
            if summary:
                body_parts.append(f"Compensation: {summary}")
            body_parts.append(job.get("descriptionPlain") or job.get("descriptionHtml") or "")

            jobs.append(
                NormalizedSourceJob(
                    external_job_id=job["id"],
                    issue_url=job.get("jobUrl") or f"https://jobs.ashbyhq.com/{board_name}/{job['id']}",
                    issue_number=0,
                    title=job.get("title") or "",
                    body="\n\n".join(part for part in body_parts if part),
                    labels=labels,
                    created_at=published_at,
                    updated_at=published_at,
                    poster_username="ashby",
                    apply_url=job.get("applyUrl") or job.get("jobUrl") or None,
                )
            )

        return SourceFetchResult(jobs=jobs, http_status=status, latency_ms=latency_ms)
