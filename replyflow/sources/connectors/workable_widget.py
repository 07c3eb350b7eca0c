"""Workable widget connector (https://developers.workable.com/)."""

from typing import Any
from urllib.parse import quote

from replyflow.common.utils import parse_iso

from ..base import NormalizedSourceJob, SourceConnector, SourceFetchResult, SourceRecord


class WorkableWidgetConnector(SourceConnector):
    """Reads the public widget feed of a Workable account."""

    source_type = "workable_widget"
    provider_name = "Workable"
    key_prefix = "workable"

    def fetch_jobs(self, source: SourceRecord, since: Any = None) -> SourceFetchResult:
        client_name = self.resolve_key(source)
        url = f"https://apply.workable.com/api/v1/widget/accounts/{quote(client_name, safe='')}"
        status, payload, latency_ms = self.get_json(url, client_name)
        since_dt = parse_iso(since)

        jobs = []
        for job in (payload or {}).get("jobs") or []:
            if since_dt is not None and not self.is_since(
                self.iso_or_now(job.get("published_on")), since_dt
            ):
                continue

            created_at = self.iso_or_now(job.get("published_on") or job.get("created_at"))

            location_parts = [job[key] for key in ("city", "state", "country") if job.get(key)]
            if job.get("telecommuting"):
                location_parts.append("Remote")

            labels = [job[key] for key in ("department", "employment_type", "industry") if job.get(key)]

            body_parts = []
            if location_parts:
                body_parts.append(f"Location: {', '.join(location_parts)}")
            if job.get("department"):
                body_parts.append(f"Department: {job['department']}")
            if job.get("industry"):
                body_parts.append(f"Industry: {job['industry']}")
            if job.get("employment_type"):
                body_parts.append(f"Employment: {job['employment_type']}")

            shortcode = job["shortcode"]
            jobs.append(
                NormalizedSourceJob(
                    external_job_id=shortcode,
                    issue_url=(
                        job.get("url")
                        or job.get("shortlink")
                        or f"https://apply.workable.com/j/{shortcode}"
                    ),
                    issue_number=0,
                    title=job.get("title") or "",
                    body="\n\n".join(body_parts),
                    labels=labels,
                    created_at=created_at,
                    updated_at=created_at,
                    poster_username="workable",
                    apply_url=job.get("application_url") or job.get("url") or None,
                )
            )

        return SourceFetchResult(jobs=jobs, http_status=status, latency_ms=latency_ms)
