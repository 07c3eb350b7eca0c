"""Greenhouse Job Board connector (https://developers.greenhouse.io/job-board.html)."""

from typing import Any
from urllib.parse import quote

from replyflow.common.utils import parse_iso

from ..base import NormalizedSourceJob, SourceConnector, SourceFetchResult, SourceRecord


class GreenhouseBoardConnector(SourceConnector):
    """Reads a public Greenhouse board by board token."""

    source_type = "greenhouse_board"
    provider_name = "Greenhouse"
    key_prefix = "greenhouse"

    def fetch_jobs(self, source: SourceRecord, since: Any = None) -> SourceFetchResult:
        board_token = self.resolve_key(source)
        url = f"https://boards-api.greenhouse.io/v1/boards/{quote(board_token, safe='')}/jobs?content=true"
        status, payload, latency_ms = self.get_json(url, board_token)
        since_dt = parse_iso(since)

        jobs = []
        for job in (payload or {}).get("jobs") or []:
            updated_at = self.iso_or_now(job.get("updated_at"))
            if not self.is_since(updated_at, since_dt):
                continue

            apply_url = job.get("absolute_url") or None
            location = (job.get("location") or {}).get("name")
            labels = [
                item.get("name") or item.get("value") or ""
                for item in job.get("metadata") or []
                if isinstance(item, dict)
            ]
            body_parts = [f"Location: {location}" if location else None, job.get("content") or ""]

            jobs.append(
                NormalizedSourceJob(
                    external_job_id=str(job["id"]),
                    issue_url=apply_url or f"https://boards.greenhouse.io/{board_token}/jobs/{job['id']}",
                    issue_number=job["id"],
                    title=job.get("title") or "",
                    body="\n\n".join(part for part in body_parts if part),
                    labels=[label for label in labels if isinstance(label, str) and label],
                    created_at=updated_at,
                    updated_at=updated_at,
                    poster_username="greenhouse",
                    apply_url=apply_url,
                )
            )

        return SourceFetchResult(jobs=jobs, http_status=status, latency_ms=latency_ms)
