"""Lever Postings connector (https://github.com/lever/postings-api)."""

from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import quote

from replyflow.common.utils import parse_iso, to_iso

from ..base import NormalizedSourceJob, SourceConnector, SourceFetchResult, SourceRecord


def _epoch_ms_to_iso(value: Any) -> Optional[str]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return to_iso(datetime.fromtimestamp(value / 1000, tz=timezone.utc))
    return to_iso(value)


class LeverPostingsConnector(SourceConnector):
    """Reads the public postings of a Lever site."""

    source_type = "lever_postings"
    provider_name = "Lever"
    key_prefix = "lever"

    def fetch_jobs(self, source: SourceRecord, since: Any = None) -> SourceFetchResult:
        site = self.resolve_key(source)
        url = f"https://api.lever.co/v0/postings/{quote(site, safe='')}?mode=json"
        status, payload, latency_ms = self.get_json(url, site)
        since_dt = parse_iso(since)

        jobs = []
        for posting in payload or []:
            created_at = self.iso_or_now(_epoch_ms_to_iso(posting.get("createdAt")))
            if not self.is_since(created_at, since_dt):
                continue

            categories = posting.get("categories") or {}
            location = categories.get("location") or ""
            labels = [
                value
                for value in (location, categories.get("commitment") or "", categories.get("team") or "")
                if value
            ]
            description = posting.get("descriptionPlain") or posting.get("description") or ""
            body_parts = [description, f"Location: {location}" if location else None]

            jobs.append(
                NormalizedSourceJob(
                    external_job_id=posting["id"],
                    issue_url=(
                        posting.get("hostedUrl")
                        or posting.get("applyUrl")
                        or f"https://jobs.lever.co/{site}/{posting['id']}"
                    ),
                    issue_number=0,
                    title=posting.get("text") or "",
                    body="\n\n".join(part for part in body_parts if part),
                    labels=labels,
                    created_at=created_at,
                    updated_at=created_at,
                    poster_username="lever",
                    apply_url=posting.get("applyUrl") or posting.get("hostedUrl") or None,
                )
            )

        return SourceFetchResult(jobs=jobs, http_status=status, latency_ms=latency_ms)
