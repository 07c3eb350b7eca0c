"""Recruitee careers site connector (https://docs.recruitee.com/reference/offers)."""

from typing import Any
from urllib.parse import quote

from replyflow.common.utils import parse_iso

from ..base import NormalizedSourceJob, SourceConnector, SourceFetchResult, SourceRecord


class RecruiteeCareersConnector(SourceConnector):
    """Reads published offers from a company's Recruitee careers site."""

    source_type = "recruitee_careers"
    provider_name = "Recruitee"
    key_prefix = "recruitee"

    def fetch_jobs(self, source: SourceRecord, since: Any = None) -> SourceFetchResult:
        company_slug = self.resolve_key(source)
        url = f"https://{quote(company_slug, safe='')}.recruitee.com/api/offers/"
        status, payload, latency_ms = self.get_json(url, company_slug)
        since_dt = parse_iso(since)

        offers = [
            offer
            for offer in (payload or {}).get("offers") or []
            if offer.get("status") in (None, "", "published")
        ]

        jobs = []
        for offer in offers:
            updated_at = self.iso_or_now(offer.get("updated_at") or offer.get("published_at"))
            if not self.is_since(updated_at, since_dt):
                continue
            created_at = self.iso_or_now(offer.get("published_at") or offer.get("created_at"))

            location_parts = [offer[key] for key in ("city", "country") if offer.get(key)]
            if offer.get("remote"):
                location_parts.append("Remote")
            elif offer.get("hybrid"):
                location_parts.append("Hybrid")

            labels = []
            if offer.get("department"):
                labels.append(offer["department"])
            labels.extend(tag for tag in offer.get("tags") or [] if tag)
            for key in ("employment_type_code", "experience_code"):
                if offer.get(key):
                    labels.append(offer[key])

            body_parts = []
            if location_parts:
                body_parts.append(f"Location: {', '.join(location_parts)}")
            if offer.get("company_name"):
                body_parts.append(f"Company: {offer['company_name']}")
            if offer.get("salary"):
                body_parts.append(f"Salary: {offer['salary']}")
            for key in ("description", "requirements"):
                if offer.get(key):
                    body_parts.append(offer[key])

            careers_url = (
                offer.get("careers_url")
                or f"https://{company_slug}.recruitee.com/o/{offer.get('slug') or offer['id']}"
            )
            jobs.append(
                NormalizedSourceJob(
                    external_job_id=str(offer["id"]),
                    issue_url=careers_url,
                    issue_number=offer["id"],
                    title=offer.get("title") or "",
                    body="\n\n".join(body_parts),
                    labels=labels,
                    created_at=created_at,
                    updated_at=updated_at,
                    poster_username="recruitee",
                    apply_url=offer.get("careers_apply_url") or careers_url,
                )
            )

        return SourceFetchResult(jobs=jobs, http_status=status, latency_ms=latency_ms)
