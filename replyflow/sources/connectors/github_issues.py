"""
GitHub Issues connector.

Brazilian and Portuguese dev communities post jobs as issues on repos such
as ``backend-br/vagas``. Every open issue (pull requests excluded) is one
posting. API docs: https://docs.github.com/en/rest/issues/issues
"""

import logging
import os
import time
from typing import Any, Optional

import requests

from replyflow.common.retry import TransientHTTPError, is_transient_status, retry_with_backoff
from replyflow.common.utils import parse_iso, to_iso

from ..base import (
    API_TIMEOUT_SECONDS,
    NormalizedSourceJob,
    SourceConnector,
    SourceFetchError,
    SourceFetchResult,
    SourceRecord,
)

logger = logging.getLogger(__name__)

GITHUB_API_BASE_URL = "https://api.github.com"
GITHUB_USER_AGENT = "GitJobs-v2-Scraper"
PER_PAGE = 100
PAGE_DELAY_SECONDS = 0.2
RATE_LIMIT_WARNING_THRESHOLD = 10


class GitHubIssuesConnector(SourceConnector):
    """
    Reads open issues from a GitHub repository.

    Environment Variables:
        GITHUB_TOKEN: Optional token; raises the rate limit from 60 to 5000 req/h
    """

    source_type = "github_repo"
    provider_name = "GitHub"
    key_prefix = "github"

    def __init__(self, token: Optional[str] = None, timeout: int = API_TIMEOUT_SECONDS):
        super().__init__(timeout=timeout)
        self.token = token or os.getenv("GITHUB_TOKEN")

    def request_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": GITHUB_USER_AGENT,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def fetch_jobs(self, source: SourceRecord, since: Any = None) -> SourceFetchResult:
        since_iso = to_iso(since) if since else None
        started = time.monotonic()
        jobs: list[NormalizedSourceJob] = []
        page = 1

        while True:
            url = (
                f"{GITHUB_API_BASE_URL}/repos/{source.owner}/{source.repo}/issues"
                f"?state=open&per_page={PER_PAGE}&page={page}&sort=created&direction=desc"
            )
            if since_iso:
                url += f"&since={since_iso}"

            try:
                issues = self._fetch_page(url, source)
            except TransientHTTPError as e:
                raise SourceFetchError(str(e), status_code=e.status_code) from e
            for issue in issues:
                if "pull_request" in issue:
                    continue
                jobs.append(self._map_issue(issue))

            if len(issues) < PER_PAGE:
                break
            page += 1
            time.sleep(PAGE_DELAY_SECONDS)

        logger.info(
            "Fetched GitHub issues",
            extra={"full_name": source.full_name, "jobs": len(jobs), "pages": page},
        )
        return SourceFetchResult(
            jobs=jobs,
            http_status=None,
            latency_ms=int((time.monotonic() - started) * 1000),
        )

    @retry_with_backoff(
        max_retries=3,
        initial_delay=1.0,
        backoff_factor=2.0,
        exceptions=(requests.exceptions.RequestException, TransientHTTPError),
    )
    def _fetch_page(self, url: str, source: SourceRecord) -> list[dict[str, Any]]:
        response = requests.get(url, headers=self.request_headers(), timeout=self.timeout)

        remaining = response.headers.get("x-ratelimit-remaining")
        if remaining and remaining.isdigit() and int(remaining) < RATE_LIMIT_WARNING_THRESHOLD:
            reset = response.headers.get("x-ratelimit-reset")
            logger.warning(
                "GitHub API rate limit low: %s remaining",
                remaining,
                extra={"remaining": remaining, "reset": reset},
            )

        if not response.ok:
            message = (
                f"GitHub API error for {source.owner}/{source.repo}: "
                f"{response.status_code} - {response.text}"
            )
            if is_transient_status(response.status_code):
                raise TransientHTTPError(response.status_code, message)
            raise SourceFetchError(message, status_code=response.status_code)

        return response.json()

    @staticmethod
    def _map_issue(issue: dict[str, Any]) -> NormalizedSourceJob:
        user = issue.get("user") or {}
        return NormalizedSourceJob(
            external_job_id=str(issue["number"]),
            issue_url=issue["html_url"],
            issue_number=issue["number"],
            title=issue.get("title") or "",
            body=issue.get("body") or "",
            labels=[label["name"] for label in issue.get("labels") or [] if label.get("name")],
            created_at=to_iso(parse_iso(issue.get("created_at"))) or "",
            updated_at=to_iso(parse_iso(issue.get("updated_at"))) or "",
            poster_username=user.get("login") or "",
            poster_avatar_url=user.get("avatar_url"),
            comments_count=issue.get("comments") or 0,
            apply_url=None,
        )
