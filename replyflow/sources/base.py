"""Source Connector Base Class.

Every job board (GitHub issues, Greenhouse, Lever, Ashby, Workable,
Recruitee) is read through a :class:`SourceConnector` that turns the
provider's JSON into :class:`NormalizedSourceJob` records. Sync only ever
talks to this interface.
"""

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

import requests

from replyflow.common.retry import TransientHTTPError, is_transient_status, retry_with_backoff
from replyflow.common.utils import parse_iso, to_iso, utc_now

logger = logging.getLogger(__name__)

API_TIMEOUT_SECONDS = 30
USER_AGENT = "ReplyFlow-SourceConnector/1.0"

SOURCE_TYPES = (
    "github_repo",
    "greenhouse_board",
    "lever_postings",
    "ashby_board",
    "workable_widget",
    "recruitee_careers",
)


class SourceFetchError(RuntimeError):
    """Raised when a provider answers with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class SourceRecord:
    """The subset of a ``repo_sources`` row a connector needs."""

    id: str
    source_type: str
    owner: str
    repo: str
    full_name: str
    url: str = ""
    display_name: Optional[str] = None
    external_key: Optional[str] = None
    category: str = "community"
    technology: Optional[str] = None
    enabled: bool = True
    sync_interval_minutes: int = 30
    last_scraped_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SourceRecord":
        return cls(
            id=row["id"],
            source_type=row.get("source_type") or "github_repo",
            owner=row.get("owner") or "",
            repo=row.get("repo") or "",
            full_name=row.get("full_name") or "",
            url=row.get("url") or "",
            display_name=row.get("display_name"),
            external_key=row.get("external_key"),
            category=row.get("category") or "community",
            technology=row.get("technology"),
            enabled=bool(row.get("enabled", True)),
            sync_interval_minutes=int(row.get("sync_interval_minutes") or 0),
            last_scraped_at=parse_iso(row.get("last_scraped_at")),
        )


@dataclass
class NormalizedSourceJob:
    """A posting in the shape sync stores in the ``jobs`` table."""

    external_job_id: str
    issue_url: str
    issue_number: int
    title: str
    body: str
    labels: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
    poster_username: str = ""
    poster_avatar_url: Optional[str] = None
    comments_count: int = 0
    apply_url: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SourceFetchResult:
    jobs: list[NormalizedSourceJob]
    http_status: Optional[int]
    latency_ms: int


class SourceConnector(ABC):
    """
    Abstract base class for job board connectors.

    Subclasses set ``source_type``, ``provider_name`` and ``key_prefix`` and
    implement :meth:`fetch_jobs`. ATS connectors share the helpers below for
    board key resolution, JSON requests and timestamp filtering.

    Usage:
        class MyBoardConnector(SourceConnector):
            source_type = "my_board"
            provider_name = "MyBoard"
            key_prefix = "myboard"

            def fetch_jobs(self, source, since=None):
                key = self.resolve_key(source)
                status, payload, latency = self.get_json(f"https://.../{key}", key)
                ...
    """

    source_type: str = ""
    provider_name: str = ""
    key_prefix: str = ""

    def __init__(self, timeout: int = API_TIMEOUT_SECONDS):
        """
        Initialize the connector.

        Args:
            timeout: Per-request timeout in seconds (default: 30)
        """
        self.timeout = timeout

    @abstractmethod
    def fetch_jobs(self, source: SourceRecord, since: Any = None) -> SourceFetchResult:
        """
        Fetch open postings for one configured source.

        Args:
            source: Source row (board token, repo, ...)
            since: Only return postings created/updated at or after this
                   instant (datetime or ISO string). None returns everything.

        Returns:
            SourceFetchResult with normalized jobs, HTTP status and latency

        Raises:
            SourceFetchError: If the provider answers with an error status
            requests.exceptions.RequestException: If the provider is unreachable
        """
        pass

    def resolve_key(self, source: SourceRecord) -> str:
        """Board key: external_key, else repo, else full_name without the type prefix."""
        if source.external_key and source.external_key.strip():
            return source.external_key.strip()
        if source.repo and source.repo.strip():
            return source.repo.strip()
        prefix = f"{self.key_prefix}/"
        full_name = source.full_name or ""
        return full_name[len(prefix):] if full_name.startswith(prefix) else full_name

    def request_headers(self) -> dict[str, str]:
        return {"Accept": "application/json", "User-Agent": USER_AGENT}

    def get_json(self, url: str, key: str) -> tuple[int, Any, int]:
        """
        GET a JSON document from the provider.

        Returns:
            Tuple of (http_status, payload, latency_ms)

        Raises:
            SourceFetchError: On an error status, including 429/5xx answers
                              that are still failing after the retries
        """
        started = time.monotonic()
        try:
            response = self._request(url, key)
        except TransientHTTPError as e:
            raise SourceFetchError(str(e), status_code=e.status_code) from e
        latency_ms = int((time.monotonic() - started) * 1000)
        return response.status_code, response.json(), latency_ms

    @retry_with_backoff(
        max_retries=3,
        initial_delay=1.0,
        backoff_factor=2.0,
        exceptions=(requests.exceptions.RequestException, TransientHTTPError),
    )
    def _request(self, url: str, key: str) -> requests.Response:
        response = requests.get(url, headers=self.request_headers(), timeout=self.timeout)
        if response.ok:
            return response

        message = f"{self.provider_name} API error ({response.status_code}) for {key}"
        if is_transient_status(response.status_code):
            raise TransientHTTPError(response.status_code, message)
        raise SourceFetchError(message, status_code=response.status_code)

    @staticmethod
    def iso_or_now(value: Any) -> str:
        """Normalize a provider timestamp to ISO-8601 UTC; missing/invalid -> now."""
        return to_iso(value) or to_iso(utc_now())

    @staticmethod
    def is_since(timestamp: str, since: Optional[datetime]) -> bool:
        if since is None:
            return True
        parsed = parse_iso(timestamp)
        return parsed is not None and parsed >= since

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(source_type='{self.source_type}')"
