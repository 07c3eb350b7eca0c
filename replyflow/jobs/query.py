"""Filters, sorting and paging for the job board listing."""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from replyflow.common.utils import to_iso, utc_now

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
DEFAULT_STALE_DAYS = 45

SORT_OPTIONS = ("newest", "oldest", "comments", "updated", "matchScore", "opportunity")

# Title keywords per role family; an unknown role is matched as its own keyword.
ROLE_PATTERNS: dict[str, tuple[str, ...]] = {
    "frontend": ("frontend", "front-end", "front end", "desenvolvedor frontend", "desenvolvedor front"),
    "backend": ("backend", "back-end", "back end", "desenvolvedor backend", "desenvolvedor back"),
    "fullstack": ("fullstack", "full-stack", "full stack", "desenvolvedor fullstack", "desenvolvedor full stack"),
    "devops": ("devops", "dev-ops", "sre", "infrastructure", "cloud", "desenvolvedor devops"),
    "mobile": ("mobile", "desenvolvedor mobile", "ios", "android", "react native", "flutter"),
    "data": ("data", "analytics", "data engineer", "data science", "cientista de dados", "engenharia de dados"),
    "qa": ("qa", "quality", "test", "testing", "analista de testes"),
    "lead": ("lead", "tech lead", "tech-lead", "head of", "director", "manager", "coordenador", "chefe"),
}


@dataclass
class JobQuery:
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    search: Optional[str] = None
    repo: Optional[str] = None
    remote_only: bool = False
    contract_type: Optional[str] = None
    level: Optional[str] = None
    sort: str = "newest"
    outreach_status: Optional[str] = None
    contact_type: Optional[str] = None
    min_match_score: Optional[float] = None
    role: Optional[str] = None
    source_type: Optional[str] = None
    source_id: Optional[str] = None
    hide_stale: bool = True
    stale_days: int = DEFAULT_STALE_DAYS

    def __post_init__(self):
        self.page = max(1, self.page)
        self.limit = max(1, min(MAX_PAGE_SIZE, self.limit))
        self.stale_days = max(0, self.stale_days)
        if self.sort not in SORT_OPTIONS:
            self.sort = "newest"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def role_keywords(self) -> tuple[str, ...]:
        if not self.role:
            return ()
        return ROLE_PATTERNS.get(self.role, (self.role.lower(),))

    def stale_cutoff(self, now: Optional[datetime] = None) -> str:
        """ISO timestamp before which a posting counts as stale."""
        return to_iso((now or utc_now()) - timedelta(days=self.stale_days))

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "JobQuery":
        """
        Build a query from camelCase request parameters.

        Unparseable numbers fall back to their defaults; ``hideStale`` is
        only turned off by the literal string ``false``.
        """

        def as_int(key: str, default: int) -> int:
            try:
                return int(params.get(key) or default)
            except (TypeError, ValueError):
                return default

        min_score = params.get("minMatchScore")
        try:
            min_match_score = float(min_score) if min_score not in (None, "") else None
        except (TypeError, ValueError):
            min_match_score = None
        if min_match_score is not None and not math.isfinite(min_match_score):
            min_match_score = None

        return cls(
            page=as_int("page", 1),
            limit=as_int("limit", DEFAULT_PAGE_SIZE),
            search=params.get("search") or None,
            repo=params.get("repo") or None,
            remote_only=params.get("remote") == "true",
            contract_type=params.get("contractType") or None,
            level=params.get("level") or None,
            sort=params.get("sort") or "newest",
            outreach_status=params.get("outreachStatus") or None,
            contact_type=params.get("contactType") or None,
            min_match_score=min_match_score,
            role=params.get("role") or None,
            source_type=params.get("sourceType") or None,
            source_id=params.get("sourceId") or None,
            hide_stale=(params.get("hideStale") or "true") != "false",
            stale_days=as_int("staleDays", DEFAULT_STALE_DAYS),
        )
