"""Job board.

Paged, filterable listing of synced postings per user and the dashboard
counters built on top of it.
"""

from .listing import list_jobs, opportunity_score, serialize_job
from .query import ROLE_PATTERNS, JobQuery
from .stats import get_dashboard_stats

__all__ = [
    "list_jobs",
    "opportunity_score",
    "serialize_job",
    "ROLE_PATTERNS",
    "JobQuery",
    "get_dashboard_stats",
]
__version__ = "0.1.0"
