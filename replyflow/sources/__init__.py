"""Sources service.

Main components:
- connectors: per-provider adapters (GitHub issues and public ATS boards)
- discovery: seeds repo_sources from config/sources.yml
- sync: fetch, parse, store and score every enabled source
- health: per-source health score and throttling
- management: user-facing listing, creation, settings and validation
"""

from .base import (
    NormalizedSourceJob,
    SourceConnector,
    SourceFetchError,
    SourceFetchResult,
    SourceRecord,
)
from .connectors import get_source_connector
from .discovery import run_source_discovery
from .health import SourceHealthResult, compute_source_health
from .management import (
    DuplicateSourceError,
    SourceNotFoundError,
    SourceRequestError,
    SourceValidationError,
    create_source,
    list_sources,
    update_source_settings,
    validate_source,
)
from .policy import SOURCE_POLICY, SourcePolicy
from .sync import SyncAlreadyRunningError, SyncOptions, run_source_sync

__all__ = [
    "NormalizedSourceJob",
    "SourceConnector",
    "SourceFetchError",
    "SourceFetchResult",
    "SourceRecord",
    "get_source_connector",
    "run_source_discovery",
    "SourceHealthResult",
    "compute_source_health",
    "DuplicateSourceError",
    "SourceNotFoundError",
    "SourceRequestError",
    "SourceValidationError",
    "create_source",
    "list_sources",
    "update_source_settings",
    "validate_source",
    "SOURCE_POLICY",
    "SourcePolicy",
    "SyncAlreadyRunningError",
    "SyncOptions",
    "run_source_sync",
]
__version__ = "0.1.0"
