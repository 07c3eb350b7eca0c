"""
Source catalog loader.

Reads `config/sources.yml`, which holds the discovery catalog (community
GitHub repositories and public ATS boards) plus the sync settings used by
the sync CLI, the HTTP trigger and the Airflow DAG.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .base import SOURCE_TYPES

logger = logging.getLogger(__name__)

ATS_SOURCE_TYPES = tuple(t for t in SOURCE_TYPES if t != "github_repo")
AGGREGATOR_TYPES = ("general_jobs", "php_jobs")


@dataclass
class SyncSettings:
    """Scheduling knobs for source sync."""

    default_interval_minutes: int = 30
    lock_timeout_minutes: int = 20
    min_auto_enable_confidence: int = 80


@dataclass
class GithubRepoCandidate:
    full_name: str
    url: str
    owner: str | None = None
    repo: str | None = None
    category: str | None = None
    technology: str | None = None
    activity_level: str | None = None
    updated_at: str | None = None
    type: str | None = None
    group: str = "by_category"


@dataclass
class AtsSourceCandidate:
    source_type: str
    external_key: str
    display_name: str | None = None
    category: str | None = None
    region_tags: list[str] = field(default_factory=list)
    confidence: float | None = None
    enabled_by_default: bool = True
    url: str | None = None


@dataclass
class SourceCatalog:
    github_repos: list[GithubRepoCandidate] = field(default_factory=list)
    ats_sources: list[AtsSourceCandidate] = field(default_factory=list)
    sync: SyncSettings = field(default_factory=SyncSettings)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "SourceCatalog":
        sync_section = raw.get("sync") or {}
        if not isinstance(sync_section, Mapping):
            raise ValueError("`sync` section must be a mapping in sources configuration")
        sync = SyncSettings(
            default_interval_minutes=int(sync_section.get("default_interval_minutes", 30)),
            lock_timeout_minutes=int(sync_section.get("lock_timeout_minutes", 20)),
            min_auto_enable_confidence=int(sync_section.get("min_auto_enable_confidence", 80)),
        )

        github_repos = []
        for item in raw.get("github_repos") or []:
            if not isinstance(item, Mapping):
                raise ValueError(f"Invalid GitHub repository entry: {item!r}")
            github_repos.append(
                GithubRepoCandidate(
                    full_name=str(item.get("full_name") or "").strip(),
                    url=str(item.get("url") or "").strip(),
                    owner=item.get("owner"),
                    repo=item.get("repo"),
                    category=item.get("category"),
                    technology=item.get("technology"),
                    activity_level=item.get("activity_level"),
                    updated_at=_as_text(item.get("updated_at")),
                    type=item.get("type"),
                    group=item.get("group") or "by_category",
                )
            )

        ats_sources = []
        for item in raw.get("ats_sources") or []:
            if not isinstance(item, Mapping):
                raise ValueError(f"Invalid ATS source entry: {item!r}")
            ats_sources.append(
                AtsSourceCandidate(
                    source_type=str(item.get("source_type") or ""),
                    external_key=str(item.get("external_key") or "").strip(),
                    display_name=item.get("display_name"),
                    category=item.get("category"),
                    region_tags=list(item.get("region_tags") or []),
                    confidence=item.get("confidence"),
                    enabled_by_default=item.get("enabled_by_default", True) is not False,
                    url=item.get("url"),
                )
            )

        return cls(github_repos=github_repos, ats_sources=ats_sources, sync=sync)

    def discoverable_github_repos(self) -> list[GithubRepoCandidate]:
        """Catalog repos eligible for discovery; aggregator lists only when they are job boards."""
        return [
            repo
            for repo in self.github_repos
            if repo.group != "aggregators" or repo.type in AGGREGATOR_TYPES
        ]


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    # PyYAML turns bare dates into date objects
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


def _project_root() -> Path:
    """Return the project root path based on this file's location."""
    return Path(__file__).resolve().parent.parent.parent


def load_sources_config(config_path: str | None = None) -> SourceCatalog:
    """
    Load the source catalog from YAML file.

    Args:
        config_path: Optional override for the config file path. When omitted,
            the function reads `config/sources.yml` relative to the project root.

    Returns:
        SourceCatalog with GitHub candidates, ATS candidates and sync settings

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If the YAML file cannot be parsed or has invalid structure.
    """
    path = Path(config_path) if config_path else _project_root() / "config" / "sources.yml"
    if not path.exists():
        logger.error("Sources configuration file not found: %s", path)
        raise FileNotFoundError(f"Sources configuration file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as handle:
            raw_config: Mapping[str, Any] | None = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        logger.error("Failed to parse sources configuration: %s", exc)
        raise ValueError(f"Invalid YAML in sources configuration: {exc}") from exc

    if not raw_config:
        logger.warning("Sources configuration file is empty: %s", path)
        return SourceCatalog()

    if not isinstance(raw_config, Mapping):
        raise ValueError("Sources configuration must be a mapping")

    catalog = SourceCatalog.from_dict(raw_config)
    logger.info(
        "Loaded sources configuration",
        extra={
            "github_repos": len(catalog.github_repos),
            "ats_sources": len(catalog.ats_sources),
        },
    )
    return catalog


__all__ = [
    "AtsSourceCandidate",
    "GithubRepoCandidate",
    "SourceCatalog",
    "SyncSettings",
    "load_sources_config",
]
