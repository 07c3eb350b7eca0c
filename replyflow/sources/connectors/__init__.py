"""Source connectors, one per job board provider."""

from ..base import SourceConnector
from .ashby_board import AshbyBoardConnector
from .github_issues import GitHubIssuesConnector
from .greenhouse_board import GreenhouseBoardConnector
from .lever_postings import LeverPostingsConnector
from .recruitee_careers import RecruiteeCareersConnector
from .workable_widget import WorkableWidgetConnector

CONNECTOR_CLASSES: dict[str, type[SourceConnector]] = {
    cls.source_type: cls
    for cls in (
        GitHubIssuesConnector,
        GreenhouseBoardConnector,
        LeverPostingsConnector,
        AshbyBoardConnector,
        WorkableWidgetConnector,
        RecruiteeCareersConnector,
    )
}


def get_source_connector(source_type: str) -> SourceConnector:
    """
    Build the connector for a source type.

    Raises:
        ValueError: If the source type has no connector
    """
    connector_class = CONNECTOR_CLASSES.get(source_type)
    if connector_class is None:
        raise ValueError(f"Unsupported source type: {source_type}")
    return connector_class()


__all__ = [
    "AshbyBoardConnector",
    "GitHubIssuesConnector",
    "GreenhouseBoardConnector",
    "LeverPostingsConnector",
    "RecruiteeCareersConnector",
    "WorkableWidgetConnector",
    "CONNECTOR_CLASSES",
    "get_source_connector",
]
