"""Attribution and terms links shown next to every source, by source type."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SourcePolicy:
    attribution_label: str
    attribution_url: str
    terms_url: str


SOURCE_POLICY: dict[str, SourcePolicy] = {
    "github_repo": SourcePolicy(
        attribution_label="GitHub Issues",
        attribution_url="https://docs.github.com/en/rest/issues/issues#list-repository-issues",
        terms_url="https://docs.github.com/en/site-policy/github-terms/github-terms-of-service",
    ),
    "greenhouse_board": SourcePolicy(
        attribution_label="Greenhouse Job Board API",
        attribution_url="https://developers.greenhouse.io/job-board.html",
        terms_url="https://www.greenhouse.com/uk/legal/master-subscription-agreement",
    ),
    "lever_postings": SourcePolicy(
        attribution_label="Lever Postings API",
        attribution_url="https://github.com/lever/postings-api",
        terms_url="https://www.lever.co/terms",
    ),
    "ashby_board": SourcePolicy(
        attribution_label="Ashby Job Board API",
        attribution_url="https://developers.ashbyhq.com/docs/public-job-posting-api",
        terms_url="https://www.ashbyhq.com/terms-of-service",
    ),
    "workable_widget": SourcePolicy(
        attribution_label="Workable Widget API",
        attribution_url="https://developers.workable.com/",
        terms_url="https://www.workable.com/terms",
    ),
    "recruitee_careers": SourcePolicy(
        attribution_label="Recruitee Careers Site API",
        attribution_url="https://docs.recruitee.com/reference/offers",
        terms_url="https://recruitee.com/en/terms",
    ),
}


def get_source_policy(source_type: str) -> SourcePolicy:
    """Raises KeyError for unknown source types."""
    return SOURCE_POLICY[source_type]
