from unittest import mock

import pytest

from replyflow.outreach.exceptions import UpgradeRequiredError
from replyflow.sources.base import NormalizedSourceJob, SourceFetchResult
from replyflow.sources.management import (
    SourceNotFoundError,
    SourceRequestError,
    clamp_sync_interval,
    create_source,
    normalize_source_input,
    update_source_settings,
    validate_source,
)
from tests.fakes import FakePlanDB, FakeSourcesDB


class TestNormalizeSourceInput:
    def test_github_from_owner_and_repo(self):
        source = normalize_source_input({"owner": "frontendbr", "repo": "vagas"})

        assert source.full_name == "frontendbr/vagas"
        assert source.external_key == "frontendbr/vagas"
        assert source.display_name == "frontendbr/vagas"
        assert source.url == "https://github.com/frontendbr/vagas"
        assert source.category == "community"
        assert source.enabled is True
        assert source.region_tags == ["BR", "LATAM"]
        assert source.discovery_confidence == 100

    @pytest.mark.parametrize("full_name", ["vagas", "a/b/c", " / vagas"])
    def test_github_needs_exactly_owner_and_repo(self, full_name):
        with pytest.raises(SourceRequestError, match="owner/repo format"):
            normalize_source_input({"fullName": full_name})

    @pytest.mark.parametrize(
        "source_type,full_name,url",
        [
            ("greenhouse_board", "greenhouse/nubank", "https://boards.greenhouse.io/nubank"),
            ("lever_postings", "lever/nubank", "https://jobs.lever.co/nubank"),
            ("ashby_board", "ashby/nubank", "https://jobs.ashbyhq.com/nubank"),
            ("workable_widget", "workable/nubank", "https://apply.workable.com/nubank"),
            ("recruitee_careers", "recruitee/nubank", "https://nubank.recruitee.com"),
        ],
    )
    def test_ats_names_and_urls(self, source_type, full_name, url):
        source = normalize_source_input({"sourceType": source_type, "externalKey": " nubank "})

        assert (source.full_name, source.url) == (full_name, url)
        assert (source.owner, source.repo, source.category) == (source_type, "nubank", "ats")

    def test_explicit_values_win(self):
        source = normalize_source_input(
            {
                "sourceType": "lever_postings",
                "externalKey": "acme",
                "url": "https://careers.acme.io",
                "displayName": "Acme",
                "category": "fintech",
                "enabled": False,
                "regionTags": ["PT"],
                "discoveryConfidence": 42,
                "autoDiscovered": 1,
            }
        )

        assert source.url == "https://careers.acme.io"
        assert source.display_name == "Acme"
        assert source.category == "fintech"
        assert source.enabled is False
        assert source.region_tags == ["PT"]
        assert source.discovery_confidence == 42
        assert source.auto_discovered is True

    def test_non_numeric_confidence_falls_back(self):
        assert normalize_source_input({"fullName": "a/b", "discoveryConfidence": "90"}).discovery_confidence == 100
        assert normalize_source_input({"fullName": "a/b", "discoveryConfidence": True}).discovery_confidence == 100

    def test_unknown_type(self):
        with pytest.raises(SourceRequestError, match="Unsupported source type"):
            normalize_source_input({"sourceType": "rss"})


def test_clamp_sync_interval():
    assert clamp_sync_interval(1) == 5
    assert clamp_sync_interval(90.5) == 91
    assert clamp_sync_interval(5000) == 1440
    with pytest.raises(SourceRequestError):
        clamp_sync_interval("hourly")


def test_create_source_with_pro_plan_skips_caps():
    sources_db = FakeSourcesDB(
        [{"id": f"s{n}", "user_id": "u1", "source_type": "github_repo", "enabled": True} for n in range(20)]
    )

    result = create_source(sources_db, FakePlanDB(plan="pro"), "u1", {"fullName": "a/b"})

    assert sources_db.sources[result["id"]]["enabled"] is True


def test_create_source_over_cap():
    sources_db = FakeSourcesDB(
        [{"id": f"s{n}", "user_id": "u1", "source_type": "github_repo", "enabled": True} for n in range(10)]
    )

    with pytest.raises(UpgradeRequiredError) as exc_info:
        create_source(sources_db, FakePlanDB(), "u1", {"fullName": "a/b"})

    assert exc_info.value.to_dict()["feature"] == "sources_enabled"


def test_disabling_never_checks_the_cap():
    sources_db = FakeSourcesDB(
        [{"id": f"s{n}", "user_id": "u1", "source_type": "github_repo", "enabled": True} for n in range(10)]
    )

    update_source_settings(sources_db, FakePlanDB(), "u1", "s1", {"enabled": False})

    assert sources_db.sources["s1"]["enabled"] is False


def test_re_enabling_an_enabled_source_is_not_a_transition():
    sources_db = FakeSourcesDB(
        [{"id": f"s{n}", "user_id": "u1", "source_type": "github_repo", "enabled": True} for n in range(10)]
    )

    update_source_settings(sources_db, FakePlanDB(), "u1", "s1", {"enabled": True, "technology": ""})

    assert sources_db.updates == [("s1", {"enabled": True, "technology": None})]


def test_update_unknown_source():
    with pytest.raises(SourceNotFoundError):
        update_source_settings(FakeSourcesDB(), FakePlanDB(), "u1", "missing", {"enabled": True})


def test_validate_empty_board():
    sources_db = FakeSourcesDB(
        [{"id": "s1", "user_id": "u1", "source_type": "lever_postings", "full_name": "lever/acme", "repo": "acme"}]
    )
    connector = mock.Mock()
    connector.fetch_jobs.return_value = SourceFetchResult(jobs=[], http_status=200, latency_ms=100)

    result = validate_source(sources_db, FakePlanDB(), "u1", "s1", connector_factory=lambda source_type: connector)

    assert result["fetched"] == 0
    assert result["sampleJobs"] == []
    assert result["health"]["breakdown"]["parsingQuality"] == 0
    assert connector.fetch_jobs.call_args.args[0].full_name == "lever/acme"


def test_validate_only_keeps_three_samples():
    sources_db = FakeSourcesDB([{"id": "s1", "user_id": None, "source_type": "github_repo", "full_name": "a/b"}])
    jobs = [
        NormalizedSourceJob(
            external_job_id=str(n), issue_url=f"https://github.com/a/b/issues/{n}", issue_number=n, title="t", body="b"
        )
        for n in range(5)
    ]
    connector = mock.Mock()
    connector.fetch_jobs.return_value = SourceFetchResult(jobs=jobs, http_status=200, latency_ms=10)

    result = validate_source(sources_db, FakePlanDB(), "u1", "s1", connector_factory=lambda source_type: connector)

    assert [job["externalJobId"] for job in result["sampleJobs"]] == ["0", "1", "2"]


def test_validate_other_users_source_is_not_found():
    sources_db = FakeSourcesDB([{"id": "s1", "user_id": "u2", "source_type": "github_repo", "full_name": "a/b"}])

    with pytest.raises(SourceNotFoundError):
        validate_source(sources_db, FakePlanDB(), "u1", "s1", connector_factory=mock.Mock())
