import pytest

from replyflow.matcher.config_loader import MatchingConfig, MatchingWeights
from replyflow.matcher.scoring import calculate_stack_score, match_job, skills_match


def make_profile(**overrides) -> dict:
    profile = {
        "skills": ["Python", "Django", "PostgreSQL"],
        "prefer_remote": True,
        "preferred_contract_types": ["CLT", "PJ"],
        "experience_level": "Pleno",
        "preferred_locations": [],
    }
    profile.update(overrides)
    return profile


def make_job(**overrides) -> dict:
    job = {
        "id": "job-1",
        "tech_stack": ["Python", "Django", "PostgreSQL"],
        "is_remote": True,
        "contract_type": "CLT",
        "experience_level": "Pleno",
        "location": None,
    }
    job.update(overrides)
    return job


def test_perfect_match_scores_100():
    result = match_job(make_job(), make_profile())

    assert result.score == 100
    assert result.reasons == [
        "3 skills match: python, django, postgresql",
        "Remote",
        "Contract: CLT",
        "Level: Pleno",
    ]
    assert result.breakdown == {"skills": 50, "remote": 15, "contract": 15, "level": 15, "location": 5}
    assert result.missing_skills == []


def test_partial_stack_reports_missing_skills():
    result = match_job(
        make_job(tech_stack=["Python", "Go", "Kubernetes", "AWS"]),
        make_profile(skills=["Python", "React"]),
    )

    assert result.breakdown["skills"] == 19
    assert result.missing_skills == ["go", "kubernetes", "aws"]
    assert result.reasons[0] == "1 skills match: python"


def test_level_one_step_above_is_a_stretch():
    result = match_job(
        make_job(tech_stack=[], is_remote=False, contract_type=None, experience_level="Senior"),
        make_profile(prefer_remote=False),
    )

    assert result.reasons == ["Level stretch: Senior"]
    assert 0 < result.score < 15


def test_level_two_steps_above_scores_nothing():
    result = match_job(make_job(experience_level="Lead"), make_profile(experience_level="Junior"))

    assert result.breakdown["level"] == 0


def test_onsite_job_in_preferred_location():
    result = match_job(
        make_job(is_remote=False, location="São Paulo, SP"),
        make_profile(prefer_remote=False, preferred_locations=["são paulo"]),
    )

    assert result.breakdown["location"] == 5
    assert result.breakdown["remote"] == 0
    assert "Location: São Paulo, SP" in result.reasons


def test_remote_job_without_remote_preference_earns_no_remote_points():
    result = match_job(make_job(), make_profile(prefer_remote=False))

    assert result.breakdown["remote"] == 0
    assert result.breakdown["location"] == 0
    assert result.score == 80


def test_empty_profile_scores_zero():
    result = match_job(make_job(), {})

    assert result.score == 0
    assert result.reasons == []


def test_missing_skills_are_capped():
    config = MatchingConfig(max_missing_skills=2)
    result = match_job(make_job(tech_stack=["Go", "Rust", "Elixir"]), make_profile(skills=["Ruby"]), config)

    assert result.missing_skills == ["go", "rust"]


def test_custom_weights_are_normalized():
    config = MatchingConfig(weights=MatchingWeights(stack=100, remote=0, contract=0, level=0, location=0))

    result = match_job(make_job(), make_profile(), config)

    assert result.score == 100


@pytest.mark.parametrize(
    "skill,job_skill,expected",
    [
        ("python", "python", True),
        ("react", "react native", True),
        ("next.js", "nextjs", True),
        ("typescript", "ts", True),
        ("java", "javascript", True),
        ("go", "rust", False),
    ],
)
def test_skills_match(skill, job_skill, expected):
    assert skills_match(skill, job_skill) is expected


def test_stack_score_without_overlap():
    points, matching, missing = calculate_stack_score(["Ruby"], ["Go"], 50)

    assert points == 0
    assert matching == []
    assert missing == ["go"]


def test_stack_score_empty_inputs():
    assert calculate_stack_score([], ["Go"], 50) == (0.0, [], [])
