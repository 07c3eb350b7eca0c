import pytest

from replyflow.common.seniority_extractor import extract_experience_level, level_rank


@pytest.mark.parametrize(
    "text,level",
    [
        ("Desenvolvedor Sênior", "Senior"),
        ("Senior Lead Engineer", "Senior"),
        ("Tech Lead Pleno", "Pleno"),
        ("Dev Júnior", "Junior"),
        ("Staff Engineer", "Lead"),
        ("Vaga de estágio", "Intern"),
        ("Internship", "Intern"),
        ("Backend Engineer", "Unknown"),
        ("", "Unknown"),
    ],
)
def test_extract_experience_level(text, level):
    assert extract_experience_level(text) == level


def test_extract_experience_level_non_string():
    assert extract_experience_level(None) == "Unknown"


def test_level_rank_defaults_to_pleno():
    assert level_rank("Senior") == 3
    assert level_rank("Unknown") == level_rank("Pleno")
