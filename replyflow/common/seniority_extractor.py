"""
Experience Level Extraction Utility

Shared by the job parser (to tag postings) and the matcher (to compare a
posting against the candidate's level). Postings are written in Portuguese
and English, so both spellings are recognised.

Levels are checked in a fixed precedence: a title such as "Senior Lead
Engineer" is Senior, and "Tech Lead Pleno" is Pleno.
"""

import re

# Valid experience levels (must match the jobs.experience_level values)
VALID_EXPERIENCE_LEVELS = {"Intern", "Junior", "Pleno", "Senior", "Lead", "Unknown"}

# Ordinal used by the matcher; unknown levels sit at Pleno.
LEVEL_ORDER = {"Intern": 0, "Junior": 1, "Pleno": 2, "Senior": 3, "Lead": 4}

_LEVEL_PATTERNS = [
    ("Senior", re.compile(r"senior|sênior|sr\.?", re.IGNORECASE)),
    ("Pleno", re.compile(r"pleno|mid|middle", re.IGNORECASE)),
    ("Junior", re.compile(r"junior|júnior|jr\.?", re.IGNORECASE)),
    ("Lead", re.compile(r"lead|principal|staff", re.IGNORECASE)),
    ("Intern", re.compile(r"estagio|estágio|intern", re.IGNORECASE)),
]

# Bracket tags in titles that carry a level rather than a location.
LEVEL_HINT_PATTERN = re.compile(r"senior|pleno|junior|estagio|intern|lead", re.IGNORECASE)


def extract_experience_level(text: str) -> str:
    """
    Extract the experience level from free text using keyword detection.

    Matching is substring based, so "Sr." and "sr" both count as Senior and
    "internship" counts as Intern.

    Args:
        text: Title, bracket tag, body or joined labels.

    Returns:
        One of Senior, Pleno, Junior, Lead, Intern or Unknown.
    """
    if not text or not isinstance(text, str):
        return "Unknown"

    for level, pattern in _LEVEL_PATTERNS:
        if pattern.search(text):
            return level
    return "Unknown"


def level_rank(level: str) -> int:
    return LEVEL_ORDER.get(level, 2)
