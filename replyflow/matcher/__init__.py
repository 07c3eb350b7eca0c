"""
Matcher Service

Scores job postings against user profiles and computes profile completeness.

Main components:
- scoring: weighted job/profile match (stack, remote, contract, level, location)
- profile_score: profile completeness score, band and suggestions
- service: per-user recalculation into job_match_scores
- db_operations: database interface
"""

from .config_loader import MatchingConfig, MatchingWeights, load_matching_config
from .profile_score import ProfileScoreResult, calculate_profile_score
from .scoring import MatchResult, calculate_stack_score, match_job
from .service import calculate_match_scores_for_user

__all__ = [
    "MatchingConfig",
    "MatchingWeights",
    "load_matching_config",
    "ProfileScoreResult",
    "calculate_profile_score",
    "MatchResult",
    "calculate_stack_score",
    "match_job",
    "calculate_match_scores_for_user",
]
__version__ = "0.1.0"
