"""
Configuration Loader for the Matcher Service

This module loads and validates the match weights from matching.yml.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from replyflow.common.seniority_extractor import LEVEL_ORDER

logger = logging.getLogger(__name__)


@dataclass
class MatchingWeights:
    """Points awarded per matching dimension."""

    stack: float = 50
    remote: float = 15
    contract: float = 15
    level: float = 15
    location: float = 5

    def total(self) -> float:
        return self.stack + self.remote + self.contract + self.level + self.location

    def validate(self) -> None:
        """Warn when the weights do not add up to 100 points."""
        total = self.total()
        if total <= 0:
            raise ValueError("Match weights must sum to a positive number")
        if abs(total - 100) > 0.01:
            logger.warning(
                f"Weights sum to {total:.2f}, expected 100",
                extra={'weights_sum': total}
            )


@dataclass
class MatchingConfig:
    """Complete matching configuration."""

    weights: MatchingWeights = field(default_factory=MatchingWeights)
    level_stretch_factor: float = 0.3
    level_order: dict[str, int] = field(default_factory=lambda: dict(LEVEL_ORDER))
    max_missing_skills: int = 8

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "MatchingConfig":
        """Create MatchingConfig from dictionary."""
        weights_dict = config_dict.get("weights", {}) or {}
        weights = MatchingWeights(
            stack=weights_dict.get("stack", 50),
            remote=weights_dict.get("remote", 15),
            contract=weights_dict.get("contract", 15),
            level=weights_dict.get("level", 15),
            location=weights_dict.get("location", 5),
        )
        weights.validate()

        return cls(
            weights=weights,
            level_stretch_factor=float(config_dict.get("level_stretch_factor", 0.3)),
            level_order=dict(config_dict.get("level_order") or LEVEL_ORDER),
            max_missing_skills=int(config_dict.get("max_missing_skills", 8)),
        )


def load_matching_config(config_path: Optional[str] = None) -> MatchingConfig:
    """
    Load matching configuration from YAML file.

    Args:
        config_path: Path to matching.yml file. If None, uses default location.
            A missing default file yields the built-in weights.

    Returns:
        MatchingConfig object with weights and level settings

    Raises:
        FileNotFoundError: If an explicitly given config file doesn't exist
        ValueError: If config is invalid

    Example:
        >>> config = load_matching_config('config/matching.yml')
        >>> print(config.weights.stack)
        50
    """
    explicit = config_path is not None
    if config_path is None:
        # Default path relative to project root
        project_root = Path(__file__).parent.parent.parent
        config_path = str(project_root / "config" / "matching.yml")

    logger.info("Loading matching configuration", extra={'config_path': config_path})

    try:
        with open(config_path) as f:
            config_dict = yaml.safe_load(f)
    except FileNotFoundError:
        if explicit:
            logger.error(f"Configuration file not found: {config_path}")
            raise
        logger.warning("Matching configuration not found, using defaults")
        return MatchingConfig()
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML: {e}")
        raise ValueError(f"Invalid YAML in config file: {e}") from e

    if not config_dict:
        logger.warning("Empty configuration file, using defaults")
        config_dict = {}

    try:
        config = MatchingConfig.from_dict(config_dict)
    except (TypeError, ValueError) as e:
        logger.error(f"Failed to load configuration: {e}")
        raise ValueError(f"Failed to load configuration: {e}") from e

    logger.info(
        "Matching configuration loaded successfully",
        extra={'weights_sum': config.weights.total()}
    )
    return config
