"""
Tech stack extraction driven by spaCy phrase matching.

The job parser uses this module to list the technologies a posting
mentions. Keywords come from ``config/taxonomy/tech_stack.yml`` and are
returned in taxonomy order (so "JavaScript, TypeScript, React" rather than
the order they happen to appear in the text).
"""
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import spacy
import yaml
from spacy.language import Language
from spacy.matcher import PhraseMatcher
from spacy.tokens import Doc

logger = logging.getLogger(__name__)

DEFAULT_TAXONOMY_RELATIVE_PATH = Path("config/taxonomy/tech_stack.yml")


@dataclass(frozen=True)
class TechKeyword:
    """Display name of a technology plus the spellings that count as a hit."""

    name: str
    aliases: tuple[str, ...]
    case_sensitive: bool = False


class TechTaxonomy:
    """Ordered collection of tech keywords."""

    def __init__(self, entries: Sequence[TechKeyword]):
        self._entries = list(entries)

    @property
    def entries(self) -> Sequence[TechKeyword]:
        return self._entries

    def names(self) -> list[str]:
        return [entry.name for entry in self._entries]


def _entry_from_config(raw: object) -> Optional[TechKeyword]:
    if isinstance(raw, str):
        name = raw.strip()
        return TechKeyword(name=name, aliases=(name,)) if name else None

    if isinstance(raw, Mapping):
        name = str(raw.get("name") or "").strip()
        if not name:
            return None
        aliases = [name]
        for alias in raw.get("aliases") or []:
            if isinstance(alias, str) and alias.strip() and alias.strip() not in aliases:
                aliases.append(alias.strip())
        return TechKeyword(
            name=name,
            aliases=tuple(aliases),
            case_sensitive=bool(raw.get("case_sensitive", False)),
        )

    return None


def load_tech_taxonomy(path: Optional[Path | str] = None) -> TechTaxonomy:
    """
    Load the tech keyword taxonomy from YAML configuration.

    Args:
        path: Optional override for the taxonomy file. Relative paths are
            resolved against the project root.

    Returns:
        TechTaxonomy in file order. Falls back to a built-in list when the
        file is missing or malformed.
    """
    resolved_path = Path(path) if path else DEFAULT_TAXONOMY_RELATIVE_PATH

    if not resolved_path.is_absolute():
        project_root = Path(__file__).parent.parent.parent
        resolved_path = (project_root / resolved_path).resolve()

    if not resolved_path.exists():
        logger.warning(
            "Tech taxonomy file not found at %s; falling back to defaults",
            resolved_path,
        )
        return TechTaxonomy(default_tech_keywords())

    with resolved_path.open("r", encoding="utf-8") as handle:
        try:
            loaded = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            logger.error("Failed to parse tech taxonomy YAML: %s", exc, exc_info=True)
            return TechTaxonomy(default_tech_keywords())

    keywords = loaded.get("keywords") if isinstance(loaded, Mapping) else loaded
    if not isinstance(keywords, Sequence) or isinstance(keywords, str):
        logger.warning(
            "Unexpected tech taxonomy structure; using defaults. Type=%s",
            type(keywords).__name__,
        )
        return TechTaxonomy(default_tech_keywords())

    entries: list[TechKeyword] = []
    seen: set[str] = set()
    for raw in keywords:
        entry = _entry_from_config(raw)
        if entry and entry.name not in seen:
            seen.add(entry.name)
            entries.append(entry)

    if not entries:
        logger.warning("Tech taxonomy contained no valid entries; using defaults")
        return TechTaxonomy(default_tech_keywords())

    return TechTaxonomy(entries)


def default_tech_keywords() -> list[TechKeyword]:
    """
    Compact fallback used when the taxonomy file is unavailable.

    Keeps the parser functional while the curated taxonomy is missing.
    """
    names = [
        "JavaScript", "TypeScript", "Python", "Java", "Go", "Ruby", "PHP", "SQL",
        "React", "Next.js", "Vue", "Angular", "Node.js", "Django", "Flask",
        "FastAPI", "Laravel", "PostgreSQL", "MySQL", "MongoDB", "Redis",
        "AWS", "Docker", "Kubernetes", "Terraform", "GraphQL",
    ]
    return [
        TechKeyword(name=name, aliases=(name,), case_sensitive=name == "Go")
        for name in names
    ]


class TechStackExtractor:
    """
    Finds taxonomy keywords in posting text.

    Two phrase matchers share one blank English pipeline: one compares
    lower-cased tokens, the other exact token text for case-sensitive
    keywords.
    """

    def __init__(
        self,
        taxonomy: Optional[TechTaxonomy] = None,
        nlp: Optional[Language] = None,
    ) -> None:
        self.taxonomy = taxonomy or load_tech_taxonomy()
        self.nlp = nlp or spacy.blank("en")
        self.matcher = PhraseMatcher(self.nlp.vocab, attr="LOWER")
        self.exact_matcher = PhraseMatcher(self.nlp.vocab, attr="ORTH")
        for entry in self.taxonomy.entries:
            phrases = [self.nlp.make_doc(alias) for alias in entry.aliases]
            target = self.exact_matcher if entry.case_sensitive else self.matcher
            target.add(entry.name, phrases)

    def extract(self, title: Optional[str], body: Optional[str]) -> list[str]:
        """
        List technologies mentioned in a posting's title and body.

        Returns:
            Keyword names in taxonomy order, without duplicates.
        """
        doc = self._make_doc(f"{title or ''} {body or ''}")
        if doc is None:
            return []

        found: set[str] = set()
        for matcher in (self.matcher, self.exact_matcher):
            for match_id, _, _ in matcher(doc):
                found.add(self.nlp.vocab.strings[match_id])

        return [name for name in self.taxonomy.names() if name in found]

    def _make_doc(self, text: str) -> Optional[Doc]:
        if not text.strip():
            return None
        try:
            return self.nlp.make_doc(text)
        except Exception as exc:
            logger.error("spaCy tokenizer failed to parse posting: %s", exc)
            return None


_default_extractor: Optional[TechStackExtractor] = None


def get_default_extractor() -> TechStackExtractor:
    """Return a process-wide extractor built from the default taxonomy."""
    global _default_extractor
    if _default_extractor is None:
        _default_extractor = TechStackExtractor()
    return _default_extractor
