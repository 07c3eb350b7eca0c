"""Job posting parser.

Turns posting titles, bodies and labels into structured fields (company,
role, salary, contract type, level, tech stack, contact channels).
"""

from .job_parser import ParsedJob, has_parsed_signal, parse_job_body
from .tech_stack import TechKeyword, TechStackExtractor, TechTaxonomy, load_tech_taxonomy

__all__ = [
    "ParsedJob",
    "parse_job_body",
    "has_parsed_signal",
    "TechKeyword",
    "TechStackExtractor",
    "TechTaxonomy",
    "load_tech_taxonomy",
]
__version__ = "0.1.0"
