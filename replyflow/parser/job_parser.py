"""
Job posting parser.

Extracts structured fields from semi-structured posting text. GitHub issue
postings (mostly Brazilian community repos) follow loose conventions such as
``[Remoto] [Senior] Desenvolvedor Python - Acme`` titles and ``## Empresa``
sections; ATS boards give cleaner text that goes through the same rules.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Optional

from replyflow.common.seniority_extractor import LEVEL_HINT_PATTERN, extract_experience_level
from replyflow.contacts.email_quality import is_direct_contact_email

from .tech_stack import TechStackExtractor, get_default_extractor

logger = logging.getLogger(__name__)

VALID_CONTRACT_TYPES = {"CLT", "PJ", "Freela", "Internship"}


@dataclass
class ParsedJob:
    """Fields recovered from a posting. Missing values stay None."""

    company: Optional[str] = None
    role: Optional[str] = None
    salary: Optional[str] = None
    location: Optional[str] = None
    contract_type: Optional[str] = None
    experience_level: Optional[str] = None
    tech_stack: list[str] = field(default_factory=list)
    benefits: Optional[str] = None
    apply_url: Optional[str] = None
    contact_email: Optional[str] = None
    contact_linkedin: Optional[str] = None
    contact_whatsapp: Optional[str] = None
    is_remote: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def _patterns(*expressions: str) -> list[re.Pattern]:
    return [re.compile(expression, re.IGNORECASE) for expression in expressions]


# Section headers seen in Portuguese and English postings
SECTION_PATTERNS = {
    "company": _patterns(
        r"##?\s*(?:empresa|company|sobre\s*a?\s*empresa)",
        r"\*{1,2}empresa:?\*{1,2}\s*",
        r"empresa:\s*",
    ),
    "location": _patterns(
        r"##?\s*(?:localizacao|local|location|cidade)",
        r"\*{1,2}(?:local|localizacao):?\*{1,2}\s*",
        r"(?:local|localizacao|cidade):\s*",
    ),
    "benefits": _patterns(
        r"##?\s*(?:beneficios|benefits|diferenciais)",
        r"\*{1,2}(?:beneficios|benefits):?\*{1,2}\s*",
    ),
    "apply": _patterns(
        r"##?\s*(?:como\s*se\s*candidatar|how\s*to\s*apply|candidatar|inscreva|apply)",
        r"\*{1,2}(?:como\s*se\s*candidatar):?\*{1,2}\s*",
    ),
}

TITLE_PATTERN = re.compile(r"^\[([^\]]+)\]\s*(?:\[([^\]]+)\]\s*)?(.+?)(?:\s*[-–|@]\s*(.+))?$")
SECTION_END_PATTERN = re.compile(r"\n##|\n\*{2}[A-Z]|\n\n\n")
REMOTE_TAG_PATTERN = re.compile(r"remoto|remote", re.IGNORECASE)
DASH_SPLIT_PATTERN = re.compile(r"\s*[-–]\s*")

BR_SALARY_PATTERN = re.compile(
    r"R\$\s*[\d.,]+(?:\s*(?:a|até|-|–)\s*R?\$?\s*[\d.,]+)?", re.IGNORECASE
)
USD_SALARY_PATTERN = re.compile(
    r"(?:USD|US\$|\$)\s*[\d.,]+(?:\s*(?:to|a|até|-|–)\s*(?:USD|US\$|\$)?\s*[\d.,]+)?"
    r"(?:\s*/\s*(?:month|mes|ano|year))?",
    re.IGNORECASE,
)
TBD_SALARY_PATTERN = re.compile(r"a combinar|a definir|negociavel|negotiable", re.IGNORECASE)

# Checked in order; first hit wins.
CONTRACT_PATTERNS = [
    ("Internship", re.compile(r"\bestagio\b|\bestágio\b|\binternship\b|\bintern\b")),
    ("PJ", re.compile(r"\bpj\b|\bpessoa\s*juridica\b")),
    ("PJ", re.compile(r"\bcontractor\b|\bindependent contractor\b|\b1099\b|\bc2c\b")),
    ("Freela", re.compile(r"\bfreela\b|\bfreelance\b")),
    ("Freela", re.compile(r"\bconsultant\b|\bconsultoria\b|\bpart[-\s]?time\b|\bpart time\b")),
    ("CLT", re.compile(r"\bclt\b")),
]

BRAZIL_PLACE_PATTERN = re.compile(
    r"\b(brasil|brazil|são paulo|sao paulo|rio de janeiro|curitiba|campinas|belo horizonte"
    r"|porto alegre|recife|florianópolis|florianopolis|brasilia|brasília)\b",
    re.IGNORECASE,
)
BRAZIL_WORDING_PATTERN = re.compile(
    r"\b(vaga|requisitos|benef[ií]cios|sal[áa]rio|contrata[cç][aã]o|candidatar"
    r"|remoto no brasil|h[ií]brido|presencial)\b",
    re.IGNORECASE,
)
INTERNATIONAL_PATTERN = re.compile(
    r"\b(united states|usa|canada|united kingdom|uk|germany|france|spain|italy|portugal"
    r"|netherlands|sweden|norway|denmark|finland|poland|india|japan|singapore|australia"
    r"|new zealand|mexico|argentina|chile|colombia|europe|global)\b",
    re.IGNORECASE,
)

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
CONTACT_LINE_PATTERN = re.compile(
    r"(?:contato|contact|email|e-mail)\s*(?:[:\-]|\s+para\s+)?([^\n\r]{5,100})", re.IGNORECASE
)
FALLBACK_EMAIL_PATTERN = re.compile(
    r"(?:em\s*caso\s*de\s*(?:nao|non?)\s*haver|if\s*no\s*response|fallback)[^.]{0,50}"
    r"([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})",
    re.IGNORECASE,
)
PERSONAL_LOCAL_PATTERNS = [re.compile(r"^[a-z]+\.[a-z]+$"), re.compile(r"^[a-z]+[0-9]?[a-z]*$")]
COMMON_TLD_PATTERN = re.compile(r"\.(com|org|net|io|co|ai|dev|tech|com\.br|org\.br)$")

LINKEDIN_PATTERN = re.compile(
    r"(?:https?://)?(?:www\.)?linkedin\.com/(?:in|company)/[a-zA-Z0-9_-]+/?", re.IGNORECASE
)
WHATSAPP_PATTERN = re.compile(r"(?:https?://)?(?:wa\.me|api\.whatsapp\.com)/[0-9]+", re.IGNORECASE)
URL_PATTERN = re.compile(r"https?://[^\s)>\]]+")
ATS_URL_PATTERN = re.compile(
    r"(?:https?://)?(?:[\w-]+\.)?(?:lever|greenhouse|workable|gupy|kenoby|recruitee|bamboohr"
    r"|indeed|linkedin)\.(?:co|com|io|com\.br)[^\s)>\]]*",
    re.IGNORECASE,
)
REMOTE_BODY_PATTERN = re.compile(
    r"\bremoto\b|\bremote\b|\b100%\s*remote\b|\bhome\s*office\b|\btrabalho\s*remoto\b"
)


def parse_job_body(
    title: str,
    body: Optional[str],
    labels: Optional[Sequence[str]] = None,
    source_type_hint: Optional[str] = None,
    extractor: Optional[TechStackExtractor] = None,
) -> ParsedJob:
    """
    Parse a job posting into structured fields.

    Title tags are read first, then body sections and keyword scans, then the
    labels. Contract type always resolves (falling back to an inference from
    location and wording); the other fields may stay empty.

    Args:
        title: Posting title
        body: Posting body (markdown or plain text)
        labels: Issue labels or ATS tags
        source_type_hint: Source type of the posting (e.g. "lever_postings");
            non-GitHub sources default to PJ when nothing else is known.
        extractor: Optional tech stack extractor (defaults to the shared one)

    Returns:
        ParsedJob
    """
    title = title or ""
    body = body or ""
    labels = list(labels or [])
    parsed = ParsedJob()

    match = TITLE_PATTERN.match(title)
    if match:
        bracket1, bracket2, role_company, company_part = match.groups()
        for bracket in (bracket1, bracket2):
            if not bracket:
                continue
            if REMOTE_TAG_PATTERN.search(bracket):
                parsed.is_remote = True
            elif LEVEL_HINT_PATTERN.search(bracket):
                parsed.experience_level = extract_experience_level(bracket)
            else:
                parsed.location = bracket.strip()

        if company_part:
            parsed.company = company_part.strip()
            parsed.role = role_company.strip()
        else:
            parts = DASH_SPLIT_PATTERN.split(role_company)
            if len(parts) >= 2:
                parsed.role = parts[0].strip()
                parsed.company = " - ".join(parts[1:]).strip()
            else:
                parsed.role = role_company.strip()
    else:
        parsed.role = title.strip()

    if body:
        if not parsed.company:
            parsed.company = extract_section(body, SECTION_PATTERNS["company"])
        parsed.salary = extract_salary(body)
        if not parsed.location:
            parsed.location = extract_section(body, SECTION_PATTERNS["location"])
        parsed.contract_type = extract_contract_type(body, labels)
        if not parsed.experience_level:
            parsed.experience_level = extract_level_from_body(body, labels)
        parsed.tech_stack = (extractor or get_default_extractor()).extract(title, body)
        parsed.benefits = extract_section(body, SECTION_PATTERNS["benefits"])
        parsed.contact_email = extract_email(body)
        parsed.contact_linkedin = _first_match(LINKEDIN_PATTERN, body)
        parsed.contact_whatsapp = _first_match(WHATSAPP_PATTERN, body)
        parsed.apply_url = extract_apply_url(body)
        if not parsed.is_remote:
            parsed.is_remote = check_remote(body, labels)

    if not parsed.contract_type:
        parsed.contract_type = extract_contract_type("", labels)
    if not parsed.contract_type:
        parsed.contract_type = infer_contract_type_fallback(
            title, body, labels, parsed.location, source_type_hint
        )
    if not parsed.experience_level:
        parsed.experience_level = extract_level_from_body("", labels)

    return parsed


def has_parsed_signal(parsed: ParsedJob, apply_url: Optional[str] = None) -> bool:
    """True when parsing recovered anything a user can act on."""
    return bool(
        parsed.company
        or parsed.contact_email
        or apply_url
        or parsed.apply_url
        or parsed.location
        or parsed.tech_stack
    )


def extract_section(body: str, patterns: Sequence[re.Pattern]) -> Optional[str]:
    """Return the text following the first matching section header."""
    for pattern in patterns:
        match = pattern.search(body)
        if not match:
            continue
        rest = body[match.end():]
        end = SECTION_END_PATTERN.search(rest)
        end_index = end.start() if end else min(len(rest), 500)
        text = rest[:end_index].strip()
        if 0 < len(text) < 1000:
            return text
    return None


def extract_salary(body: str) -> Optional[str]:
    for pattern in (BR_SALARY_PATTERN, USD_SALARY_PATTERN, TBD_SALARY_PATTERN):
        match = pattern.search(body)
        if match:
            return match.group(0).strip()
    return None


def extract_contract_type(body: str, labels: Sequence[str]) -> Optional[str]:
    text = f"{body} {' '.join(labels)}".lower()
    for contract_type, pattern in CONTRACT_PATTERNS:
        if pattern.search(text):
            return contract_type
    return None


def infer_contract_type_fallback(
    title: str,
    body: str,
    labels: Sequence[str],
    location: Optional[str],
    source_type_hint: Optional[str] = None,
) -> str:
    """Guess a contract type when the posting never states one."""
    text = "\n".join([title, body, location or "", " ".join(labels)]).lower()

    if BRAZIL_PLACE_PATTERN.search(text) or BRAZIL_WORDING_PATTERN.search(text):
        return "CLT"

    if source_type_hint and source_type_hint != "github_repo":
        return "PJ"

    if INTERNATIONAL_PATTERN.search(text):
        return "PJ"

    return "CLT"


def extract_level_from_body(body: str, labels: Sequence[str]) -> Optional[str]:
    level = extract_experience_level(f"{body} {' '.join(labels)}")
    return None if level == "Unknown" else level


def extract_email(body: str) -> Optional[str]:
    """
    Pick the most likely direct contact email in a posting.

    Candidates are scored: inside the apply section +30, on a contact line
    +20, elsewhere -10; a "fallback" address -50; a personal-looking local
    part +15; a common TLD +5. Generic and relay mailboxes are skipped.
    """
    candidates = [m.group(0) for m in EMAIL_PATTERN.finditer(body)]
    if not candidates:
        return None

    apply_section = extract_section(body, SECTION_PATTERNS["apply"]) or ""
    contact_match = CONTACT_LINE_PATTERN.search(body)
    contact_line = contact_match.group(1).lower() if contact_match else ""
    fallback_match = FALLBACK_EMAIL_PATTERN.search(body)
    fallback_email = fallback_match.group(1).lower() if fallback_match else None

    scored: list[tuple[int, str]] = []
    for candidate in candidates:
        email = candidate.lower()
        local_part, _, domain = email.partition("@")

        if not is_direct_contact_email(email):
            continue
        if domain and (len(domain) < 4 or "." not in domain):
            continue

        score = 0
        if email in apply_section:
            score += 30
        elif local_part in contact_line:
            score += 20
        else:
            score -= 10

        if fallback_email == email:
            score -= 50
        if any(p.match(local_part) for p in PERSONAL_LOCAL_PATTERNS):
            score += 15
        if COMMON_TLD_PATTERN.search(domain):
            score += 5

        scored.append((score, email))

    if not scored:
        return None

    # sorted() is stable, so ties keep their order of appearance
    return sorted(scored, key=lambda item: -item[0])[0][1]


def extract_apply_url(body: str) -> Optional[str]:
    apply_section = extract_section(body, SECTION_PATTERNS["apply"])
    if apply_section:
        match = URL_PATTERN.search(apply_section)
        if match:
            return match.group(0)
    return _first_match(ATS_URL_PATTERN, body)


def check_remote(body: str, labels: Sequence[str]) -> bool:
    text = f"{body} {' '.join(labels)}".lower()
    return bool(REMOTE_BODY_PATTERN.search(text))


def _first_match(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    return match.group(0) if match else None
