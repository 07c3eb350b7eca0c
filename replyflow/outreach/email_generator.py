"""
Email Generator

Builds personalized cold and follow-up emails for job postings from
fixed templates, in Brazilian Portuguese or English.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

LANGUAGES = ("pt-BR", "en")
DEFAULT_COMPANY = "your company"

GENERIC_MAILBOX_PATTERNS = (
    "talents",
    "rh",
    "recrutamento",
    "jobs",
    "carreiras",
    "vagas",
    "contato",
    "faleconosco",
    "atendimento",
    "suporte",
    "helpdesk",
    "no-reply",
    "noreply",
    "nao-responda",
    "careers",
    "hiring",
)


@dataclass
class GeneratedEmail:
    subject: str
    body: str
    to: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        return {"subject": self.subject, "body": self.body, "to": self.to}


def is_generic_mailbox(email: Optional[str]) -> bool:
    """True when the local part looks like a shared recruiting/support inbox."""
    if not email:
        return False
    local_part = email.split("@")[0].lower()
    return any(pattern in local_part for pattern in GENERIC_MAILBOX_PATTERNS)


def _matching_skills(job: Mapping[str, Any], profile: Mapping[str, Any]) -> list[str]:
    tech = {item.lower() for item in job.get("tech_stack") or []}
    return [skill for skill in profile.get("skills") or [] if skill.lower() in tech]


def _links_section(profile: Mapping[str, Any]) -> str:
    links = [
        f"Portfolio: {profile['portfolio_url']}" if profile.get("portfolio_url") else None,
        f"GitHub: {profile['github_url']}" if profile.get("github_url") else None,
        f"LinkedIn: {profile['linkedin_url']}" if profile.get("linkedin_url") else None,
    ]
    return "\n".join(link for link in links if link)


def _job_title(job: Mapping[str, Any]) -> str:
    return job.get("role") or job.get("title") or ""


def _pt_br_greeting(job: Mapping[str, Any], company: str) -> str:
    if is_generic_mailbox(job.get("contact_email")):
        return f"time de recrutamento da {company}"
    return job.get("poster_username") or ""


def _signature(profile: Mapping[str, Any]) -> str:
    return f"{profile.get('name') or ''}\n{profile.get('email') or ''}"


def generate_cold_email(
    job: Mapping[str, Any],
    profile: Mapping[str, Any],
    language: str = "pt-BR",
) -> GeneratedEmail:
    """
    Generate the first email for a posting.

    Args:
        job: Job row (title, role, company, tech_stack, repo_full_name,
             poster_username, issue_url, contact_email)
        profile: Profile row (name, email, skills, highlights, experience_*,
                 portfolio/github/linkedin URLs)
        language: "pt-BR" (default) or "en"

    Returns:
        GeneratedEmail addressed to the job's contact email (may be None)
    """
    company = job.get("company") or DEFAULT_COMPANY
    title = _job_title(job)
    matching = _matching_skills(job, profile)
    highlights = profile.get("highlights") or []
    years = profile.get("experience_years") or 0
    level = profile.get("experience_level") or ""
    links = _links_section(profile)

    if language == "pt-BR":
        subject = f"Interesse na vaga: {title} - {company}"

        if highlights:
            highlights_text = "\n".join(f"- {item}" for item in highlights)
        elif matching:
            highlights_text = "\n".join(f"- Experiência com {skill}" for skill in matching[:3])
        else:
            highlights_text = f"- {years} anos de experiência como desenvolvedor(a)"

        skills_clause = f" em {', '.join(matching)}" if matching else ""
        team = "a equipe" if company == DEFAULT_COMPANY else company
        body = (
            f"Olá {_pt_br_greeting(job, company)},\n\n"
            f"Vi a vaga de {title} publicada no repositório {job.get('repo_full_name')} "
            f"({job.get('issue_url')}) e gostaria de me candidatar.\n\n"
            f"Sou {profile.get('name') or 'um desenvolvedor'}, nível {level} com {years} "
            f"anos de experiência{skills_clause}.\n\n"
            f"Destaques do meu perfil:\n{highlights_text}\n\n"
            f"{links}\n\n"
            f"Fico à disposição para conversarmos sobre como posso contribuir para {team}.\n\n"
            f"Abraço,\n{_signature(profile)}"
        )
    else:
        subject = f"Application: {title} at {company}"

        if highlights:
            highlights_text = "\n".join(f"- {item}" for item in highlights)
        elif matching:
            highlights_text = (
                f"- Proficient in {', '.join(matching[:3])}\n"
                f"- {years} years of professional experience"
            )
        else:
            highlights_text = f"- {years} years of software development experience"

        skills_clause = f" in {', '.join(matching)}" if matching else ""
        team = "your team" if company == DEFAULT_COMPANY else company
        body = (
            f"Hi {job.get('poster_username') or ''},\n\n"
            f"I came across the {title} position posted on {job.get('repo_full_name')} "
            f"({job.get('issue_url')}) and I'm very interested in applying.\n\n"
            f"I'm {profile.get('name') or 'a developer'}, a {level}-level developer with "
            f"{years} years of experience{skills_clause}.\n\n"
            f"Key highlights:\n{highlights_text}\n\n"
            f"{links}\n\n"
            f"I'd love to discuss how I can contribute to {team}.\n\n"
            f"Best regards,\n{_signature(profile)}"
        )

    return GeneratedEmail(subject=subject, body=body.strip(), to=job.get("contact_email"))


def generate_follow_up_email(
    job: Mapping[str, Any],
    profile: Mapping[str, Any],
    original_sent_date: str,
    language: str = "pt-BR",
) -> GeneratedEmail:
    company = job.get("company") or DEFAULT_COMPANY
    title = _job_title(job)

    if language == "pt-BR":
        return GeneratedEmail(
            subject=f"Re: Interesse na vaga: {title} - {company}",
            body=(
                f"Olá {_pt_br_greeting(job, company)},\n\n"
                f"Estou fazendo um acompanhamento sobre minha candidatura para a vaga de "
                f"{title} enviada em {original_sent_date}.\n\n"
                "Continuo muito interessado(a) na oportunidade e gostaria de saber se há "
                "alguma atualização sobre o processo seletivo.\n\n"
                "Fico à disposição para qualquer etapa do processo.\n\n"
                f"Abraço,\n{_signature(profile)}"
            ),
            to=job.get("contact_email"),
        )

    return GeneratedEmail(
        subject=f"Re: Application: {title} at {company}",
        body=(
            f"Hi {job.get('poster_username') or ''},\n\n"
            f"I'm following up on my application for the {title} position, sent on "
            f"{original_sent_date}.\n\n"
            "I remain very interested in this opportunity and would love to hear about any "
            "updates on the hiring process.\n\n"
            "I'm available for any stage of the interview process.\n\n"
            f"Best regards,\n{_signature(profile)}"
        ),
        to=job.get("contact_email"),
    )
