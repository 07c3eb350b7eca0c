"""Request bodies for the HTTP API (camelCase on the wire)."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ProfileUpdate(ApiModel):
    name: str = ""
    email: str = ""
    phone: Optional[str] = None
    linkedin_url: Optional[str] = Field(default=None, alias="linkedinUrl")
    github_url: Optional[str] = Field(default=None, alias="githubUrl")
    portfolio_url: Optional[str] = Field(default=None, alias="portfolioUrl")
    resume_url: Optional[str] = Field(default=None, alias="resumeUrl")
    skills: list[str] = Field(default_factory=list)
    experience_years: int = Field(default=0, alias="experienceYears", ge=0)
    experience_level: str = Field(default="Pleno", alias="experienceLevel")
    preferred_contract_types: list[str] = Field(
        default_factory=lambda: ["CLT", "PJ"], alias="preferredContractTypes"
    )
    preferred_locations: list[str] = Field(default_factory=list, alias="preferredLocations")
    prefer_remote: bool = Field(default=True, alias="preferRemote")
    min_salary: Optional[float] = Field(default=None, alias="minSalary")
    max_salary: Optional[float] = Field(default=None, alias="maxSalary")
    bio: Optional[str] = None
    highlights: list[str] = Field(default_factory=list)


class RevealRequest(ApiModel):
    job_id: str = Field(alias="jobId", min_length=1)


class DraftRequest(ApiModel):
    job_id: str = Field(alias="jobId", min_length=1)
    language: str = "pt-BR"


class OutreachUpdate(ApiModel):
    id: str = Field(min_length=1)
    status: Optional[str] = None
    notes: Optional[str] = None
    email_subject: Optional[str] = Field(default=None, alias="emailSubject")
    email_body: Optional[str] = Field(default=None, alias="emailBody")


class SendRequest(ApiModel):
    id: str = Field(min_length=1)
    to_email: Optional[str] = Field(default=None, alias="toEmail")
    email_subject: Optional[str] = Field(default=None, alias="emailSubject")
    email_body: Optional[str] = Field(default=None, alias="emailBody")


class SystemSyncRequest(ApiModel):
    source_id: Optional[str] = Field(default=None, alias="sourceId")
    source_full_name: Optional[str] = Field(default=None, alias="sourceFullName")
    reparse_existing: bool = Field(default=False, alias="reparseExisting")
    run_discovery: bool = Field(default=True, alias="runDiscovery")


class ReconcileRequest(ApiModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    max_users: Any = Field(default=None, alias="maxUsers")


class JobStatusUpdate(ApiModel):
    id: Optional[str] = None
    outreach_status: Optional[str] = Field(default=None, alias="outreachStatus")


class SyncRequest(ApiModel):
    source_id: Optional[str] = Field(default=None, alias="sourceId")
    source_full_name: Optional[str] = Field(default=None, alias="sourceFullName")
    reparse_existing: bool = Field(default=False, alias="reparseExisting")
    run_discovery: bool = Field(default=True, alias="runDiscovery")


class ContactCreate(ApiModel):
    email: Optional[str] = None
    name: Optional[str] = None
    company: Optional[str] = None
    position: Optional[str] = None
    status: Optional[str] = None
    notes: Optional[str] = None
    source_ref: Optional[str] = Field(default=None, alias="sourceRef")
    job_id: Optional[str] = Field(default=None, alias="jobId")


class ContactUpdate(ApiModel):
    name: Optional[str] = None
    company: Optional[str] = None
    position: Optional[str] = None
    status: Optional[str] = None
    notes: Optional[str] = None


class TemplateCreate(ApiModel):
    name: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    language: Optional[str] = None
    subject: Optional[str] = None
    subject_variants: Optional[list[str]] = Field(default=None, alias="subjectVariants")
    body: Optional[str] = None


class TemplateUpdate(ApiModel):
    name: Optional[str] = None
    description: Optional[str] = None
    subject: Optional[str] = None
    subject_variants: Optional[list[str]] = Field(default=None, alias="subjectVariants")
    body: Optional[str] = None
