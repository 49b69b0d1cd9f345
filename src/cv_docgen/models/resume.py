"""Pydantic models for the structured résumé record.

Field names are snake_case in Python and camelCase on the wire; both spellings
are accepted on input.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

SkillCategory = Literal["technical", "soft", "language"]
SkillLevel = Literal["beginner", "intermediate", "advanced", "expert"]

SKILL_CATEGORIES: tuple[str, ...] = ("technical", "soft", "language")
SKILL_LEVELS: tuple[str, ...] = ("beginner", "intermediate", "advanced", "expert")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_URL_RE = re.compile(r"^https?://.+\..+")
_GPA_RE = re.compile(r"^\d+(\.\d+)?(/\d+(\.\d+)?)?$")
_YEAR_RE = re.compile(r"\d{4}")


def _first_year(value: str | None) -> int | None:
    if not value:
        return None
    match = _YEAR_RE.search(value)
    return int(match.group(0)) if match else None


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class PersonalInfo(_CamelModel):
    full_name: str = Field(max_length=100)
    email: str
    phone: str = ""
    location: str = Field(default="", max_length=100)
    linked_in: str | None = Field(default=None, alias="linkedIn")
    portfolio: str | None = None
    summary: str = Field(default="", max_length=2000)

    @field_validator("full_name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("fullName is required")
        return v

    @field_validator("email")
    @classmethod
    def _email_format(cls, v: str) -> str:
        if not v:
            raise ValueError("email is required")
        if not _EMAIL_RE.match(v):
            raise ValueError("email must be a valid email address")
        return v

    @field_validator("portfolio")
    @classmethod
    def _portfolio_url(cls, v: str | None) -> str | None:
        if v and not _URL_RE.match(v):
            raise ValueError("portfolio must be an http(s) URL")
        return v or None


class WorkExperience(_CamelModel):
    id: str
    job_title: str = Field(max_length=100)
    company: str = Field(max_length=100)
    location: str = Field(default="", max_length=100)
    start_date: str = Field(min_length=1)
    end_date: str | None = None
    is_current_role: bool = False
    description: str = Field(default="", max_length=1000)
    achievements: list[str] = Field(default_factory=list)
    technologies: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_end_date(self) -> WorkExperience:
        if self.is_current_role:
            return self
        if not self.end_date:
            raise ValueError("endDate is required for past roles")
        start_year = _first_year(self.start_date)
        end_year = _first_year(self.end_date)
        if start_year is not None and end_year is not None and end_year < start_year:
            raise ValueError("endDate must not be before startDate")
        return self


class Education(_CamelModel):
    id: str
    degree: str = Field(max_length=150)
    institution: str = Field(max_length=150)
    location: str = Field(default="", max_length=100)
    graduation_date: str = ""
    gpa: str | None = None
    honors: list[str] = Field(default_factory=list)
    relevant_courses: list[str] = Field(default_factory=list)

    @field_validator("gpa")
    @classmethod
    def _gpa_format(cls, v: str | None) -> str | None:
        if v and not _GPA_RE.match(v):
            raise ValueError("gpa must look like '3.8' or '3.8/4.0'")
        return v or None


class Skill(_CamelModel):
    id: str
    name: str = Field(min_length=1, max_length=50)
    category: SkillCategory
    level: SkillLevel


class Project(_CamelModel):
    id: str
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=1000)
    technologies: list[str] = Field(default_factory=list, max_length=20)
    start_date: str | None = None
    end_date: str | None = None
    link: str | None = None
    repository: str | None = None

    @field_validator("link", "repository")
    @classmethod
    def _url_format(cls, v: str | None) -> str | None:
        if v and not _URL_RE.match(v):
            raise ValueError("must be an http(s) URL")
        return v or None


class Certification(_CamelModel):
    id: str
    name: str
    issuer: str = ""
    date: str = ""
    expiry_date: str | None = None
    credential_id: str | None = None
    link: str | None = None


class SpokenLanguage(_CamelModel):
    id: str
    name: str
    level: str = ""


class ResumeRecord(_CamelModel):
    """Root aggregate for one résumé."""

    id: str = ""
    personal_info: PersonalInfo
    work_experience: list[WorkExperience] = Field(default_factory=list)
    education: list[Education] = Field(default_factory=list)
    skills: list[Skill] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    certifications: list[Certification] = Field(default_factory=list)
    languages: list[SpokenLanguage] = Field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None

    @model_validator(mode="after")
    def _unique_ids(self) -> ResumeRecord:
        lists = {
            "workExperience": self.work_experience,
            "education": self.education,
            "skills": self.skills,
            "projects": self.projects,
            "certifications": self.certifications,
            "languages": self.languages,
        }
        problems = []
        for label, items in lists.items():
            dupes = sorted(i for i, n in Counter(item.id for item in items).items() if n > 1)
            if dupes:
                problems.append(f"{label} has duplicate ids: {', '.join(dupes)}")
        if problems:
            raise ValueError("; ".join(problems))
        return self
