"""Builds the placeholder payload a document template is filled with.

The payload is a flat map of scalar placeholders plus one list of
string-keyed maps per repeated section. Every piece of user-entered text goes
through :func:`sanitize_text` here, which makes this module the injection
boundary: nothing a user types can later be read as a template marker.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from cv_docgen.formatting import (
    duration_months,
    format_achievements,
    format_date,
    format_duration,
    format_list,
    format_skills_by_category,
    format_skills_grid,
    present_label,
    sanitize_text,
    text_direction,
    truncate,
)
from cv_docgen.models.resume import (
    Certification,
    Education,
    Project,
    ResumeRecord,
    WorkExperience,
)
from cv_docgen.models.template import TemplateDescriptor

BRIEF_SUMMARY_LENGTH = 200

# Sub-keys exposed inside each repeated-section item
SECTION_KEYS: dict[str, tuple[str, ...]] = {
    "WORK_EXPERIENCE": (
        "JOB_TITLE", "COMPANY", "LOCATION", "START_DATE", "END_DATE", "DURATION",
        "DESCRIPTION", "ACHIEVEMENTS", "TECHNOLOGIES", "IS_CURRENT",
    ),
    "EDUCATION": (
        "DEGREE", "INSTITUTION", "LOCATION", "GRADUATION_DATE", "GPA", "HONORS",
        "RELEVANT_COURSES",
    ),
    "PROJECTS": (
        "PROJECT_NAME", "PROJECT_DESCRIPTION", "TECHNOLOGIES", "START_DATE",
        "END_DATE", "LINK", "REPOSITORY",
    ),
    "CERTIFICATIONS": (
        "CERT_NAME", "ISSUER", "DATE", "EXPIRY_DATE", "CREDENTIAL_ID", "LINK",
    ),
    "SPOKEN_LANGUAGES": ("LANGUAGE_NAME", "LANGUAGE_LEVEL"),
}


def map_to_template_payload(
    record: ResumeRecord,
    template: TemplateDescriptor | None = None,
    language: str = "en",
    now: date | None = None,
) -> dict[str, Any]:
    """Assemble the placeholder payload for ``record`` in ``language``.

    ``template`` is accepted so callers can pass the descriptor they validated
    against; the payload shape is the same for every template. ``now`` pins
    the end date of current roles for deterministic output.
    """
    info = record.personal_info
    work = record.work_experience
    summary = sanitize_text(info.summary)

    payload: dict[str, Any] = {
        # Personal information
        "FULL_NAME": sanitize_text(info.full_name),
        "NAME": sanitize_text(info.full_name),
        "EMAIL": sanitize_text(info.email),
        "PHONE": sanitize_text(info.phone),
        "LOCATION": sanitize_text(info.location),
        "LINKEDIN": sanitize_text(info.linked_in),
        "PORTFOLIO": sanitize_text(info.portfolio),
        "SUMMARY": summary,
        "BRIEF_SUMMARY": truncate(summary, BRIEF_SUMMARY_LENGTH),
        "CONTACT_INFO": " | ".join(
            v for v in (sanitize_text(info.email), sanitize_text(info.phone), sanitize_text(info.location)) if v
        ),
        # Repeated sections
        "WORK_EXPERIENCE": [_work_item(exp, language, now) for exp in work],
        "EDUCATION": [_education_item(edu, language) for edu in record.education],
        "PROJECTS": [_project_item(p, language) for p in record.projects],
        "CERTIFICATIONS": [_certification_item(c, language) for c in record.certifications],
        "SPOKEN_LANGUAGES": [
            {"LANGUAGE_NAME": sanitize_text(lang.name), "LANGUAGE_LEVEL": sanitize_text(lang.level)}
            for lang in record.languages
        ],
        # Skills
        "TECHNICAL_SKILLS": format_skills_by_category(record.skills, "technical", language),
        "SOFT_SKILLS": format_skills_by_category(record.skills, "soft", language),
        "LANGUAGES": format_skills_by_category(record.skills, "language", language),
        "SKILL_LIST": format_list(skill.name for skill in record.skills),
        "SKILLS_GRID": format_skills_grid(record.skills, language),
        # Pre-joined sections for templates that cannot iterate
        "WORK_SECTION": format_work_section(work, language, now),
        "EDUCATION_SECTION": format_education_section(record.education, language),
        "PROJECTS_SHOWCASE": format_projects_section(record.projects, language),
        "CERTIFICATIONS_SECTION": format_certifications_section(record.certifications, language),
        "LANGUAGES_SECTION": "\n".join(
            f"{sanitize_text(lang.name)} ({sanitize_text(lang.level)})" if lang.level else sanitize_text(lang.name)
            for lang in record.languages
        ),
        # Counts
        "WORK_EXPERIENCE_COUNT": len(work),
        "EDUCATION_COUNT": len(record.education),
        "SKILLS_COUNT": len(record.skills),
        "PROJECTS_COUNT": len(record.projects),
        "TOTAL_EXPERIENCE_YEARS": total_experience_years(work, now),
        # Layout
        "LANGUAGE": language,
        "TEXT_DIRECTION": text_direction(language),
    }
    return payload


def available_placeholders(payload: dict[str, Any]) -> set[str]:
    """Top-level keys plus the sub-keys of every repeated section."""
    names = set(payload)
    for section, keys in SECTION_KEYS.items():
        if section in payload:
            names.update(keys)
    return names


def total_experience_years(work: list[WorkExperience], now: date | None = None) -> int:
    """Sum of each role's duration in whole years."""
    total = 0
    for exp in work:
        end = None if exp.is_current_role else exp.end_date
        months = duration_months(exp.start_date, end, now)
        total += (months or 0) // 12
    return total


# ---------------------------------------------------------------------------
# Repeated-section items
# ---------------------------------------------------------------------------

def _end_label(exp: WorkExperience, language: str) -> str:
    if exp.is_current_role or not exp.end_date:
        return present_label(language)
    return format_date(exp.end_date, language)


def _work_item(exp: WorkExperience, language: str, now: date | None) -> dict[str, Any]:
    end = None if exp.is_current_role else exp.end_date
    return {
        "JOB_TITLE": sanitize_text(exp.job_title),
        "COMPANY": sanitize_text(exp.company),
        "LOCATION": sanitize_text(exp.location),
        "START_DATE": format_date(sanitize_text(exp.start_date), language),
        "END_DATE": _end_label(exp, language),
        "DURATION": format_duration(exp.start_date, end, language, now),
        "DESCRIPTION": sanitize_text(exp.description),
        "ACHIEVEMENTS": format_achievements(exp.achievements, language),
        "TECHNOLOGIES": format_list(exp.technologies),
        "IS_CURRENT": exp.is_current_role,
    }


def _education_item(edu: Education, language: str) -> dict[str, Any]:
    return {
        "DEGREE": sanitize_text(edu.degree),
        "INSTITUTION": sanitize_text(edu.institution),
        "LOCATION": sanitize_text(edu.location),
        "GRADUATION_DATE": format_date(sanitize_text(edu.graduation_date), language),
        "GPA": sanitize_text(edu.gpa),
        "HONORS": format_list(edu.honors),
        "RELEVANT_COURSES": format_list(edu.relevant_courses),
    }


def _project_item(project: Project, language: str) -> dict[str, Any]:
    return {
        "PROJECT_NAME": sanitize_text(project.name),
        "PROJECT_DESCRIPTION": sanitize_text(project.description),
        "TECHNOLOGIES": format_list(project.technologies),
        "START_DATE": format_date(sanitize_text(project.start_date), language),
        "END_DATE": format_date(sanitize_text(project.end_date), language),
        "LINK": sanitize_text(project.link),
        "REPOSITORY": sanitize_text(project.repository),
    }


def _certification_item(cert: Certification, language: str) -> dict[str, Any]:
    return {
        "CERT_NAME": sanitize_text(cert.name),
        "ISSUER": sanitize_text(cert.issuer),
        "DATE": format_date(sanitize_text(cert.date), language),
        "EXPIRY_DATE": format_date(sanitize_text(cert.expiry_date), language),
        "CREDENTIAL_ID": sanitize_text(cert.credential_id),
        "LINK": sanitize_text(cert.link),
    }


# ---------------------------------------------------------------------------
# Pre-joined sections
# ---------------------------------------------------------------------------

def _block(lines: list[str]) -> str:
    return "\n".join(line for line in lines if line)


def format_work_section(
    work: list[WorkExperience],
    language: str = "en",
    now: date | None = None,
) -> str:
    blocks = []
    for exp in work:
        item = _work_item(exp, language, now)
        blocks.append(_block([
            f"{item['JOB_TITLE']} | {item['COMPANY']}",
            f"{item['START_DATE']} - {item['END_DATE']} ({item['DURATION']})",
            item["LOCATION"],
            item["DESCRIPTION"],
            item["ACHIEVEMENTS"],
        ]))
    return "\n\n".join(blocks)


def format_education_section(education: list[Education], language: str = "en") -> str:
    labels = _SECTION_LABELS.get(language, _SECTION_LABELS["en"])
    blocks = []
    for edu in education:
        item = _education_item(edu, language)
        when_where = " | ".join(v for v in (item["GRADUATION_DATE"], item["LOCATION"]) if v)
        blocks.append(_block([
            f"{item['DEGREE']} | {item['INSTITUTION']}",
            when_where,
            f"{labels['gpa']}: {item['GPA']}" if item["GPA"] else "",
            f"{labels['honors']}: {item['HONORS']}" if item["HONORS"] else "",
        ]))
    return "\n\n".join(blocks)


def format_projects_section(projects: list[Project], language: str = "en") -> str:
    labels = _SECTION_LABELS.get(language, _SECTION_LABELS["en"])
    blocks = []
    for project in projects:
        item = _project_item(project, language)
        heading = item["PROJECT_NAME"]
        if item["START_DATE"]:
            heading = f"{heading} | {item['START_DATE']}"
        blocks.append(_block([
            heading,
            item["PROJECT_DESCRIPTION"],
            f"{labels['technologies']}: {item['TECHNOLOGIES']}" if item["TECHNOLOGIES"] else "",
            f"{labels['demo']}: {item['LINK']}" if item["LINK"] else "",
            f"{labels['repository']}: {item['REPOSITORY']}" if item["REPOSITORY"] else "",
        ]))
    return "\n\n".join(blocks)


def format_certifications_section(certifications: list[Certification], language: str = "en") -> str:
    lines = []
    for cert in certifications:
        item = _certification_item(cert, language)
        line = " | ".join(v for v in (item["CERT_NAME"], item["ISSUER"], item["DATE"]) if v)
        lines.append(line)
    return "\n".join(lines)


_SECTION_LABELS: dict[str, dict[str, str]] = {
    "en": {
        "gpa": "GPA",
        "honors": "Honors",
        "technologies": "Technologies",
        "demo": "Demo",
        "repository": "Repository",
    },
    "ar": {
        "gpa": "المعدل",
        "honors": "مرتبة الشرف",
        "technologies": "التقنيات",
        "demo": "العرض",
        "repository": "المستودع",
    },
}
