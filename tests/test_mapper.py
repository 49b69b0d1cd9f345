"""Tests for the résumé → placeholder payload mapping."""

from __future__ import annotations

from datetime import date

import pytest

from cv_docgen.models.resume import ResumeRecord
from cv_docgen.templates.mapper import (
    SECTION_KEYS,
    available_placeholders,
    format_education_section,
    format_projects_section,
    format_work_section,
    map_to_template_payload,
    total_experience_years,
)

NOW = date(2025, 3, 1)


@pytest.fixture
def payload(sample_record):
    return map_to_template_payload(sample_record, now=NOW)


class TestPersonalInfo:
    def test_scalars(self, payload):
        assert payload["FULL_NAME"] == "Layla Haddad"
        assert payload["NAME"] == "Layla Haddad"
        assert payload["EMAIL"] == "layla@example.com"
        assert payload["LINKEDIN"] == "linkedin.com/in/laylahaddad"

    def test_contact_info(self, payload):
        assert payload["CONTACT_INFO"] == "layla@example.com | +971 50 123 4567 | Dubai, UAE"

    def test_contact_info_skips_blanks(self):
        record = ResumeRecord.model_validate({"personalInfo": {"fullName": "A", "email": "a@b.co"}})
        assert map_to_template_payload(record)["CONTACT_INFO"] == "a@b.co"

    def test_brief_summary_truncated(self, sample_cv_data):
        sample_cv_data["personalInfo"]["summary"] = "x" * 500
        record = ResumeRecord.model_validate(sample_cv_data)
        brief = map_to_template_payload(record)["BRIEF_SUMMARY"]
        assert brief == "x" * 200 + "..."

    def test_markup_stripped(self, sample_cv_data):
        sample_cv_data["personalInfo"]["fullName"] = "<script>{{EMAIL}}</script>"
        record = ResumeRecord.model_validate(sample_cv_data)
        name = map_to_template_payload(record)["FULL_NAME"]
        assert "<" not in name and ">" not in name


class TestWorkExperience:
    def test_current_role(self, payload):
        current = payload["WORK_EXPERIENCE"][0]
        assert current["JOB_TITLE"] == "Senior Backend Engineer"
        assert current["START_DATE"] == "March 2021"
        assert current["END_DATE"] == "Present"
        assert current["DURATION"] == "4 years"
        assert current["IS_CURRENT"] is True
        assert current["ACHIEVEMENTS"] == "• Cut settlement latency by 40%\n• Led a team of five"
        assert current["TECHNOLOGIES"] == "Python • PostgreSQL • Kafka"

    def test_past_role(self, payload):
        past = payload["WORK_EXPERIENCE"][1]
        assert past["END_DATE"] == "February 2021"
        assert past["DURATION"] == "4 years 1 month"
        assert past["IS_CURRENT"] is False

    def test_arabic_present_label(self, sample_record):
        arabic = map_to_template_payload(sample_record, language="ar", now=NOW)
        assert arabic["WORK_EXPERIENCE"][0]["END_DATE"] == "حتى الآن"
        assert arabic["TEXT_DIRECTION"] == "rtl"
        assert arabic["LANGUAGE"] == "ar"

    def test_total_experience_years(self, sample_record):
        # 4 years (current) + 4 years 1 month (past)
        assert total_experience_years(sample_record.work_experience, NOW) == 8

    def test_counts(self, payload):
        assert payload["WORK_EXPERIENCE_COUNT"] == 2
        assert payload["EDUCATION_COUNT"] == 1
        assert payload["SKILLS_COUNT"] == 4
        assert payload["PROJECTS_COUNT"] == 1


class TestSkills:
    def test_by_category(self, payload):
        assert payload["TECHNICAL_SKILLS"] == "Python (Expert) • Kafka (Advanced)"
        assert payload["SOFT_SKILLS"] == "Mentoring (Advanced)"
        assert payload["LANGUAGES"] == "Arabic (Expert)"

    def test_skill_list(self, payload):
        assert payload["SKILL_LIST"] == "Python • Kafka • Mentoring • Arabic"

    def test_grid(self, payload):
        assert payload["SKILLS_GRID"].startswith("Technical:\nPython (Expert)")


class TestSections:
    def test_section_items_use_declared_keys(self, payload):
        for section, keys in SECTION_KEYS.items():
            for item in payload[section]:
                assert set(item) == set(keys)

    def test_work_section(self, sample_record):
        text = format_work_section(sample_record.work_experience[1:], now=NOW)
        assert text.splitlines()[:3] == [
            "Software Engineer | Shop Inc",
            "January 2017 - February 2021 (4 years 1 month)",
            "Amman",
        ]
        assert text.endswith("• Launched one-click checkout")

    def test_work_section_blocks_separated(self, payload):
        assert payload["WORK_SECTION"].count("\n\n") == 1

    def test_education_section(self, sample_record):
        assert format_education_section(sample_record.education) == (
            "BSc Computer Science | University of Jordan\n"
            "June 2016 | Amman\n"
            "GPA: 3.7/4.0\n"
            "Honors: Dean's List"
        )

    def test_education_section_arabic_labels(self, sample_record):
        assert "المعدل: 3.7/4.0" in format_education_section(sample_record.education, "ar")

    def test_projects_section(self, sample_record):
        text = format_projects_section(sample_record.projects)
        assert text.splitlines() == [
            "ledgerlite | May 2022",
            "Double-entry ledger library.",
            "Technologies: Python",
            "Repository: https://github.com/layla/ledgerlite",
        ]

    def test_certifications_and_languages(self, payload):
        assert payload["CERTIFICATIONS_SECTION"] == "AWS Solutions Architect | Amazon | April 2023"
        assert payload["LANGUAGES_SECTION"] == "Arabic (Native)\nEnglish (Fluent)"

    def test_empty_record(self):
        record = ResumeRecord.model_validate({"personalInfo": {"fullName": "A", "email": "a@b.co"}})
        payload = map_to_template_payload(record)
        assert payload["WORK_EXPERIENCE"] == []
        assert payload["WORK_SECTION"] == ""
        assert payload["TOTAL_EXPERIENCE_YEARS"] == 0


class TestAvailablePlaceholders:
    def test_includes_section_sub_keys(self, payload):
        names = available_placeholders(payload)
        assert {"FULL_NAME", "WORK_EXPERIENCE", "JOB_TITLE", "CERT_NAME", "LANGUAGE_LEVEL"} <= names
