"""Shared test fixtures."""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest
from docx import Document

from cv_docgen.config import PROJECT_ROOT, AppConfig
from cv_docgen.models.resume import ResumeRecord
from cv_docgen.models.template import PlaceholderManifest, TemplateDescriptor
from cv_docgen.templates.registry import TemplateRegistry

TEMPLATES_DIR = PROJECT_ROOT / "templates"


def build_docx(texts: list[str], table: list[list[str]] | None = None) -> bytes:
    """Create a DOCX in memory with one paragraph per text (and an optional table)."""
    doc = Document()
    for text in texts:
        doc.add_paragraph(text)
    if table:
        tbl = doc.add_table(rows=len(table), cols=len(table[0]))
        for r, row in enumerate(table):
            for c, text in enumerate(row):
                tbl.cell(r, c).text = text
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


def docx_texts(data: bytes) -> list[str]:
    """Body paragraph texts of a DOCX buffer."""
    return [p.text for p in Document(io.BytesIO(data)).paragraphs]


@pytest.fixture
def sample_cv_data() -> dict:
    """Résumé in wire (camelCase) form."""
    return {
        "id": "cv-1",
        "personalInfo": {
            "fullName": "Layla Haddad",
            "email": "layla@example.com",
            "phone": "+971 50 123 4567",
            "location": "Dubai, UAE",
            "linkedIn": "linkedin.com/in/laylahaddad",
            "portfolio": "https://layla.dev",
            "summary": "Backend engineer with eight years of experience building payment systems.",
        },
        "workExperience": [
            {
                "id": "w1",
                "jobTitle": "Senior Backend Engineer",
                "company": "Fintech Co",
                "location": "Dubai",
                "startDate": "2021-03",
                "isCurrentRole": True,
                "description": "Own the settlement platform.",
                "achievements": ["Cut settlement latency by 40%", "Led a team of five"],
                "technologies": ["Python", "PostgreSQL", "Kafka"],
            },
            {
                "id": "w2",
                "jobTitle": "Software Engineer",
                "company": "Shop Inc",
                "location": "Amman",
                "startDate": "2017-01",
                "endDate": "2021-02",
                "description": "Built the checkout service.",
                "achievements": ["Launched one-click checkout"],
                "technologies": ["Django"],
            },
        ],
        "education": [
            {
                "id": "e1",
                "degree": "BSc Computer Science",
                "institution": "University of Jordan",
                "location": "Amman",
                "graduationDate": "2016-06",
                "gpa": "3.7/4.0",
                "honors": ["Dean's List"],
            },
        ],
        "skills": [
            {"id": "s1", "name": "Python", "category": "technical", "level": "expert"},
            {"id": "s2", "name": "Kafka", "category": "technical", "level": "advanced"},
            {"id": "s3", "name": "Mentoring", "category": "soft", "level": "advanced"},
            {"id": "s4", "name": "Arabic", "category": "language", "level": "expert"},
        ],
        "projects": [
            {
                "id": "p1",
                "name": "ledgerlite",
                "description": "Double-entry ledger library.",
                "technologies": ["Python"],
                "startDate": "2022-05",
                "repository": "https://github.com/layla/ledgerlite",
            },
        ],
        "certifications": [
            {"id": "c1", "name": "AWS Solutions Architect", "issuer": "Amazon", "date": "2023-04"},
        ],
        "languages": [
            {"id": "l1", "name": "Arabic", "level": "Native"},
            {"id": "l2", "name": "English", "level": "Fluent"},
        ],
    }


@pytest.fixture
def sample_record(sample_cv_data) -> ResumeRecord:
    return ResumeRecord.model_validate(sample_cv_data)


@pytest.fixture
def request_body(sample_cv_data):
    """Factory for a JSON request body with option overrides."""

    def _make(**options) -> bytes:
        opts = {"templateId": "harvard-classic", "format": "primary", "language": "en"}
        opts.update(options)
        return json.dumps({"cvData": sample_cv_data, "options": opts}).encode("utf-8")

    return _make


@pytest.fixture
def template_dir(tmp_path) -> Path:
    """A templates directory with one small descriptor and its DOCX."""
    word = tmp_path / "word"
    word.mkdir()
    (word / "simple.docx").write_bytes(
        build_docx([
            "{{FULL_NAME}}",
            "{{EMAIL}}",
            "{{#WORK_EXPERIENCE}}",
            "{{JOB_TITLE}} at {{COMPANY}}",
            "{{/WORK_EXPERIENCE}}",
        ])
    )
    (tmp_path / "simple.yaml").write_text(
        "name: Simple\n"
        "category: modern\n"
        "file: word/simple.docx\n"
        "supported_languages: [en, ar]\n"
        "placeholders:\n"
        "  personal_info: [FULL_NAME, EMAIL]\n"
        "  required: [FULL_NAME]\n",
        encoding="utf-8",
    )
    return tmp_path


@pytest.fixture
def simple_registry(template_dir) -> TemplateRegistry:
    return TemplateRegistry.from_directory(template_dir)


@pytest.fixture
def bundled_registry() -> TemplateRegistry:
    return TemplateRegistry.from_directory(TEMPLATES_DIR)


@pytest.fixture
def simple_template() -> TemplateDescriptor:
    return TemplateDescriptor(
        id="simple",
        name="Simple",
        category="modern",
        file="word/simple.docx",
        supported_languages=("en", "ar"),
        placeholders=PlaceholderManifest(personal_info=("FULL_NAME", "EMAIL"), required=("FULL_NAME",)),
    )


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig()
