"""Pre-fill checks on a résumé record against its chosen template.

All problems are collected before anything is raised, so the caller sees the
complete defect list in one response.
"""

from __future__ import annotations

import logging
from pathlib import Path

from cv_docgen.config import LimitsConfig
from cv_docgen.errors import (
    GenerationError,
    TemplateNotFoundError,
    TemplateTooLargeError,
    ValidationError,
)
from cv_docgen.models.generation import ValidationResult
from cv_docgen.models.resume import ResumeRecord
from cv_docgen.models.template import TemplateDescriptor
from cv_docgen.templates.mapper import available_placeholders, map_to_template_payload

logger = logging.getLogger(__name__)

DEFAULT_MAX_TEMPLATE_BYTES = LimitsConfig().max_template_bytes


def _check_template_file(path: Path, max_bytes: int, errors: list[str]) -> type[GenerationError] | None:
    if not path.is_file():
        errors.append(f"Template file not found: {path.name}")
        return TemplateNotFoundError
    size = path.stat().st_size
    if size > max_bytes:
        errors.append(f"Template file too large: {size} bytes (limit {max_bytes})")
        return TemplateTooLargeError
    return None


def validate(
    record: ResumeRecord,
    template: TemplateDescriptor,
    template_path: str | Path,
    max_bytes: int = DEFAULT_MAX_TEMPLATE_BYTES,
    language: str = "en",
) -> ValidationResult:
    """Validate ``record`` for generation with ``template``.

    Raises the most specific :class:`GenerationError` (not found, then too
    large, then plain validation) carrying every error found. Returns a
    :class:`ValidationResult` with warnings when generation may proceed.
    """
    errors: list[str] = []
    warnings: list[str] = []

    error_cls = _check_template_file(Path(template_path), max_bytes, errors)

    info = record.personal_info
    if not (info.full_name or "").strip():
        errors.append("personalInfo.fullName is required")
    if not (info.email or "").strip():
        errors.append("personalInfo.email is required")

    if not record.work_experience:
        warnings.append("No work experience provided; the document may look sparse")
    if not record.skills:
        warnings.append("No skills provided; the document may look sparse")

    produced = available_placeholders(map_to_template_payload(record, template, language))
    missing = [name for name in template.placeholders.all_names() if name not in produced]
    if missing:
        warnings.append(f"Template expects placeholders that are not provided: {', '.join(missing)}")

    if errors:
        cls = error_cls or ValidationError
        logger.info("Validation failed for template %s: %s", template.id, "; ".join(errors))
        raise cls("; ".join(errors), errors=errors)

    return ValidationResult(
        is_valid=True,
        errors=[],
        warnings=warnings,
        missing_placeholders=missing,
    )
