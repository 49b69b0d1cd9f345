"""Per-request models: generation options, validation result and artifacts."""

from __future__ import annotations

import base64
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from cv_docgen.models.resume import ResumeRecord

DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_MIME_TYPE = "application/pdf"


class OutputFormat(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    BOTH = "both"

    @property
    def wants_secondary(self) -> bool:
        return self is not OutputFormat.PRIMARY


# Wire names used by older clients
_FORMAT_ALIASES = {"docx": "primary", "pdf": "secondary"}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Customizations(_CamelModel):
    remove_empty_sections: bool = False
    max_pages: int | None = Field(default=None, ge=1)


class GenerationOptions(_CamelModel):
    template_id: str = Field(min_length=1)
    format: OutputFormat
    file_name: str | None = None
    language: str = "en"
    customizations: Customizations = Field(default_factory=Customizations)

    @field_validator("format", mode="before")
    @classmethod
    def _format_alias(cls, v: Any) -> Any:
        if isinstance(v, str):
            return _FORMAT_ALIASES.get(v.lower(), v.lower())
        return v

    @field_validator("language", mode="before")
    @classmethod
    def _language_lower(cls, v: Any) -> Any:
        if v is None:
            return "en"
        return v.strip().lower() if isinstance(v, str) else v


class GenerationRequest(_CamelModel):
    cv_data: ResumeRecord
    options: GenerationOptions


class ValidationResult(BaseModel):
    is_valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    missing_placeholders: list[str] = Field(default_factory=list)


class ArtifactFile(BaseModel):
    filename: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    def to_envelope(self) -> dict[str, Any]:
        return {
            "data": base64.b64encode(self.data).decode("ascii"),
            "filename": self.filename,
            "mimeType": self.mime_type,
            "size": self.size,
        }


class GenerationMetadata(BaseModel):
    template_used: str
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    processing_time_ms: int = 0
    conversion_method: str | None = None
    page_count: int | None = None
    warnings: list[str] = Field(default_factory=list)


class GeneratedArtifact(BaseModel):
    """Result of one generation. Owned by the request, never persisted."""

    document: ArtifactFile | None = None
    rendering: ArtifactFile | None = None
    metadata: GenerationMetadata
