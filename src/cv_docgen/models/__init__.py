"""Data models for the document generation pipeline."""

from cv_docgen.models.generation import (
    ArtifactFile,
    Customizations,
    GeneratedArtifact,
    GenerationMetadata,
    GenerationOptions,
    GenerationRequest,
    OutputFormat,
    ValidationResult,
)
from cv_docgen.models.resume import (
    Certification,
    Education,
    PersonalInfo,
    Project,
    ResumeRecord,
    Skill,
    SpokenLanguage,
    WorkExperience,
)
from cv_docgen.models.template import (
    PlaceholderManifest,
    TemplateDescriptor,
    TemplateMetadata,
)

__all__ = [
    "ArtifactFile",
    "Certification",
    "Customizations",
    "Education",
    "GeneratedArtifact",
    "GenerationMetadata",
    "GenerationOptions",
    "GenerationRequest",
    "OutputFormat",
    "PersonalInfo",
    "PlaceholderManifest",
    "Project",
    "ResumeRecord",
    "Skill",
    "SpokenLanguage",
    "TemplateDescriptor",
    "TemplateMetadata",
    "ValidationResult",
    "WorkExperience",
]
