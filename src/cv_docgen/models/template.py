"""Template descriptor models (read-only registry metadata)."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TemplateCategory = Literal["academic", "professional", "creative", "modern"]


class PlaceholderManifest(BaseModel):
    """Named fields/sections a template expects, grouped by résumé area."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    personal_info: tuple[str, ...] = ()
    work_experience: tuple[str, ...] = ()
    education: tuple[str, ...] = ()
    skills: tuple[str, ...] = ()
    projects: tuple[str, ...] = ()
    custom: tuple[str, ...] = ()
    required: tuple[str, ...] = ()

    def all_names(self) -> list[str]:
        names: list[str] = []
        for group in (
            self.personal_info,
            self.work_experience,
            self.education,
            self.skills,
            self.projects,
            self.custom,
        ):
            for name in group:
                if name not in names:
                    names.append(name)
        return names


class TemplateMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    author: str = ""
    version: str = "1.0.0"
    last_updated: str = ""
    compatibility: tuple[str, ...] = ()


class TemplateDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    description: str = ""
    category: TemplateCategory
    file: str
    is_premium: bool = False
    supported_languages: tuple[str, ...] = ("en",)
    metadata: TemplateMetadata = Field(default_factory=TemplateMetadata)
    placeholders: PlaceholderManifest = Field(default_factory=PlaceholderManifest)

    def supports(self, language: str) -> bool:
        return language in self.supported_languages
