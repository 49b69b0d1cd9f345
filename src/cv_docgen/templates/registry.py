"""Template registry backed by YAML descriptors in the templates directory.

Each ``<id>.yaml`` file describes one document template; the binary ``.docx``
it points at lives next to it (``file`` is relative to the templates dir).
The registry is loaded once and is read-only afterwards.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError as PydanticValidationError

from cv_docgen.config import PROJECT_ROOT
from cv_docgen.models.template import TemplateDescriptor

logger = logging.getLogger(__name__)

TEMPLATES_DIR = PROJECT_ROOT / "templates"

# Preferred template order per industry when recommending
_INDUSTRY_ORDER: dict[str, tuple[str, ...]] = {
    "technology": ("modern-professional", "minimalist-clean", "harvard-classic"),
    "software": ("modern-professional", "minimalist-clean", "harvard-classic"),
    "creative": ("creative-portfolio", "modern-professional", "minimalist-clean"),
    "design": ("creative-portfolio", "modern-professional", "minimalist-clean"),
    "academic": ("harvard-classic", "minimalist-clean", "modern-professional"),
    "research": ("harvard-classic", "minimalist-clean", "modern-professional"),
}


def load_descriptor(path: str | Path) -> TemplateDescriptor:
    """Load a single template descriptor from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Template descriptor not found: {path}")
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    data.setdefault("id", path.stem)
    return TemplateDescriptor(**data)


class TemplateRegistry:
    """In-memory lookup of :class:`TemplateDescriptor` objects by id."""

    def __init__(
        self,
        templates: list[TemplateDescriptor] | None = None,
        base_dir: str | Path = TEMPLATES_DIR,
    ):
        self.base_dir = Path(base_dir)
        self._templates: dict[str, TemplateDescriptor] = {}
        for template in templates or []:
            self._templates[template.id] = template

    @classmethod
    def from_directory(cls, directory: str | Path = TEMPLATES_DIR) -> TemplateRegistry:
        """Load every ``*.yaml`` descriptor in ``directory``.

        Malformed descriptors are logged and skipped so one bad file does not
        take the whole registry down.
        """
        directory = Path(directory)
        templates: list[TemplateDescriptor] = []
        for path in sorted(directory.glob("*.yaml")):
            try:
                templates.append(load_descriptor(path))
            except (yaml.YAMLError, PydanticValidationError, TypeError) as exc:
                logger.error("Skipping invalid template descriptor %s: %s", path.name, exc)
        logger.debug("Loaded %d templates from %s", len(templates), directory)
        return cls(templates, base_dir=directory)

    def __len__(self) -> int:
        return len(self._templates)

    def __contains__(self, template_id: str) -> bool:
        return template_id in self._templates

    def get_template_by_id(self, template_id: str) -> TemplateDescriptor | None:
        return self._templates.get(template_id)

    def template_path(self, template: TemplateDescriptor) -> Path:
        """Absolute path to the template's binary file."""
        return self.base_dir / template.file.lstrip("/")

    def list_templates(self) -> list[TemplateDescriptor]:
        return list(self._templates.values())

    def get_templates_by_category(self, category: str) -> list[TemplateDescriptor]:
        return [t for t in self._templates.values() if t.category == category]

    def get_free_templates(self) -> list[TemplateDescriptor]:
        return [t for t in self._templates.values() if not t.is_premium]

    def get_premium_templates(self) -> list[TemplateDescriptor]:
        return [t for t in self._templates.values() if t.is_premium]

    def get_templates_by_language(self, language: str) -> list[TemplateDescriptor]:
        return [t for t in self._templates.values() if t.supports(language)]

    def find_templates(
        self,
        *,
        category: str | None = None,
        language: str | None = None,
        premium: bool | None = None,
    ) -> list[TemplateDescriptor]:
        """Templates matching every given filter, in registry order."""
        selections = []
        if category:
            selections.append(self.get_templates_by_category(category))
        if language:
            selections.append(self.get_templates_by_language(language))
        if premium is not None:
            selections.append(self.get_premium_templates() if premium else self.get_free_templates())

        templates = self.list_templates()
        for selection in selections:
            ids = {t.id for t in selection}
            templates = [t for t in templates if t.id in ids]
        return templates

    def validate_template_compatibility(
        self,
        template_id: str,
        *,
        language: str | None = None,
        is_premium_user: bool = False,
    ) -> tuple[bool, list[str]]:
        """Check whether a user may generate with ``template_id``.

        Returns ``(compatible, reasons)``.
        """
        template = self.get_template_by_id(template_id)
        if template is None:
            return False, ["Template not found"]

        reasons: list[str] = []
        if template.is_premium and not is_premium_user:
            reasons.append("Premium template requires premium subscription")
        if language and not template.supports(language):
            reasons.append(f"Template doesn't support {language} language")
        return not reasons, reasons

    def get_recommended_templates(
        self,
        *,
        industry: str | None = None,
        is_premium_user: bool = False,
        limit: int = 4,
    ) -> list[TemplateDescriptor]:
        recommendations = self.list_templates()
        if not is_premium_user:
            recommendations = [t for t in recommendations if not t.is_premium]

        order = _INDUSTRY_ORDER.get((industry or "").lower())
        if order:
            rank = {template_id: i for i, template_id in enumerate(order)}
            recommendations.sort(key=lambda t: rank.get(t.id, len(order)))

        return recommendations[:limit]
