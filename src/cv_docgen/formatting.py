"""Locale- and direction-aware display formatting for résumé fields.

Every function here is total: malformed input degrades to the raw (trimmed)
string or an empty string, it never raises.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Iterable, Sequence

from dateutil import parser as dateutil_parser

from cv_docgen.models.resume import SKILL_CATEGORIES, Skill

LIST_SEPARATOR = " • "
BULLET = "•"

RTL_LANGUAGES = frozenset({"ar", "he", "fa", "ur"})

MONTH_NAMES: dict[str, tuple[str, ...]] = {
    "en": (
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ),
    "ar": (
        "يناير", "فبراير", "مارس", "أبريل", "مايو", "يونيو",
        "يوليو", "أغسطس", "سبتمبر", "أكتوبر", "نوفمبر", "ديسمبر",
    ),
}

SKILL_LEVEL_LABELS: dict[str, dict[str, str]] = {
    "ar": {
        "beginner": "مبتدئ",
        "intermediate": "متوسط",
        "advanced": "متقدم",
        "expert": "خبير",
    },
}

CATEGORY_LABELS: dict[str, dict[str, str]] = {
    "en": {"technical": "Technical", "soft": "Soft", "language": "Language"},
    "ar": {
        "technical": "المهارات التقنية",
        "soft": "المهارات الشخصية",
        "language": "اللغات",
    },
}

PRESENT_LABELS = {"en": "Present", "ar": "حتى الآن"}

_MONTH_YEAR_RE = re.compile(r"^(\d{1,2})/(\d{4})$")
_YEAR_MONTH_RE = re.compile(r"^(\d{4})-(\d{1,2})$")
_YEAR_RE = re.compile(r"^\d{4}$")
_HAS_YEAR_RE = re.compile(r"(?<!\d)\d{4}(?!\d)")
_WHITESPACE_RE = re.compile(r"\s+")
_ANGLE_RE = re.compile(r"[<>]")

# Fills in missing day/month when a loose date omits them
_DEFAULT_DATE = datetime(2000, 1, 1)


def sanitize_text(text: str | None) -> str:
    """Strip angle brackets, collapse whitespace runs and trim."""
    if not text:
        return ""
    text = _ANGLE_RE.sub("", str(text))
    return _WHITESPACE_RE.sub(" ", text).strip()


def text_direction(language: str) -> str:
    return "rtl" if language in RTL_LANGUAGES else "ltr"


def present_label(language: str) -> str:
    return PRESENT_LABELS.get(language, PRESENT_LABELS["en"])


def parse_loose_date(value: str | None) -> date | None:
    """Parse 'January 2023', '2023', '01/2023', '2023-01' and ISO dates.

    Input without a four-digit year is unparseable; no year is assumed.
    """
    if not value:
        return None
    value = value.strip()
    try:
        m = _MONTH_YEAR_RE.match(value)
        if m:
            return date(int(m.group(2)), int(m.group(1)), 1)
        m = _YEAR_MONTH_RE.match(value)
        if m:
            return date(int(m.group(1)), int(m.group(2)), 1)
        if _YEAR_RE.match(value):
            return date(int(value), 1, 1)
        if not _HAS_YEAR_RE.search(value):
            return None
        return dateutil_parser.parse(value, default=_DEFAULT_DATE).date()
    except (ValueError, OverflowError, TypeError):
        return None


def format_date(value: str | None, language: str = "en") -> str:
    """Render a loose date as '<long month> <year>'.

    Returns the original string when it cannot be parsed.
    """
    if not value:
        return ""
    parsed = parse_loose_date(value)
    if parsed is None:
        return value
    months = MONTH_NAMES.get(language, MONTH_NAMES["en"])
    return f"{months[parsed.month - 1]} {parsed.year}"


def duration_months(
    start: str | None,
    end: str | None = None,
    now: date | None = None,
) -> int | None:
    """Whole months between two loose dates; ``end`` defaults to ``now``."""
    start_date = parse_loose_date(start)
    if start_date is None:
        return None
    end_date = parse_loose_date(end) if end else None
    if end_date is None:
        end_date = now or date.today()
    months = (end_date.year - start_date.year) * 12 + (end_date.month - start_date.month)
    return max(months, 0)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


def format_duration(
    start: str | None,
    end: str | None = None,
    language: str = "en",
    now: date | None = None,
) -> str:
    """Localized 'X years Y months' between ``start`` and ``end`` (or now)."""
    months = duration_months(start, end, now)
    if months is None:
        return ""
    years, remainder = divmod(months, 12)

    if language == "ar":
        if years and remainder:
            return f"{years} سنة {remainder} شهر"
        if years:
            return f"{years} سنة"
        return f"{remainder} شهر"

    if years and remainder:
        return f"{_plural(years, 'year')} {_plural(remainder, 'month')}"
    if years:
        return _plural(years, "year")
    return _plural(remainder, "month")


def format_list(items: Iterable[str | None] | None) -> str:
    if not items:
        return ""
    return LIST_SEPARATOR.join(sanitize_text(i) for i in items if i and sanitize_text(i))


def format_achievements(achievements: Sequence[str] | None, language: str = "en") -> str:
    """One bullet line per achievement."""
    if not achievements:
        return ""
    lines = [sanitize_text(a) for a in achievements]
    return "\n".join(f"{BULLET} {line}" for line in lines if line)


def translate_skill_level(level: str, language: str = "en") -> str:
    labels = SKILL_LEVEL_LABELS.get(language)
    if labels:
        return labels.get(level, level)
    return level[:1].upper() + level[1:]


def category_label(category: str, language: str = "en") -> str:
    labels = CATEGORY_LABELS.get(language, CATEGORY_LABELS["en"])
    return labels.get(category, category[:1].upper() + category[1:])


def format_skills_by_category(
    skills: Sequence[Skill],
    category: str,
    language: str = "en",
) -> str:
    """'Name (Level)' for each skill in ``category``, joined by the list separator."""
    return LIST_SEPARATOR.join(
        f"{sanitize_text(skill.name)} ({translate_skill_level(skill.level, language)})"
        for skill in skills
        if skill.category == category
    )


def format_skills_grid(skills: Sequence[Skill], language: str = "en") -> str:
    """Skills grouped under localized category headers, one block per category."""
    blocks = []
    for category in SKILL_CATEGORIES:
        line = format_skills_by_category(skills, category, language)
        if line:
            blocks.append(f"{category_label(category, language)}:\n{line}")
    return "\n\n".join(blocks)


def truncate(text: str | None, length: int = 100) -> str:
    if not text:
        return ""
    text = str(text)
    try:
        length = int(length)
    except (TypeError, ValueError):
        return text
    if length < 0 or len(text) <= length:
        return text
    return text[:length] + "..."
