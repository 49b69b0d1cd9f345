"""Tests for output filename helpers."""

from cv_docgen.utils.filenames import default_filename, resolve_filename, sanitize_filename, slugify


class TestFilenames:
    def test_sanitize_strips_path_characters(self):
        assert sanitize_filename("../../etc/passwd") == "etcpasswd"

    def test_sanitize_keeps_safe_characters(self):
        assert sanitize_filename("My_CV-2024") == "My_CV-2024"

    def test_sanitize_caps_length(self):
        assert sanitize_filename("a" * 80) == "a" * 50
        assert sanitize_filename("abcdef", max_length=3) == "abc"

    def test_sanitize_empty(self):
        assert sanitize_filename(None) == ""
        assert sanitize_filename("../..") == ""

    def test_slugify(self):
        assert slugify("  Harvard Classic ") == "harvard-classic"

    def test_default_filename(self):
        assert default_filename("Modern Professional", now_ms=1700000000000) == "cv-modern-professional-1700000000000"

    def test_resolve_prefers_caller_name(self):
        assert resolve_filename("layla cv", "Harvard Classic", now_ms=1) == "laylacv"

    def test_resolve_falls_back_when_nothing_safe(self):
        assert resolve_filename("///", "Harvard Classic", now_ms=42) == "cv-harvard-classic-42"
