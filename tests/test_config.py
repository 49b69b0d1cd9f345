"""Tests for config loading."""

import pytest

from cv_docgen.config import AppConfig, LimitsConfig, LogStoreConfig, TemplatesConfig, load_config


class TestConfig:
    def test_defaults(self):
        config = AppConfig()
        assert config.limits.max_template_bytes == 10 * 1024 * 1024
        assert config.rate_limit.max_requests == 10
        assert config.rate_limit.window_seconds == 60.0
        assert config.conversion.timeout_ms == 30_000
        assert config.output.filename_max_length == 50
        assert config.ai.base_url is None

    def test_load_config_defaults(self, tmp_path, monkeypatch):
        """Loading from non-existent path returns defaults."""
        monkeypatch.delenv("CV_DOCGEN_AI_BASE_URL", raising=False)
        config = load_config(tmp_path / "nonexistent.yaml")
        assert config.conversion.page_size == "A4"
        assert config.ai.base_url is None

    def test_load_config_from_yaml(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CV_DOCGEN_AI_BASE_URL", raising=False)
        yaml_path = tmp_path / "config.yaml"
        yaml_path.write_text(
            "rate_limit:\n  max_requests: 3\n"
            "conversion:\n  methods: [fpdf2]\n  page_size: Letter\n"
        )
        config = load_config(yaml_path)
        assert config.rate_limit.max_requests == 3
        assert config.conversion.methods == ("fpdf2",)
        assert config.conversion.page_size == "Letter"
        # Defaults for unspecified
        assert config.limits.max_request_bytes == 5 * 1024 * 1024

    def test_env_overrides_ai_base_url(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CV_DOCGEN_AI_BASE_URL", "http://ai.test")
        config = load_config(tmp_path / "nonexistent.yaml")
        assert config.ai.base_url == "http://ai.test"

    def test_log_store_resolved_path(self):
        store = LogStoreConfig(db_path="~/test.db")
        assert "~" not in str(store.resolved_db_path)

    def test_relative_templates_dir_is_under_project_root(self):
        resolved = TemplatesConfig(directory="templates").resolved_directory
        assert resolved.is_absolute()
        assert resolved.name == "templates"

    def test_frozen_config(self):
        config = LimitsConfig()
        with pytest.raises(AttributeError):
            config.max_template_bytes = 1

    def test_bundled_config_matches_defaults(self, monkeypatch):
        monkeypatch.delenv("CV_DOCGEN_AI_BASE_URL", raising=False)
        from cv_docgen.config import PROJECT_ROOT

        config = load_config(PROJECT_ROOT / "config.yaml")
        assert config.limits == AppConfig().limits
        assert config.rate_limit == AppConfig().rate_limit
