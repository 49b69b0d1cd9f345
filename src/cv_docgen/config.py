"""Application configuration loaded from config.yaml."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

# Project root (…/src/cv_docgen/config.py → repo root)
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


@dataclass(frozen=True)
class LimitsConfig:
    max_template_bytes: int = 10 * 1024 * 1024
    max_request_bytes: int = 5 * 1024 * 1024


@dataclass(frozen=True)
class RateLimitConfig:
    window_seconds: float = 60.0
    max_requests: int = 10
    sweep_interval_seconds: float = 60.0


@dataclass(frozen=True)
class ConversionConfig:
    timeout_ms: int = 30_000
    page_size: str = "A4"
    methods: tuple[str, ...] = ("libreoffice", "weasyprint", "fpdf2")
    soffice_binary: str = "soffice"


@dataclass(frozen=True)
class OutputConfig:
    filename_max_length: int = 50


@dataclass(frozen=True)
class TemplatesConfig:
    directory: str = "templates"

    @property
    def resolved_directory(self) -> Path:
        path = Path(self.directory).expanduser()
        if not path.is_absolute():
            path = PROJECT_ROOT / path
        return path


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000


@dataclass(frozen=True)
class AIServiceConfig:
    base_url: str | None = None
    timeout: float = 60.0
    max_retries: int = 3


@dataclass(frozen=True)
class LogStoreConfig:
    enabled: bool = False
    db_path: str = "~/.cv-docgen/generation.db"

    @property
    def resolved_db_path(self) -> Path:
        return Path(self.db_path).expanduser()


@dataclass(frozen=True)
class AppConfig:
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    conversion: ConversionConfig = field(default_factory=ConversionConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    templates: TemplatesConfig = field(default_factory=TemplatesConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    ai: AIServiceConfig = field(default_factory=AIServiceConfig)
    log_store: LogStoreConfig = field(default_factory=LogStoreConfig)


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from YAML file, falling back to defaults."""
    if path is None:
        candidates = [
            Path.cwd() / "config.yaml",
            PROJECT_ROOT / "config.yaml",
        ]
        for c in candidates:
            if c.exists():
                path = c
                break

    raw: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            raw = yaml.safe_load(p.read_text()) or {}

    conversion_raw = dict(raw.get("conversion", {}))
    if "methods" in conversion_raw:
        conversion_raw["methods"] = tuple(conversion_raw["methods"])

    ai_raw = dict(raw.get("ai", {}))
    env_base_url = os.getenv("CV_DOCGEN_AI_BASE_URL")
    if env_base_url:
        ai_raw["base_url"] = env_base_url

    return AppConfig(
        limits=LimitsConfig(**raw.get("limits", {})),
        rate_limit=RateLimitConfig(**raw.get("rate_limit", {})),
        conversion=ConversionConfig(**conversion_raw),
        output=OutputConfig(**raw.get("output", {})),
        templates=TemplatesConfig(**raw.get("templates", {})),
        server=ServerConfig(**raw.get("server", {})),
        ai=AIServiceConfig(**ai_raw),
        log_store=LogStoreConfig(**raw.get("log_store", {})),
    )
