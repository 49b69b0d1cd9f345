"""Generation log data models."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class GenerationLog(BaseModel):
    """Outcome of one generation request."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    client_id: str = "unknown"
    timestamp: datetime = Field(default_factory=datetime.now)
    template_id: str | None = None
    output_format: str | None = None  # "primary" | "secondary" | "both"
    language: str = "en"
    status_code: int = 200
    processing_time_ms: int = 0
    conversion_method: str | None = None
    conversion_time_ms: int | None = None
    page_count: int | None = None
    warning_count: int = 0
    success: bool = True
    error_type: str | None = None
    error_message: str | None = None
