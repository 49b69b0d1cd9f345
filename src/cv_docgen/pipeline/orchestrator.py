"""Generation pipeline orchestrator - one request from raw body to response."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from pydantic import ValidationError as PydanticValidationError

from cv_docgen.config import AppConfig
from cv_docgen.errors import (
    ConversionUnavailableError,
    FillError,
    GenerationError,
    PayloadTooLargeError,
    RateLimitError,
    TemplateNotFoundError,
    ValidationError,
)
from cv_docgen.export.converter import (
    ConversionFailure,
    ConversionOptions,
    FormatConverter,
)
from cv_docgen.formatting import text_direction
from cv_docgen.logging.models import GenerationLog
from cv_docgen.logging.usage_store import GenerationLogStore
from cv_docgen.models.generation import (
    DOCX_MIME_TYPE,
    PDF_MIME_TYPE,
    ArtifactFile,
    GeneratedArtifact,
    GenerationMetadata,
    GenerationOptions,
    GenerationRequest,
    OutputFormat,
)
from cv_docgen.models.resume import ResumeRecord
from cv_docgen.pipeline.rate_limiter import RateLimiter
from cv_docgen.templates.filler import DocumentFiller, FillOptions
from cv_docgen.templates.mapper import map_to_template_payload
from cv_docgen.templates.registry import TemplateRegistry
from cv_docgen.templates.validator import validate
from cv_docgen.utils.filenames import resolve_filename

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "An unexpected error occurred during CV generation"
CONVERSION_FAILED_WARNING = "PDF conversion failed - only Word document available"


class GenerationStage(str, Enum):
    RECEIVED = "received"
    RATE_CHECKED = "rate_checked"
    VALIDATED = "validated"
    MAPPED = "mapped"
    FILLED = "filled"
    CONVERTING = "converting"
    PACKAGED = "packaged"
    RESPONDED = "responded"
    ERRORED = "errored"


@dataclass
class GenerationResponse:
    """Transport-neutral response: raw ``content`` bytes or a JSON ``payload``."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    content: bytes | None = None
    payload: dict[str, Any] | None = None
    media_type: str | None = None
    artifact: GeneratedArtifact | None = None

    @property
    def is_json(self) -> bool:
        return self.payload is not None


@dataclass
class _RequestState:
    client_id: str
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    stage: GenerationStage = GenerationStage.RECEIVED
    options: GenerationOptions | None = None
    conversion_method: str | None = None
    conversion_time_ms: int | None = None
    page_count: int | None = None
    warnings: list[str] = field(default_factory=list)


class GenerationOrchestrator:
    """Runs validate → map → fill → convert → package for one request at a time.

    Every collaborator is injected so tests can substitute a deterministic
    clock, rate limiter, filler or converter.
    """

    def __init__(
        self,
        registry: TemplateRegistry,
        *,
        config: AppConfig | None = None,
        rate_limiter: RateLimiter | None = None,
        filler: DocumentFiller | None = None,
        converter: FormatConverter | None = None,
        log_store: GenerationLogStore | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_stage: Callable[[GenerationStage, str], None] | None = None,
    ):
        self.registry = registry
        self.config = config or AppConfig()
        self.rate_limiter = rate_limiter
        self.filler = filler or DocumentFiller()
        self.converter = converter or FormatConverter.from_config(self.config.conversion)
        self.log_store = log_store
        self._clock = clock
        self._on_stage = on_stage

    async def handle(self, raw_body: bytes | str, client_id: str = "unknown") -> GenerationResponse:
        """Process one generation request. Never raises."""
        start = self._clock()
        state = _RequestState(client_id=client_id)
        self._advance(state, GenerationStage.RECEIVED)

        try:
            response = await self._process(raw_body, state, start)
            self._advance(state, GenerationStage.RESPONDED)
        except GenerationError as exc:
            self._advance(state, GenerationStage.ERRORED, exc.error_type)
            response = self._error_response(exc, state, start)
        except Exception as exc:
            logger.exception("Unexpected failure in request %s", state.request_id)
            self._advance(state, GenerationStage.ERRORED, type(exc).__name__)
            response = self._error_response(GenerationError(GENERIC_FAILURE), state, start)

        await self._record(state, response)
        return response

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _process(self, raw_body: bytes | str, state: _RequestState, start: float) -> GenerationResponse:
        self._check_rate(state.client_id)
        self._advance(state, GenerationStage.RATE_CHECKED)

        request = self._parse_body(raw_body)
        record, options = request.cv_data, request.options
        state.options = options

        template = self.registry.get_template_by_id(options.template_id)
        if template is None:
            raise TemplateNotFoundError(f"Template not found: {options.template_id}")

        language = options.language
        if not template.supports(language):
            raise ValidationError(
                f'Template "{template.name}" doesn\'t support {language} language',
                extra={"supportedLanguages": list(template.supported_languages)},
            )

        template_path = self.registry.template_path(template)
        result = validate(
            record,
            template,
            template_path,
            max_bytes=self.config.limits.max_template_bytes,
            language=language,
        )
        state.warnings.extend(result.warnings)
        self._advance(state, GenerationStage.VALIDATED)

        payload = map_to_template_payload(record, template, language)
        self._advance(state, GenerationStage.MAPPED)

        logger.info(
            "Starting generation %s: template=%s format=%s language=%s",
            state.request_id, template.id, options.format.value, language,
        )
        direction = text_direction(language)
        fill_options = FillOptions(
            required_placeholders=template.placeholders.required,
            remove_empty_paragraphs=options.customizations.remove_empty_sections,
            right_to_left=direction == "rtl",
            max_template_bytes=self.config.limits.max_template_bytes,
        )
        template_bytes = await asyncio.to_thread(template_path.read_bytes)
        document = await asyncio.to_thread(self.filler.fill, template_bytes, payload, fill_options)
        self._advance(state, GenerationStage.FILLED)

        rendering: bytes | None = None
        if options.format.wants_secondary:
            self._advance(state, GenerationStage.CONVERTING)
            rendering = await self._convert(document, direction, options, state)

        filename = resolve_filename(
            options.file_name,
            template.name,
            max_length=self.config.output.filename_max_length,
        )
        artifact = GeneratedArtifact(
            document=ArtifactFile(filename=f"{filename}.docx", mime_type=DOCX_MIME_TYPE, data=document),
            rendering=(
                ArtifactFile(filename=f"{filename}.pdf", mime_type=PDF_MIME_TYPE, data=rendering)
                if rendering is not None else None
            ),
            metadata=GenerationMetadata(
                template_used=template.id,
                processing_time_ms=self._elapsed_ms(start),
                conversion_method=state.conversion_method,
                page_count=state.page_count,
                warnings=list(state.warnings),
            ),
        )
        self._advance(state, GenerationStage.PACKAGED)
        return self._package(artifact, options.format, start)

    def _check_rate(self, client_id: str) -> None:
        if self.rate_limiter is None:
            return
        decision = self.rate_limiter.check(client_id)
        if not decision.allowed:
            logger.info("Rate limit exceeded for %s", client_id)
            raise RateLimitError(
                "Rate limit exceeded. Please wait before making another request.",
                retry_after=decision.retry_after,
            )

    def _parse_body(self, raw_body: bytes | str) -> GenerationRequest:
        size = len(raw_body.encode("utf-8") if isinstance(raw_body, str) else raw_body)
        limit = self.config.limits.max_request_bytes
        if size > limit:
            raise PayloadTooLargeError(f"Request body too large: {size} bytes (limit {limit})")

        try:
            body = json.loads(raw_body) if raw_body else None
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ValidationError("Invalid JSON in request body") from exc

        if not isinstance(body, dict):
            raise ValidationError("Request body must be an object")
        cv_data = body.get("cvData")
        if not cv_data:
            raise ValidationError("Missing cvData in request")
        options = body.get("options")
        if not isinstance(options, dict):
            raise ValidationError("Missing or invalid options in request")
        if not options.get("templateId") or not isinstance(options.get("templateId"), str):
            raise ValidationError("templateId is required and must be a string")

        try:
            parsed_options = GenerationOptions.model_validate(options)
        except PydanticValidationError as exc:
            raise ValidationError("Invalid generation options", errors=_describe(exc, "options")) from exc
        try:
            record = ResumeRecord.model_validate(cv_data)
        except PydanticValidationError as exc:
            raise ValidationError("Invalid CV data", errors=_describe(exc, "cvData")) from exc
        return GenerationRequest(cv_data=record, options=parsed_options)

    async def _convert(
        self,
        document: bytes,
        direction: str,
        options: GenerationOptions,
        state: _RequestState,
    ) -> bytes | None:
        conversion = self.config.conversion
        result = await self.converter.convert(
            document,
            ConversionOptions(
                page_size=conversion.page_size,
                timeout_ms=conversion.timeout_ms,
                text_direction=direction,
            ),
        )
        state.conversion_time_ms = result.processing_time_ms

        if isinstance(result, ConversionFailure):
            logger.warning("PDF conversion failed for %s: %s", state.request_id, result.reason)
            if options.format is OutputFormat.SECONDARY:
                raise ConversionUnavailableError(f"PDF conversion failed: {result.reason}")
            state.warnings.append(CONVERSION_FAILED_WARNING)
            return None

        state.conversion_method = result.method
        state.page_count = result.page_count
        max_pages = options.customizations.max_pages
        if max_pages and result.page_count and result.page_count > max_pages:
            state.warnings.append(
                f"Rendering has {result.page_count} pages, more than the requested maximum of {max_pages}"
            )
        return result.buffer

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def _package(self, artifact: GeneratedArtifact, fmt: OutputFormat, start: float) -> GenerationResponse:
        elapsed = self._elapsed_ms(start)
        artifact.metadata.processing_time_ms = elapsed
        headers = {"X-Processing-Time": str(elapsed)}
        if artifact.metadata.conversion_method:
            headers["X-Conversion-Method"] = artifact.metadata.conversion_method

        if fmt is not OutputFormat.BOTH:
            file = artifact.rendering if fmt is OutputFormat.SECONDARY else artifact.document
            headers["Content-Disposition"] = f'attachment; filename="{file.filename}"'
            return GenerationResponse(
                status_code=200,
                headers=headers,
                content=file.data,
                media_type=file.mime_type,
                artifact=artifact,
            )

        files = {"docx": artifact.document.to_envelope()}
        if artifact.rendering is not None:
            files["pdf"] = artifact.rendering.to_envelope()
        metadata: dict[str, Any] = {
            "templateUsed": artifact.metadata.template_used,
            "generatedAt": artifact.metadata.generated_at.isoformat(),
            "processingTime": elapsed,
        }
        if artifact.metadata.conversion_method:
            metadata["conversionMethod"] = artifact.metadata.conversion_method
        if artifact.metadata.page_count is not None:
            metadata["pageCount"] = artifact.metadata.page_count

        payload: dict[str, Any] = {"success": True, "files": files, "metadata": metadata}
        if artifact.metadata.warnings:
            payload["warnings"] = list(artifact.metadata.warnings)
        return GenerationResponse(
            status_code=200,
            headers=headers,
            payload=payload,
            media_type="application/json",
            artifact=artifact,
        )

    def _error_response(self, exc: GenerationError, state: _RequestState, start: float) -> GenerationResponse:
        elapsed = self._elapsed_ms(start)
        headers = {"X-Processing-Time": str(elapsed)}

        if isinstance(exc, FillError):
            logger.error(
                "Template fill failed for %s: %s", state.request_id, exc.message,
                exc_info=exc.cause or exc,
            )

        if exc.status_code >= 500 and not isinstance(exc, ConversionUnavailableError):
            payload: dict[str, Any] = {
                "error": "Failed to generate CV",
                "message": GENERIC_FAILURE,
                "errorType": exc.error_type,
            }
        else:
            payload = {
                "error": exc.message,
                "errorType": exc.error_type,
                "details": "; ".join(exc.errors),
            }
        payload.update(exc.extra)

        if isinstance(exc, RateLimitError):
            payload["retryAfter"] = exc.retry_after
            headers["Retry-After"] = str(exc.retry_after)

        payload["processingTime"] = elapsed
        return GenerationResponse(
            status_code=exc.status_code,
            headers=headers,
            payload=payload,
            media_type="application/json",
        )

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _advance(self, state: _RequestState, stage: GenerationStage, detail: str = "") -> None:
        logger.debug("Request %s: %s -> %s %s", state.request_id, state.stage.value, stage.value, detail)
        state.stage = stage
        if self._on_stage:
            self._on_stage(stage, detail)

    def _elapsed_ms(self, start: float) -> int:
        return int((self._clock() - start) * 1000)

    async def _record(self, state: _RequestState, response: GenerationResponse) -> None:
        if self.log_store is None:
            return
        options = state.options
        error_type = None
        error_message = None
        if response.status_code >= 400 and response.payload:
            error_type = response.payload.get("errorType")
            error_message = response.payload.get("error")
        log = GenerationLog(
            client_id=state.client_id,
            template_id=options.template_id if options else None,
            output_format=options.format.value if options else None,
            language=options.language if options else "en",
            status_code=response.status_code,
            processing_time_ms=int(response.headers.get("X-Processing-Time", 0)),
            conversion_method=state.conversion_method,
            conversion_time_ms=state.conversion_time_ms,
            page_count=state.page_count,
            warning_count=len(state.warnings),
            success=response.status_code < 400,
            error_type=error_type,
            error_message=error_message,
        )
        try:
            await asyncio.to_thread(self.log_store.save_log, log)
        except sqlite3.Error:
            logger.warning("Failed to save generation log", exc_info=True)


def _describe(exc: PydanticValidationError, root: str) -> list[str]:
    """Flatten pydantic errors into ``path: message`` strings."""
    messages = []
    for err in exc.errors():
        path = ".".join(str(part) for part in (root, *err["loc"]))
        messages.append(f"{path}: {err['msg']}")
    return messages
