"""FastAPI application for document generation."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from cv_docgen.clients.ai_client import AIServiceClient, AIServiceError
from cv_docgen.config import AppConfig, load_config
from cv_docgen.export.converter import FormatConverter
from cv_docgen.logging.usage_store import GenerationLogStore
from cv_docgen.models.template import TemplateDescriptor
from cv_docgen.pipeline.orchestrator import GenerationOrchestrator, GenerationResponse
from cv_docgen.pipeline.rate_limiter import RateLimiter
from cv_docgen.templates.registry import TemplateRegistry

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

try:
    __version__ = version("cv-docgen")
except PackageNotFoundError:
    __version__ = "0.0.0"

router = APIRouter()


def client_identifier(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def to_http_response(result: GenerationResponse) -> Response:
    if result.is_json:
        return JSONResponse(result.payload, status_code=result.status_code, headers=result.headers)
    return Response(
        content=result.content,
        status_code=result.status_code,
        headers=result.headers,
        media_type=result.media_type,
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post("/generate")
async def generate(request: Request) -> Response:
    orchestrator: GenerationOrchestrator = request.app.state.orchestrator
    body = await request.body()
    result = await orchestrator.handle(body, client_identifier(request))
    return to_http_response(result)


@router.get("/health")
async def health(request: Request) -> dict:
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
        "version": __version__,
    }


@router.get("/templates")
async def list_templates(
    request: Request,
    category: str | None = None,
    language: str | None = None,
    premium: bool | None = None,
) -> dict:
    registry: TemplateRegistry = request.app.state.registry
    templates = registry.find_templates(category=category, language=language, premium=premium)
    return _template_listing(templates)


@router.get("/templates/recommended")
async def recommended_templates(
    request: Request,
    industry: str | None = None,
    premium_user: bool = Query(False, alias="premiumUser"),
    limit: int = Query(4, ge=1, le=20),
) -> dict:
    registry: TemplateRegistry = request.app.state.registry
    templates = registry.get_recommended_templates(industry=industry, is_premium_user=premium_user, limit=limit)
    return _template_listing(templates)


@router.get("/templates/{template_id}/compatibility")
async def template_compatibility(
    request: Request,
    template_id: str,
    language: str | None = None,
    premium_user: bool = Query(False, alias="premiumUser"),
) -> JSONResponse:
    registry: TemplateRegistry = request.app.state.registry
    compatible, reasons = registry.validate_template_compatibility(
        template_id, language=language, is_premium_user=premium_user,
    )
    return JSONResponse(
        {"templateId": template_id, "compatible": compatible, "reasons": reasons},
        status_code=200 if template_id in registry else 404,
    )


def _template_listing(templates: list[TemplateDescriptor]) -> dict:
    return {
        "templates": [t.model_dump(mode="json", by_alias=True) for t in templates],
        "count": len(templates),
    }


async def _relay(request: Request, call: Callable[[AIServiceClient, Any], Awaitable[Any]]) -> JSONResponse:
    client: AIServiceClient | None = request.app.state.ai_client
    if client is None:
        return JSONResponse({"error": "AI service is not configured"}, status_code=503)
    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse({"error": "Invalid JSON in request body"}, status_code=400)
    try:
        result = await call(client, payload)
    except AIServiceError as exc:
        return JSONResponse({"error": str(exc)}, status_code=502)
    return JSONResponse(result)


@router.post("/ats-score")
async def ats_score(request: Request) -> JSONResponse:
    return await _relay(request, AIServiceClient.ats_score)


@router.post("/chat")
async def chat(request: Request) -> JSONResponse:
    return await _relay(request, AIServiceClient.chat)


@router.post("/match-job")
async def match_job(request: Request) -> JSONResponse:
    return await _relay(request, AIServiceClient.match_job)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

async def _sweep_periodically(limiter: RateLimiter, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        limiter.sweep()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the rate-limit sweeper and close the AI client on shutdown."""
    sweeper = asyncio.create_task(
        _sweep_periodically(app.state.rate_limiter, app.state.config.rate_limit.sweep_interval_seconds)
    )
    yield
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper
    if app.state.ai_client is not None:
        await app.state.ai_client.aclose()


def create_app(
    config: AppConfig | None = None,
    *,
    registry: TemplateRegistry | None = None,
    rate_limiter: RateLimiter | None = None,
    converter: FormatConverter | None = None,
    ai_client: AIServiceClient | None = None,
    log_store: GenerationLogStore | None = None,
) -> FastAPI:
    config = config or load_config()
    if registry is None:
        registry = TemplateRegistry.from_directory(config.templates.resolved_directory)
    if rate_limiter is None:
        rate_limiter = RateLimiter.from_config(config.rate_limit)
    if ai_client is None:
        ai_client = AIServiceClient.from_config(config.ai)
    if log_store is None and config.log_store.enabled:
        log_store = GenerationLogStore(config.log_store.resolved_db_path)

    app = FastAPI(
        title="cv-docgen",
        description="Résumé document generation API",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Processing-Time", "X-Conversion-Method", "Content-Disposition", "Retry-After"],
    )

    app.state.config = config
    app.state.registry = registry
    app.state.rate_limiter = rate_limiter
    app.state.ai_client = ai_client
    app.state.started_at = time.monotonic()
    app.state.orchestrator = GenerationOrchestrator(
        registry,
        config=config,
        rate_limiter=rate_limiter,
        converter=converter,
        log_store=log_store,
    )

    app.include_router(router)
    app.include_router(router, prefix="/api")
    app.add_api_route("/api/generate-cv", generate, methods=["POST"])
    logger.info("API ready with %d templates", len(registry))
    return app


def main() -> None:
    """Start the development server."""
    import uvicorn

    config = load_config()
    uvicorn.run(
        "cv_docgen.api.app:create_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
    )


if __name__ == "__main__":
    main()
