from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from backend.app.auth import AuthContext, get_auth_context
from backend.app.models import (
    CallLogRequest,
    CallLogResponse,
    CampaignStatsResponse,
    CompletionRequest,
    CompletionResponse,
)
from backend.app.observability import MetricsRegistry, configure_logging, observe_request
from backend.app.persistence import CallPersistence
from backend.app.route_guard import guard_request
from backend.app.services.completions import (
    CompletionClient,
    CompletionConfigError,
    CompletionResponseError,
    build_completion_client,
)
from backend.app.services.retry import NonRetryableError, RetriesExhaustedError
from backend.app.settings import Settings, load_settings
from backend.app.store import CallStore, StoreValidationError

logger = logging.getLogger("prospect_ai")


def create_app() -> FastAPI:
    app = FastAPI(title="Prospect AI API", version="0.1.0")
    configure_logging()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    settings = load_settings()
    persistence = CallPersistence(settings.database_url) if settings.persistence_enabled else None
    app.state.store = CallStore(persistence=persistence)
    app.state.settings = settings
    app.state.metrics = MetricsRegistry()
    try:
        app.state.completion_client = build_completion_client(
            settings, metrics=app.state.metrics
        )
    except CompletionConfigError as exc:
        logger.warning("completion_client_disabled reason=%s", exc)
        app.state.completion_client = None

    @app.middleware("http")
    async def route_guard_middleware(request: Request, call_next):
        return await guard_request(request, call_next, settings=app.state.settings)

    @app.middleware("http")
    async def observability_middleware(request: Request, call_next):
        return await observe_request(request, call_next, metrics=app.state.metrics)

    app.include_router(build_router())
    return app


def get_store(request: Request) -> CallStore:
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_metrics(request: Request) -> MetricsRegistry:
    return request.app.state.metrics


def get_completion_client(request: Request) -> Optional[CompletionClient]:
    return request.app.state.completion_client


def build_router() -> APIRouter:
    router = APIRouter()

    @router.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @router.get("/health/ready")
    def readiness(request: Request) -> dict[str, str]:
        settings = get_settings(request)
        persistence = getattr(request.app.state.store, "persistence", None)
        if settings.persistence_enabled and persistence and not persistence.ping():
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="database unavailable",
            )
        return {"status": "ready"}

    @router.get("/metrics", response_class=PlainTextResponse)
    def metrics(request: Request) -> Response:
        registry = get_metrics(request)
        return PlainTextResponse(registry.to_prometheus())

    @router.get("/api/campaigns/{campaign_id}/stats", response_model=CampaignStatsResponse)
    def campaign_stats(
        campaign_id: str,
        request: Request,
        _: AuthContext = Depends(get_auth_context),
    ):
        store = get_store(request)
        try:
            stats = store.get_call_stats(campaign_id)
        except Exception:
            logger.exception("campaign_stats_failed campaign_id=%s", campaign_id)
            return JSONResponse(
                {"error": "Internal server error"},
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return CampaignStatsResponse(stats=stats)

    @router.post("/api/campaigns/{campaign_id}/calls", response_model=CallLogResponse)
    def log_call(
        campaign_id: str,
        payload: CallLogRequest,
        request: Request,
        _: AuthContext = Depends(get_auth_context),
    ) -> CallLogResponse:
        store = get_store(request)
        try:
            record = store.record_call(campaign_id, payload)
        except StoreValidationError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        return CallLogResponse(
            call_id=record.id,
            campaign_id=record.campaign_id,
            status=record.status,
        )

    @router.post("/api/ai/completions", response_model=CompletionResponse)
    async def create_completion(
        payload: CompletionRequest,
        request: Request,
        context: AuthContext = Depends(get_auth_context),
    ) -> CompletionResponse:
        client = get_completion_client(request)
        if client is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="ai completions are not configured",
            )
        try:
            content = await client.complete(payload.prompt, system_prompt=payload.system_prompt)
        except NonRetryableError as exc:
            logger.error(
                "completion_rejected user_id=%s status=%s", context.user_id, exc.failure.status_code
            )
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="ai provider rejected the request",
            ) from exc
        except RetriesExhaustedError as exc:
            logger.error(
                "completion_unavailable user_id=%s attempts=%s", context.user_id, exc.attempts
            )
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="ai provider unavailable, try again later",
            ) from exc
        except CompletionResponseError as exc:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=str(exc),
            ) from exc
        return CompletionResponse(content=content, model=client.config.model)

    return router


app = create_app()
