"""
FastAPI router for webhook ingestion and execution queries.

Webhook bodies arrive as form data (Twilio style) or JSON; query parameters
are merged over the body. Queries are read-only.
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Any

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from voicedash.config import Settings, get_settings
from voicedash.executions.reducer import ExecutionState
from voicedash.executions.repository import EventStore
from voicedash.executions.schemas import (
    DashboardStats,
    EventFeed,
    ExecutionExport,
    ExecutionPage,
    IngestResult,
)
from voicedash.executions.service import ExecutionService
from voicedash.shared.database import get_db_session
from voicedash.shared.exceptions import NormalizationError
from voicedash.shared.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/calls", tags=["calls"])


def get_append_lock(app: FastAPI) -> asyncio.Lock:
    """Return the application-wide append lock, creating it on first use."""
    lock = getattr(app.state, "append_lock", None)
    if lock is None:
        lock = asyncio.Lock()
        app.state.append_lock = lock
    return lock


def get_event_store(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> EventStore:
    return EventStore(session, append_lock=get_append_lock(request.app))


def get_execution_service(
    store: Annotated[EventStore, Depends(get_event_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ExecutionService:
    return ExecutionService(store, settings=settings)


async def _webhook_payload(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    payload: dict[str, Any] = {}

    if content_type.startswith("application/json"):
        if not await request.body():
            return dict(request.query_params)
        try:
            body = await request.json()
        except ValueError as e:
            raise NormalizationError(
                "Unreadable webhook body: malformed JSON",
                details={"content_type": content_type},
            ) from e
        if not isinstance(body, dict):
            raise NormalizationError(
                "Unreadable webhook body: JSON body must be an object",
                details={"content_type": content_type},
            )
        payload.update(body)
    else:
        try:
            form = await request.form()
        except (MultiPartException, StarletteHTTPException) as e:
            # Starlette re-raises multipart errors as HTTP 400 inside an app
            reason = e.message if isinstance(e, MultiPartException) else str(e.detail)
            raise NormalizationError(
                f"Unreadable webhook body: {reason}",
                details={"content_type": content_type},
            ) from e
        payload.update({k: str(v) for k, v in form.items()})

    payload.update(dict(request.query_params))
    return payload


async def _ingest(request: Request, service: ExecutionService, route: str) -> IngestResult:
    try:
        payload = await _webhook_payload(request)
    except NormalizationError as e:
        logger.warning("Webhook body rejected", extra={"route": route, "reason": e.message})
        raise
    logger.debug("Webhook received", extra={"route": route, "payload_keys": sorted(payload)})
    return await service.ingest(payload)


@router.post("/webhooks/status", response_model=IngestResult)
async def receive_status_webhook(
    request: Request,
    service: Annotated[ExecutionService, Depends(get_execution_service)],
) -> IngestResult:
    return await _ingest(request, service, "status")


@router.post("/webhooks/dtmf", response_model=IngestResult)
async def receive_dtmf_webhook(
    request: Request,
    service: Annotated[ExecutionService, Depends(get_execution_service)],
) -> IngestResult:
    return await _ingest(request, service, "dtmf")


@router.post("/webhooks/flow", response_model=IngestResult)
async def receive_flow_webhook(
    request: Request,
    service: Annotated[ExecutionService, Depends(get_execution_service)],
) -> IngestResult:
    return await _ingest(request, service, "flow")


@router.get("/events", response_model=EventFeed)
async def list_events(
    service: Annotated[ExecutionService, Depends(get_execution_service)],
    settings: Annotated[Settings, Depends(get_settings)],
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
) -> EventFeed:
    limit = min(limit or settings.events_default_limit, settings.events_max_limit)
    return await service.list_events(page=page, limit=limit)


@router.get("/history", response_model=ExecutionPage)
async def list_history(
    service: Annotated[ExecutionService, Depends(get_execution_service)],
    settings: Annotated[Settings, Depends(get_settings)],
    limit: int | None = Query(default=None, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> ExecutionPage:
    return await service.list_executions(
        limit=limit or settings.history_default_limit,
        offset=offset,
    )


# Declared before /history/{execution_id} so "export" is not taken as an id.
@router.get("/history/export/all", response_model=ExecutionExport)
async def export_history(
    service: Annotated[ExecutionService, Depends(get_execution_service)],
) -> ExecutionExport:
    return await service.export_all()


@router.get("/history/{execution_id}", response_model=ExecutionState)
async def get_execution(
    execution_id: str,
    service: Annotated[ExecutionService, Depends(get_execution_service)],
) -> ExecutionState:
    state = await service.get_execution(execution_id)
    if state.is_empty:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "EXECUTION_NOT_FOUND", "message": f"No events for {execution_id}"},
        )
    return state


@router.get("/stats", response_model=DashboardStats)
async def get_stats(
    service: Annotated[ExecutionService, Depends(get_execution_service)],
) -> DashboardStats:
    return await service.get_stats()
