"""Internal outcome query and replay routes."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ...access import ServiceRole, require_internal_token, require_role
from ...app import IApplication
from ...logging_config import get_logger
from ...models import OutcomeRecord

logger = get_logger(__name__)

MAX_PAGE_SIZE = 200


class OutcomeResponse(BaseModel):
    """Response model for an outcome record."""

    event_id: str
    env: str
    service_role: str
    source: str
    status: str
    error_code: str | None = None
    error_message: str | None = None
    retry_count: int
    response_status: int | None = None
    correlation_id: str | None = None
    timestamp: datetime


class Pagination(BaseModel):
    """Pagination block for list responses."""

    limit: int
    skip: int
    total: int


class EventListResponse(BaseModel):
    """Response model for the event listing."""

    ok: bool
    events: list[OutcomeResponse]
    pagination: Pagination


class ReplayEvent(OutcomeResponse):
    """Outcome record plus replay instructions."""

    message: str


class ReplayResponse(BaseModel):
    """Response model for a replay lookup."""

    ok: bool
    event: ReplayEvent


def _forbidden(message: str) -> JSONResponse:
    return JSONResponse(status_code=403, content={"error": {"message": message}})


def _to_response(record: OutcomeRecord) -> dict:
    data = record.to_dict()
    data["timestamp"] = record.timestamp
    return data


def create_internal_router(app: IApplication) -> APIRouter:
    """Create internal router. Every route needs the internal role and token."""
    router = APIRouter(
        prefix="/internal/webhooks",
        tags=["internal"],
        dependencies=[
            Depends(require_role(app.config, ServiceRole.INTERNAL, ServiceRole.WORKER)),
            Depends(require_internal_token(app.config)),
        ],
    )

    @router.get("/events", response_model=EventListResponse)
    async def list_events(
        env: str | None = Query(None, description="Environment, defaults to APP_ENV"),
        status: str | None = Query(None, description="Filter by outcome status"),
        limit: int = Query(50, ge=1),
        skip: int = Query(0, ge=0),
    ):
        """List outcome records for the current environment."""
        query_env = (env or "").strip() or app.config.app_env
        if query_env != app.config.app_env:
            return _forbidden(
                f"Cannot query events from different environment: {query_env}"
            )

        limit = min(limit, MAX_PAGE_SIZE)
        events, total = await app.recorder.list_events(
            env=query_env,
            status=(status or "").strip() or None,
            limit=limit,
            offset=skip,
        )
        return {
            "ok": True,
            "events": [_to_response(e) for e in events],
            "pagination": {"limit": limit, "skip": skip, "total": total},
        }

    @router.post("/replay/{event_id}", response_model=ReplayResponse)
    async def replay_event(event_id: str):
        """Look up an event for manual replay within the same environment."""
        event_id = event_id.strip()
        event = await app.recorder.get_event(event_id)
        if event is None:
            return JSONResponse(
                status_code=404, content={"error": {"message": "Event not found"}}
            )

        if event.env != app.config.app_env:
            logger.warning(
                "Replay denied: event env=%s does not match current APP_ENV=%s",
                event.env,
                app.config.app_env,
            )
            return _forbidden(
                f"Event belongs to different environment ({event.env}); "
                "cannot replay across environments"
            )

        logger.info(
            "webhook_replay_requested",
            extra={
                "context": {
                    "event_id": event_id,
                    "env": app.config.app_env,
                    "original_correlation_id": event.correlation_id,
                }
            },
        )

        data = _to_response(event)
        data["message"] = (
            "Event retrieved for replay. Caller must re-submit to "
            f"{app.config.entry_path} with a new X-Idempotency-Key."
        )
        return {"ok": True, "event": data}

    return router
