"""Inbound webhook route."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ...app import IApplication
from ...models import AcceptanceStatus, InboundEvent


def create_webhook_router(app: IApplication) -> APIRouter:
    """Create webhook entry router.

    Authentication and validation errors propagate to the exception handlers
    registered in ``create_fastapi_app``.
    """
    router = APIRouter(tags=["webhooks"])

    @router.post(app.config.entry_path)
    async def receive_webhook(request: Request) -> JSONResponse:
        """Verify, deduplicate and acknowledge one provider event."""
        raw_body = await request.body()
        event = InboundEvent(
            path=request.url.path,
            raw_body=raw_body,
            content_type=request.headers.get("content-type"),
            signature=request.headers.get("x-signature"),
            timestamp=request.headers.get("x-timestamp"),
            idempotency_key=request.headers.get("x-idempotency-key"),
            correlation_id=request.headers.get("x-correlation-id"),
        )

        acceptance = await app.pipeline.accept(event)

        if acceptance.status is AcceptanceStatus.DUPLICATE:
            return JSONResponse(status_code=200, content={"status": "duplicate"})

        return JSONResponse(
            status_code=202,
            content={
                "status": "accepted",
                "internal_event_id": acceptance.internal_event_id,
            },
        )

    return router
