from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.v1.schemas import PushSubscribeRequestSchema, PushUnsubscribeRequestSchema
from app.application.utils.clock import utc_now
from app.domain.entities.push_subscription import PushSubscription
from app.wiring.dependencies import Container, get_container

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/push/subscriptions", status_code=201)
def subscribe(req: PushSubscribeRequestSchema, container: Container = Depends(get_container)) -> dict[str, bool]:
    if not req.endpoint.startswith("https://"):
        raise HTTPException(
            status_code=400,
            detail={"code": "InvalidRequest", "message": "Push endpoint must be an https URL"},
        )
    container.push_registry.save(
        PushSubscription(
            user_id=req.user_id,
            endpoint=req.endpoint,
            p256dh=req.keys.p256dh,
            auth=req.keys.auth,
            created_at=utc_now(),
            expiration_time=req.expiration_time,
        )
    )
    logger.info("Push subscription saved", extra={"user_id": req.user_id, "channel": "push"})
    return {"saved": True}


@router.delete("/push/subscriptions")
def unsubscribe(req: PushUnsubscribeRequestSchema, container: Container = Depends(get_container)) -> dict[str, bool]:
    removed = container.push_registry.remove(req.user_id, req.endpoint)
    return {"removed": removed}
