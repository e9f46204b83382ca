from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.errors import http_error
from app.api.v1.schemas import (
    CancelRequestSchema,
    CheckInRequestSchema,
    CheckInResponseSchema,
    ContactResponseSchema,
    JoinQueueRequestSchema,
    NotificationRecordSchema,
    NotifyRequestSchema,
    QueueEntrySchema,
    StatusTransitionSchema,
    StatusUpdateRequestSchema,
    VerifyArrivalRequestSchema,
)
from app.application.exceptions import QueueEngineError
from app.domain.entities.notification import NotificationChannel
from app.wiring.dependencies import Container, get_container

router = APIRouter()


@router.post("/queue", response_model=QueueEntrySchema, status_code=201)
def join_queue(req: JoinQueueRequestSchema, container: Container = Depends(get_container)):
    try:
        entry = container.ledger.enqueue(req.salon_id, req.user_id, req.service_ids)
    except QueueEngineError as e:
        raise http_error(e)
    return QueueEntrySchema.from_entity(entry)


@router.get("/queue/{entry_id}", response_model=QueueEntrySchema)
def get_entry(entry_id: str, container: Container = Depends(get_container)):
    try:
        return QueueEntrySchema.from_entity(container.ledger.get(entry_id))
    except QueueEngineError as e:
        raise http_error(e)


@router.delete("/queue/{entry_id}", response_model=QueueEntrySchema)
def leave_queue(
    entry_id: str,
    req: CancelRequestSchema | None = None,
    container: Container = Depends(get_container),
):
    try:
        entry = container.transitions.cancel(entry_id, req.reason if req else None)
    except QueueEngineError as e:
        raise http_error(e)
    return QueueEntrySchema.from_entity(entry)


@router.get("/salons/{salon_id}/queue", response_model=list[QueueEntrySchema])
def salon_queue(salon_id: str, container: Container = Depends(get_container)):
    return [QueueEntrySchema.from_entity(e) for e in container.ledger.active_queue(salon_id)]


@router.get("/users/{user_id}/queue", response_model=list[QueueEntrySchema])
def user_queue(user_id: str, container: Container = Depends(get_container)):
    return [QueueEntrySchema.from_entity(e) for e in container.ledger.entries_for_user(user_id)]


@router.post("/queue/{entry_id}/notify", response_model=QueueEntrySchema)
def notify(
    entry_id: str,
    req: NotifyRequestSchema | None = None,
    container: Container = Depends(get_container),
):
    try:
        entry = container.transitions.notify(entry_id, req.arrival_minutes if req else None)
    except QueueEngineError as e:
        raise http_error(e)
    return QueueEntrySchema.from_entity(entry)


@router.post("/queue/{entry_id}/remind", response_model=QueueEntrySchema)
def remind(
    entry_id: str,
    req: NotifyRequestSchema | None = None,
    container: Container = Depends(get_container),
):
    try:
        entry = container.transitions.remind(entry_id, req.arrival_minutes if req else None)
    except QueueEngineError as e:
        raise http_error(e)
    return QueueEntrySchema.from_entity(entry)


@router.post("/queue/{entry_id}/call", response_model=ContactResponseSchema)
def call_customer(entry_id: str, container: Container = Depends(get_container)):
    try:
        link = container.dispatcher.prepare_contact(entry_id, NotificationChannel.CALL)
    except QueueEngineError as e:
        raise http_error(e)
    return ContactResponseSchema.from_link(link)


@router.post("/queue/{entry_id}/chat", response_model=ContactResponseSchema)
def chat_customer(
    entry_id: str,
    req: NotifyRequestSchema | None = None,
    container: Container = Depends(get_container),
):
    try:
        link = container.dispatcher.prepare_contact(
            entry_id, NotificationChannel.WHATSAPP, req.arrival_minutes if req else None
        )
    except QueueEngineError as e:
        raise http_error(e)
    return ContactResponseSchema.from_link(link)


@router.post("/queue/{entry_id}/check-in", response_model=CheckInResponseSchema)
def check_in(
    entry_id: str,
    req: CheckInRequestSchema | None = None,
    container: Container = Depends(get_container),
):
    try:
        result = container.transitions.check_in(
            entry_id,
            latitude=req.latitude if req else None,
            longitude=req.longitude if req else None,
        )
    except QueueEngineError as e:
        raise http_error(e)
    return CheckInResponseSchema.from_result(result)


@router.post("/queue/{entry_id}/verify-arrival", response_model=QueueEntrySchema)
def verify_arrival(
    entry_id: str,
    req: VerifyArrivalRequestSchema,
    container: Container = Depends(get_container),
):
    try:
        entry = container.transitions.verify_arrival(entry_id, req.confirmed, req.notes)
    except QueueEngineError as e:
        raise http_error(e)
    return QueueEntrySchema.from_entity(entry)


@router.put("/queue/{entry_id}/status", response_model=QueueEntrySchema)
def update_status(
    entry_id: str,
    req: StatusUpdateRequestSchema,
    container: Container = Depends(get_container),
):
    try:
        entry = container.transitions.transition(
            entry_id,
            req.status,
            reason=req.reason,
            arrival_minutes=req.arrival_minutes,
        )
    except QueueEngineError as e:
        raise http_error(e)
    return QueueEntrySchema.from_entity(entry)


@router.get("/queue/{entry_id}/notifications", response_model=list[NotificationRecordSchema])
def notification_records(entry_id: str, container: Container = Depends(get_container)):
    try:
        records = container.dispatcher.records_for(entry_id)
    except QueueEngineError as e:
        raise http_error(e)
    return [NotificationRecordSchema.from_record(r) for r in records]


@router.get("/queue/{entry_id}/history", response_model=list[StatusTransitionSchema])
def status_history(entry_id: str, container: Container = Depends(get_container)):
    try:
        records = container.ledger.history(entry_id)
    except QueueEngineError as e:
        raise http_error(e)
    return [StatusTransitionSchema.from_record(r) for r in records]
