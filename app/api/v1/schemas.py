from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.application.use_cases.otp_verification import OTPIssueResult
from app.application.use_cases.status_transition import CheckInResult
from app.application.utils.clock import as_utc
from app.domain.entities.audit import StatusTransitionRecord
from app.domain.entities.loyalty import LoyaltyBalance
from app.domain.entities.notification import ContactLink, NotificationRecord
from app.domain.entities.otp_challenge import VerificationStatus
from app.domain.entities.queue_entry import QueueEntry
from app.domain.entities.queue_status import QueueStatus
from app.domain.entities.reputation import Reputation


class JoinQueueRequestSchema(BaseModel):
    salon_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    service_ids: list[str] = Field(min_length=1)


class NotifyRequestSchema(BaseModel):
    arrival_minutes: int | None = Field(default=None, ge=0, le=240)


class CancelRequestSchema(BaseModel):
    reason: str | None = None


class StatusUpdateRequestSchema(BaseModel):
    status: QueueStatus
    reason: str | None = None
    arrival_minutes: int | None = Field(default=None, ge=0, le=240)


class CheckInRequestSchema(BaseModel):
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class VerifyArrivalRequestSchema(BaseModel):
    confirmed: bool
    notes: str | None = None


class QueueEntrySchema(BaseModel):
    id: str
    salon_id: str
    user_id: str
    service_ids: list[str]
    status: QueueStatus
    position: int
    estimated_wait_minutes: int
    joined_at: datetime
    notified_at: datetime | None = None
    arrival_minutes: int | None = None
    check_in_at: datetime | None = None
    verified_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    ended_at: datetime | None = None
    terminated_reason: str | None = None

    @classmethod
    def from_entity(cls, entry: QueueEntry) -> "QueueEntrySchema":
        return cls(
            id=entry.id,
            salon_id=entry.salon_id,
            user_id=entry.user_id,
            service_ids=list(entry.service_ids),
            status=entry.status,
            position=entry.position,
            estimated_wait_minutes=entry.estimated_wait_minutes,
            joined_at=entry.joined_at,
            notified_at=entry.notified_at,
            arrival_minutes=entry.arrival_minutes,
            check_in_at=entry.check_in_at,
            verified_at=entry.verified_at,
            started_at=entry.started_at,
            completed_at=entry.completed_at,
            ended_at=entry.ended_at,
            terminated_reason=entry.terminated_reason,
        )


class CheckInResponseSchema(BaseModel):
    entry: QueueEntrySchema
    auto_approved: bool
    requires_confirmation: bool
    distance_m: float | None = None
    message: str
    trust_level: str

    @classmethod
    def from_result(cls, result: CheckInResult) -> "CheckInResponseSchema":
        return cls(
            entry=QueueEntrySchema.from_entity(result.entry),
            auto_approved=result.auto_approved,
            requires_confirmation=result.requires_confirmation,
            distance_m=round(result.distance_m, 1) if result.distance_m is not None else None,
            message=result.message,
            trust_level=result.trust_level.value,
        )


class ContactResponseSchema(BaseModel):
    channel: str
    customer_name: str
    phone_number: str
    uri: str
    message: str | None = None

    @classmethod
    def from_link(cls, link: ContactLink) -> "ContactResponseSchema":
        return cls(
            channel=link.channel.value,
            customer_name=link.customer_name,
            phone_number=link.phone_number,
            uri=link.uri,
            message=link.message,
        )


class NotificationRecordSchema(BaseModel):
    queue_entry_id: str
    channel: str
    event: str | None = None
    attempt_count: int
    last_attempt_at: datetime
    outcome: str
    last_error: str | None = None

    @classmethod
    def from_record(cls, record: NotificationRecord) -> "NotificationRecordSchema":
        return cls(
            queue_entry_id=record.queue_entry_id,
            channel=record.channel.value,
            event=record.event.value if record.event else None,
            attempt_count=record.attempt_count,
            last_attempt_at=record.last_attempt_at,
            outcome=record.outcome.value,
            last_error=record.last_error,
        )


class LoyaltyResponseSchema(BaseModel):
    user_id: str
    salon_id: str
    points: int
    tier: str
    discount_percent: int

    @classmethod
    def from_balance(cls, balance: LoyaltyBalance) -> "LoyaltyResponseSchema":
        return cls(
            user_id=balance.user_id,
            salon_id=balance.salon_id,
            points=balance.points,
            tier=balance.tier.value,
            discount_percent=balance.tier.discount_percent,
        )


class SendOTPRequestSchema(BaseModel):
    user_id: str = Field(min_length=1)


class VerifyOTPRequestSchema(BaseModel):
    user_id: str = Field(min_length=1)
    code: str = Field(min_length=4, max_length=10)


class OTPIssuedResponseSchema(BaseModel):
    user_id: str
    channel: str
    expires_at: datetime
    delivered: bool
    delivery_error: str | None = None
    code: str | None = None

    @classmethod
    def from_result(cls, result: OTPIssueResult) -> "OTPIssuedResponseSchema":
        return cls(
            user_id=result.user_id,
            channel=result.channel.value,
            expires_at=result.expires_at,
            delivered=result.delivered,
            delivery_error=result.delivery_error,
            code=result.code,
        )


class VerificationStatusSchema(BaseModel):
    user_id: str
    email_verified: bool
    phone_verified: bool
    is_verified: bool

    @classmethod
    def from_status(cls, status: VerificationStatus) -> "VerificationStatusSchema":
        channels = {c.value for c in status.verified_channels}
        return cls(
            user_id=status.user_id,
            email_verified="email" in channels,
            phone_verified="phone" in channels,
            is_verified=status.fully_verified,
        )


class PushKeysSchema(BaseModel):
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class PushSubscribeRequestSchema(BaseModel):
    user_id: str = Field(min_length=1)
    endpoint: str = Field(min_length=1)
    keys: PushKeysSchema
    expiration_time: datetime | None = None

    @field_validator("expiration_time")
    @classmethod
    def _utc_expiration(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None


class PushUnsubscribeRequestSchema(BaseModel):
    user_id: str = Field(min_length=1)
    endpoint: str = Field(min_length=1)


class StatusTransitionSchema(BaseModel):
    old_status: QueueStatus
    new_status: QueueStatus
    actor: str
    at: datetime
    reason: str | None = None

    @classmethod
    def from_record(cls, record: StatusTransitionRecord) -> "StatusTransitionSchema":
        return cls(
            old_status=record.old_status,
            new_status=record.new_status,
            actor=record.actor.value,
            at=record.at,
            reason=record.reason,
        )


class ReputationResponseSchema(BaseModel):
    user_id: str
    score: int
    trust_level: str
    total_check_ins: int
    successful_check_ins: int
    false_check_ins: int
    no_shows: int
    completed_services: int

    @classmethod
    def from_reputation(cls, reputation: Reputation) -> "ReputationResponseSchema":
        return cls(
            user_id=reputation.user_id,
            score=reputation.score,
            trust_level=reputation.trust_level.value,
            total_check_ins=reputation.total_check_ins,
            successful_check_ins=reputation.successful_check_ins,
            false_check_ins=reputation.false_check_ins,
            no_shows=reputation.no_shows,
            completed_services=reputation.completed_services,
        )
