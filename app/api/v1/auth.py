from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.errors import http_error
from app.api.v1.schemas import (
    OTPIssuedResponseSchema,
    SendOTPRequestSchema,
    VerificationStatusSchema,
    VerifyOTPRequestSchema,
)
from app.application.exceptions import QueueEngineError
from app.domain.entities.otp_challenge import OTPChannel
from app.wiring.dependencies import Container, get_container

router = APIRouter()


def _issue(container: Container, user_id: str, channel: OTPChannel) -> OTPIssuedResponseSchema:
    try:
        return OTPIssuedResponseSchema.from_result(container.otp.issue(user_id, channel))
    except QueueEngineError as e:
        raise http_error(e)


def _verify(container: Container, user_id: str, channel: OTPChannel, code: str) -> VerificationStatusSchema:
    try:
        return VerificationStatusSchema.from_status(container.otp.verify(user_id, channel, code))
    except QueueEngineError as e:
        raise http_error(e)


@router.post("/auth/send-email-otp", response_model=OTPIssuedResponseSchema)
def send_email_otp(req: SendOTPRequestSchema, container: Container = Depends(get_container)):
    return _issue(container, req.user_id, OTPChannel.EMAIL)


@router.post("/auth/send-phone-otp", response_model=OTPIssuedResponseSchema)
def send_phone_otp(req: SendOTPRequestSchema, container: Container = Depends(get_container)):
    return _issue(container, req.user_id, OTPChannel.PHONE)


@router.post("/auth/verify-email-otp", response_model=VerificationStatusSchema)
def verify_email_otp(req: VerifyOTPRequestSchema, container: Container = Depends(get_container)):
    return _verify(container, req.user_id, OTPChannel.EMAIL, req.code)


@router.post("/auth/verify-phone-otp", response_model=VerificationStatusSchema)
def verify_phone_otp(req: VerifyOTPRequestSchema, container: Container = Depends(get_container)):
    return _verify(container, req.user_id, OTPChannel.PHONE, req.code)


@router.get("/auth/verification-status/{user_id}", response_model=VerificationStatusSchema)
def verification_status(user_id: str, container: Container = Depends(get_container)):
    return VerificationStatusSchema.from_status(container.otp.status(user_id))
