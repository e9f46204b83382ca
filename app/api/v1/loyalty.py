from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.v1.schemas import LoyaltyResponseSchema, ReputationResponseSchema
from app.wiring.dependencies import Container, get_container

router = APIRouter()


@router.get("/loyalty/{user_id}/{salon_id}", response_model=LoyaltyResponseSchema)
def loyalty_balance(user_id: str, salon_id: str, container: Container = Depends(get_container)):
    return LoyaltyResponseSchema.from_balance(container.loyalty.balance(user_id, salon_id))


@router.get("/users/{user_id}/reputation", response_model=ReputationResponseSchema)
def reputation(user_id: str, container: Container = Depends(get_container)):
    return ReputationResponseSchema.from_reputation(container.reputation.get(user_id))
