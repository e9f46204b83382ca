from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Customer:
    id: str
    name: str
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class Salon:
    id: str
    name: str
    address: str
    latitude: float | None = None
    longitude: float | None = None

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class SalonService:
    id: str
    salon_id: str
    name: str
    duration_minutes: int  # average duration
    price: float | None = None
