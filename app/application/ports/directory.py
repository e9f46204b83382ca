from __future__ import annotations

from abc import ABC, abstractmethod

from app.domain.entities.directory import Customer, Salon, SalonService


class DirectoryPort(ABC):
    """Read-only view of customers, salons and service menus owned by other systems."""

    @abstractmethod
    def get_customer(self, user_id: str) -> Customer | None:
        raise NotImplementedError

    @abstractmethod
    def get_salon(self, salon_id: str) -> Salon | None:
        raise NotImplementedError

    @abstractmethod
    def get_services(self, salon_id: str, service_ids: list[str] | tuple[str, ...]) -> dict[str, SalonService]:
        """Services of the salon among service_ids. Unknown ids are simply absent."""
        raise NotImplementedError
