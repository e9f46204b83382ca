from __future__ import annotations

import threading

from app.application.ports.directory import DirectoryPort
from app.domain.entities.directory import Customer, Salon, SalonService
from app.infrastructure.directory.seed_data import SEED_CUSTOMERS, SEED_SALONS, SEED_SERVICES


class MemoryDirectory(DirectoryPort):
    """Customers, salons and service menus kept in process. Other systems own the real records."""

    def __init__(
        self,
        customers: dict[str, Customer] | None = None,
        salons: dict[str, Salon] | None = None,
        services: dict[str, SalonService] | None = None,
    ) -> None:
        self._customers = dict(customers or {})
        self._salons = dict(salons or {})
        self._services = dict(services or {})
        self._lock = threading.Lock()

    @classmethod
    def seeded(cls) -> "MemoryDirectory":
        return cls(customers=SEED_CUSTOMERS, salons=SEED_SALONS, services=SEED_SERVICES)

    def get_customer(self, user_id: str) -> Customer | None:
        with self._lock:
            return self._customers.get(user_id)

    def get_salon(self, salon_id: str) -> Salon | None:
        with self._lock:
            return self._salons.get(salon_id)

    def get_services(self, salon_id: str, service_ids: list[str] | tuple[str, ...]) -> dict[str, SalonService]:
        with self._lock:
            found: dict[str, SalonService] = {}
            for service_id in service_ids:
                service = self._services.get(service_id)
                # a service of another salon counts as unknown
                if service is not None and service.salon_id == salon_id:
                    found[service_id] = service
            return found

    def add_customer(self, customer: Customer) -> None:
        with self._lock:
            self._customers[customer.id] = customer

    def add_salon(self, salon: Salon) -> None:
        with self._lock:
            self._salons[salon.id] = salon

    def add_service(self, service: SalonService) -> None:
        with self._lock:
            self._services[service.id] = service
