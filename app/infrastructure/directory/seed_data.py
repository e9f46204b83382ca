from __future__ import annotations

from app.domain.entities.directory import Customer, Salon, SalonService

SEED_SALONS: dict[str, Salon] = {
    "salon-1": Salon(
        id="salon-1",
        name="Classic Cuts",
        address="12 Market Street",
        latitude=40.7128,
        longitude=-74.0060,
    ),
    "salon-2": Salon(
        id="salon-2",
        name="Glow Studio",
        address="48 Park Avenue",
        latitude=40.7306,
        longitude=-73.9866,
    ),
}

SEED_SERVICES: dict[str, SalonService] = {
    "svc-haircut": SalonService(id="svc-haircut", salon_id="salon-1", name="Haircut", duration_minutes=30, price=25.0),
    "svc-beard": SalonService(id="svc-beard", salon_id="salon-1", name="Beard Trim", duration_minutes=15, price=10.0),
    "svc-color": SalonService(id="svc-color", salon_id="salon-1", name="Hair Color", duration_minutes=60, price=70.0),
    "svc-facial": SalonService(id="svc-facial", salon_id="salon-2", name="Facial", duration_minutes=45, price=40.0),
    "svc-manicure": SalonService(id="svc-manicure", salon_id="salon-2", name="Manicure", duration_minutes=30, price=20.0),
}

SEED_CUSTOMERS: dict[str, Customer] = {
    "user-1": Customer(id="user-1", name="Alex", email="alex@example.com", phone="+15550000001"),
    "user-2": Customer(id="user-2", name="Sam", email="sam@example.com", phone="+15550000002"),
    "user-3": Customer(id="user-3", name="Jordan", email="jordan@example.com", phone="+15550000003"),
    "user-4": Customer(id="user-4", name="Riley", email="riley@example.com", phone=None),
}
