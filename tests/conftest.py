"""Shared test fixtures and helpers."""

from datetime import datetime, timezone
from typing import Optional

import pytest

from barberbook.config import ReservationConfig
from barberbook.gateways.booking_gateway import StoreBookingGateway
from barberbook.reservation.manager import SlotReservationManager
from barberbook.schemas.booking_schema import BookingRequest, ServiceItem
from barberbook.schemas.shop_schema import DayHours, Employee, Shop
from barberbook.store.document_store import InMemoryDocumentStore
from barberbook.utils import WEEKDAYS

# The day before the scenario date 2025-03-01 (a Saturday).
NOW = datetime(2025, 2, 28, 12, 0, tzinfo=timezone.utc)
DAY = "2025-03-01"


async def _no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def gateway(store):
    return StoreBookingGateway(store)


@pytest.fixture
def reservation_config():
    return ReservationConfig(
        default_slot_minutes=30,
        past_buffer_minutes=15,
        compensation_max_attempts=3,
        compensation_backoff_sec=0.01,
        compensation_backoff_max_sec=0.04,
    )


@pytest.fixture
def manager(store, gateway, reservation_config):
    return SlotReservationManager(
        store, gateway, config=reservation_config, clock=lambda: NOW, sleep=_no_sleep
    )


@pytest.fixture
def jane():
    return Employee(id="jane", name="Jane", schedule={day: [9, 10, 14] for day in WEEKDAYS})


@pytest.fixture
def acme(jane):
    """Acme Cuts: open 09:00-17:00 every day, 30-minute slots."""
    hours = DayHours(open="09:00", close="17:00", slot_duration=30)
    return Shop(
        id="acme",
        name="Acme Cuts",
        email="owner@acmecuts.example",
        availability={day: hours for day in WEEKDAYS},
        employees=[jane],
    )


def make_request(
    selected_time: str = "09:00",
    selected_date: str = DAY,
    employee_id: Optional[str] = None,
    customer: str = "Ada",
    shop_id: str = "acme",
) -> BookingRequest:
    """Helper to create a BookingRequest for Acme Cuts."""
    return BookingRequest(
        shop_id=shop_id,
        shop_email="owner@acmecuts.example",
        customer_name=customer,
        customer_email=f"{customer.lower()}@example.com",
        customer_phone="0412 345 678",
        selected_services=[
            ServiceItem(name="Haircut", price=25.0),
            ServiceItem(name="Beard trim", price=10.5, duration=15),
        ],
        selected_date=selected_date,
        selected_time=selected_time,
        employee_id=employee_id,
    )
