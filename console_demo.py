"""
Offline console demo that runs reservation scenarios without any backend.

This drives the real reservation manager, saga, schedule rules and booking
desk against the in-memory document store and the store-backed booking
gateway. No network calls. Designed for live demo walkthroughs.

Usage:
    python console_demo.py
    python console_demo.py --scenario race
    python console_demo.py --scenario forced-failure --language tr
"""

import argparse
import asyncio
from datetime import datetime, timezone
from typing import Optional

from barberbook.config import SUPPORTED_LANGUAGES, settings
from barberbook.gateways.booking_gateway import StoreBookingGateway
from barberbook.reservation.manager import SlotReservationManager
from barberbook.schemas.booking_schema import BookingRequest, ServiceItem
from barberbook.schemas.hold_schema import HOLDS_COLLECTION
from barberbook.schemas.shop_schema import DayHours, Employee, Shop
from barberbook.store.document_store import InMemoryDocumentStore
from barberbook.tools.booking_desk import BookingDesk, BookingOutcome
from barberbook.utils import WEEKDAYS

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

# Demo clock: the day before the demo appointments.
DEMO_NOW = datetime(2025, 2, 28, 12, 0, tzinfo=timezone.utc)
DEMO_DATE = "2025-03-01"


def build_demo_shop() -> Shop:
    hours = DayHours(open="09:00", close="17:00", slot_duration=30)
    return Shop(
        id="acme-cuts",
        name="Acme Cuts",
        email="owner@acmecuts.example",
        availability={day: hours for day in WEEKDAYS},
        employees=[
            Employee(
                id="jane",
                name="Jane",
                schedule={day: [9, 10, 11, 13, 14, 15, 16] for day in WEEKDAYS},
            ),
        ],
    )


class ConsoleSession:
    """Plays reservation scenarios against an in-memory shop."""

    SCENARIOS = ("double-booking", "before-opening", "forced-failure", "race", "cancel")

    def __init__(self, language: str = settings.default_language) -> None:
        self.store = InMemoryDocumentStore()
        self.gateway = StoreBookingGateway(self.store)
        self.manager = SlotReservationManager(
            self.store, self.gateway, clock=lambda: DEMO_NOW
        )
        self.desk = BookingDesk(self.manager, language=language)
        self.shop = build_demo_shop()
        self._customers = 0

    def desk_say(self, outcome: BookingOutcome) -> None:
        colour = GREEN if outcome["success"] else YELLOW
        print(f"{colour}{BOLD}[Desk]{RESET} {colour}{outcome['message']}{RESET}")
        if not outcome["success"]:
            self.system_log(
                f"session={outcome['session_id']} error_code={outcome['error_code']} "
                f"retryable={outcome['retryable']}"
            )

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def customer(self, text: str) -> None:
        print(f"\n{BLUE}[Customer] {RESET}{text}")

    def make_request(self, time: str, employee_id: Optional[str] = None) -> BookingRequest:
        self._customers += 1
        n = self._customers
        return BookingRequest(
            shop_id=self.shop.id,
            shop_email=self.shop.email,
            customer_name=f"Customer {n}",
            customer_email=f"customer{n}@example.com",
            customer_phone=f"0412 345 {n:03d}",
            selected_services=[ServiceItem(name="Haircut", price=25.0)],
            selected_date=DEMO_DATE,
            selected_time=time,
            employee_id=employee_id,
        )

    async def book(self, time: str, employee_id: Optional[str] = None) -> BookingOutcome:
        who = f" with {employee_id}" if employee_id else ""
        self.customer(f"I'd like {DEMO_DATE} at {time}{who}.")
        outcome = await self.desk.book(self.shop, self.make_request(time, employee_id))
        self.desk_say(outcome)
        return outcome

    async def show_holds(self) -> None:
        holds = await self.store.query(HOLDS_COLLECTION, {"shopId": self.shop.id})
        for hold in sorted(holds, key=lambda h: h["createdAt"]):
            self.system_log(
                f"hold {hold['id'][:8]} {hold['date']} {hold['time']} "
                f"employee={hold['employeeId']} status={hold['status']}"
            )

    # ------------------------------------------------------------------ #
    # Scenarios
    # ------------------------------------------------------------------ #

    async def _double_booking(self) -> None:
        await self.book("09:00")
        await self.book("09:00")

    async def _before_opening(self) -> None:
        writes = self.store.write_count
        await self.book("08:30")
        self.system_log(f"Documents written: {self.store.write_count - writes}")

    async def _forced_failure(self) -> None:
        self.gateway.fail_next_create()
        self.system_log("Booking endpoint will fail on the next call")
        await self.book("14:00", employee_id="jane")
        await self.show_holds()
        await self.book("14:00", employee_id="jane")

    async def _race(self) -> None:
        contenders = 5
        self.system_log(f"{contenders} customers submit 10:00 at the same moment")
        requests = [self.make_request("10:00") for _ in range(contenders)]
        outcomes = await asyncio.gather(
            *(self.desk.book(self.shop, request) for request in requests)
        )
        for outcome in outcomes:
            self.desk_say(outcome)
        winners = sum(1 for outcome in outcomes if outcome["success"])
        self.system_log(f"Winners: {winners}")
        await self.show_holds()

    async def _cancel(self) -> None:
        outcome = await self.book("11:00")
        if not outcome["success"]:
            return
        self.customer("Please cancel that, something came up.")
        self.desk_say(await self.desk.cancel(outcome["booking_id"], "Something came up"))
        self.customer("Cancel it again, just to be sure.")
        self.desk_say(await self.desk.cancel(outcome["booking_id"], "Something came up"))
        free = await self.desk.available_times(self.shop, DEMO_DATE, now=DEMO_NOW)
        self.system_log(f"11:00 bookable again: {'11:00' in free}")

    async def run_scenario(self, scenario: str) -> None:
        handler = {
            "double-booking": self._double_booking,
            "before-opening": self._before_opening,
            "forced-failure": self._forced_failure,
            "race": self._race,
            "cancel": self._cancel,
        }.get(scenario)
        if handler is None:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  BARBERBOOK - Scenario: {scenario}{RESET}")
        print(f"{BOLD}  Shop: {self.shop.name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

        await handler()

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{DIM}  Emails sent: {len(self.gateway.sent_emails)}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    async def run_all(self) -> None:
        for scenario in self.SCENARIOS:
            await ConsoleSession(self.desk.language).run_scenario(scenario)


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline reservation demo")
    parser.add_argument(
        "--scenario",
        choices=ConsoleSession.SCENARIOS,
        default=None,
        help="Play a single scenario instead of all of them",
    )
    parser.add_argument(
        "--language",
        choices=SUPPORTED_LANGUAGES,
        default=settings.default_language,
        help="Language of the desk's messages",
    )
    args = parser.parse_args()

    session = ConsoleSession(language=args.language)
    if args.scenario:
        asyncio.run(session.run_scenario(args.scenario))
    else:
        asyncio.run(session.run_all())


if __name__ == "__main__":
    main()
