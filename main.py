"""
Barberbook entry point.

Reserves a slot for a booking request read from JSON files, or runs the
offline console demo for development. Both use the in-memory document
store and the store-backed booking gateway.

Usage:
    Book a slot:  python main.py book shop.json request.json [--language tr]
    Console mode: python main.py console [--scenario NAME]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from barberbook.config import SUPPORTED_LANGUAGES, settings

logger = logging.getLogger(__name__)


async def _book(shop_path: str, request_path: str, language: str) -> int:
    from barberbook.gateways.booking_gateway import StoreBookingGateway
    from barberbook.reservation.manager import SlotReservationManager
    from barberbook.schemas.booking_schema import BookingRequest
    from barberbook.schemas.shop_schema import Shop
    from barberbook.store.document_store import InMemoryDocumentStore
    from barberbook.tools.booking_desk import BookingDesk

    shop = Shop.model_validate(json.loads(Path(shop_path).read_text(encoding="utf-8")))
    request = BookingRequest.model_validate(
        json.loads(Path(request_path).read_text(encoding="utf-8"))
    )
    store = InMemoryDocumentStore()
    desk = BookingDesk(SlotReservationManager(store, StoreBookingGateway(store)), language)
    outcome = await desk.book(shop, request)
    print(json.dumps(outcome, indent=2, ensure_ascii=False))
    return 0 if outcome["success"] else 1


def _run_console_mode(argv: list[str]) -> None:
    """Start the offline console demo."""
    from console_demo import main as console_main

    sys.argv = [sys.argv[0], *argv]
    console_main()


def main() -> None:
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode(sys.argv[2:])
        return

    parser = argparse.ArgumentParser(description="Reserve a barbershop slot")
    sub = parser.add_subparsers(dest="command", required=True)
    book = sub.add_parser("book", help="Reserve the slot described by a request file")
    book.add_argument("shop", help="Path to the shop JSON document")
    book.add_argument("request", help="Path to the booking request JSON document")
    book.add_argument("--language", choices=SUPPORTED_LANGUAGES, default=settings.default_language)
    args = parser.parse_args()

    logger.debug("Running command %s", args.command)
    sys.exit(asyncio.run(_book(args.shop, args.request, args.language)))


if __name__ == "__main__":
    main()
