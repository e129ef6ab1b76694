"""
Slot reservation manager: hold the slot, create the booking, flip the hold.

The document store offers per-document atomicity and batched writes but no
transaction over a query predicate, so a slot is claimed with
check -> create hold -> re-check. The re-check orders every active hold for
the tuple by creation time; only the oldest may proceed, every other
claimant rolls its own hold back. Any failure after the hold exists runs
the compensating action (cancel the hold) with retry and backoff before
the error is surfaced.

Usage:
    manager = SlotReservationManager(store, gateway)
    result = await manager.reserve_slot(shop, request)
    await manager.cancel_booking(result.booking_id, "Running late")
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, Optional

from barberbook.config import ReservationConfig, settings
from barberbook.gateways.booking_gateway import BookingGateway, GatewayError
from barberbook.logging_context import get_session_logger
from barberbook.reservation.errors import (
    BookingCreationFailed,
    BookingNotFound,
    CancellationFailed,
    CleanupFailed,
    HoldCreationFailed,
    InvalidBookingRequest,
    ScheduleViolation,
    SlotUnavailable,
)
from barberbook.reservation.saga import ReservationSaga, SagaTrigger
from barberbook.reservation.schedule import validate_request
from barberbook.schemas.booking_schema import (
    BOOKINGS_COLLECTION,
    Booking,
    BookingRequest,
    BookingStatus,
    ReservationResult,
)
from barberbook.schemas.hold_schema import (
    ACTIVE_HOLD_STATUSES,
    HOLDS_COLLECTION,
    HoldStatus,
    TimeSlotHold,
)
from barberbook.schemas.notification_schema import (
    NOTIFICATIONS_COLLECTION,
    Notification,
    NotificationType,
)
from barberbook.schemas.shop_schema import Shop
from barberbook.store.document_store import (
    DocumentNotFound,
    DocumentStore,
    PreconditionFailed,
    StoreError,
)
from barberbook.utils import canonical_date, canonical_time

logger = get_session_logger(__name__)

DEAD_LETTERS_COLLECTION = "deadLetters"

_LATEST = datetime.max.replace(tzinfo=timezone.utc)


def _hold_order_key(hold: TimeSlotHold) -> tuple[datetime, str]:
    """Creation order of holds; a missing server timestamp sorts last."""
    created = hold.created_at
    if created is None:
        created = _LATEST
    elif created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created, hold.id or ""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SlotReservationManager:
    """Coordinates holds and bookings so each slot is booked by at most one customer."""

    def __init__(
        self,
        store: DocumentStore,
        gateway: BookingGateway,
        config: ReservationConfig = settings.reservation,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._config = config
        self._clock = clock
        self._sleep = sleep

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    @staticmethod
    def hold_filters(
        shop_id: str, selected_date: str, employee_id: Optional[str], time: Optional[str] = None
    ) -> dict[str, Any]:
        """Active-hold filter for a (shop, date[, time], employee-or-none) tuple.

        Shop-generic holds (employee None) only compete with other generic holds.
        """
        filters: dict[str, Any] = {
            "shopId": shop_id,
            "date": selected_date,
            "status": ACTIVE_HOLD_STATUSES,
            "employeeId": employee_id,
        }
        if time is not None:
            filters["time"] = time
        return filters

    async def blocked_times(
        self, shop_id: str, selected_date: str, employee_id: Optional[str] = None
    ) -> list[str]:
        docs = await self._store.query(
            HOLDS_COLLECTION, self.hold_filters(shop_id, selected_date, employee_id)
        )
        return sorted({TimeSlotHold.model_validate(doc).time for doc in docs})

    async def _load_booking(self, booking_id: str) -> Booking:
        try:
            doc = await self._store.get(BOOKINGS_COLLECTION, booking_id)
        except StoreError as e:
            raise CancellationFailed(
                f"Could not load booking {booking_id}", booking_id=booking_id
            ) from e
        if doc is None:
            raise BookingNotFound(f"Booking {booking_id} not found", booking_id=booking_id)
        return Booking.model_validate(doc)

    # ------------------------------------------------------------------ #
    # Reserve
    # ------------------------------------------------------------------ #

    async def reserve_slot(
        self, shop: Shop, request: BookingRequest, now: Optional[datetime] = None
    ) -> ReservationResult:
        """Claim the requested slot and create its booking.

        Raises:
            ScheduleViolation: slot is outside declared hours; nothing written.
            SlotUnavailable: another active hold owns the slot; no residual hold.
            HoldCreationFailed: the hold could not be written.
            BookingCreationFailed: booking failed, the hold was rolled back.
            CleanupFailed: booking failed and the rollback failed too.
        """
        if request.shop_id != shop.id:
            raise InvalidBookingRequest(
                f"Request is for shop {request.shop_id}, not {shop.id}", shop_id=request.shop_id
            )
        now = now or self._clock()
        saga = ReservationSaga(
            label=f"{shop.id}/{request.selected_date}/{request.selected_time}"
        )

        employee_name = request.employee_name
        if request.employee_id is not None and employee_name is None:
            employee = shop.get_employee(request.employee_id)
            employee_name = employee.name if employee else None

        try:
            validate_request(
                shop,
                request.selected_date,
                request.selected_time,
                request.employee_id,
                now,
                self._config.past_buffer_minutes,
            )
        except ScheduleViolation as e:
            saga.transition(SagaTrigger.SCHEDULE_VIOLATION, note=e.message)
            logger.info("Reservation rejected by schedule: %s", e.message)
            raise
        saga.transition(SagaTrigger.SCHEDULE_OK)

        hold_id = await self._acquire_hold(
            saga,
            shop.id,
            request.selected_date,
            request.selected_time,
            request.employee_id,
            employee_name,
        )

        try:
            booking_id = await self._gateway.create_booking(request, hold_id)
        except (GatewayError, StoreError, asyncio.TimeoutError) as e:
            saga.transition(SagaTrigger.BOOKING_FAILED, note=str(e))
            logger.warning("Booking creation failed for hold %s: %s", hold_id, e)
            await self._compensate(saga, hold_id)
            raise BookingCreationFailed(
                f"Booking could not be created: {e}", hold_id=hold_id
            ) from e

        batch = self._store.batch()
        # A hold released or rolled back meanwhile must not come back as booked.
        batch.update(HOLDS_COLLECTION, hold_id, {
            "status": HoldStatus.BOOKED.value,
            "bookingId": booking_id,
            "employeeId": request.employee_id,
            "employeeName": employee_name,
        }, expect={"status": HoldStatus.PENDING.value})
        batch.update(BOOKINGS_COLLECTION, booking_id, {
            "timeSlotId": hold_id,
            "employeeId": request.employee_id,
            "employeeName": employee_name,
        })
        try:
            await batch.commit()
        except StoreError as e:
            saga.transition(SagaTrigger.FLIP_FAILED, note=str(e))
            logger.warning("Could not flip hold %s to booked: %s", hold_id, e)
            await self._compensate(saga, hold_id, booking_id)
            raise BookingCreationFailed(
                f"Booking could not be finalized: {e}", hold_id=hold_id, booking_id=booking_id
            ) from e

        saga.transition(SagaTrigger.BOOKING_CREATED)
        logger.info(
            "Slot booked: %s %s %s employee=%s booking=%s",
            shop.id, request.selected_date, request.selected_time,
            request.employee_id, booking_id,
        )

        employee_info = f" with {employee_name}" if employee_name else ""
        await self._notify(Notification(
            type=NotificationType.NEW_BOOKING,
            shop_id=shop.id,
            title="New Booking",
            message=(
                f"New booking from {request.customer_name} for {request.selected_date} "
                f"at {request.selected_time}{employee_info}"
            ),
            booking_id=booking_id,
            customer_name=request.customer_name,
            customer_email=request.customer_email,
            appointment_date=request.selected_date,
            appointment_time=request.selected_time,
            employee_id=request.employee_id,
            total_price=request.total_price,
        ))

        return ReservationResult(
            booking_id=booking_id,
            hold_id=hold_id,
            hold_status=HoldStatus.BOOKED.value,
            shop_id=shop.id,
            date=request.selected_date,
            time=request.selected_time,
            employee_id=request.employee_id,
            total_price=request.total_price,
            state_trace=saga.get_state_trace(),
        )

    async def _acquire_hold(
        self,
        saga: ReservationSaga,
        shop_id: str,
        selected_date: str,
        selected_time: str,
        employee_id: Optional[str],
        employee_name: Optional[str],
    ) -> str:
        """Check, create a pending hold, then re-check that ours is the oldest."""
        filters = self.hold_filters(shop_id, selected_date, employee_id, selected_time)

        try:
            existing = await self._store.query(HOLDS_COLLECTION, filters)
        except StoreError as e:
            saga.transition(SagaTrigger.HOLD_FAILED, note=str(e))
            raise HoldCreationFailed(f"Could not check slot availability: {e}") from e
        if existing:
            saga.transition(SagaTrigger.SLOT_TAKEN)
            logger.info("Slot %s %s already held", selected_date, selected_time)
            raise SlotUnavailable(
                "This time slot has just been taken. Please select another time.",
                date=selected_date,
                time=selected_time,
                employee_id=employee_id,
            )

        try:
            hold = TimeSlotHold(
                shop_id=shop_id,
                date=selected_date,
                time=selected_time,
                employee_id=employee_id,
                employee_name=employee_name,
            )
            hold_id = await self._store.add(HOLDS_COLLECTION, hold.to_document())
        except StoreError as e:
            saga.transition(SagaTrigger.HOLD_FAILED, note=str(e))
            raise HoldCreationFailed(f"Could not reserve the time slot: {e}") from e
        saga.transition(SagaTrigger.HOLD_CREATED, note=hold_id)
        logger.debug("Pending hold %s created", hold_id)

        try:
            contenders = [
                TimeSlotHold.model_validate(doc)
                for doc in await self._store.query(HOLDS_COLLECTION, filters)
            ]
        except StoreError as e:
            saga.transition(SagaTrigger.RECHECK_LOST, note=f"re-check failed: {e}")
            await self._compensate(saga, hold_id)
            raise HoldCreationFailed(f"Could not confirm the time slot: {e}") from e

        ordered = sorted(contenders, key=_hold_order_key)
        if ordered and ordered[0].id != hold_id:
            saga.transition(SagaTrigger.RECHECK_LOST, note=ordered[0].id)
            logger.info("Lost slot race to hold %s; rolling back %s", ordered[0].id, hold_id)
            await self._compensate(saga, hold_id)
            raise SlotUnavailable(
                "This time slot has just been taken. Please select another time.",
                date=selected_date,
                time=selected_time,
                employee_id=employee_id,
            )
        saga.transition(SagaTrigger.RECHECK_PASSED)
        return hold_id

    # ------------------------------------------------------------------ #
    # Compensation
    # ------------------------------------------------------------------ #

    async def _compensate(
        self, saga: ReservationSaga, hold_id: str, booking_id: Optional[str] = None
    ) -> None:
        """Cancel the hold (retrying with backoff); dead-letter it if that keeps failing."""
        if booking_id is not None:
            await self._void_booking(booking_id)

        attempts = self._config.compensation_max_attempts
        delay = self._config.compensation_backoff_sec
        last_error: Optional[StoreError] = None
        for attempt in range(1, attempts + 1):
            try:
                await self._store.update(
                    HOLDS_COLLECTION, hold_id, {"status": HoldStatus.CANCELLED.value}
                )
            except DocumentNotFound:
                logger.info("Hold %s already gone", hold_id)
            except StoreError as e:
                last_error = e
                logger.warning(
                    "Rollback attempt %d/%d for hold %s failed: %s",
                    attempt, attempts, hold_id, e,
                )
                if attempt < attempts:
                    await self._sleep(delay)
                    delay = min(delay * 2, self._config.compensation_backoff_max_sec)
                continue
            saga.transition(SagaTrigger.COMPENSATED)
            logger.info("Hold %s rolled back", hold_id)
            return

        saga.transition(SagaTrigger.COMPENSATION_EXHAUSTED, note=str(last_error))
        logger.error(
            "CLEANUP FAILED: hold %s is still pending and blocks its slot after %d attempts: %s",
            hold_id, attempts, last_error,
        )
        await self._dead_letter(hold_id, booking_id, attempts, last_error)
        raise CleanupFailed(
            f"Could not release hold {hold_id}", hold_id=hold_id, booking_id=booking_id
        ) from last_error

    async def _void_booking(self, booking_id: str) -> None:
        """Cancel a booking whose hold is being rolled back, so it stops occupying the slot."""
        try:
            await self._store.update(BOOKINGS_COLLECTION, booking_id, {
                "status": BookingStatus.CANCELLED.value,
                "cancellationReason": "reservation rolled back",
                "cancelledBy": "system",
                "cancelledAt": self._clock(),
            })
        except StoreError as e:
            logger.error("Could not void booking %s during rollback: %s", booking_id, e)

    async def _dead_letter(
        self,
        hold_id: str,
        booking_id: Optional[str],
        attempts: int,
        error: Optional[Exception],
    ) -> None:
        try:
            await self._store.add(DEAD_LETTERS_COLLECTION, {
                "kind": "hold_cleanup",
                "collection": HOLDS_COLLECTION,
                "holdId": hold_id,
                "bookingId": booking_id,
                "attempts": attempts,
                "error": str(error) if error else None,
            })
        except StoreError as e:
            logger.error("Could not dead-letter hold %s: %s", hold_id, e)

    async def _notify(self, notification: Notification) -> None:
        """Best-effort shop-owner notification; failures never affect the booking."""
        try:
            await self._store.add(
                NOTIFICATIONS_COLLECTION, notification.model_dump(mode="json", by_alias=True)
            )
        except StoreError as e:
            logger.warning(
                "Notification '%s' for booking %s not created: %s",
                notification.type.value, notification.booking_id, e,
            )

    # ------------------------------------------------------------------ #
    # Cancel / release
    # ------------------------------------------------------------------ #

    async def cancel_booking(
        self, booking_id: str, reason: str, cancelled_by: str = "customer"
    ) -> bool:
        """Cancel a booking and its hold in one batch.

        Returns False (and does nothing else) when the booking is already
        cancelled, including when a concurrent cancel commits first.
        """
        booking = await self._load_booking(booking_id)
        if booking.status == BookingStatus.CANCELLED:
            logger.info("Booking %s already cancelled", booking_id)
            return False

        batch = self._store.batch()
        batch.update(BOOKINGS_COLLECTION, booking_id, {
            "status": BookingStatus.CANCELLED.value,
            "cancellationReason": reason,
            "cancelledBy": cancelled_by,
            "cancelledAt": self._clock(),
        }, expect={"status": booking.status.value})
        try:
            for hold_id in await self._linked_hold_ids(booking):
                batch.update(HOLDS_COLLECTION, hold_id, {"status": HoldStatus.CANCELLED.value})
            await batch.commit()
        except PreconditionFailed as e:
            current = await self._load_booking(booking_id)
            if current.status == BookingStatus.CANCELLED:
                logger.info("Booking %s was cancelled concurrently", booking_id)
                return False
            logger.warning("Booking %s changed while cancelling: %s", booking_id, e)
            raise CancellationFailed(
                f"Booking {booking_id} changed while cancelling; try again",
                booking_id=booking_id,
            ) from e
        except StoreError as e:
            logger.error("Cancellation of booking %s failed: %s", booking_id, e)
            raise CancellationFailed(
                f"Could not cancel booking {booking_id}", booking_id=booking_id
            ) from e
        logger.info("Booking %s cancelled by %s", booking_id, cancelled_by)

        contact = {
            "customerEmail": booking.customer_email,
            "customerName": booking.customer_name,
            "shopEmail": booking.shop_email,
            "selectedDate": booking.selected_date,
            "selectedTime": booking.selected_time,
        }
        try:
            await self._gateway.cancel_booking(booking_id, reason, contact)
        except GatewayError as e:
            logger.warning("Cancellation e-mails for booking %s failed: %s", booking_id, e)

        await self._notify(Notification(
            type=NotificationType.BOOKING_CANCELLED,
            shop_id=booking.shop_id,
            title="Appointment Cancelled",
            message=(
                f"{booking.customer_name} cancelled their appointment for "
                f"{booking.selected_date} at {booking.selected_time}. Reason: {reason}"
            ),
            booking_id=booking_id,
            customer_name=booking.customer_name,
            appointment_date=booking.selected_date,
            appointment_time=booking.selected_time,
            employee_id=booking.employee_id,
            total_price=booking.total_price,
            cancellation_reason=reason,
            cancelled_by=cancelled_by,
        ))
        return True

    async def _linked_hold_ids(self, booking: Booking) -> list[str]:
        """Active holds belonging to the booking (by back-reference, else by bookingId)."""
        if booking.time_slot_id:
            doc = await self._store.get(HOLDS_COLLECTION, booking.time_slot_id)
            if doc is not None and TimeSlotHold.model_validate(doc).is_active:
                return [booking.time_slot_id]
            return []
        docs = await self._store.query(HOLDS_COLLECTION, {
            "bookingId": booking.id,
            "status": ACTIVE_HOLD_STATUSES,
        })
        return [doc["id"] for doc in docs]

    async def release_slot(
        self, hold_id: str, reason: str = "Time slot released", released_by: str = "shop"
    ) -> bool:
        """Free a slot by its hold id; missing or already-cancelled holds are a no-op.

        A booked hold is released through cancel_booking, so the booking and
        its hold end up cancelled together.
        """
        try:
            doc = await self._store.get(HOLDS_COLLECTION, hold_id)
        except StoreError as e:
            raise CancellationFailed(f"Could not load hold {hold_id}", hold_id=hold_id) from e
        if doc is None:
            return False
        hold = TimeSlotHold.model_validate(doc)
        if not hold.is_active:
            return False

        booking_cancelled = False
        if hold.booking_id is not None:
            try:
                booking_cancelled = await self.cancel_booking(
                    hold.booking_id, reason, released_by
                )
            except BookingNotFound:
                logger.warning("Hold %s points at missing booking %s", hold_id, hold.booking_id)

        # Covers holds without a booking and bookings linked to a different hold.
        batch = self._store.batch()
        batch.update(
            HOLDS_COLLECTION,
            hold_id,
            {"status": HoldStatus.CANCELLED.value},
            expect={"status": ACTIVE_HOLD_STATUSES},
        )
        try:
            await batch.commit()
        except (DocumentNotFound, PreconditionFailed):
            return booking_cancelled
        except StoreError as e:
            logger.error("Release of hold %s failed: %s", hold_id, e)
            raise CancellationFailed(f"Could not release hold {hold_id}", hold_id=hold_id) from e
        logger.info("Hold %s released by %s", hold_id, released_by)
        return True

    # ------------------------------------------------------------------ #
    # Staff status changes
    # ------------------------------------------------------------------ #

    async def _set_status(
        self, booking_id: str, status: BookingStatus, allowed_from: tuple[BookingStatus, ...]
    ) -> None:
        booking = await self._load_booking(booking_id)
        if booking.status == status:
            return
        if booking.status not in allowed_from:
            raise InvalidBookingRequest(
                f"Cannot mark a {booking.status.value} booking as {status.value}",
                booking_id=booking_id,
            )
        await self._store.update(BOOKINGS_COLLECTION, booking_id, {"status": status.value})
        logger.info("Booking %s marked %s", booking_id, status.value)

    async def confirm_booking(self, booking_id: str) -> None:
        await self._set_status(
            booking_id,
            BookingStatus.CONFIRMED,
            (BookingStatus.PENDING, BookingStatus.RESCHEDULED),
        )

    async def complete_booking(self, booking_id: str) -> None:
        await self._set_status(
            booking_id,
            BookingStatus.COMPLETED,
            (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.RESCHEDULED),
        )

    # ------------------------------------------------------------------ #
    # Reschedule
    # ------------------------------------------------------------------ #

    async def reschedule_booking(
        self,
        shop: Shop,
        booking_id: str,
        new_date: str,
        new_time: str,
        reason: str = "Customer requested reschedule",
        now: Optional[datetime] = None,
    ) -> ReservationResult:
        """Move a booking to a new slot: hold the new slot, then swap holds in one batch."""
        new_date, new_time = canonical_date(new_date), canonical_time(new_time)
        booking = await self._load_booking(booking_id)
        if booking.status in (BookingStatus.CANCELLED, BookingStatus.COMPLETED):
            raise InvalidBookingRequest(
                f"Cannot reschedule a {booking.status.value} booking", booking_id=booking_id
            )
        if (booking.selected_date, booking.selected_time) == (new_date, new_time):
            raise InvalidBookingRequest(
                "New time is the same as the current one", booking_id=booking_id
            )

        now = now or self._clock()
        saga = ReservationSaga(label=f"{shop.id}/{new_date}/{new_time}/reschedule")
        try:
            validate_request(
                shop, new_date, new_time, booking.employee_id, now,
                self._config.past_buffer_minutes,
            )
        except ScheduleViolation as e:
            saga.transition(SagaTrigger.SCHEDULE_VIOLATION, note=e.message)
            raise
        saga.transition(SagaTrigger.SCHEDULE_OK)

        new_hold_id = await self._acquire_hold(
            saga, shop.id, new_date, new_time, booking.employee_id, booking.employee_name
        )

        batch = self._store.batch()
        batch.update(BOOKINGS_COLLECTION, booking_id, {
            "selectedDate": new_date,
            "selectedTime": new_time,
            "previousDate": booking.selected_date,
            "previousTime": booking.selected_time,
            "status": BookingStatus.RESCHEDULED.value,
            "timeSlotId": new_hold_id,
            "reschedulingReason": reason,
            "rescheduledAt": now,
        })
        batch.update(HOLDS_COLLECTION, new_hold_id, {
            "status": HoldStatus.BOOKED.value,
            "bookingId": booking_id,
        }, expect={"status": HoldStatus.PENDING.value})
        try:
            for old_hold_id in await self._linked_hold_ids(booking):
                batch.update(HOLDS_COLLECTION, old_hold_id, {"status": HoldStatus.CANCELLED.value})
            await batch.commit()
        except StoreError as e:
            saga.transition(SagaTrigger.FLIP_FAILED, note=str(e))
            await self._compensate(saga, new_hold_id)
            raise BookingCreationFailed(
                f"Booking could not be rescheduled: {e}", booking_id=booking_id
            ) from e
        saga.transition(SagaTrigger.BOOKING_CREATED)
        logger.info(
            "Booking %s moved from %s %s to %s %s",
            booking_id, booking.selected_date, booking.selected_time, new_date, new_time,
        )

        await self._notify(Notification(
            type=NotificationType.BOOKING_MODIFIED,
            shop_id=shop.id,
            title="Appointment Rescheduled",
            message=(
                f"{booking.customer_name} rescheduled their appointment from "
                f"{booking.selected_time} on {booking.selected_date} to {new_time} on {new_date}"
            ),
            booking_id=booking_id,
            customer_name=booking.customer_name,
            appointment_date=new_date,
            appointment_time=new_time,
            employee_id=booking.employee_id,
            total_price=booking.total_price,
        ))

        return ReservationResult(
            booking_id=booking_id,
            hold_id=new_hold_id,
            hold_status=HoldStatus.BOOKED.value,
            shop_id=shop.id,
            date=new_date,
            time=new_time,
            employee_id=booking.employee_id,
            total_price=booking.total_price,
            state_trace=saga.get_state_trace(),
        )
