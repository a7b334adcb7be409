"""Booking persistence: promotion of a quote into a booking."""

from __future__ import annotations

import random
import string
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from backoffice.app.models.booking import (
    BookingPayment,
    CreateBookingData,
    FlightBookingEntry,
    GuestTraveler,
    LeadTraveler,
    LoungePassBookingEntry,
    Quote,
)
from backoffice.app.services.components import booking_kind, coerce_component_list
from backoffice.app.services.fields import as_mapping, as_positive_int
from backoffice.app.services.flights import DEFAULT_FLIGHT_STATUS
from backoffice.app.services.supabase_client import SupabaseAPIError


class BookingServiceError(Exception):
    """Base class for booking persistence failures."""


class QuoteNotFoundError(BookingServiceError):
    def __init__(self) -> None:
        super().__init__("Quote not found or access denied")


class BookingExistsError(BookingServiceError):
    def __init__(self) -> None:
        super().__init__("Booking already exists for this quote")


class ComponentsUnavailableError(BookingServiceError):
    def __init__(self, unavailable: List[str]):
        self.unavailable = unavailable
        super().__init__(f"Some components are no longer available: {', '.join(unavailable)}")


BOOKING_CHILD_TABLES = (
    "booking_components",
    "booking_payments",
    "booking_travelers",
    "bookings_flights",
    "bookings_lounge_passes",
)


def _entries(value: Any) -> List[Dict[str, Any]]:
    """Legacy collections hold a list of records or a single record."""
    if isinstance(value, dict):
        return [value] if value else []
    return [entry for entry in value or [] if isinstance(entry, dict)]


def generate_booking_reference(now: Optional[datetime] = None) -> str:
    """``B-{year}-{six upper-case alphanumerics}``."""
    year = (now or datetime.now(timezone.utc)).year
    token = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"B-{year}-{token}"


def default_payment_schedule(quote: Quote) -> List[BookingPayment]:
    return [
        BookingPayment(
            payment_type="deposit",
            amount=quote.payment_deposit or 0,
            due_date=quote.payment_deposit_date or "",
        ),
        BookingPayment(
            payment_type="second_payment",
            amount=quote.payment_second_payment or 0,
            due_date=quote.payment_second_payment_date or "",
        ),
        BookingPayment(
            payment_type="final_payment",
            amount=quote.payment_final_payment or 0,
            due_date=quote.payment_final_payment_date or "",
        ),
    ]


def merge_form_entries(
    components: List[Dict[str, Any]],
    flights: List[FlightBookingEntry],
    lounge_passes: List[LoungePassBookingEntry],
) -> List[Dict[str, Any]]:
    """Attach the n-th flight/lounge form entry to the n-th flight/lounge component."""
    merged: List[Dict[str, Any]] = []
    flight_index = lounge_index = 0
    for component in components:
        enhanced = dict(component)
        kind = booking_kind(component)
        if kind == "flight":
            if flight_index < len(flights):
                entry = flights[flight_index]
                enhanced.update(
                    bookingRef=entry.booking_ref,
                    ticketingDeadline=entry.ticketing_deadline,
                    flightStatus=entry.flight_status,
                    notes=entry.notes,
                )
            flight_index += 1
        elif kind == "lounge_pass":
            if lounge_index < len(lounge_passes):
                entry = lounge_passes[lounge_index]
                enhanced.update(bookingRef=entry.booking_ref, notes=entry.notes)
            lounge_index += 1
        merged.append(enhanced)
    return merged


def _amount(value: Any) -> float:
    """Price fields may hold placeholders such as ``"TBC"``; those count as zero."""
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if number == number and number > 0 else 0.0


def _prices(component: Dict[str, Any]) -> Dict[str, Any]:
    data = as_mapping(component.get("data") or component.get("componentData") or component.get("component_data"))
    quantity = as_positive_int(component.get("quantity")) or 1
    unit = _amount(component.get("unitPrice") or data.get("price") or component.get("price"))
    total = _amount(component.get("totalPrice")) or unit * quantity
    return {"quantity": quantity, "unit_price": unit, "total_price": total}


def build_component_rows(
    components: List[Dict[str, Any]], currency: str
) -> Dict[str, List[Dict[str, Any]]]:
    """Rows for each child table, keyed by table name and still missing ``booking_id``.

    Flights and lounge passes get their own tables; the rest share one.
    """
    tables: Dict[str, List[Dict[str, Any]]] = {
        "bookings_flights": [],
        "bookings_lounge_passes": [],
        "booking_components": [],
    }
    for component in components:
        kind = booking_kind(component)
        data = as_mapping(component.get("data") or component.get("componentData") or component.get("component_data"))
        prices = _prices(component)
        if kind == "flight":
            tables["bookings_flights"].append(
                {
                    "flight_sequence": len(tables["bookings_flights"]) + 1,
                    "source_flight_id": component.get("id"),
                    "api_source": data.get("source") or "manual",
                    "ticketing_deadline": component.get("ticketingDeadline") or data.get("ticketingDeadline"),
                    "booking_pnr": component.get("bookingRef") or data.get("bookingRef"),
                    "flight_status": component.get("flightStatus") or DEFAULT_FLIGHT_STATUS,
                    "flight_details": data or component,
                    "currency": currency,
                    "refundable": bool(data.get("refundable")),
                    **prices,
                }
            )
        elif kind == "lounge_pass":
            tables["bookings_lounge_passes"].append(
                {
                    "lounge_pass_id": component.get("id"),
                    "booking_reference": component.get("bookingRef") or data.get("bookingRef"),
                    "notes": component.get("notes"),
                    **prices,
                }
            )
        else:
            tables["booking_components"].append(
                {
                    "component_type": kind,
                    "component_id": component.get("id"),
                    "component_name": component.get("name") or component.get("component_name"),
                    "component_data": data or component,
                    "component_snapshot": component,
                    **prices,
                }
            )
    return tables


class BookingService:
    """Creates and reads bookings through the backend client."""

    def __init__(self, client: Any, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self._client = client
        self._clock = clock

    async def list_bookings(self) -> List[Dict[str, Any]]:
        return await self._client.select("bookings", order="created_at", ascending=False)

    async def get_booking(self, booking_id: str) -> Optional[Dict[str, Any]]:
        return await self._client.get("bookings", booking_id)

    async def get_booking_by_quote(self, quote_id: str) -> Optional[Dict[str, Any]]:
        rows = await self._client.select("bookings", [("quote_id", "eq", quote_id)])
        return rows[0] if rows else None

    async def get_booking_details(self, booking_id: str) -> Optional[Dict[str, Any]]:
        """Booking row plus its child rows and source quote."""
        booking = await self.get_booking(booking_id)
        if booking is None:
            return None
        by_booking = [("booking_id", "eq", booking_id)]
        quote = await self._client.get("quotes", booking["quote_id"]) if booking.get("quote_id") else None
        return {
            "booking": booking,
            "quote": quote,
            "components": await self._client.select("booking_components", by_booking),
            "flights": await self._client.select("bookings_flights", by_booking, order="flight_sequence"),
            "lounge_passes": await self._client.select("bookings_lounge_passes", by_booking),
            "payments": await self._client.select("booking_payments", by_booking, order="payment_number"),
            "travelers": await self._client.select("booking_travelers", by_booking),
            "activities": await self.list_booking_activities(booking_id),
        }

    async def check_component_availability(self, quote: Quote) -> List[str]:
        """Capacity/active checks for legacy object-shaped quotes; returns problems."""
        selected = quote.selected_components
        if not isinstance(selected, dict):
            return []
        unavailable: List[str] = []
        for ticket in _entries(selected.get("tickets")):
            row = await self._client.get("tickets", ticket.get("id")) or {}
            category = await self._client.get("ticket_categories", row.get("ticket_category_id")) or {}
            free = row.get("quantity_available") or 0
            requested = as_positive_int(ticket.get("quantity")) or 1
            if free < requested:
                unavailable.append(
                    f"Tickets: {category.get('category_name') or 'Unknown'} "
                    f"(requested: {requested}, available: {free})"
                )
        for hotel in _entries(selected.get("hotels")):
            row = await self._client.get("hotel_rooms", hotel.get("roomId")) or {}
            free = row.get("quantity_available") or 0
            requested = as_positive_int(hotel.get("quantity")) or 1
            if free < requested:
                unavailable.append(
                    f"Hotel Rooms: {row.get('room_type_id') or 'Unknown'} "
                    f"(requested: {requested}, available: {free})"
                )
        for transfer in _entries(selected.get("circuitTransfers")):
            row = await self._client.get("circuit_transfers", transfer.get("id")) or {}
            free = (row.get("coach_capacity") or 0) - (row.get("used") or 0)
            requested = as_positive_int(transfer.get("quantity")) or 1
            if free < requested:
                unavailable.append(
                    f"Circuit Transfers: {row.get('transfer_type') or 'Unknown'} "
                    f"(requested: {requested}, available: {free})"
                )
        for transfer in _entries(selected.get("airportTransfers")):
            row = await self._client.get("airport_transfers", transfer.get("id")) or {}
            free = (row.get("max_capacity") or 0) - (row.get("used") or 0)
            requested = as_positive_int(transfer.get("quantity")) or 1
            if free < requested:
                unavailable.append(
                    f"Airport Transfers: {row.get('transport_type') or 'Unknown'} "
                    f"(requested: {requested}, available: {free})"
                )
        for flight in _entries(selected.get("flights")):
            row = await self._client.get("flights", flight.get("id")) or {}
            if not row.get("is_active"):
                unavailable.append(
                    f"Flights: {row.get('outbound_flight_number') or 'Unknown'} (no longer available)"
                )
        for lounge in _entries(selected.get("loungePass")):
            row = await self._client.get("lounge_passes", lounge.get("id")) or {}
            if not row.get("is_active"):
                unavailable.append(f"Lounge Pass: {row.get('variant') or 'Unknown'} (no longer available)")
        return unavailable

    async def create_booking_from_quote(self, data: CreateBookingData) -> Dict[str, Any]:
        """Persist a booking and its child rows; returns the booking row.

        Child rows are built before anything is written. If writing them
        fails, the partially created booking is deleted again so the quote
        stays bookable.
        """
        row = await self._client.get("quotes", data.quote_id)
        if not row:
            raise QuoteNotFoundError()
        quote = Quote.model_validate(row)

        if await self.get_booking_by_quote(data.quote_id):
            raise BookingExistsError()

        unavailable = await self.check_component_availability(quote)
        if unavailable:
            raise ComponentsUnavailableError(unavailable)

        components = merge_form_entries(
            coerce_component_list(quote.selected_components), data.flights, data.lounge_passes
        )
        child_rows = build_component_rows(components, quote.currency)
        original = [payment.model_dump() for payment in default_payment_schedule(quote)]
        adjusted = data.adjusted_payment_schedule
        booking = await self._client.insert(
            "bookings",
            {
                "booking_reference": generate_booking_reference(self._clock()),
                "quote_id": data.quote_id,
                "client_id": quote.client_id,
                "event_id": quote.event_id,
                "status": "pending_payment",
                "total_price": quote.total_price,
                "currency": quote.currency,
                "deposit_paid": data.deposit_paid,
                "deposit_reference": data.deposit_reference,
                "payment_schedule_snapshot": {
                    "original": original,
                    "adjusted": [payment.model_dump() for payment in adjusted] if adjusted else original,
                },
                "package_snapshot": {
                    "package_id": quote.package_id,
                    "package_name": quote.package_name,
                    "tier_id": quote.tier_id,
                    "tier_name": quote.tier_name,
                    "selected_components": quote.selected_components,
                    "booking_notes": data.booking_notes,
                    "internal_notes": data.internal_notes,
                    "special_requests": data.special_requests,
                },
            },
        )
        booking_id = booking["id"]

        try:
            await self.create_booking_components(booking_id, child_rows)
            await self.create_payment_schedule(
                booking_id, adjusted or default_payment_schedule(quote), data.deposit_paid
            )
            await self.create_traveler_records(booking_id, data.lead_traveler, data.guest_travelers)
        except Exception:
            logger.error("Rolling back booking {id} for quote {quote}", id=booking_id, quote=data.quote_id)
            await self.delete_booking(booking_id)
            raise

        try:
            await self._client.update(
                "quotes",
                data.quote_id,
                {"status": "confirmed", "confirmed_at": self._clock().isoformat()},
            )
        except SupabaseAPIError as exc:
            logger.error(
                "Failed to mark quote {quote} confirmed: {error}", quote=data.quote_id, error=exc.message
            )

        lead = f"{data.lead_traveler.first_name} {data.lead_traveler.last_name}"
        await self.log_booking_activity(
            booking_id, "booking_created", f"Booking created from quote {quote.quote_number or quote.id}", lead
        )
        logger.info(
            "Booking {reference} created from quote {quote} for {lead}",
            reference=booking.get("booking_reference"),
            quote=data.quote_id,
            lead=lead,
        )
        return booking

    async def create_booking_components(
        self, booking_id: str, child_rows: Dict[str, List[Dict[str, Any]]]
    ) -> None:
        for table, rows in child_rows.items():
            await self._client.insert_many(table, [{"booking_id": booking_id, **row} for row in rows])

    async def delete_booking(self, booking_id: str) -> None:
        """Remove a booking and every child row pointing at it."""
        by_booking = [("booking_id", "eq", booking_id)]
        for table in BOOKING_CHILD_TABLES:
            for row in await self._client.select(table, by_booking, columns="id"):
                await self._client.delete(table, row["id"])
        await self._client.delete("bookings", booking_id)
        logger.info("Deleted booking {id}", id=booking_id)

    async def update_booking_status(
        self, booking_id: str, status: str, notes: Optional[str] = None, performed_by: Optional[str] = None
    ) -> Dict[str, Any]:
        """Set ``status`` and stamp ``confirmed_at``/``cancelled_at`` when applicable."""
        now = self._clock().isoformat()
        changes: Dict[str, Any] = {"status": status, "updated_at": now}
        if status == "confirmed":
            changes["confirmed_at"] = now
        elif status == "cancelled":
            changes["cancelled_at"] = now
        booking = await self._client.update("bookings", booking_id, changes)
        description = f"Booking status updated to {status}"
        if notes:
            description = f"{description}: {notes}"
        await self.log_booking_activity(booking_id, "status_updated", description, performed_by)
        return booking

    async def log_booking_activity(
        self, booking_id: str, activity_type: str, description: str, performed_by: Optional[str] = None
    ) -> None:
        """Append to the booking activity log; failures are logged, never raised."""
        try:
            await self._client.insert(
                "booking_activities",
                {
                    "booking_id": booking_id,
                    "activity_type": activity_type,
                    "activity_description": description,
                    "performed_by": performed_by,
                    "performed_at": self._clock().isoformat(),
                },
            )
        except SupabaseAPIError as exc:
            logger.warning(
                "Failed to log {activity} for booking {id}: {error}",
                activity=activity_type,
                id=booking_id,
                error=exc.message,
            )

    async def list_booking_activities(self, booking_id: str) -> List[Dict[str, Any]]:
        return await self._client.select(
            "booking_activities", [("booking_id", "eq", booking_id)], order="performed_at"
        )

    async def create_payment_schedule(
        self, booking_id: str, payments: List[BookingPayment], deposit_paid: bool
    ) -> None:
        records = []
        for number, payment in enumerate(payments, start=1):
            record: Dict[str, Any] = {
                "booking_id": booking_id,
                "payment_type": payment.payment_type,
                "payment_number": number,
                "amount": payment.amount,
                "due_date": payment.due_date or None,
                "notes": payment.notes,
            }
            if payment.payment_type == "deposit" and deposit_paid:
                record["paid"] = True
                record["paid_at"] = self._clock().isoformat()
            records.append(record)
        await self._client.insert_many("booking_payments", records)

    async def create_traveler_records(
        self, booking_id: str, lead: LeadTraveler, guests: List[GuestTraveler]
    ) -> None:
        lead_row = await self._client.insert(
            "booking_travelers",
            {
                "booking_id": booking_id,
                "traveler_type": "lead",
                "first_name": lead.first_name,
                "last_name": lead.last_name,
                "email": lead.email,
                "phone": lead.phone,
                "address": lead.address,
            },
        )
        await self._client.update("bookings", booking_id, {"lead_traveler_id": lead_row.get("id")})
        await self._client.insert_many(
            "booking_travelers",
            [
                {
                    "booking_id": booking_id,
                    "traveler_type": "guest",
                    "first_name": guest.first_name,
                    "last_name": guest.last_name,
                }
                for guest in guests
            ],
        )
