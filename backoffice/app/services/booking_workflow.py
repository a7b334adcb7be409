"""Quote-to-booking workflow: form prefill, submission guards and state."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Callable, Dict, FrozenSet, Optional, Union

from loguru import logger

from backoffice.app.models.booking import (
    BOOKABLE_STATUSES,
    BookingCreated,
    BookingForm,
    BookingFormView,
    BookingPayment,
    CreateBookingData,
    FlightBookingEntry,
    GuestTraveler,
    LeadTraveler,
    LoungePassBookingEntry,
    Quote,
)
from backoffice.app.services.bookings import BookingService, BookingServiceError
from backoffice.app.services.components import booking_kind, coerce_component_list
from backoffice.app.services.quotes import QuoteService
from backoffice.app.services.supabase_client import SupabaseAPIError

PAYMENT_TOLERANCE = Decimal("0.01")

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "loading": frozenset({"ready", "error", "already_booked"}),
    "ready": frozenset({"editing"}),
    "editing": frozenset({"editing", "submitting"}),
    "submitting": frozenset({"success", "error", "editing", "already_booked"}),
    "error": frozenset({"loading", "editing"}),
    "success": frozenset(),
    "already_booked": frozenset(),
}

FRIENDLY_ERRORS = (
    ("already exists", "A booking already exists for this quote. Please check the bookings list."),
    ("no longer available", "Some components are no longer available. Please check the quote and try again."),
    ("not available", "Some components are no longer available. Please check the quote and try again."),
    ("not found", "Quote not found or access denied. Please refresh the page and try again."),
)


class BookingValidationError(ValueError):
    """A submission guard rejected the form; the user must correct it."""


class BookingCreationError(Exception):
    """The backend rejected a validated booking; the user may retry."""

    retryable = True


class InvalidTransitionError(RuntimeError):
    pass


def friendly_booking_error(message: str) -> str:
    """Map known backend failures to operator-facing wording."""
    for needle, friendly in FRIENDLY_ERRORS:
        if needle in message:
            return friendly
    return message


def expected_travelers(quote: Quote) -> int:
    return quote.travelers_adults or 1


def validate_booking_submission(quote: Optional[Quote], form: BookingForm) -> None:
    """Run the submission guards in order; the first failure raises."""
    if quote is None:
        raise BookingValidationError("Quote data not available")

    if quote.status not in BOOKABLE_STATUSES:
        raise BookingValidationError(
            f"Cannot create booking from quote with status: {quote.status}. "
            "Quote must be sent, accepted, or confirmed."
        )

    expected = expected_travelers(quote)
    total = 1 + len(form.guest_travelers)
    if total != expected:
        raise BookingValidationError(
            f"Traveler count mismatch. Expected {expected} adults, but have {total} travelers."
        )

    if any(
        not guest.first_name.strip() or not guest.last_name.strip()
        for guest in form.guest_travelers
    ):
        raise BookingValidationError("All guest travelers must have first and last names.")

    if not form.use_original_payment_schedule:
        adjusted_total = sum(
            (Decimal(str(payment.amount)) for payment in form.adjusted_payments), Decimal("0")
        )
        quote_total = Decimal(str(quote.total_price or 0))
        if abs(adjusted_total - quote_total) > PAYMENT_TOLERANCE:
            raise BookingValidationError(
                f"Adjusted payment total (£{adjusted_total:.2f}) "
                f"must equal quote total (£{quote_total:.2f})"
            )


def prefill_booking_form(quote: Quote, today: date) -> BookingForm:
    """Initial form state derived from the quote."""
    first_name, *last_parts = (quote.client_name or "").split(" ")
    guest_count = max(expected_travelers(quote) - 1, 0)
    components = coerce_component_list(quote.selected_components)
    kinds = [booking_kind(component) for component in components]

    return BookingForm(
        lead_traveler=LeadTraveler(
            first_name=first_name,
            last_name=" ".join(last_parts),
            email=quote.client_email or "",
            phone=quote.client_phone or "",
        ),
        guest_travelers=[GuestTraveler() for _ in range(guest_count)],
        deposit_paid=True,
        use_original_payment_schedule=True,
        adjusted_payments=[
            BookingPayment(
                payment_type="deposit",
                amount=quote.payment_deposit or 0,
                due_date=today.isoformat(),
                notes="Deposit payment",
            ),
            BookingPayment(
                payment_type="second_payment",
                amount=quote.payment_second_payment or 0,
                due_date=quote.payment_second_payment_date or "",
                notes="Second payment",
            ),
            BookingPayment(
                payment_type="final_payment",
                amount=quote.payment_final_payment or 0,
                due_date=quote.payment_final_payment_date or "",
                notes="Final payment",
            ),
        ],
        flights=[FlightBookingEntry() for kind in kinds if kind == "flight"],
        lounge_passes=[LoungePassBookingEntry() for kind in kinds if kind == "lounge_pass"],
    )


def build_booking_payload(quote: Quote, form: BookingForm) -> CreateBookingData:
    return CreateBookingData(
        quote_id=quote.id,
        lead_traveler=form.lead_traveler,
        guest_travelers=form.guest_travelers,
        adjusted_payment_schedule=None
        if form.use_original_payment_schedule
        else form.adjusted_payments,
        booking_notes=form.booking_notes,
        internal_notes=form.internal_notes,
        special_requests=form.special_requests,
        deposit_paid=form.deposit_paid,
        deposit_reference=form.deposit_reference,
        flights=form.flights,
        lounge_passes=form.lounge_passes,
    )


class BookingWorkflow:
    """Drives one quote through loading, editing and submission.

    ``load`` resolves to ``ready``, ``error`` (quote missing) or
    ``already_booked``. ``submit`` moves ``editing → submitting`` and ends in
    ``success``, ``already_booked``, back in ``editing`` when a guard fails, or
    in a retryable ``error`` when the backend rejects the booking.
    """

    def __init__(
        self,
        quotes: QuoteService,
        bookings: BookingService,
        today: Callable[[], date] = date.today,
    ):
        self._quotes = quotes
        self._bookings = bookings
        self._today = today
        self.state = "loading"
        self.quote: Optional[Quote] = None

    def _transition(self, target: str) -> None:
        if target not in TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"Cannot move booking workflow from {self.state} to {target}")
        logger.debug("Booking workflow {source} -> {target}", source=self.state, target=target)
        self.state = target

    async def load(self, quote_id: str) -> BookingFormView:
        if self.state == "error":
            self._transition("loading")
        self.quote = await self._quotes.get_quote(quote_id)
        if self.quote is None:
            self._transition("error")
            return BookingFormView(state="error", error="Quote not found or access denied")

        existing = await self._bookings.get_booking_by_quote(quote_id)
        if existing:
            self._transition("already_booked")
            return BookingFormView(state="already_booked", quote=self.quote, booking=existing)

        self._transition("ready")
        return BookingFormView(
            state="ready", quote=self.quote, form=prefill_booking_form(self.quote, self._today())
        )

    async def submit(self, form: BookingForm) -> Union[BookingCreated, BookingFormView]:
        self._transition("editing")
        self._transition("submitting")

        existing = await self._bookings.get_booking_by_quote(self.quote.id) if self.quote else None
        if existing:
            self._transition("already_booked")
            return BookingFormView(state="already_booked", quote=self.quote, booking=existing)

        try:
            validate_booking_submission(self.quote, form)
        except BookingValidationError:
            self._transition("editing")
            raise

        payload = build_booking_payload(self.quote, form)
        try:
            booking = await self._bookings.create_booking_from_quote(payload)
        except BookingServiceError as exc:
            self._transition("error")
            raise BookingCreationError(friendly_booking_error(str(exc))) from exc
        except SupabaseAPIError as exc:
            self._transition("error")
            raise BookingCreationError(friendly_booking_error(exc.message)) from exc
        except Exception as exc:  # noqa: BLE001
            self._transition("error")
            logger.exception("Unexpected failure creating booking for quote {quote}", quote=payload.quote_id)
            raise BookingCreationError(friendly_booking_error(str(exc))) from exc

        self._transition("success")
        return BookingCreated(
            booking_id=str(booking["id"]),
            booking_reference=str(booking.get("booking_reference") or booking["id"]),
        )
