import asyncio
import re
from datetime import date, datetime, timezone

import pytest

from backoffice.app.config import Settings
from backoffice.app.models.booking import (
    BookingCreated,
    BookingForm,
    BookingFormView,
    BookingPayment,
    GuestTraveler,
    LeadTraveler,
    Quote,
)
from backoffice.app.services.booking_workflow import (
    BookingCreationError,
    BookingValidationError,
    BookingWorkflow,
    InvalidTransitionError,
    friendly_booking_error,
    prefill_booking_form,
    validate_booking_submission,
)
from backoffice.app.services.bookings import (
    BookingService,
    ComponentsUnavailableError,
    build_component_rows,
    generate_booking_reference,
    merge_form_entries,
)
from backoffice.app.services.mock_client import MockSupabaseClient
from backoffice.app.services.quotes import QuoteService

TODAY = date(2025, 1, 15)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture()
def client():
    return MockSupabaseClient(Settings())


def make_workflow(client) -> BookingWorkflow:
    clock = lambda: datetime(2025, 1, 15, 9, 30, tzinfo=timezone.utc)  # noqa: E731
    return BookingWorkflow(QuoteService(client), BookingService(client, clock=clock), today=lambda: TODAY)


def make_quote(**overrides) -> Quote:
    values = {"id": "q-1", "status": "sent", "travelers_adults": 3, "total_price": 5000.0}
    values.update(overrides)
    return Quote(**values)


def named_guests(count):
    return [GuestTraveler(first_name=f"Guest{n}", last_name="Example") for n in range(count)]


def test_traveler_count_must_match_adults():
    quote = make_quote()
    with pytest.raises(BookingValidationError) as excinfo:
        validate_booking_submission(quote, BookingForm(guest_travelers=named_guests(1)))
    assert str(excinfo.value) == "Traveler count mismatch. Expected 3 adults, but have 2 travelers."
    validate_booking_submission(quote, BookingForm(guest_travelers=named_guests(2)))


def test_missing_adult_count_expects_lead_only():
    validate_booking_submission(make_quote(travelers_adults=None), BookingForm())


def test_missing_quote_and_unbookable_status():
    with pytest.raises(BookingValidationError, match="Quote data not available"):
        validate_booking_submission(None, BookingForm())
    with pytest.raises(BookingValidationError) as excinfo:
        validate_booking_submission(make_quote(status="draft", travelers_adults=1), BookingForm())
    assert str(excinfo.value) == (
        "Cannot create booking from quote with status: draft. "
        "Quote must be sent, accepted, or confirmed."
    )


def test_guest_names_are_required():
    guests = named_guests(1) + [GuestTraveler(first_name="  ", last_name="Example")]
    with pytest.raises(BookingValidationError, match="All guest travelers must have first and last names."):
        validate_booking_submission(make_quote(), BookingForm(guest_travelers=guests))


@pytest.mark.parametrize(
    "final, ok",
    [(2000.0, True), (2000.01, True), (1999.99, True), (2000.011, False), (2000.02, False)],
)
def test_adjusted_payments_within_a_penny(final, ok):
    form = BookingForm(
        guest_travelers=named_guests(2),
        use_original_payment_schedule=False,
        adjusted_payments=[
            BookingPayment(payment_type="deposit", amount=1500),
            BookingPayment(payment_type="second_payment", amount=1500),
            BookingPayment(payment_type="final_payment", amount=final),
        ],
    )
    if ok:
        validate_booking_submission(make_quote(), form)
    else:
        with pytest.raises(BookingValidationError, match=r"must equal quote total \(£5000.00\)"):
            validate_booking_submission(make_quote(), form)


def test_original_schedule_skips_payment_check():
    form = BookingForm(
        guest_travelers=named_guests(2),
        adjusted_payments=[BookingPayment(payment_type="deposit", amount=1)],
    )
    validate_booking_submission(make_quote(), form)


def test_friendly_errors():
    assert friendly_booking_error("Booking already exists for this quote").startswith(
        "A booking already exists for this quote"
    )
    assert friendly_booking_error("Some components are not available: x").startswith(
        "Some components are no longer available"
    )
    assert friendly_booking_error("Quote not found or access denied").startswith("Quote not found")
    assert friendly_booking_error("connection reset") == "connection reset"


def test_prefill_from_array_quote(client):
    quote = run(QuoteService(client).get_quote("quote-array"))
    form = prefill_booking_form(quote, TODAY)
    assert form.lead_traveler.first_name == "Alice"
    assert form.lead_traveler.last_name == "Mary Example"
    assert form.lead_traveler.email == "alice@example.com"
    assert len(form.guest_travelers) == 1
    assert len(form.flights) == 1
    assert len(form.lounge_passes) == 1
    assert form.flights[0].flight_status == "Booked - Not Ticketed"
    deposit = form.adjusted_payments[0]
    assert (deposit.payment_type, deposit.amount, deposit.due_date) == ("deposit", 1500.0, "2025-01-15")
    assert form.deposit_paid and form.use_original_payment_schedule


def test_prefill_from_legacy_quote(client):
    quote = run(QuoteService(client).get_quote("quote-legacy"))
    form = prefill_booking_form(quote, TODAY)
    assert (form.lead_traveler.first_name, form.lead_traveler.last_name) == ("Bob", "Sample")
    assert form.guest_travelers == []
    assert len(form.flights) == 1
    assert len(form.lounge_passes) == 1


def test_existing_booking_short_circuits(client):
    workflow = make_workflow(client)
    view = run(workflow.load("quote-booked"))
    assert view.state == "already_booked"
    assert view.booking["booking_reference"] == "B-2025-DEMO01"
    assert view.form is None
    assert len(run(client.select("bookings"))) == 1
    with pytest.raises(InvalidTransitionError):
        run(workflow.submit(BookingForm()))


def test_missing_quote(client):
    view = run(make_workflow(client).load("nope"))
    assert view.state == "error"
    assert view.error == "Quote not found or access denied"


def test_concurrent_booking_is_detected_on_submit(client):
    workflow = make_workflow(client)
    view = run(workflow.load("quote-array"))
    run(client.insert("bookings", {"quote_id": "quote-array", "booking_reference": "B-2025-OTHER1"}))

    result = run(workflow.submit(view.form))
    assert isinstance(result, BookingFormView)
    assert result.state == "already_booked"
    assert len(run(client.select("bookings", [("quote_id", "eq", "quote-array")]))) == 1


def test_full_booking_from_array_quote(client):
    workflow = make_workflow(client)
    view = run(workflow.load("quote-array"))
    assert view.state == "ready"

    form = view.form
    form.guest_travelers = [GuestTraveler(first_name="Mark", last_name="Example")]
    form.flights[0].booking_ref = "PNR123"
    form.lounge_passes[0].booking_ref = "LNG-9"
    form.deposit_reference = "DEP-001"

    result = run(workflow.submit(form))
    assert isinstance(result, BookingCreated)
    assert workflow.state == "success"
    assert re.fullmatch(r"B-\d{4}-[A-Z0-9]{6}", result.booking_reference)

    booking = run(client.get("bookings", result.booking_id))
    assert booking["status"] == "pending_payment"
    assert booking["quote_id"] == "quote-array"
    assert booking["package_snapshot"]["tier_name"] == "Gold"
    assert booking["lead_traveler_id"]

    by_booking = [("booking_id", "eq", result.booking_id)]
    payments = run(client.select("booking_payments", by_booking, order="payment_number"))
    assert [p["payment_type"] for p in payments] == ["deposit", "second_payment", "final_payment"]
    assert payments[0]["paid"] is True
    assert "paid" not in payments[1]
    assert payments[0]["due_date"] == "2025-01-31"

    travelers = run(client.select("booking_travelers", by_booking))
    assert [(t["traveler_type"], t["first_name"]) for t in travelers] == [("lead", "Alice"), ("guest", "Mark")]

    flights = run(client.select("bookings_flights", by_booking))
    assert len(flights) == 1
    assert flights[0]["booking_pnr"] == "PNR123"
    assert flights[0]["flight_status"] == "Booked - Not Ticketed"

    lounges = run(client.select("bookings_lounge_passes", by_booking))
    assert lounges[0]["booking_reference"] == "LNG-9"
    assert lounges[0]["total_price"] == 90.0

    components = run(client.select("booking_components", by_booking))
    assert sorted(c["component_type"] for c in components) == [
        "airport_transfer",
        "circuit_transfer",
        "hotel_room",
        "ticket",
    ]
    ticket = next(c for c in components if c["component_type"] == "ticket")
    assert ticket["total_price"] == 1900.0

    assert run(client.get("quotes", "quote-array"))["status"] == "confirmed"


def test_adjusted_schedule_is_stored(client):
    workflow = make_workflow(client)
    form = run(workflow.load("quote-legacy")).form
    form.use_original_payment_schedule = False
    form.adjusted_payments = [
        BookingPayment(payment_type="deposit", amount=1200, due_date="2025-01-15"),
        BookingPayment(payment_type="final_payment", amount=1200, due_date="2025-04-01"),
    ]
    result = run(workflow.submit(form))

    booking = run(client.get("bookings", result.booking_id))
    assert [p["amount"] for p in booking["payment_schedule_snapshot"]["adjusted"]] == [1200, 1200]
    assert len(booking["payment_schedule_snapshot"]["original"]) == 3
    payments = run(client.select("booking_payments", [("booking_id", "eq", result.booking_id)]))
    assert [p["payment_number"] for p in payments] == [1, 2]


def test_guard_failure_returns_to_editing(client):
    workflow = make_workflow(client)
    form = run(workflow.load("quote-array")).form
    with pytest.raises(BookingValidationError):
        run(workflow.submit(form))
    assert workflow.state == "editing"

    form.guest_travelers = [GuestTraveler(first_name="Mark", last_name="Example")]
    assert isinstance(run(workflow.submit(form)), BookingCreated)


def test_unavailable_components_are_retryable(client):
    run(client.update("airport_transfers", "at-nice-private", {"used": 6}))
    workflow = make_workflow(client)
    form = run(workflow.load("quote-legacy")).form

    with pytest.raises(BookingCreationError) as excinfo:
        run(workflow.submit(form))
    assert str(excinfo.value) == "Some components are no longer available. Please check the quote and try again."
    assert excinfo.value.retryable
    assert workflow.state == "error"
    assert run(client.select("bookings", [("quote_id", "eq", "quote-legacy")])) == []
    assert run(client.get("quotes", "quote-legacy"))["status"] == "accepted"


def test_availability_report_lists_each_problem(client):
    run(client.update("circuit_transfers", "ct-monaco-coach", {"used": 50}))
    run(client.update("flights", "fl-lhr-nce", {"is_active": False}))
    service = BookingService(client)
    quote = run(QuoteService(client).get_quote("quote-legacy"))
    assert run(service.check_component_availability(quote)) == [
        "Circuit Transfers: coach (requested: 1, available: 0)",
        "Flights: BA342 (no longer available)",
    ]
    array_quote = run(QuoteService(client).get_quote("quote-array"))
    assert run(service.check_component_availability(array_quote)) == []


def test_service_rejects_unavailable_components(client):
    run(client.update("flights", "fl-lhr-nce", {"is_active": False}))
    workflow = make_workflow(client)
    form = run(workflow.load("quote-legacy")).form
    with pytest.raises(BookingCreationError) as excinfo:
        run(workflow.submit(form))
    assert isinstance(excinfo.value.__cause__, ComponentsUnavailableError)
    assert excinfo.value.__cause__.unavailable == ["Flights: BA342 (no longer available)"]


def test_form_entries_merge_by_ordinal():
    components = [
        {"id": "f1", "type": "flight"},
        {"id": "t1", "type": "ticket"},
        {"id": "f2", "type": "flight"},
        {"id": "l1", "type": "lounge_pass"},
    ]
    form = BookingForm(
        lead_traveler=LeadTraveler(first_name="A", last_name="B"),
        flights=[{"booking_ref": "ONE"}],
        lounge_passes=[{"booking_ref": "LP"}],
    )
    merged = merge_form_entries(components, form.flights, form.lounge_passes)
    assert merged[0]["bookingRef"] == "ONE"
    assert "bookingRef" not in merged[1]
    assert "bookingRef" not in merged[2]
    assert merged[3]["bookingRef"] == "LP"


def test_booking_reference_format():
    reference = generate_booking_reference(datetime(2031, 6, 1, tzinfo=timezone.utc))
    assert re.fullmatch(r"B-2031-[A-Z0-9]{6}", reference)


def seed_quote(client, quote_id, components, **overrides):
    row = {
        "id": quote_id,
        "quote_number": f"Q-{quote_id}",
        "status": "sent",
        "client_name": "Eve Mixed",
        "client_email": "eve@example.com",
        "travelers_adults": 1,
        "total_price": 1000.0,
        "currency": "GBP",
        "payment_deposit": 300.0,
        "payment_second_payment": 300.0,
        "payment_final_payment": 400.0,
        "selected_components": components,
    }
    row.update(overrides)
    run(client.insert("quotes", row))


def test_tagged_and_untagged_flights_book_in_order(client):
    seed_quote(
        client,
        "quote-mixed",
        [
            {"id": "fl-out", "type": "flight", "data": {"origin": "LHR", "destination": "NCE", "price": 300}},
            {"id": "tk-1", "componentType": "ticket", "data": {"category_name": "Grandstand K", "price": 950}},
            {"id": "fl-back", "data": {"originAirport": "NCE", "destinationAirport": "LHR", "airline": "easyJet"}},
        ],
    )
    workflow = make_workflow(client)
    form = run(workflow.load("quote-mixed")).form
    assert len(form.flights) == 2
    form.flights[0].booking_ref = "OUT1"
    form.flights[1].booking_ref = "RET1"

    result = run(workflow.submit(form))
    details = run(BookingService(client).get_booking_details(result.booking_id))
    assert [(f["source_flight_id"], f["flight_sequence"], f["booking_pnr"]) for f in details["flights"]] == [
        ("fl-out", 1, "OUT1"),
        ("fl-back", 2, "RET1"),
    ]
    assert [c["component_type"] for c in details["components"]] == ["ticket"]


def test_placeholder_prices_count_as_zero():
    rows = build_component_rows(
        [
            {"id": "c1", "name": "Paddock Tour", "unitPrice": "TBC", "quantity": 2},
            {"id": "c2", "name": "Pit Walk", "totalPrice": "450"},
            {"id": "c3", "name": "Gala Dinner", "data": {"price": 120}, "quantity": 3},
        ],
        "GBP",
    )["booking_components"]
    assert [(r["unit_price"], r["total_price"]) for r in rows] == [(0.0, 0.0), (0.0, 450.0), (120.0, 360.0)]


def test_booking_with_unpriced_component_succeeds(client):
    seed_quote(client, "quote-tbc", [{"id": "c1", "name": "Paddock Tour", "unitPrice": "TBC"}])
    workflow = make_workflow(client)
    result = run(workflow.submit(run(workflow.load("quote-tbc")).form))
    assert isinstance(result, BookingCreated)
    components = run(client.select("booking_components", [("booking_id", "eq", result.booking_id)]))
    assert components[0]["total_price"] == 0.0


class FlakyTravelerClient(MockSupabaseClient):
    """Fails traveler writes until ``healthy`` is set."""

    healthy = False

    async def insert(self, table, row):
        if table == "booking_travelers" and not self.healthy:
            raise RuntimeError("connection reset by peer")
        return await super().insert(table, row)


def test_failed_child_writes_roll_the_booking_back():
    client = FlakyTravelerClient(Settings())
    workflow = make_workflow(client)
    form = run(workflow.load("quote-array")).form
    form.guest_travelers = [GuestTraveler(first_name="Mark", last_name="Example")]

    with pytest.raises(BookingCreationError) as excinfo:
        run(workflow.submit(form))
    assert str(excinfo.value) == "connection reset by peer"
    assert workflow.state == "error"
    assert run(client.select("bookings", [("quote_id", "eq", "quote-array")])) == []
    assert run(client.select("booking_payments")) == []
    assert run(client.select("booking_components")) == []
    assert run(client.select("bookings_flights")) == []
    assert run(client.get("quotes", "quote-array"))["status"] == "sent"

    client.healthy = True
    assert isinstance(run(workflow.submit(form)), BookingCreated)


def test_availability_covers_tickets_rooms_and_lounge(client):
    run(client.update("tickets", "tk-monaco-k", {"quantity_available": 0}))
    run(client.update("hotel_rooms", "room-hermitage", {"quantity_available": 0}))
    run(client.update("lounge_passes", "lp-heathrow", {"is_active": False}))
    quote = run(QuoteService(client).get_quote("quote-legacy"))
    assert run(BookingService(client).check_component_availability(quote)) == [
        "Tickets: Grandstand K (requested: 1, available: 0)",
        "Hotel Rooms: deluxe_double (requested: 1, available: 0)",
        "Lounge Pass: No1 Lounge (no longer available)",
    ]


def test_missing_inventory_rows_are_unavailable(client):
    run(client.delete("hotel_rooms", "room-hermitage"))
    quote = run(QuoteService(client).get_quote("quote-legacy"))
    assert run(BookingService(client).check_component_availability(quote)) == [
        "Hotel Rooms: Unknown (requested: 1, available: 0)",
    ]


def test_status_update_stamps_and_logs(client):
    clock = lambda: datetime(2025, 1, 15, 9, 30, tzinfo=timezone.utc)  # noqa: E731
    service = BookingService(client, clock=clock)

    booking = run(service.update_booking_status("booking-existing", "cancelled", "Client request"))
    assert booking["status"] == "cancelled"
    assert booking["cancelled_at"] == "2025-01-15T09:30:00+00:00"
    assert "confirmed_at" not in booking

    booking = run(service.update_booking_status("booking-existing", "confirmed"))
    assert booking["confirmed_at"] == "2025-01-15T09:30:00+00:00"

    activities = run(service.list_booking_activities("booking-existing"))
    assert [a["activity_description"] for a in activities] == [
        "Booking status updated to cancelled: Client request",
        "Booking status updated to confirmed",
    ]


def test_booking_creation_is_logged(client):
    workflow = make_workflow(client)
    form = run(workflow.load("quote-legacy")).form
    result = run(workflow.submit(form))
    activities = run(BookingService(client).list_booking_activities(result.booking_id))
    assert [(a["activity_type"], a["performed_by"]) for a in activities] == [("booking_created", "Bob Sample")]
    assert activities[0]["activity_description"] == "Booking created from quote Q-2024-0042"
