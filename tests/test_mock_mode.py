import json
import os
import re

os.environ.setdefault("USE_MOCK_DATA", "true")
os.environ.setdefault("SUPABASE_URL", "https://project.supabase.test")
os.environ.setdefault("SUPABASE_KEY", "mock-key")

from fastapi.testclient import TestClient  # noqa: E402

from backoffice.app.main import app  # noqa: E402

import pytest  # noqa: E402


@pytest.fixture()
def client():
    with TestClient(app) as c:
        yield c


def test_health_endpoint(client):
    response = client.get("/api/system/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["use_mock_data"] is True
    assert data["data_source"] == "mock"
    assert data["default_currency"] == "GBP"
    assert data["cached_rates"] == 0
    assert data["activity_entries"] == 0


def test_inventory_listing_with_filters(client):
    response = client.get("/api/inventory/flights", params={"departure_airport_code": "MAN"})
    assert response.status_code == 200
    page = response.json()
    assert page["total"] == 1
    assert page["items"][0]["airline"] == "easyJet"

    response = client.get(
        "/api/inventory/flights",
        params={"filters": json.dumps({"max_price": 300}), "sort_by": "price_gbp"},
    )
    assert [item["id"] for item in response.json()["items"]] == ["fl-man-nce"]

    response = client.get("/api/inventory/venues", params={"search": "monte", "page_size": 1})
    assert response.json()["items"][0]["id"] == "venue-monaco"


def test_inventory_list_errors(client):
    assert client.get("/api/inventory/hotels").status_code == 404
    response = client.get("/api/inventory/flights", params={"colour": "red"})
    assert response.status_code == 400
    assert "colour" in response.json()["detail"]
    response = client.get("/api/inventory/flights", params={"filters": "[1, 2]"})
    assert response.status_code == 400
    assert response.json()["detail"] == "filters must be a JSON object"


def test_inventory_crud_cycle(client):
    create_response = client.post(
        "/api/inventory/circuit_transfers",
        json={
            "event_id": "event-monaco-2025",
            "transfer_type": "mpv",
            "coach_capacity": 7,
            "days": 2,
            "supplier_currency": "EUR",
            "coach_cost_per_day_local": 400,
            "markup_percent": 10,
        },
    )
    assert create_response.status_code == 201
    created = create_response.json()
    assert created["total_coach_cost_local"] == 800.0
    assert created["total_coach_cost_gbp"] == 680.0
    record_id = created["id"]

    update_response = client.put(
        f"/api/inventory/circuit_transfers/{record_id}", json={"notes": "Pick-up at hotel lobby"}
    )
    assert update_response.status_code == 200
    assert update_response.json()["notes"] == "Pick-up at hotel lobby"

    get_response = client.get(f"/api/inventory/circuit_transfers/{record_id}")
    assert get_response.json()["transfer_type"] == "mpv"

    delete_response = client.delete(f"/api/inventory/circuit_transfers/{record_id}")
    assert delete_response.json() == {"status": "deleted", "id": record_id}
    missing = client.get(f"/api/inventory/circuit_transfers/{record_id}")
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Circuit transfer not found"

    activity = client.get("/api/system/activity").json()
    assert [entry["action"] for entry in activity][-3:] == [
        "inventory.update",
        "inventory.get",
        "inventory.delete",
    ]


def test_inventory_mutation_errors(client):
    invalid = client.post("/api/inventory/airport_transfers", json={"transport_type": "helicopter"})
    assert invalid.status_code == 422

    missing = client.put("/api/inventory/venues/nope", json={"city": "Nowhere"})
    assert missing.status_code == 404
    assert missing.json()["detail"].startswith("Failed to update venue:")

    activity = client.get("/api/system/activity").json()
    assert activity[-1]["status"] == "error"
    assert client.delete("/api/system/activity").json() == {"status": "cleared"}
    assert client.get("/api/system/activity").json() == []


def test_bulk_delete(client):
    response = client.post(
        "/api/inventory/ticket_categories/bulk-delete", json={"ids": ["tc-club", "tc-grandstand-k"]}
    )
    assert response.json() == {"status": "deleted", "deleted": 2}
    assert client.get("/api/inventory/ticket_categories").json()["total"] == 0
    assert client.post("/api/inventory/venues/bulk-delete", json={"ids": []}).status_code == 422


def test_quote_view_and_update(client):
    listing = client.get("/api/quotes", params={"status": "sent"}).json()
    assert [quote["id"] for quote in listing] == ["quote-array"]

    view = client.get("/api/quotes/quote-array").json()
    assert view["quote"]["quote_number"] == "Q-2025-0001"
    assert [flight["route"] for flight in view["flights"]] == ["LHR → NCE"]
    names = [component["name"] for component in view["components"]]
    assert names == ["Event Ticket", "Hotel Room", "Circuit Transfer", "Airport Transfer", "Lounge Pass"]

    assert client.get("/api/quotes/nope").status_code == 404

    updated = client.put("/api/quotes/quote-draft", json={"status": "sent"})
    assert updated.status_code == 200
    assert updated.json()["quote"]["status"] == "sent"
    assert client.put("/api/quotes/quote-draft", json={"status": "shipped"}).status_code == 422


def test_quote_pdf_download(client):
    response = client.get("/api/quotes/quote-array/pdf")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert re.search(r'filename="quote-Q-2025-0001-\d{4}-\d{2}-\d{2}\.pdf"', response.headers["content-disposition"])
    assert response.content.startswith(b"%PDF")


def test_booking_form_and_creation(client):
    form_response = client.get("/api/bookings/from-quote/quote-array/form")
    assert form_response.status_code == 200
    view = form_response.json()
    assert view["state"] == "ready"
    form = view["form"]
    assert form["lead_traveler"]["first_name"] == "Alice"
    assert len(form["guest_travelers"]) == 1

    rejected = client.post("/api/bookings/from-quote/quote-array", json=form)
    assert rejected.status_code == 422
    assert rejected.json()["detail"] == "All guest travelers must have first and last names."

    form["guest_travelers"] = [{"first_name": "Mark", "last_name": "Example"}]
    created = client.post("/api/bookings/from-quote/quote-array", json=form)
    assert created.status_code == 201
    booking = created.json()
    assert booking["state"] == "success"
    assert re.fullmatch(r"B-\d{4}-[A-Z0-9]{6}", booking["booking_reference"])

    repeat = client.post("/api/bookings/from-quote/quote-array", json=form)
    assert repeat.status_code == 409
    assert repeat.json()["detail"]["booking_id"] == booking["booking_id"]

    assert client.get("/api/bookings/from-quote/quote-array/form").json()["state"] == "already_booked"
    assert client.get("/api/bookings/by-quote/quote-array").json()["id"] == booking["booking_id"]

    details = client.get(f"/api/bookings/{booking['booking_id']}").json()
    assert len(details["travelers"]) == 2
    assert details["quote"]["status"] == "confirmed"

    pdf = client.get(f"/api/bookings/{booking['booking_id']}/pdf")
    assert pdf.status_code == 200
    assert pdf.content.startswith(b"%PDF")
    assert "booking-B-" in pdf.headers["content-disposition"]


def test_booking_errors(client):
    assert client.post("/api/bookings/from-quote/nope", json={}).status_code == 404
    assert client.get("/api/bookings/by-quote/quote-draft").status_code == 404
    assert client.get("/api/bookings/nope").status_code == 404

    draft = client.post("/api/bookings/from-quote/quote-draft", json={})
    assert draft.status_code == 422
    assert draft.json()["detail"].startswith("Cannot create booking from quote with status: draft")

    client.put("/api/inventory/airport_transfers/at-nice-private", json={"used": 6})
    unavailable = client.post("/api/bookings/from-quote/quote-legacy", json={})
    assert unavailable.status_code == 400
    assert unavailable.json()["detail"].startswith("Some components are no longer available")


def test_bookings_list(client):
    bookings = client.get("/api/bookings").json()
    assert [booking["booking_reference"] for booking in bookings] == ["B-2025-DEMO01"]


def test_exchange_rate_lookup_and_cache(client):
    rate = client.get("/api/system/rates", params={"from": "eur"}).json()
    assert rate == {"from": "EUR", "to": "GBP", "rate": 0.85, "source": "service"}
    assert client.get("/api/system/rates", params={"from": "GBP", "to": "GBP"}).json()["source"] == "identity"
    assert client.get("/api/system/rates", params={"from": "JPY"}).json() == {
        "from": "JPY",
        "to": "GBP",
        "rate": None,
        "source": "unavailable",
    }
    assert client.get("/api/system/rates", params={"from": "EURO"}).status_code == 422

    assert client.get("/api/system/health").json()["cached_rates"] == 1
    assert client.delete("/api/system/rates").json() == {"status": "cleared", "dropped": 1}
    assert client.get("/api/system/health").json()["cached_rates"] == 0


def test_activity_filters(client):
    client.get("/api/inventory/flights/fl-lhr-nce")
    client.put("/api/inventory/venues/nope", json={"city": "Nowhere"})
    errors = client.get("/api/system/activity", params={"status": "error"}).json()
    assert [entry["action"] for entry in errors] == ["inventory.update"]
    gets = client.get("/api/system/activity", params={"action": "inventory.get"}).json()
    assert len(gets) == 1
    assert len(client.get("/api/system/activity", params={"limit": 1}).json()) == 1
    assert client.get("/api/system/activity", params={"status": "pending"}).status_code == 422


def test_new_inventory_tables(client):
    rooms = client.get("/api/inventory/hotel_rooms").json()
    assert [room["id"] for room in rooms["items"]] == ["room-hermitage"]
    passes = client.get("/api/inventory/lounge_passes", params={"is_active": "true"}).json()
    assert passes["total"] == 1

    created = client.post(
        "/api/inventory/tickets",
        json={"ticket_category_id": "tc-club", "quantity_total": 12, "price": 400, "markup_percent": 10},
    )
    assert created.status_code == 201
    assert created.json()["quantity_available"] == 12
    assert created.json()["price_with_markup"] == 440.0
    assert client.post("/api/inventory/tickets", json={"quantity_total": 1, "price": 1}).status_code == 422


def test_booking_status_update(client):
    response = client.put("/api/bookings/booking-existing/status", json={"status": "completed", "notes": "Event over"})
    assert response.status_code == 200
    assert response.json()["status"] == "completed"

    details = client.get("/api/bookings/booking-existing").json()
    assert details["activities"][-1]["activity_description"] == "Booking status updated to completed: Event over"

    assert client.put("/api/bookings/booking-existing/status", json={"status": "lost"}).status_code == 422
    missing = client.put("/api/bookings/nope/status", json={"status": "confirmed"})
    assert missing.status_code == 404
    assert client.get("/api/system/activity").json()[-1]["action"] == "bookings.status"
