import pytest

from backoffice.app.models.components import ComponentType, CustomData, FlightData
from backoffice.app.services.components import (
    booking_kind,
    classify_component,
    coerce_component_list,
    extract_component_info,
    normalize_component,
    resolve_component_type,
)
from backoffice.app.services.fields import format_type_label, resolve_quantity, unwrap


def test_airport_transfer_example():
    raw = {
        "component_type": "airport_transfer",
        "component_data": {"transport_type": "hotel_chauffeur", "transferDirection": "outbound"},
        "quantity": 2,
    }
    info = extract_component_info(raw)
    assert info.model_dump() == {
        "name": "Airport Transfer",
        "details": "Hotel Chauffeur, Direction: Outbound",
        "quantity": 2,
    }


@pytest.mark.parametrize(
    "raw",
    [
        None,
        {},
        [],
        "",
        0,
        "just a string",
        42,
        ["nested", {"garbage": True}],
        {"data": {"data": {"data": None}}},
        {"componentData": "not-a-dict", "quantity": "many"},
        {"component_type": "hotel_room", "data": {"checkIn": {"weird": []}}},
        {"component_type": 7, "variant": ["Lounge"]},
    ],
)
def test_extractor_is_total(raw):
    info = extract_component_info(raw)
    assert isinstance(info.name, str) and info.name
    assert isinstance(info.details, str) and info.details
    assert info.quantity >= 1


def test_falsy_input_yields_na():
    assert extract_component_info(None).model_dump() == {"name": "N/A", "details": "N/A", "quantity": 1}


def test_empty_mapping_uses_generic_fallback():
    info = extract_component_info({})
    assert (info.name, info.details, info.quantity) == ("Component", "Service Included", 1)


def test_ticket_with_seat():
    info = extract_component_info(
        {"componentType": "ticket", "data": {"category_name": "Grandstand K", "seat_number": "12B"}}
    )
    assert info.name == "Event Ticket"
    assert info.details == "Grandstand K (Seat: 12B)"


def test_ticket_inferred_from_category():
    assert classify_component({"category": "Paddock Club"}) is ComponentType.TICKET


def test_hotel_details_are_joined_in_order():
    info = extract_component_info(
        {
            "hotelName": "Fairmont Monte Carlo",
            "roomType": "Deluxe",
            "bedType": "King",
            "checkIn": "2025-05-22",
            "checkOut": "2025-05-26",
            "quantity": 1,
        }
    )
    assert info.name == "Hotel Room"
    assert info.details == (
        "Fairmont Monte Carlo, Room: Deluxe, Bed: King, Check-in: 22/05/2025, Check-out: 26/05/2025"
    )


def test_circuit_transfer_days():
    info = extract_component_info({"data": {"transfer_type": "coach", "days": 3}, "quantity": 4})
    assert info.name == "Circuit Transfer"
    assert info.details == "Coach, Days: 3"
    assert info.quantity == 4


def test_lounge_from_variant():
    raw = {"variant": "Plaza Premium Lounge"}
    assert classify_component(raw) is ComponentType.LOUNGE_PASS
    info = extract_component_info(raw)
    assert info.name == "Lounge Pass"
    assert info.details == "Plaza Premium Lounge"


def test_explicit_tag_beats_shape():
    raw = {"componentType": "airport_transfer", "hotel_name": "Ignored", "transport_type": "private_car"}
    assert classify_component(raw) is ComponentType.AIRPORT_TRANSFER


def test_shape_rules_are_ordered():
    # ticket fields are checked before hotel fields
    assert classify_component({"category": "K", "hotel_id": "h1"}) is ComponentType.TICKET
    assert classify_component({"transfer_type": "coach", "transport_type": "car"}) is ComponentType.CIRCUIT_TRANSFER


def test_generic_component_uses_name_and_description():
    info = extract_component_info({"name": "Paddock Tour", "description": "Guided pit lane walk"})
    assert (info.name, info.details) == ("Paddock Tour", "Guided pit lane walk")


def test_unknown_explicit_tag_is_title_cased():
    component = normalize_component({"component_type": "vip_experience"})
    assert component.component_type is ComponentType.CUSTOM
    assert isinstance(component.component_data, CustomData)
    assert component.component_data.display_name == "Vip Experience"
    assert component.component_data.description == "Service Included"


def test_flight_payload_is_normalized_once():
    component = normalize_component({"componentType": "flight", "data": {"origin": "LHR", "destination": "NCE"}})
    assert isinstance(component.component_data, FlightData)
    assert extract_component_info(
        {"componentType": "flight", "data": {"origin": "LHR", "destination": "NCE"}}
    ).details == "LHR → NCE"


def test_quantity_resolution_order():
    assert resolve_quantity({"quantity": 3}, {"quantity": 5}) == 3
    assert resolve_quantity({}, {"quantity": 5, "used": 2}) == 5
    assert resolve_quantity({}, {"used": 2, "capacity": 9}) == 2
    assert resolve_quantity({}, {"capacity": 9}) == 9
    assert resolve_quantity({"quantity": 0}, {}) == 1


def test_format_type_label():
    assert format_type_label("hotel_chauffeur") == "Hotel Chauffeur"
    assert format_type_label("mpv") == "Mpv"


def test_resolve_component_type_prefers_stored_type():
    assert resolve_component_type({"type": "flight", "hotel_name": "x"}) == "flight"
    assert resolve_component_type({"hotel_name": "x"}) == "hotel_room"


def test_coerce_legacy_object_shape():
    components = coerce_component_list(
        {
            "tickets": [{"id": "t1", "category": "K"}],
            "loungePass": {"id": "lp1", "variant": "No1 Lounge"},
            "hotels": [],
            "circuitTransfer": None,
        }
    )
    assert [component["componentType"] for component in components] == ["ticket", "lounge_pass"]


def test_coerce_array_drops_non_mappings():
    assert coerce_component_list([{"id": "a"}, None, "x"]) == [{"id": "a"}]
    assert coerce_component_list(None) == []


def test_untagged_route_record_is_a_flight():
    raw = {"data": {"origin": "LHR", "destination": "NCE", "airline": "British Airways"}}
    assert classify_component(raw) is ComponentType.FLIGHT
    assert resolve_component_type(raw) == "flight"
    assert extract_component_info(raw).details == "LHR → NCE"


def test_booking_kind_follows_flight_partition():
    components = [
        {"componentType": "flight", "data": {"origin": "LHR", "destination": "NCE"}},
        {"data": {"outboundFlightSegments": [{"flightNumber": "BA342"}]}},
        {"componentType": "ticket", "data": {"class": "Grandstand"}},
        {"componentType": "hotel_room", "data": {"hotel_name": "Hermitage"}},
    ]
    assert [booking_kind(component) for component in components] == [
        "flight",
        "flight",
        "flight",
        "hotel_room",
    ]


def test_empty_wrapper_is_still_the_payload():
    raw = {"componentType": "ticket", "component_data": {}, "data": {"category_name": "Grandstand K"}}
    assert unwrap(raw) == {}
    assert extract_component_info(raw).details == "General Admission"
    assert unwrap({"data": {"seat": "12B"}}) == {"seat": "12B"}
    assert unwrap({"componentData": "not-a-dict", "seat": "12B"}) == {"componentData": "not-a-dict", "seat": "12B"}
