"""Field-synonym table and probing helpers for loosely typed component records.

Every logical attribute of a component is listed once in ``FIELD_SYNONYMS``
together with the raw key spellings seen across live inventory rows, frozen
quote snapshots and legacy booking payloads. Lookups walk the keys in the
listed order and return the first *present* value (``None``, empty strings,
empty containers, ``False`` and ``0`` count as absent).
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

WRAPPER_KEYS = ("component_data", "componentData", "data")
TAG_KEYS = ("component_type", "componentType")

FIELD_SYNONYMS: Dict[str, Sequence[str]] = {
    # tickets
    "ticket.category_name": ("ticket_category_name", "category", "categoryName", "category_name", "name"),
    "ticket.seat": ("seat", "seat_number", "seatNumber"),
    # hotel rooms
    "hotel.hotel_name": ("hotel_name", "hotelName", "hotel"),
    "hotel.room_type": ("room_type", "roomType", "room", "room_name"),
    "hotel.bed_type": ("bed_type", "bedType"),
    "hotel.check_in": ("check_in", "checkIn"),
    "hotel.check_out": ("check_out", "checkOut"),
    # transfers
    "airport_transfer.transport_type": ("transport_type", "transportType"),
    "airport_transfer.direction": ("direction", "transferDirection"),
    "circuit_transfer.transfer_type": ("transfer_type", "transferType"),
    "circuit_transfer.days": ("days", "number_of_days", "duration"),
    # lounge passes
    "lounge_pass.lounge_name": ("lounge_name", "loungeName", "name", "variant"),
    # generic components
    "custom.display_name": ("name", "component_name"),
    "custom.description": ("description", "details"),
    # quantities, in resolution order
    "quantity": ("quantity", "used", "capacity"),
    # flights: route and itinerary
    "flight.origin": (
        "originAirport",
        "origin",
        "departure_airport",
        "outbound_departure_airport_code",
        "departure_airport_code",
    ),
    "flight.destination": (
        "destinationAirport",
        "destination",
        "arrival_airport",
        "outbound_arrival_airport_code",
        "arrival_airport_code",
    ),
    "flight.outbound_segments": ("outboundFlightSegments", "outbound_flight_segments"),
    "flight.return_segments": ("returnFlightSegments", "return_flight_segments"),
    "flight.outbound_leg": ("outboundFlight", "outbound_flight"),
    "flight.return_leg": ("inboundFlight", "inbound_flight", "returnFlight"),
    "flight.single_numbers": (
        "outboundFlightNumber",
        "outbound_flight_number",
        "flightNumber",
        "flight_number",
        "inboundFlightNumber",
        "inbound_flight_number",
        "returnFlightNumber",
        "return_flight_number",
    ),
    "flight.departure_datetime": (
        "departureDate",
        "departureDateTime",
        "departure_datetime",
        "outbound_departure_datetime",
        "departureTime",
    ),
    "flight.return_datetime": (
        "returnDate",
        "returnDateTime",
        "return_departure_datetime",
        "inbound_departure_datetime",
    ),
    "flight.total_price": ("total", "totalFare", "price"),
    "flight.currency": ("currency", "currencyId", "currencyCode", "currencySymbol"),
    "flight.passengers": ("passengers", "Passengers", "passengerCount"),
    "flight.airline": ("airline", "airlineName", "marketingAirlineName"),
    "flight.cabin_class": ("cabin", "class", "cabinClass", "flight_class", "CabinId"),
    "flight.fare_type": ("fareTypeName", "fareType", "fare_type"),
    "flight.baggage_pieces": ("baggagePieces", "baggage_pieces"),
    "flight.baggage_allowance": ("baggageAllowance", "BaggageAllowance"),
    "flight.refundable": ("refundable", "isRefundable"),
    "flight.layovers": ("layovers", "layovers_outbound"),
    "flight.loyalty_program": ("loyaltyProgram", "frequentFlyerProgram", "loyalty"),
    "flight.rating": ("rating", "fareRating"),
    "flight.is_corporate": ("isCorporate", "corporate"),
    "flight.is_premium": ("isPremium", "premium"),
    "flight.is_baggage_only": ("isBaggageOnly", "baggageOnly"),
    "flight.is_semi_deferred": ("isSemiDeferred", "semiDeferred"),
    # flight segments
    "segment.departure_airport_name": ("departureAirportName", "DepartureAirportName"),
    "segment.departure_airport_code": (
        "departureAirportId",
        "departureAirportCode",
        "DepartureAirportId",
        "departure_airport_code",
    ),
    "segment.arrival_airport_name": ("arrivalAirportName", "ArrivalAirportName"),
    "segment.arrival_airport_code": (
        "arrivalAirportId",
        "arrivalAirportCode",
        "ArrivalAirportId",
        "arrival_airport_code",
    ),
    "segment.departure_datetime": ("departureDateTime", "DepartureDateTime", "departure_datetime"),
    "segment.arrival_datetime": ("arrivalDateTime", "ArrivalDateTime", "arrival_datetime"),
    "segment.duration": ("flightDuration", "duration", "FlightDuration"),
    "segment.flight_number": ("flightNumber", "FlightNumber", "marketingFlightNumber", "flight_number"),
    "segment.airline": ("marketingAirlineName", "operatingAirlineName", "airline"),
    "segment.cabin": ("cabin", "CabinId", "cabinClass"),
    "segment.baggage_allowance": ("baggageAllowance", "BaggageAllowance"),
    "segment.aircraft_type": ("aircraftType", "aircraft", "AircraftType"),
    "segment.layover_airport": ("layoverAirportCode", "layoverAirport", "stopoverAirportCode"),
    "segment.layover_duration": ("layoverDuration", "stopoverDuration"),
}

_WORD_START = re.compile(r"\b\w")


def is_present(value: Any) -> bool:
    """Mirror the loose truthiness the historical payloads were written against."""
    if value is None or value is False:
        return False
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value) > 0
    if isinstance(value, (int, float)):
        return value != 0
    return True


def as_mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def unwrap(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Return the first wrapper mapping of a component record, or the record itself.

    An empty wrapper still wins over later wrapper keys.
    """
    for key in WRAPPER_KEYS:
        candidate = raw.get(key)
        if isinstance(candidate, dict):
            return candidate
    return dict(raw)


def first_present(sources: Iterable[Mapping[str, Any]], keys: Sequence[str]) -> Any:
    """Return the first present value for ``keys`` across ``sources``."""
    for source in sources:
        if not isinstance(source, Mapping):
            continue
        for key in keys:
            value = source.get(key)
            if is_present(value):
                return value
    return None


def resolve(sources: Iterable[Mapping[str, Any]], field: str) -> Any:
    """Look up a logical field through the synonym table."""
    return first_present(sources, FIELD_SYNONYMS[field])


def has_any(sources: Iterable[Mapping[str, Any]], keys: Sequence[str]) -> bool:
    return first_present(sources, keys) is not None


def as_text(value: Any) -> Optional[str]:
    """Coerce a raw value to display text; embedded relations use their ``name``."""
    if not is_present(value):
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (int, float)):
        return f"{value:g}" if isinstance(value, float) else str(value)
    if isinstance(value, dict):
        return as_text(value.get("name"))
    return None


def as_positive_int(value: Any) -> Optional[int]:
    """Return ``value`` as an integer ≥ 1, or ``None``."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None
    return number if number >= 1 else None


def as_positive_number(value: Any) -> Optional[float]:
    """Return a strictly positive real number, rejecting booleans and strings."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value != value or value <= 0:  # NaN
        return None
    return float(value)


def as_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def format_type_label(value: str) -> str:
    """``hotel_chauffeur`` → ``Hotel Chauffeur``."""
    spaced = value.replace("_", " ")
    return _WORD_START.sub(lambda match: match.group(0).upper(), spaced)


def resolve_quantity(raw: Mapping[str, Any], data: Mapping[str, Any]) -> int:
    """First of component.quantity, data.quantity, data.used, data.capacity, else 1."""
    candidates = [raw.get("quantity")] + [data.get(key) for key in FIELD_SYNONYMS["quantity"]]
    for candidate in candidates:
        quantity = as_positive_int(candidate)
        if quantity is not None:
            return quantity
    return 1


def parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def format_date(value: Any, fallback: str = "N/A") -> str:
    """Render a date as ``dd/mm/yyyy``; unparsable text is passed through."""
    parsed = parse_datetime(value)
    if parsed is not None:
        return parsed.strftime("%d/%m/%Y")
    return as_text(value) or fallback


def format_datetime(value: Any, fallback: str = "N/A") -> str:
    """Render a timestamp as ``12 Mar 2025, 14:30``."""
    parsed = parse_datetime(value)
    if parsed is not None:
        return parsed.strftime("%d %b %Y, %H:%M")
    return as_text(value) or fallback
