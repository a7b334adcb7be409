"""Flight detection, normalization and itinerary building."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from backoffice.app.models.components import (
    FlightData,
    FlightItinerary,
    FlightSegment,
    FlightSummary,
    Layover,
    SharedFlightInfo,
)
from backoffice.app.services.fields import (
    FIELD_SYNONYMS,
    as_bool,
    as_list,
    as_mapping,
    as_positive_int,
    as_positive_number,
    as_text,
    first_present,
    format_datetime,
    resolve,
    unwrap,
)

FLIGHT_TAG_KEYS = ("componentType", "component_type", "type")
FLIGHT_ROUTE_KEYS = ("origin", "destination", "originAirport", "destinationAirport")
FLIGHT_DETAIL_KEYS = ("airline", "flightNumber", "cabin", "class", "cabinClass")
FLIGHT_SEGMENT_KEYS = (
    "outboundFlightSegments",
    "returnFlightSegments",
    "outboundFlight",
    "inboundFlight",
)
NESTED_KEYS = ("componentData", "component_data", "data")

FLIGHT_STATUSES = (
    "Booked - Ticketed - Paid",
    "Booked - Ticketed - Not Paid",
    "Booked - Not Ticketed",
)
DEFAULT_FLIGHT_STATUS = "Booked - Not Ticketed"


def _layers(raw: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    layers: List[Mapping[str, Any]] = [raw]
    for key in NESTED_KEYS:
        nested = raw.get(key)
        if isinstance(nested, dict):
            layers.append(nested)
    return layers


def is_flight_component(raw: Any) -> bool:
    """Broad flight heuristic used to split flights from other components.

    Any component carrying a route, airline, cabin or segment field counts as a
    flight, so non-flight records with e.g. a ``class`` field are misclassified.
    Quote and booking documents depend on this exact sectioning.
    """
    if not isinstance(raw, Mapping):
        return False
    for layer in _layers(raw):
        if any(layer.get(key) == "flight" for key in FLIGHT_TAG_KEYS):
            return True
        if first_present((layer,), FLIGHT_ROUTE_KEYS + FLIGHT_DETAIL_KEYS + FLIGHT_SEGMENT_KEYS):
            return True
    return False


def partition_components(
    components: Iterable[Any],
) -> Tuple[List[Any], List[Any]]:
    """Split ``components`` into ``(flights, others)`` preserving order."""
    flights: List[Any] = []
    others: List[Any] = []
    for component in components:
        (flights if is_flight_component(component) else others).append(component)
    return flights, others


def _baggage_pieces(value: Any) -> Optional[int]:
    allowance = as_mapping(value)
    return as_positive_int(allowance.get("NumberOfPieces") or allowance.get("numberOfPieces"))


def normalize_segment(raw: Mapping[str, Any]) -> FlightSegment:
    """Map one raw leg onto ``FlightSegment``."""
    sources = (raw,)
    layover = None
    layover_airport = as_text(resolve(sources, "segment.layover_airport"))
    if layover_airport:
        layover = Layover(
            airport_code=layover_airport,
            duration=as_text(resolve(sources, "segment.layover_duration")),
        )
    return FlightSegment(
        departure_airport_name=as_text(resolve(sources, "segment.departure_airport_name")),
        departure_airport_code=as_text(resolve(sources, "segment.departure_airport_code")),
        arrival_airport_name=as_text(resolve(sources, "segment.arrival_airport_name")),
        arrival_airport_code=as_text(resolve(sources, "segment.arrival_airport_code")),
        departure_datetime=as_text(resolve(sources, "segment.departure_datetime")),
        arrival_datetime=as_text(resolve(sources, "segment.arrival_datetime")),
        duration_text=as_text(resolve(sources, "segment.duration")),
        flight_number=as_text(resolve(sources, "segment.flight_number")),
        airline=as_text(resolve(sources, "segment.airline")),
        cabin=as_text(resolve(sources, "segment.cabin")),
        baggage_pieces=_baggage_pieces(resolve(sources, "segment.baggage_allowance")),
        aircraft_type=as_text(resolve(sources, "segment.aircraft_type")),
        layover=layover,
    )


def _segments(sources: Sequence[Mapping[str, Any]], array_field: str, leg_field: str) -> List[FlightSegment]:
    array = [item for item in as_list(resolve(sources, array_field)) if isinstance(item, dict)]
    if array:
        return [normalize_segment(item) for item in array]
    leg = resolve(sources, leg_field)
    if isinstance(leg, dict):
        return [normalize_segment(leg)]
    return []


def _first_positive(sources: Sequence[Mapping[str, Any]], keys: Sequence[str]) -> Optional[float]:
    for source in sources:
        for key in keys:
            number = as_positive_number(source.get(key))
            if number is not None:
                return number
    return None


def _first_defined(sources: Sequence[Mapping[str, Any]], keys: Sequence[str]) -> Any:
    for source in sources:
        for key in keys:
            if source.get(key) is not None:
                return source.get(key)
    return None


def _passenger_count(sources: Sequence[Mapping[str, Any]], recommendation: Mapping[str, Any]) -> Optional[int]:
    value = resolve(sources, "flight.passengers")
    if isinstance(value, list):
        return len(value)
    count = as_positive_int(value)
    if count is not None:
        return count
    passengers = recommendation.get("Passengers")
    return len(passengers) if isinstance(passengers, list) and passengers else None


def _layover_list(value: Any) -> List[Layover]:
    layovers: List[Layover] = []
    for entry in as_list(value):
        if isinstance(entry, dict):
            code = as_text(entry.get("airportCode") or entry.get("airport_code") or entry.get("airport"))
            if code:
                layovers.append(Layover(airport_code=code, duration=as_text(entry.get("duration"))))
        else:
            code = as_text(entry)
            if code:
                layovers.append(Layover(airport_code=code))
    return layovers


def _unique(values: Iterable[Optional[str]]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def normalize_flight(raw: Mapping[str, Any]) -> FlightData:
    """Resolve every flight attribute once into ``FlightData``."""
    data = unwrap(raw)
    sources = (data, raw)
    recommendation = as_mapping(data.get("recommendation") or raw.get("recommendation"))

    outbound = _segments(sources, "flight.outbound_segments", "flight.outbound_leg")
    inbound = _segments(sources, "flight.return_segments", "flight.return_leg")
    all_segments = outbound + inbound

    single_numbers = [
        as_text(source.get(key))
        for source in sources
        for key in FIELD_SYNONYMS["flight.single_numbers"]
    ]
    flight_numbers = _unique(single_numbers + [segment.flight_number for segment in all_segments])

    layovers = _layover_list(resolve(sources, "flight.layovers"))
    layovers.extend(segment.layover for segment in all_segments if segment.layover)

    aircraft = as_text(first_present(sources, ("aircraftType", "aircraft")))
    aircraft_types = _unique([aircraft] + [segment.aircraft_type for segment in all_segments])

    total = _first_positive(sources, FIELD_SYNONYMS["flight.total_price"])
    if total is None:
        total = as_positive_number(recommendation.get("Total"))

    baggage = as_positive_int(resolve(sources, "flight.baggage_pieces"))
    if baggage is None:
        baggage = _baggage_pieces(resolve(sources, "flight.baggage_allowance"))

    first_outbound = outbound[0] if outbound else None
    last_outbound = outbound[-1] if outbound else None
    currency = as_text(resolve(sources, "flight.currency"))

    return FlightData(
        outbound_segments=outbound,
        return_segments=inbound,
        origin=as_text(resolve(sources, "flight.origin"))
        or (first_outbound.departure_airport_code if first_outbound else None),
        destination=as_text(resolve(sources, "flight.destination"))
        or (last_outbound.arrival_airport_code if last_outbound else None),
        flight_numbers=flight_numbers,
        departure_datetime=as_text(resolve(sources, "flight.departure_datetime"))
        or (first_outbound.departure_datetime if first_outbound else None),
        return_datetime=as_text(resolve(sources, "flight.return_datetime"))
        or (inbound[0].departure_datetime if inbound else None),
        passenger_count=_passenger_count(sources, recommendation),
        total_price=total,
        currency_code=currency.upper() if currency else None,
        airline=as_text(resolve(sources, "flight.airline")),
        cabin_class=as_text(resolve(sources, "flight.cabin_class")),
        baggage_pieces=baggage,
        fare_type=as_text(resolve(sources, "flight.fare_type")),
        refundable=as_bool(_first_defined(sources, FIELD_SYNONYMS["flight.refundable"])),
        layovers=layovers,
        aircraft_types=aircraft_types,
        loyalty_program=as_text(resolve(sources, "flight.loyalty_program")),
        rating=as_text(resolve(sources, "flight.rating")),
        is_corporate=as_bool(_first_defined(sources, FIELD_SYNONYMS["flight.is_corporate"])),
        is_premium=as_bool(_first_defined(sources, FIELD_SYNONYMS["flight.is_premium"])),
        is_baggage_only=as_bool(_first_defined(sources, FIELD_SYNONYMS["flight.is_baggage_only"])),
        is_semi_deferred=as_bool(_first_defined(sources, FIELD_SYNONYMS["flight.is_semi_deferred"])),
    )


def flight_detail_lines(flight: FlightData) -> List[str]:
    """Optional detail lines in display order."""
    lines: List[str] = []
    if flight.fare_type:
        lines.append(f"Fare: {flight.fare_type}")
    if flight.baggage_pieces:
        suffix = "piece" if flight.baggage_pieces == 1 else "pieces"
        lines.append(f"Baggage: {flight.baggage_pieces} {suffix}")
    if flight.aircraft_types:
        lines.append(f"Aircraft: {', '.join(flight.aircraft_types)}")
    if flight.layovers:
        lines.append(f"Layovers: {', '.join(layover.label() for layover in flight.layovers)}")
    if flight.refundable is not None:
        lines.append(f"Refundable: {'Yes' if flight.refundable else 'No'}")
    if flight.loyalty_program:
        lines.append(f"Loyalty: {flight.loyalty_program}")
    if flight.rating:
        lines.append(f"Rating: {flight.rating}")
    flags = [
        label
        for label, enabled in (
            ("Corporate", flight.is_corporate),
            ("Premium", flight.is_premium),
            ("Baggage only", flight.is_baggage_only),
            ("Semi-deferred", flight.is_semi_deferred),
        )
        if enabled
    ]
    if flags:
        lines.append(f"Fare flags: {', '.join(flags)}")
    return lines


def summarize_flight(flight: FlightData) -> FlightSummary:
    return FlightSummary(
        route=f"{flight.origin or 'N/A'} → {flight.destination or 'N/A'}",
        flight_numbers=flight.flight_numbers or ["N/A"],
        departure=format_datetime(flight.departure_datetime),
        return_=format_datetime(flight.return_datetime),
        price=flight.total_price if flight.total_price is not None else "N/A",
        currency=flight.currency_code or "N/A",
        airline=flight.airline or "N/A",
        cabin_class=flight.cabin_class or "Economy",
        aircraft_types=flight.aircraft_types or ["N/A"],
        layovers=[layover.label() for layover in flight.layovers] or ["N/A"],
        details="\n".join(flight_detail_lines(flight)),
    )


def extract_flight_info(raw: Any) -> FlightSummary:
    """Display-ready summary for any record; malformed input yields defaults."""
    if not isinstance(raw, Mapping):
        return FlightSummary()
    try:
        return summarize_flight(normalize_flight(raw))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Flight extraction fell back to defaults: {error}", error=exc)
        return FlightSummary()


def build_itinerary(flight: FlightData, direction: str) -> FlightItinerary:
    """Segments for one direction plus the shared info row of its first leg."""
    segments = flight.outbound_segments if direction == "outbound" else flight.return_segments
    shared = None
    if segments:
        first = segments[0]
        baggage = first.baggage_pieces or flight.baggage_pieces
        shared = SharedFlightInfo(
            airline=first.airline or flight.airline or "N/A",
            cabin_class=first.cabin or flight.cabin_class or "N/A",
            baggage=str(baggage) if baggage else "N/A",
        )
    return FlightItinerary(direction=direction, segments=segments, shared=shared)


def segment_endpoint(name: Optional[str], code: Optional[str]) -> str:
    """``London Heathrow (LHR)``; missing parts render as ``N/A``."""
    return f"{name or 'N/A'} ({code or 'N/A'})"


def segment_row(segment: FlightSegment) -> Dict[str, str]:
    return {
        "from": segment_endpoint(segment.departure_airport_name, segment.departure_airport_code),
        "to": segment_endpoint(segment.arrival_airport_name, segment.arrival_airport_code),
        "departure": format_datetime(segment.departure_datetime),
        "arrival": format_datetime(segment.arrival_datetime),
        "duration": segment.duration_text or "N/A",
    }
