"""Component classification, normalization and display extraction.

Raw component records are classified once, by walking ``CLASSIFICATION_RULES``
in order (first match wins), into a ``SelectedComponent`` carrying the
resolved tag. ``describe_component`` then switches on that tag to produce the
``ComponentInfo`` row shown in quote and booking documents.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from backoffice.app.models.components import (
    AirportTransferData,
    CircuitTransferData,
    ComponentInfo,
    ComponentType,
    CustomData,
    FlightData,
    HotelRoomData,
    LoungePassData,
    SelectedComponent,
    TicketData,
)
from backoffice.app.services.fields import (
    TAG_KEYS,
    as_positive_int,
    as_text,
    first_present,
    format_date,
    format_type_label,
    has_any,
    resolve,
    resolve_quantity,
    unwrap,
)
from backoffice.app.services.flights import (
    FLIGHT_DETAIL_KEYS,
    FLIGHT_ROUTE_KEYS,
    FLIGHT_SEGMENT_KEYS,
    is_flight_component,
    normalize_flight,
)

FALLBACK_INFO = ComponentInfo(name="N/A", details="N/A", quantity=1)

# Keys of legacy object-shaped ``selected_components`` and the tag each implies.
LEGACY_COLLECTION_TAGS: Dict[str, ComponentType] = {
    "tickets": ComponentType.TICKET,
    "hotels": ComponentType.HOTEL_ROOM,
    "hotel_rooms": ComponentType.HOTEL_ROOM,
    "circuitTransfer": ComponentType.CIRCUIT_TRANSFER,
    "circuitTransfers": ComponentType.CIRCUIT_TRANSFER,
    "circuit_transfers": ComponentType.CIRCUIT_TRANSFER,
    "airportTransfer": ComponentType.AIRPORT_TRANSFER,
    "airportTransfers": ComponentType.AIRPORT_TRANSFER,
    "airport_transfers": ComponentType.AIRPORT_TRANSFER,
    "flights": ComponentType.FLIGHT,
    "loungePass": ComponentType.LOUNGE_PASS,
    "lounge_passes": ComponentType.LOUNGE_PASS,
    "loungePasses": ComponentType.LOUNGE_PASS,
}


class ComponentShape:
    """Read-only view over a raw record and its unwrapped payload."""

    def __init__(self, raw: Mapping[str, Any]):
        self.raw = raw
        self.data = unwrap(raw)
        self.sources: Tuple[Mapping[str, Any], ...] = (self.data, raw)

    @property
    def explicit_tag(self) -> Optional[str]:
        value = first_present((self.raw,), TAG_KEYS)
        return value if isinstance(value, str) else None

    def tagged(self, tag: ComponentType) -> bool:
        return self.explicit_tag == tag.value

    def has(self, *keys: str) -> bool:
        return has_any(self.sources, keys)

    def type_is(self, value: str) -> bool:
        return any(source.get("type") == value for source in self.sources)

    def variant_mentions(self, word: str) -> bool:
        variant = first_present(self.sources, ("variant",))
        return isinstance(variant, str) and word in variant


Rule = Tuple[str, Callable[[ComponentShape], bool], ComponentType]

CLASSIFICATION_RULES: Sequence[Rule] = (
    ("explicit ticket tag", lambda p: p.tagged(ComponentType.TICKET), ComponentType.TICKET),
    ("explicit hotel tag", lambda p: p.tagged(ComponentType.HOTEL_ROOM), ComponentType.HOTEL_ROOM),
    (
        "explicit airport transfer tag",
        lambda p: p.tagged(ComponentType.AIRPORT_TRANSFER),
        ComponentType.AIRPORT_TRANSFER,
    ),
    (
        "explicit circuit transfer tag",
        lambda p: p.tagged(ComponentType.CIRCUIT_TRANSFER),
        ComponentType.CIRCUIT_TRANSFER,
    ),
    ("explicit lounge tag", lambda p: p.tagged(ComponentType.LOUNGE_PASS), ComponentType.LOUNGE_PASS),
    ("explicit flight tag", lambda p: p.tagged(ComponentType.FLIGHT), ComponentType.FLIGHT),
    ("ticket fields", lambda p: p.has("ticket_category_id", "category"), ComponentType.TICKET),
    (
        "hotel fields",
        lambda p: p.has("hotel_id", "hotelName", "hotel_name"),
        ComponentType.HOTEL_ROOM,
    ),
    (
        "outbound flight number",
        lambda p: p.has("outbound_flight_number", "outboundFlightNumber", "flight_number"),
        ComponentType.FLIGHT,
    ),
    (
        "circuit transfer fields",
        lambda p: p.has("transfer_type", "transferType", "transfer_type_id")
        or p.type_is("circuit_transfer"),
        ComponentType.CIRCUIT_TRANSFER,
    ),
    (
        "airport transfer fields",
        lambda p: p.has("transport_type", "transportType", "transport_type_id")
        or p.type_is("airport_transfer"),
        ComponentType.AIRPORT_TRANSFER,
    ),
    ("lounge variant", lambda p: p.variant_mentions("Lounge"), ComponentType.LOUNGE_PASS),
    (
        "route, airline or segment fields",
        lambda p: p.has(*FLIGHT_ROUTE_KEYS, *FLIGHT_DETAIL_KEYS, *FLIGHT_SEGMENT_KEYS),
        ComponentType.FLIGHT,
    ),
)


def classify_component(raw: Mapping[str, Any]) -> ComponentType:
    """Resolve the tag of a raw record; unmatched records are ``custom``."""
    shape = ComponentShape(raw)
    for label, predicate, tag in CLASSIFICATION_RULES:
        if predicate(shape):
            logger.debug("Component classified as {tag} by {rule}", tag=tag.value, rule=label)
            return tag
    return ComponentType.CUSTOM


def resolve_component_type(raw: Mapping[str, Any]) -> str:
    """Stored ``type``/tag of a component, else its classified tag."""
    explicit = first_present((raw,), ("type",) + TAG_KEYS)
    if isinstance(explicit, str):
        return explicit
    return classify_component(raw).value


def booking_kind(raw: Mapping[str, Any]) -> str:
    """Tag used when booking a component.

    Anything the document partition treats as a flight is booked as one, so
    booked flight rows line up with the flights shown in booking documents.
    """
    if is_flight_component(raw):
        return ComponentType.FLIGHT.value
    return resolve_component_type(raw)


def _direction(shape: ComponentShape) -> Optional[str]:
    value = first_present(
        (
            {"direction": shape.raw.get("direction")},
            {"direction": shape.data.get("direction")},
            {"direction": shape.data.get("transferDirection")},
            {"direction": shape.raw.get("transferDirection")},
        ),
        ("direction",),
    )
    return as_text(value)


def _custom_data(shape: ComponentShape) -> CustomData:
    display = as_text(resolve(shape.sources, "custom.display_name"))
    if display is None and shape.explicit_tag:
        display = format_type_label(shape.explicit_tag)
    description = as_text(resolve(shape.sources, "custom.description"))
    return CustomData(
        display_name=display or "Component",
        description=description or "Service Included",
    )


def _payload_for(tag: ComponentType, shape: ComponentShape):
    sources = shape.sources
    if tag is ComponentType.TICKET:
        return TicketData(
            category_name=as_text(resolve(sources, "ticket.category_name")),
            seat=as_text(resolve(sources, "ticket.seat")),
        )
    if tag is ComponentType.HOTEL_ROOM:
        return HotelRoomData(
            hotel_name=as_text(resolve(sources, "hotel.hotel_name")),
            room_type=as_text(resolve(sources, "hotel.room_type")),
            bed_type=as_text(resolve(sources, "hotel.bed_type")),
            check_in=as_text(resolve(sources, "hotel.check_in")),
            check_out=as_text(resolve(sources, "hotel.check_out")),
        )
    if tag is ComponentType.AIRPORT_TRANSFER:
        return AirportTransferData(
            transport_type=as_text(resolve(sources, "airport_transfer.transport_type")),
            direction=_direction(shape),
        )
    if tag is ComponentType.CIRCUIT_TRANSFER:
        return CircuitTransferData(
            transfer_type=as_text(resolve(sources, "circuit_transfer.transfer_type")),
            days=as_positive_int(resolve(sources, "circuit_transfer.days")),
        )
    if tag is ComponentType.LOUNGE_PASS:
        return LoungePassData(
            lounge_name=as_text(
                resolve(sources, "lounge_pass.lounge_name")
                or first_present(sources, ("component_name",))
            )
        )
    if tag is ComponentType.FLIGHT:
        return normalize_flight(shape.raw)
    return _custom_data(shape)


def normalize_component(raw: Mapping[str, Any]) -> SelectedComponent:
    """Classify ``raw`` once and build its canonical ``SelectedComponent``."""
    shape = ComponentShape(raw)
    tag = classify_component(raw)
    record_id = raw.get("id") or shape.data.get("id")
    return SelectedComponent(
        id=str(record_id) if record_id is not None else None,
        component_type=tag,
        quantity=resolve_quantity(raw, shape.data),
        component_data=_payload_for(tag, shape),
    )


def describe_component(component: SelectedComponent) -> ComponentInfo:
    """Turn a normalized component into its display row."""
    data = component.component_data
    quantity = component.quantity

    if isinstance(data, TicketData):
        category = data.category_name or "General Admission"
        details = f"{category} (Seat: {data.seat})" if data.seat else category
        return ComponentInfo(name="Event Ticket", details=details, quantity=quantity)

    if isinstance(data, HotelRoomData):
        parts = [data.hotel_name or "Hotel"]
        if data.room_type:
            parts.append(f"Room: {data.room_type}")
        if data.bed_type:
            parts.append(f"Bed: {data.bed_type}")
        if data.check_in:
            parts.append(f"Check-in: {format_date(data.check_in)}")
        if data.check_out:
            parts.append(f"Check-out: {format_date(data.check_out)}")
        return ComponentInfo(name="Hotel Room", details=", ".join(parts), quantity=quantity)

    if isinstance(data, AirportTransferData):
        label = format_type_label(data.transport_type) if data.transport_type else "Airport Transfer"
        details = label
        if data.direction:
            details = f"{label}, Direction: {format_type_label(data.direction)}"
        return ComponentInfo(name="Airport Transfer", details=details, quantity=quantity)

    if isinstance(data, CircuitTransferData):
        label = format_type_label(data.transfer_type) if data.transfer_type else "Circuit Transfer"
        details = f"{label}, Days: {data.days}" if data.days else label
        return ComponentInfo(name="Circuit Transfer", details=details, quantity=quantity)

    if isinstance(data, LoungePassData):
        return ComponentInfo(
            name="Lounge Pass", details=data.lounge_name or "Lounge", quantity=quantity
        )

    if isinstance(data, FlightData):
        route = f"{data.origin or 'N/A'} → {data.destination or 'N/A'}"
        return ComponentInfo(name="Flight", details=route, quantity=quantity)

    if isinstance(data, CustomData):
        return ComponentInfo(
            name=data.display_name, details=data.description, quantity=quantity
        )

    raise TypeError(f"Unhandled component payload: {type(data).__name__}")


def _fallback_quantity(raw: Any) -> int:
    if isinstance(raw, Mapping):
        return as_positive_int(raw.get("quantity")) or 1
    return 1


def extract_component_info(raw: Any) -> ComponentInfo:
    """Return ``name``/``details``/``quantity`` for any input; never raises."""
    if not raw and not isinstance(raw, Mapping):
        return FALLBACK_INFO.model_copy()
    if not isinstance(raw, Mapping):
        logger.warning("Ignoring non-mapping component record of type {kind}", kind=type(raw).__name__)
        return ComponentInfo(name="Component", details="Service Included", quantity=1)
    try:
        return describe_component(normalize_component(raw))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Component extraction fell back to defaults: {error}", error=exc)
        return ComponentInfo(
            name="Component", details="Service Included", quantity=_fallback_quantity(raw)
        )


def coerce_component_list(selected: Any) -> List[Dict[str, Any]]:
    """Accept array-shaped or legacy object-shaped ``selected_components``."""
    if not selected:
        return []
    if isinstance(selected, list):
        return [item for item in selected if isinstance(item, dict)]
    if not isinstance(selected, dict):
        return []

    components: List[Dict[str, Any]] = []
    for key, value in selected.items():
        tag = LEGACY_COLLECTION_TAGS.get(key)
        entries = value if isinstance(value, list) else [value]
        for entry in entries:
            if not isinstance(entry, dict) or not entry:
                continue
            if tag is not None and not first_present((entry,), TAG_KEYS):
                entry = {**entry, "componentType": tag.value}
            components.append(entry)
    return components
