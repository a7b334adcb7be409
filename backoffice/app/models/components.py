"""Canonical models for quote and booking components.

Raw "selected component" records arrive in several historical shapes (live
inventory rows, frozen quote snapshots, legacy booking payloads). They are
normalized once into ``SelectedComponent`` whose ``component_data`` is a
discriminated union keyed on ``component_type``. Display code works on these
models and never re-inspects the raw record.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class ComponentType(str, Enum):
    """Resolved component tag."""

    TICKET = "ticket"
    HOTEL_ROOM = "hotel_room"
    AIRPORT_TRANSFER = "airport_transfer"
    CIRCUIT_TRANSFER = "circuit_transfer"
    LOUNGE_PASS = "lounge_pass"
    FLIGHT = "flight"
    CUSTOM = "custom"


class TicketData(BaseModel):
    component_type: Literal["ticket"] = "ticket"
    category_name: Optional[str] = None
    seat: Optional[str] = None


class HotelRoomData(BaseModel):
    component_type: Literal["hotel_room"] = "hotel_room"
    hotel_name: Optional[str] = None
    room_type: Optional[str] = None
    bed_type: Optional[str] = None
    check_in: Optional[str] = None
    check_out: Optional[str] = None


class AirportTransferData(BaseModel):
    component_type: Literal["airport_transfer"] = "airport_transfer"
    transport_type: Optional[str] = None
    direction: Optional[str] = None


class CircuitTransferData(BaseModel):
    component_type: Literal["circuit_transfer"] = "circuit_transfer"
    transfer_type: Optional[str] = None
    days: Optional[int] = None


class LoungePassData(BaseModel):
    component_type: Literal["lounge_pass"] = "lounge_pass"
    lounge_name: Optional[str] = None


class Layover(BaseModel):
    airport_code: str
    duration: Optional[str] = None

    def label(self) -> str:
        return f"{self.airport_code} ({self.duration})" if self.duration else self.airport_code


class FlightSegment(BaseModel):
    """One leg of an itinerary."""

    departure_airport_name: Optional[str] = None
    departure_airport_code: Optional[str] = None
    arrival_airport_name: Optional[str] = None
    arrival_airport_code: Optional[str] = None
    departure_datetime: Optional[str] = None
    arrival_datetime: Optional[str] = None
    duration_text: Optional[str] = None
    flight_number: Optional[str] = None
    airline: Optional[str] = None
    cabin: Optional[str] = None
    baggage_pieces: Optional[int] = None
    aircraft_type: Optional[str] = None
    layover: Optional[Layover] = None


class FlightData(BaseModel):
    component_type: Literal["flight"] = "flight"
    outbound_segments: List[FlightSegment] = Field(default_factory=list)
    return_segments: List[FlightSegment] = Field(default_factory=list)
    origin: Optional[str] = None
    destination: Optional[str] = None
    flight_numbers: List[str] = Field(default_factory=list)
    departure_datetime: Optional[str] = None
    return_datetime: Optional[str] = None
    passenger_count: Optional[int] = None
    total_price: Optional[float] = None
    currency_code: Optional[str] = None
    airline: Optional[str] = None
    cabin_class: Optional[str] = None
    baggage_pieces: Optional[int] = None
    fare_type: Optional[str] = None
    refundable: Optional[bool] = None
    layovers: List[Layover] = Field(default_factory=list)
    aircraft_types: List[str] = Field(default_factory=list)
    loyalty_program: Optional[str] = None
    rating: Optional[str] = None
    is_corporate: Optional[bool] = None
    is_premium: Optional[bool] = None
    is_baggage_only: Optional[bool] = None
    is_semi_deferred: Optional[bool] = None


class CustomData(BaseModel):
    component_type: Literal["custom"] = "custom"
    display_name: str = "Component"
    description: str = "Service Included"


ComponentPayload = Annotated[
    Union[
        TicketData,
        HotelRoomData,
        AirportTransferData,
        CircuitTransferData,
        LoungePassData,
        FlightData,
        CustomData,
    ],
    Field(discriminator="component_type"),
]


class SelectedComponent(BaseModel):
    """A quote/booking line item with its resolved tag."""

    id: Optional[str] = None
    component_type: ComponentType
    quantity: int = Field(default=1, ge=1)
    component_data: ComponentPayload


class ComponentInfo(BaseModel):
    """Row shown in the "included in the package" tables."""

    name: str
    details: str
    quantity: int = 1


class FlightSummary(BaseModel):
    """Display-ready flight description for tables and quote documents."""

    route: str = "N/A"
    flight_numbers: List[str] = Field(default_factory=lambda: ["N/A"])
    departure: str = "N/A"
    return_: str = Field(default="N/A", alias="return")
    price: Union[float, str] = "N/A"
    currency: str = "N/A"
    airline: str = "N/A"
    cabin_class: str = "Economy"
    aircraft_types: List[str] = Field(default_factory=lambda: ["N/A"])
    layovers: List[str] = Field(default_factory=lambda: ["N/A"])
    details: str = ""

    model_config = {"populate_by_name": True}


class SharedFlightInfo(BaseModel):
    """Airline/class/baggage row rendered once above a direction's table."""

    airline: str = "N/A"
    cabin_class: str = "N/A"
    baggage: str = "N/A"


class FlightItinerary(BaseModel):
    direction: Literal["outbound", "return"]
    segments: List[FlightSegment] = Field(default_factory=list)
    shared: Optional[SharedFlightInfo] = None
